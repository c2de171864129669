"""
Directory sign-in: find yourself in the participant list, prove it with your
phone number the first time, then use a 4-digit PIN.

The flow is a small state machine driven by the sign-in form:

    NoIdentitySelected -> RegisteringPhoneCheck -> AwaitingPin(is_new=True)  -> Authenticated
    NoIdentitySelected -> LoginIdentitySelected -> AwaitingPin(is_new=False) -> Authenticated

``start_over`` is accepted from every state.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional

import config
from errors import BusinessRuleError, ValidationError
from models import Identity, SessionUser
from pin_manager import PinManager

logger = logging.getLogger(__name__)


class Flow(enum.Enum):
    REGISTER = "register"
    LOGIN = "login"


@dataclass(frozen=True)
class NoIdentitySelected:
    flow: Optional[Flow] = None


@dataclass(frozen=True)
class RegisteringPhoneCheck:
    identity: Identity


@dataclass(frozen=True)
class LoginIdentitySelected:
    identity: Identity


@dataclass(frozen=True)
class AwaitingPin:
    identity: Identity
    is_new: bool


@dataclass(frozen=True)
class Authenticated:
    user: SessionUser


class IdentityResolver:
    """Looks participants up by name."""

    def __init__(self, backend, limit=config.SEARCH_RESULT_LIMIT):
        self.backend = backend
        self.limit = limit

    def search(self, fragment):
        """Participants whose name contains ``fragment``, case-insensitive, sorted by name."""
        if fragment is None or not fragment.strip():
            raise ValidationError("Type at least one letter of your name.")
        candidates = self.backend.search_by_name(fragment.strip(), self.limit)
        return sorted(candidates, key=lambda identity: identity.name.casefold())[:self.limit]

    def resolve_exact(self, name):
        if name is None or not name.strip():
            raise ValidationError("Please select your name from the list.")
        return self.backend.get_identity_by_name(name)


class CredentialGate:
    """Drives one sign-in attempt from name selection to a stored session."""

    def __init__(self, backend, session_store, resolver=None, pin_manager=None):
        self.backend = backend
        self.session_store = session_store
        self.resolver = resolver or IdentityResolver(backend)
        self.pin_manager = pin_manager or PinManager(backend)
        self.state = NoIdentitySelected()
        self.candidates = []
        self._generation = 0

    def _move(self, state):
        logger.debug("Sign-in state %s -> %s", type(self.state).__name__, type(state).__name__)
        self.state = state
        self._generation += 1
        return state

    def _expect(self, *state_types):
        if not isinstance(self.state, state_types):
            raise ValidationError("That step is not available right now. Please start over.")
        return self.state

    def _is_stale(self, token):
        if token != self._generation:
            logger.info("Discarding a sign-in response that arrived after the form moved on")
            return True
        return False

    @property
    def flow(self):
        state = self.state
        if isinstance(state, NoIdentitySelected):
            return state.flow
        if isinstance(state, RegisteringPhoneCheck):
            return Flow.REGISTER
        if isinstance(state, LoginIdentitySelected):
            return Flow.LOGIN
        if isinstance(state, AwaitingPin):
            return Flow.REGISTER if state.is_new else Flow.LOGIN
        return None

    @property
    def selected(self):
        state = self.state
        if isinstance(state, (RegisteringPhoneCheck, LoginIdentitySelected, AwaitingPin)):
            return state.identity
        return None

    def choose_flow(self, flow):
        self._expect(NoIdentitySelected)
        self.candidates = []
        return self._move(NoIdentitySelected(Flow(flow)))

    def search(self, fragment):
        """Look up candidates. Typing again always drops an earlier selection."""
        flow = self.flow
        self._expect(NoIdentitySelected, RegisteringPhoneCheck, LoginIdentitySelected)
        if flow is None:
            raise ValidationError("Choose whether you are registering or logging in first.")

        if self.selected is not None:
            self._move(NoIdentitySelected(flow))
        token = self._generation
        candidates = self.resolver.search(fragment)
        if self._is_stale(token):
            return self.candidates
        self.candidates = candidates
        return candidates

    def select_identity(self, identity_id):
        """Pick one of the last search results. Free-typed names are never accepted."""
        flow = self.flow
        self._expect(NoIdentitySelected, RegisteringPhoneCheck, LoginIdentitySelected)
        if flow is None:
            raise ValidationError("Choose whether you are registering or logging in first.")

        identity = next((c for c in self.candidates if c.id == str(identity_id)), None)
        if identity is None:
            raise ValidationError("Please select your name from the list.")

        if flow is Flow.REGISTER:
            return self._move(RegisteringPhoneCheck(identity))
        return self._move(LoginIdentitySelected(identity))

    def submit_phone(self, phone):
        """Registration step: the phone number must match the one on file."""
        if isinstance(self.state, NoIdentitySelected) and self.state.flow is Flow.REGISTER:
            raise ValidationError("Please select your name from the list.")
        state = self._expect(RegisteringPhoneCheck)
        if phone is None or not phone.strip():
            raise ValidationError("Please enter your phone number.")

        token = self._generation
        identity = self.backend.get_identity_by_name_and_phone(state.identity.name, phone)
        if self._is_stale(token):
            return self.state

        if identity is None:
            raise BusinessRuleError("The phone number does not match our records.")
        if identity.is_registered:
            raise BusinessRuleError("You are already registered. Please use Login instead.")
        return self._move(AwaitingPin(identity, is_new=True))

    def submit_login(self):
        """Login step: the selected participant must already have a PIN."""
        if isinstance(self.state, NoIdentitySelected) and self.state.flow is Flow.LOGIN:
            raise ValidationError("Please select your name from the list.")
        state = self._expect(LoginIdentitySelected)

        token = self._generation
        identity = self.resolver.resolve_exact(state.identity.name)
        if self._is_stale(token):
            return self.state

        if identity is None:
            raise BusinessRuleError("We could not find that participant. Please search again.")
        if not identity.is_registered:
            raise BusinessRuleError("You have not registered yet. Please register first.")
        return self._move(AwaitingPin(identity, is_new=False))

    def submit_pin(self, pin, confirmation=None):
        """Set or verify the PIN. On success the session is stored and the gate is done."""
        state = self._expect(AwaitingPin)
        token = self._generation

        if state.is_new:
            identity = self.pin_manager.set_pin(state.identity, pin, confirmation)
            if self._is_stale(token):
                return self.state
        else:
            valid = self.pin_manager.verify_pin(state.identity, pin)
            if self._is_stale(token):
                return self.state
            if not valid:
                raise BusinessRuleError("The PIN is incorrect.")
            identity = state.identity

        user = self.session_store.sign_in(identity)
        self.candidates = []
        return self._move(Authenticated(user))

    def start_over(self):
        self.candidates = []
        return self._move(NoIdentitySelected())
