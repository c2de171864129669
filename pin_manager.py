"""
Setting and checking the 4-digit PIN used by the directory sign-in.
"""
import logging
import re

import config
from errors import ValidationError
from passwords import hash_pin

logger = logging.getLogger(__name__)

PIN_PATTERN = re.compile(r"[0-9]{%d}" % config.PIN_LENGTH)


def validate_pin(pin):
    """Raise ``ValidationError`` unless the PIN is exactly four ASCII digits."""
    if not isinstance(pin, str) or not pin.strip():
        raise ValidationError("Please enter your PIN.")
    if not PIN_PATTERN.fullmatch(pin):
        raise ValidationError(f"The PIN must be exactly {config.PIN_LENGTH} digits.")


class PinManager:
    def __init__(self, backend, rounds=config.PIN_HASH_ROUNDS):
        self.backend = backend
        self.rounds = rounds

    def set_pin(self, identity, pin, confirmation):
        """Store a new PIN for a participant and return their refreshed record.

        Any existing hash is overwritten. The returned identity is re-read
        from the backend so that the session is built from what was stored.
        """
        validate_pin(pin)
        if pin != confirmation:
            raise ValidationError("The PIN values do not match.")

        self.backend.set_credential_hash(identity.id, hash_pin(pin, self.rounds))
        logger.info("PIN set for participant %s", identity.id)

        refreshed = self.backend.get_identity_by_name(identity.name)
        if refreshed is None or refreshed.id != identity.id:
            logger.warning("Could not re-read participant %s after setting the PIN", identity.id)
            return identity
        return refreshed

    def verify_pin(self, identity, pin):
        """True when the PIN matches the stored hash. False also covers 'no hash on file'."""
        validate_pin(pin)
        return bool(self.backend.verify_credential(identity.id, pin))
