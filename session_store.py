"""
Client-side session for the signed-in participant.

The session is a cached copy of the participant record kept under a single
key in per-browser storage. It is trusted by the pages without re-checking
the backend, so it must never contain the credential hash.
"""
import json
import logging

import config
from models import SessionUser

logger = logging.getLogger(__name__)


class SessionStore:
    """Owns the stored session and tells subscribers when it changes.

    ``storage`` is any mutable mapping. The app passes the tab's
    ``st.session_state``; tests pass a plain dict.
    """

    def __init__(self, storage, key=config.SESSION_KEY):
        self._storage = storage
        self._key = key
        self._current = None
        self._subscribers = []
        self.get_current_session()

    @property
    def current(self):
        return self._current

    @property
    def is_authenticated(self):
        return self._current is not None

    def sign_in(self, identity):
        """Persist a session for the given identity and announce it."""
        user = identity if isinstance(identity, SessionUser) else identity.to_session()
        self._storage[self._key] = json.dumps(user.to_dict(), ensure_ascii=False)
        self._current = user
        logger.info("Participant %s signed in", user.id)
        self._notify(user)
        return user

    def sign_out(self):
        """Forget the session and announce it."""
        if self._key in self._storage:
            del self._storage[self._key]
        previous = self._current
        self._current = None
        if previous is not None:
            logger.info("Participant %s signed out", previous.id)
        self._notify(None)

    def get_current_session(self):
        """Read the stored session, dropping it if it cannot be parsed."""
        raw = self._storage.get(self._key)
        if not raw:
            self._current = None
            return None

        try:
            self._current = SessionUser.from_dict(json.loads(raw))
        except (TypeError, ValueError):
            logger.warning("Discarding unreadable stored session")
            del self._storage[self._key]
            self._current = None
        return self._current

    def handle_storage_change(self, key):
        """Reconcile after someone else wrote to the storage."""
        if key != self._key:
            return
        self._notify(self.get_current_session())

    def subscribe(self, callback):
        """Call ``callback(user_or_none)`` on every change. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, user):
        for callback in list(self._subscribers):
            try:
                callback(user)
            except Exception:
                logger.exception("Session subscriber failed")
