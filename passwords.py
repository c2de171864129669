"""
PIN hashing for the directory sign-in.
"""
import logging

import bcrypt

import config

logger = logging.getLogger(__name__)


def hash_pin(pin, rounds=config.PIN_HASH_ROUNDS):
    """Hash a PIN with a fresh bcrypt salt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(pin.encode('utf-8'), salt).decode('utf-8')


def check_pin(pin, stored_hash):
    """Verify a PIN against its stored hash. A missing or unreadable hash never matches."""
    if not stored_hash or not pin:
        return False

    try:
        return bcrypt.checkpw(pin.encode('utf-8'), stored_hash.encode('utf-8'))
    except ValueError:
        logger.warning("Stored credential hash is not a valid bcrypt hash")
        return False
