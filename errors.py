"""
Error types shared by the portal.

Pages catch these at the action site: validation and business-rule errors
are shown inline, transport errors get a generic retry message.
"""


class PortalError(Exception):
    """Base class for errors that should end up in front of the user."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    """Input was rejected before any remote call was made."""


class BusinessRuleError(PortalError):
    """The backend answered, but the answer rules out the requested step."""


class TransportError(PortalError):
    """A remote call failed. Safe to retry by repeating the action."""

    def __init__(self, message="Something went wrong. Please try again."):
        super().__init__(message)
