"""
Location: python/solshare/errors.py

Summary:
    Exception hierarchy for solshare. Leaf clients raise the narrow
    transport-level errors; the engine translates them into the session
    taxonomy (fatal, timeout, advisory) before anything reaches the UI.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .types import PaymentSession


class ShareError(Exception):
    """Base error for solshare."""
    pass


class WalletGenerationError(ShareError):
    """Raised when a payment key pair cannot be produced."""
    pass


class PriceUnavailableError(ShareError):
    """Raised when the price feed cannot be reached or parsed."""
    pass


class LedgerQueryError(ShareError):
    """Raised when a balance or signature query fails."""
    pass


class RepositoryError(ShareError):
    """Raised when a share record write or read fails."""
    pass


class InvalidTransitionError(ShareError):
    """Raised on an attempt to move a session along an illegal edge."""
    pass


class SessionError(ShareError):
    """
    Error tied to a specific payment session.

    Attributes:
        session: The session the error belongs to, if one was created
    """

    def __init__(self, message: str, session: Optional["PaymentSession"] = None):
        super().__init__(message)
        self.session = session


class SessionFailedError(SessionError):
    """Session-fatal error, e.g. the payment wallet could not be generated."""
    pass


class PaymentTimeoutError(SessionError):
    """No confirming payment arrived before the session deadline."""
    pass


class ShareRecordPersistenceError(ShareError):
    """
    Advisory error: payment was received but the share record could not
    be written by either the primary or the fallback path.
    """
    pass
