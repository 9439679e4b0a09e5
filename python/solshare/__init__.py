"""
Location: python/solshare/__init__.py

Summary:
    Main package initialization for solshare. Exports the payment
    confirmation engine, the share flow controller, the client protocols
    with their default adapters, and the data models.

Usage:
    from solshare import PaymentConfirmationEngine, ShareFlowController, ShareMethod

    # Or import specific modules
    from solshare.ledger import SolanaRpcLedgerClient
    from solshare.repository import MemoryShareRepository, persist

Version: 0.1.0
"""

from .engine import PaymentConfirmationEngine
from .flow import FlowStep, ShareFlowController
from .types import (
    ConfirmedTransaction,
    FileMetadata,
    PaymentSession,
    PersistenceResult,
    SessionState,
    ShareConfig,
    ShareEvent,
    ShareMethod,
    ShareRecord,
    SignatureInfo,
    WalletKeypair,
)
from .errors import (
    ShareError,
    WalletGenerationError,
    PriceUnavailableError,
    LedgerQueryError,
    RepositoryError,
    InvalidTransitionError,
    SessionError,
    SessionFailedError,
    PaymentTimeoutError,
    ShareRecordPersistenceError,
)
from .wallet import WalletGenerator, SoldersWalletGenerator
from .price import PriceOracleClient, HttpPriceOracle
from .ledger import BalanceAndActivityClient, HttpLedgerClient, SolanaRpcLedgerClient
from .notify import NotificationSink, HttpNotificationSink, LoggingNotificationSink
from .repository import (
    ShareRecordRepository,
    HttpShareRepository,
    MemoryShareRepository,
    persist,
)

__version__ = "0.1.0"

__all__ = [
    # Engine and flow
    "PaymentConfirmationEngine",
    "ShareFlowController",
    "FlowStep",
    # Types
    "ConfirmedTransaction",
    "FileMetadata",
    "PaymentSession",
    "PersistenceResult",
    "SessionState",
    "ShareConfig",
    "ShareEvent",
    "ShareMethod",
    "ShareRecord",
    "SignatureInfo",
    "WalletKeypair",
    # Exceptions
    "ShareError",
    "WalletGenerationError",
    "PriceUnavailableError",
    "LedgerQueryError",
    "RepositoryError",
    "InvalidTransitionError",
    "SessionError",
    "SessionFailedError",
    "PaymentTimeoutError",
    "ShareRecordPersistenceError",
    # Client protocols and adapters
    "WalletGenerator",
    "SoldersWalletGenerator",
    "PriceOracleClient",
    "HttpPriceOracle",
    "BalanceAndActivityClient",
    "HttpLedgerClient",
    "SolanaRpcLedgerClient",
    "NotificationSink",
    "HttpNotificationSink",
    "LoggingNotificationSink",
    # Persistence
    "ShareRecordRepository",
    "HttpShareRepository",
    "MemoryShareRepository",
    "persist",
]
