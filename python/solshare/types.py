"""
Location: python/solshare/types.py

Summary:
    Pydantic models for solshare. Defines the payment session, the share
    record that is persisted after confirmation, the ledger activity
    entries, the wallet key pair, and the policy configuration.

Usage:
    These models are imported by engine.py, flow.py, repository.py and
    the leaf clients. Asset amounts are Decimal so that the confirmation
    threshold compares exactly; fiat targets and the threshold live in
    ShareConfig rather than in the state machine.

Example:
    from solshare.types import FileMetadata, ShareConfig, ShareMethod

    file = FileMetadata(file_id="f1", name="a.pdf", file_type="pdf", size_bytes=1024)
    config = ShareConfig(public_fiat_target="0.25")
    config.fiat_target(ShareMethod.ONCHAIN_PUBLIC)  # Decimal("0.25")
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, SecretStr, model_validator

from .errors import ShareRecordPersistenceError


class ShareMethod(str, Enum):
    """How a file is shared. Only the on-chain methods require payment."""

    PRIVATE_DIRECT = "private_direct"
    ONCHAIN_PRIVATE = "onchain_private"
    ONCHAIN_PUBLIC = "onchain_public"

    @property
    def requires_payment(self) -> bool:
        return self is not ShareMethod.PRIVATE_DIRECT

    @property
    def is_public(self) -> bool:
        return self is ShareMethod.ONCHAIN_PUBLIC


class SessionState(str, Enum):
    """Lifecycle state of a PaymentSession."""

    CREATED = "created"
    AWAITING_PAYMENT = "awaiting_payment"
    CONFIRMED = "confirmed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {SessionState.CONFIRMED, SessionState.TIMED_OUT, SessionState.FAILED}
)

# Created -> Failed covers wallet generation failing before polling starts.
ALLOWED_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.CREATED: frozenset(
        {SessionState.AWAITING_PAYMENT, SessionState.FAILED}
    ),
    SessionState.AWAITING_PAYMENT: TERMINAL_STATES,
    SessionState.CONFIRMED: frozenset(),
    SessionState.TIMED_OUT: frozenset(),
    SessionState.FAILED: frozenset(),
}


class ShareConfig(BaseModel):
    """
    Policy configuration for the share payment flow.

    Attributes:
        public_fiat_target: Fiat amount charged for a public share
        private_fiat_target: Fiat amount charged for a private on-chain share
        confirmation_threshold: Fraction of the target balance that counts
            as paid (tolerates price drift between creation and payment)
        poll_interval_seconds: Delay between two polling ticks
        session_window_seconds: Lifetime of a session before it times out
        fallback_price: Asset/fiat rate used until a live price is fetched
        public_url_base: Base URL for public share links
        lamports_per_sol: Sub-units per native unit of the payment asset
    """
    public_fiat_target: Decimal = Field(Decimal("0.10"), alias="publicFiatTarget")
    private_fiat_target: Decimal = Field(Decimal("1.00"), alias="privateFiatTarget")
    confirmation_threshold: Decimal = Field(
        Decimal("0.9"), alias="confirmationThreshold", gt=0, le=1
    )
    poll_interval_seconds: float = Field(5.0, alias="pollIntervalSeconds", gt=0)
    session_window_seconds: float = Field(300.0, alias="sessionWindowSeconds", gt=0)
    fallback_price: Decimal = Field(Decimal("150"), alias="fallbackPrice", gt=0)
    public_url_base: str = Field("https://solbox.cloud/public", alias="publicUrlBase")
    lamports_per_sol: int = Field(1_000_000_000, alias="lamportsPerSol", gt=0)

    model_config = {"populate_by_name": True}

    def fiat_target(self, method: ShareMethod) -> Decimal:
        """
        Get the fiat amount charged for a share method.

        Raises:
            ValueError: For PRIVATE_DIRECT, which is never charged
        """
        if method is ShareMethod.ONCHAIN_PUBLIC:
            return self.public_fiat_target
        if method is ShareMethod.ONCHAIN_PRIVATE:
            return self.private_fiat_target
        raise ValueError(f"{method.value} shares do not require payment")


class FileMetadata(BaseModel):
    """Snapshot of the shared file, denormalized into the share record."""
    file_id: str = Field(alias="fileId")
    name: str
    file_type: str = Field(alias="fileType")
    size_bytes: int = Field(alias="sizeBytes", ge=0)
    url: str = ""
    cid: Optional[str] = None

    model_config = {"populate_by_name": True}


class SignatureInfo(BaseModel):
    """
    One transaction signature reported by the ledger for an address.

    Field aliases follow the Solana RPC naming (blockTime,
    confirmationStatus) so ledger payloads validate directly.
    """
    signature: str = Field(min_length=1)
    block_time: Optional[int] = Field(None, alias="blockTime")
    slot: Optional[int] = None
    confirmation_status: Optional[str] = Field(None, alias="confirmationStatus")
    err: Optional[Any] = None

    model_config = {"populate_by_name": True}


class ConfirmedTransaction(BaseModel):
    """The transaction accepted as proof of payment for a session."""
    signature: str
    block_time: int = Field(alias="blockTime")
    slot: int = 0
    confirmation_status: str = Field("finalized", alias="confirmationStatus")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_signature(cls, info: SignatureInfo, now: float) -> "ConfirmedTransaction":
        """Build from a ledger entry, filling gaps the ledger left empty."""
        return cls(
            signature=info.signature,
            block_time=info.block_time if info.block_time is not None else int(now),
            slot=info.slot or 0,
            confirmation_status=info.confirmation_status or "finalized",
        )


class WalletKeypair(BaseModel):
    """
    A freshly generated one-time payment key pair.

    Attributes:
        address: Base58 public key that receives the payment
        private_material: Hex-encoded secret key, kept out of reprs and logs
    """
    address: str = Field(min_length=1)
    private_material: SecretStr = Field(alias="privateMaterial")

    model_config = {"populate_by_name": True}


class ShareRecord(BaseModel):
    """
    Durable proof that a file was shared.

    Private records carry a sender and receiver share id; public records
    carry the owner's share id and are globally visible. On-chain records
    carry the confirming transaction; private direct shares do not.
    """
    visibility: Literal["private", "public"]
    sender_share_id: Optional[str] = None
    receiver_share_id: Optional[str] = None
    owner_share_id: Optional[str] = None
    is_public: bool = False
    file_id: str
    file_name: str
    file_type: str
    file_size: int
    file_url: str = ""
    transaction_signature: Optional[str] = None
    block_time: Optional[int] = None
    slot: Optional[int] = None
    confirmation_status: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _check_parties(self) -> "ShareRecord":
        if self.visibility == "private":
            if not self.sender_share_id or not self.receiver_share_id:
                raise ValueError("private share requires sender and receiver share ids")
            if self.owner_share_id or self.is_public:
                raise ValueError("private share cannot have an owner or be public")
        else:
            if not self.owner_share_id:
                raise ValueError("public share requires an owner share id")
            if self.receiver_share_id:
                raise ValueError("public share cannot have a receiver")
            if not self.is_public:
                raise ValueError("public share must be flagged public")
        return self

    @property
    def is_onchain(self) -> bool:
        return self.transaction_signature is not None

    @classmethod
    def for_session(cls, session: "PaymentSession") -> "ShareRecord":
        """
        Build the record for a confirmed session.

        The paying user becomes the owner of a public share or the sender
        of a private one.

        Raises:
            ValueError: If the session has no confirmed transaction
        """
        tx = session.confirmed_transaction
        if tx is None:
            raise ValueError("session has no confirmed transaction")
        file = session.file
        if session.method.is_public:
            parties = {
                "visibility": "public",
                "owner_share_id": session.user_share_id,
                "is_public": True,
            }
        else:
            parties = {
                "visibility": "private",
                "sender_share_id": session.user_share_id,
                "receiver_share_id": session.counterparty_id,
            }
        return cls(
            **parties,
            file_id=file.file_id,
            file_name=file.name,
            file_type=file.file_type,
            file_size=file.size_bytes,
            file_url=file.url,
            transaction_signature=tx.signature,
            block_time=tx.block_time,
            slot=tx.slot,
            confirmation_status=tx.confirmation_status,
        )

    def to_row(self) -> dict:
        """
        Flatten to the row layout written by the raw insert path.

        Engagement counters start at zero; the registry owns them afterwards.
        """
        row = self.model_dump(mode="json", exclude={"visibility"}, exclude_none=True)
        row["updated_at"] = row["created_at"]
        if self.is_public:
            row["views"] = 0
            row["likes"] = 0
        return row


class PersistenceResult(BaseModel):
    """
    Outcome of writing a share record.

    Attributes:
        record: The record that was written (or attempted)
        path: Which write path succeeded, "none" when both failed
        public_url: Link to the public share, if any
        durable: True only when one of the write paths succeeded
        warning: Advisory text for the UI when the primary path failed
    """
    record: ShareRecord
    path: Literal["primary", "fallback", "none"]
    public_url: Optional[str] = None
    durable: bool
    warning: Optional[str] = None

    def raise_for_durability(self) -> None:
        """
        Raise if neither write path stored the record.

        Raises:
            ShareRecordPersistenceError: When durable is False
        """
        if not self.durable:
            raise ShareRecordPersistenceError(self.warning or "Share record was not written")


class PaymentSession(BaseModel):
    """
    One attempt to collect payment for a share operation.

    The engine mutates the session in place; callers observe it through
    engine.subscribe() or by reading its fields. pay_private_material is
    cleared as soon as the session ends, whether by success, timeout,
    failure or cancellation.
    """
    session_id: str
    method: ShareMethod
    file: FileMetadata
    counterparty_id: Optional[str] = None
    user_share_id: Optional[str] = None
    pay_address: Optional[str] = None
    pay_private_material: Optional[SecretStr] = None
    price_at_creation: Optional[Decimal] = None
    target_asset_amount: Optional[Decimal] = None
    required_balance: Optional[Decimal] = None
    created_at: float
    deadline: Optional[float] = None
    state: SessionState = SessionState.CREATED
    observed_balance: Decimal = Decimal(0)
    confirmed_transaction: Optional[ConfirmedTransaction] = None
    share_record: Optional[ShareRecord] = None
    persistence: Optional[PersistenceResult] = None
    error: Optional[str] = None
    cancelled: bool = False

    def time_remaining(self, now: float) -> float:
        """Seconds until the deadline, never negative."""
        if self.deadline is None:
            return 0.0
        return max(0.0, self.deadline - now)

    def retire_private_material(self) -> None:
        self.pay_private_material = None


class ShareEvent(BaseModel):
    """
    Wallet lifecycle event pushed to the notification sink.

    Never carries the session's private material.
    """
    kind: Literal["session_created", "payment_confirmed"]
    session_id: str = Field(alias="sessionId")
    method: ShareMethod
    pay_address: str = Field(alias="payAddress")
    target_asset_amount: Optional[Decimal] = Field(None, alias="targetAssetAmount")
    price: Optional[Decimal] = None
    balance: Optional[Decimal] = None
    transaction_signature: Optional[str] = Field(None, alias="transactionSignature")
    file_id: str = Field(alias="fileId")
    file_name: str = Field(alias="fileName")
    file_type: str = Field(alias="fileType")
    file_size: int = Field(alias="fileSize")
    recipient_share_id: Optional[str] = Field(None, alias="recipientShareId")
    owner_share_id: Optional[str] = Field(None, alias="ownerShareId")

    model_config = {"populate_by_name": True}

    @classmethod
    def for_session(cls, kind: str, session: PaymentSession) -> "ShareEvent":
        tx = session.confirmed_transaction
        return cls(
            kind=kind,
            session_id=session.session_id,
            method=session.method,
            pay_address=session.pay_address or "",
            target_asset_amount=session.target_asset_amount,
            price=session.price_at_creation,
            balance=session.observed_balance if tx else None,
            transaction_signature=tx.signature if tx else None,
            file_id=session.file.file_id,
            file_name=session.file.name,
            file_type=session.file.file_type,
            file_size=session.file.size_bytes,
            recipient_share_id=None if session.method.is_public else session.counterparty_id,
            owner_share_id=session.user_share_id if session.method.is_public else None,
        )
