"""
Location: python/solshare/flow.py

Summary:
    ShareFlowController sequences the share dialog for a single file and
    maps each step onto the engine or the repository. It holds display
    state only (current step, countdown, observed balance, messages);
    payment logic lives in engine.py.

Usage:
    Steps: method_selection -> recipient_entry | agreement -> payment -> success.
    Private direct shares go from recipient_entry straight to success
    through the repository; on-chain shares pass through payment.

Example:
    flow = ShareFlowController(engine, repository, file, user_share_id="alice01")
    flow.select_method(ShareMethod.ONCHAIN_PRIVATE)
    await flow.set_recipient("bob042")
    await flow.submit()
    print(flow.pay_address, flow.time_remaining)
"""

import logging
import time
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional, Union

from .engine import PaymentConfirmationEngine
from .errors import RepositoryError, SessionFailedError
from .repository import ShareRecordRepository
from .types import (
    FileMetadata,
    PaymentSession,
    SessionState,
    ShareMethod,
    ShareRecord,
)


logger = logging.getLogger(__name__)


class FlowStep(str, Enum):
    METHOD_SELECTION = "method_selection"
    RECIPIENT_ENTRY = "recipient_entry"
    AGREEMENT = "agreement"
    PAYMENT = "payment"
    SUCCESS = "success"


class ShareFlowController:
    """
    Step state for sharing one file.

    Attributes:
        step: Current FlowStep
        method: Selected ShareMethod, if any
        recipient_share_id: Recipient entered for private shares
        recipient_valid: Result of the last recipient check, None if unchecked
        agreed: Whether the public share terms were accepted
        is_processing: True while a submit or retry is in progress
        error: User-facing error message
        notice: Informational message shown alongside success
        can_retry: True after a timeout or fatal session error
        session: Current payment session, if any
        record: Share record created for a private direct share
    """

    def __init__(
        self,
        engine: PaymentConfirmationEngine,
        repository: ShareRecordRepository,
        file: FileMetadata,
        user_share_id: str,
        on_update: Optional[Callable[["ShareFlowController"], None]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._engine = engine
        self._repository = repository
        self._on_update = on_update
        self._clock = clock
        self.file = file
        self.user_share_id = user_share_id
        self._reset()

    def _reset(self) -> None:
        self.step = FlowStep.METHOD_SELECTION
        self.method: Optional[ShareMethod] = None
        self.recipient_share_id = ""
        self.recipient_valid: Optional[bool] = None
        self.agreed = False
        self.is_processing = False
        self.error: Optional[str] = None
        self.notice: Optional[str] = None
        self.can_retry = False
        self.session: Optional[PaymentSession] = None
        self.record: Optional[ShareRecord] = None

    @property
    def time_remaining(self) -> float:
        if self.session is None:
            return 0.0
        return self.session.time_remaining(self._clock())

    @property
    def observed_balance(self) -> Decimal:
        return self.session.observed_balance if self.session else Decimal(0)

    @property
    def required_balance(self) -> Optional[Decimal]:
        return self.session.required_balance if self.session else None

    @property
    def target_asset_amount(self) -> Optional[Decimal]:
        return self.session.target_asset_amount if self.session else None

    @property
    def pay_address(self) -> Optional[str]:
        return self.session.pay_address if self.session else None

    @property
    def public_url(self) -> Optional[str]:
        if self.session and self.session.persistence:
            return self.session.persistence.public_url
        return None

    def select_method(self, method: Union[ShareMethod, str]) -> None:
        """Choose how to share; moves to recipient entry or the agreement step."""
        self.method = ShareMethod(method)
        self.error = None
        if self.method is ShareMethod.ONCHAIN_PUBLIC:
            self.step = FlowStep.AGREEMENT
        else:
            self.step = FlowStep.RECIPIENT_ENTRY
        self._changed()

    async def set_recipient(self, share_id: str) -> bool:
        """
        Store and validate the recipient share id.

        Returns:
            True if the recipient exists
        """
        self.recipient_share_id = share_id.strip()
        self.error = None
        if not self.recipient_share_id:
            self.recipient_valid = None
            self._changed()
            return False

        try:
            self.recipient_valid = await self._repository.share_id_exists(self.recipient_share_id)
            if not self.recipient_valid:
                self.error = "Share ID does not exist"
        except RepositoryError as exc:
            logger.warning("Share ID validation failed: %s", exc)
            self.recipient_valid = False
            self.error = "Network error while validating Share ID"
        self._changed()
        return bool(self.recipient_valid)

    def accept_agreement(self, agreed: bool = True) -> None:
        self.agreed = agreed
        self._changed()

    async def submit(self) -> None:
        """
        Complete the current input step.

        Private direct shares are written immediately; on-chain shares
        start a payment session and move to the payment step.
        """
        if self.method is None:
            raise ValueError("select a share method first")
        if self.step is FlowStep.RECIPIENT_ENTRY and not self.recipient_valid:
            self.error = "Enter a valid recipient Share ID"
            self._changed()
            return
        if self.step is FlowStep.AGREEMENT and not self.agreed:
            self.error = "Accept the public sharing terms to continue"
            self._changed()
            return

        self.is_processing = True
        self.error = None
        self._changed()
        try:
            if self.method is ShareMethod.PRIVATE_DIRECT:
                await self._share_direct()
            else:
                await self._start_payment()
        finally:
            self.is_processing = False
            self._changed()

    async def retry(self) -> None:
        """Start a new payment session after a timeout or failure."""
        if not self.can_retry or self.method is None or not self.method.requires_payment:
            return
        if self.session is not None:
            self._engine.cancel_session(self.session.session_id)
            self.session = None
        self.can_retry = False
        self.error = None
        self.is_processing = True
        try:
            await self._start_payment()
        finally:
            self.is_processing = False
            self._changed()

    def close(self) -> None:
        """Abandon the flow, stopping any payment polling."""
        if self.session is not None:
            self._engine.cancel_session(self.session.session_id)
        self._reset()
        self._changed()

    async def _share_direct(self) -> None:
        record = ShareRecord(
            visibility="private",
            sender_share_id=self.user_share_id,
            receiver_share_id=self.recipient_share_id,
            file_id=self.file.file_id,
            file_name=self.file.name,
            file_type=self.file.file_type,
            file_size=self.file.size_bytes,
            file_url=self.file.url,
        )
        try:
            await self._repository.create_private_share(record)
        except RepositoryError as exc:
            logger.warning("Direct share failed: %s", exc)
            self.error = "Network error while sharing file"
            return
        self.record = record
        self.step = FlowStep.SUCCESS

    async def _start_payment(self) -> None:
        try:
            self.session = await self._engine.start_session(
                self.method,
                self.file,
                counterparty_id=self.recipient_share_id or None,
                user_share_id=self.user_share_id,
                listener=self._on_session_update,
            )
        except SessionFailedError as exc:
            self.session = exc.session
            self.error = str(exc)
            self.can_retry = True
            return
        self.step = FlowStep.PAYMENT

    def _on_session_update(self, session: PaymentSession) -> None:
        if session.state is SessionState.CONFIRMED and session.persistence is not None:
            self.step = FlowStep.SUCCESS
            self.notice = session.persistence.warning
        elif session.state in (SessionState.TIMED_OUT, SessionState.FAILED):
            self.error = session.error
            self.can_retry = True
        self._changed()

    def _changed(self) -> None:
        if self._on_update is not None:
            self._on_update(self)
