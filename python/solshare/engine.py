"""
Location: python/solshare/engine.py

Summary:
    PaymentConfirmationEngine drives a PaymentSession from creation to a
    terminal state: it generates the one-time wallet, prices the share fee,
    polls the ledger until the payment shows up or the deadline passes, and
    hands the confirmed session to the share repository.

Usage:
    Used by flow.py. Each session owns one asyncio task that runs the
    polling loop; ticks are strictly serial, so confirmation (and the
    record write that follows it) can happen at most once per session.

    State edges:
        created -> awaiting_payment -> confirmed | timed_out | failed
        created -> failed (wallet generation failure)

Example:
    engine = PaymentConfirmationEngine(
        wallet_generator=SoldersWalletGenerator(),
        price_oracle=HttpPriceOracle(API_URL),
        ledger=HttpLedgerClient(API_URL),
        notifier=LoggingNotificationSink(),
        repository=HttpShareRepository(API_URL),
    )
    session = await engine.start_session(
        ShareMethod.ONCHAIN_PUBLIC, file, user_share_id="alice01"
    )
    print("Send", session.target_asset_amount, "SOL to", session.pay_address)
    try:
        session = await engine.wait(session.session_id)
    except PaymentTimeoutError:
        ...
"""

import asyncio
import logging
import time
import uuid
from decimal import Decimal
from typing import Awaitable, Callable, Optional, Union

from .errors import (
    InvalidTransitionError,
    PaymentTimeoutError,
    SessionError,
    SessionFailedError,
    WalletGenerationError,
)
from .ledger import BalanceAndActivityClient
from .notify import NotificationSink
from .price import PriceOracleClient
from .repository import ShareRecordRepository, persist
from .types import (
    ALLOWED_TRANSITIONS,
    ConfirmedTransaction,
    FileMetadata,
    PaymentSession,
    SessionState,
    ShareConfig,
    ShareEvent,
    ShareMethod,
    ShareRecord,
    SignatureInfo,
)
from .wallet import WalletGenerator


logger = logging.getLogger(__name__)

SessionListener = Callable[[PaymentSession], None]

TIMEOUT_MESSAGE = "Payment timeout. Please try again."


class PaymentConfirmationEngine:
    """
    Orchestrates share payment sessions.

    Attributes:
        config: Policy configuration (fees, threshold, timings)
        last_known_price: Price used when the oracle is unavailable; seeded
            with config.fallback_price and updated on every successful fetch
    """

    def __init__(
        self,
        wallet_generator: WalletGenerator,
        price_oracle: PriceOracleClient,
        ledger: BalanceAndActivityClient,
        notifier: NotificationSink,
        repository: ShareRecordRepository,
        config: Optional[ShareConfig] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the engine.

        Args:
            wallet_generator: Source of one-time payment key pairs
            price_oracle: Asset/fiat price feed
            ledger: Balance and signature queries
            notifier: Best-effort lifecycle event sink
            repository: Share record storage
            config: Policy configuration (defaults to ShareConfig())
            clock: Wall-clock time in seconds, used for deadlines
            sleep: Coroutine used to wait between polling ticks
        """
        self.config = config or ShareConfig()
        self.last_known_price: Decimal = self.config.fallback_price
        self._wallets = wallet_generator
        self._oracle = price_oracle
        self._ledger = ledger
        self._notifier = notifier
        self._repository = repository
        self._clock = clock
        self._sleep = sleep

        self._sessions: dict[str, PaymentSession] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._listeners: dict[str, list[SessionListener]] = {}

    async def start_session(
        self,
        method: Union[ShareMethod, str],
        file: Optional[FileMetadata],
        counterparty_id: Optional[str] = None,
        user_share_id: Optional[str] = None,
        listener: Optional[SessionListener] = None,
    ) -> PaymentSession:
        """
        Create a session and start polling for its payment.

        Args:
            method: ONCHAIN_PRIVATE or ONCHAIN_PUBLIC
            file: Metadata of the file being shared
            counterparty_id: Recipient share id (private shares)
            user_share_id: Share id of the paying user
            listener: Optional callback registered before any state change

        Returns:
            The session, already in awaiting_payment

        Raises:
            ValueError: For PRIVATE_DIRECT or missing share parameters
            SessionFailedError: If the payment wallet could not be generated
        """
        method = ShareMethod(method)
        if not method.requires_payment:
            raise ValueError("private_direct shares are written directly, not paid for")
        if file is None:
            raise ValueError("file metadata is required")
        if not user_share_id:
            raise ValueError("user_share_id is required")
        if method is ShareMethod.ONCHAIN_PRIVATE and not counterparty_id:
            raise ValueError("counterparty_id is required for private shares")

        session = PaymentSession(
            session_id=uuid.uuid4().hex,
            method=method,
            file=file,
            counterparty_id=counterparty_id,
            user_share_id=user_share_id,
            created_at=self._clock(),
        )
        self._sessions[session.session_id] = session
        if listener is not None:
            self.subscribe(session.session_id, listener)

        try:
            keypair = self._wallets.generate()
            if not keypair.address:
                raise WalletGenerationError("Generated payment wallet has an empty address")
        except Exception as exc:
            message = f"Failed to generate payment wallet: {exc}"
            self._transition(session, SessionState.FAILED, error=message)
            self._release(session.session_id)
            raise SessionFailedError(message, session) from exc

        session.pay_address = keypair.address
        session.pay_private_material = keypair.private_material

        price = await self._current_price()
        target = self.config.fiat_target(method) / price
        session.price_at_creation = price
        session.target_asset_amount = target
        session.required_balance = target * self.config.confirmation_threshold

        await self._notify("session_created", session)

        session.deadline = session.created_at + self.config.session_window_seconds
        self._transition(session, SessionState.AWAITING_PAYMENT)
        self._tasks[session.session_id] = asyncio.create_task(self._poll(session))
        logger.info(
            "Session %s awaiting %s SOL at %s... (price %s)",
            session.session_id, target, keypair.address[:8], price,
        )
        return session

    def cancel_session(self, session_id: str) -> None:
        """
        Stop polling for a session and release it.

        The session's state is left as it was. A session that is already
        confirmed keeps its record write running to completion. Unknown
        ids and repeated calls are ignored.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return

        session.cancelled = True
        session.retire_private_material()
        self._listeners.pop(session_id, None)

        task = self._tasks.pop(session_id, None)
        if (
            task is not None
            and not task.done()
            and task is not asyncio.current_task()
            and session.state is SessionState.AWAITING_PAYMENT
        ):
            task.cancel()
        logger.info("Session %s cancelled in state %s", session_id, session.state.value)

    def subscribe(self, session_id: str, listener: SessionListener) -> Callable[[], None]:
        """
        Register a callback for state changes and progress updates.

        Returns:
            A function that removes the callback
        """
        listeners = self._listeners.setdefault(session_id, [])
        listeners.append(listener)

        def unsubscribe() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def get_session(self, session_id: str) -> Optional[PaymentSession]:
        return self._sessions.get(session_id)

    async def wait(self, session_id: str) -> PaymentSession:
        """
        Wait until a session stops polling.

        The session and its listeners are released once polling has
        stopped, so a later get_session() returns None.

        Returns:
            The confirmed session

        Raises:
            KeyError: If the session is unknown
            PaymentTimeoutError: If the deadline passed without payment
            SessionFailedError: If the session failed
            SessionError: If the session was cancelled
        """
        session = self._sessions[session_id]
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.wait({task})
        self._release(session_id)

        if session.state is SessionState.CONFIRMED:
            return session
        if session.state is SessionState.TIMED_OUT:
            raise PaymentTimeoutError(session.error or TIMEOUT_MESSAGE, session)
        if session.state is SessionState.FAILED:
            raise SessionFailedError(session.error or "Payment session failed", session)
        raise SessionError("Payment session was cancelled", session)

    def _release(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._listeners.pop(session_id, None)

    async def confirm_session(self, session: PaymentSession) -> ShareRecord:
        """
        Write the share record for a confirmed session.

        Only the first call writes; later calls return the same record.
        A failed write leaves the session confirmed and reports the
        problem through session.persistence.

        Raises:
            InvalidTransitionError: If the session is not confirmed
        """
        if session.state is not SessionState.CONFIRMED or session.confirmed_transaction is None:
            raise InvalidTransitionError(
                f"Session {session.session_id} is {session.state.value}, not confirmed"
            )
        if session.share_record is not None:
            return session.share_record

        record = ShareRecord.for_session(session)
        session.share_record = record
        result = await persist(self._repository, record, self.config.public_url_base)
        session.persistence = result

        if result.durable:
            logger.info("Session %s recorded via %s path", session.session_id, result.path)
        else:
            logger.error(
                "Session %s paid (%s) but share record was not written",
                session.session_id, record.transaction_signature,
            )
        self._emit(session)
        return record

    async def aclose(self) -> None:
        """Cancel every session still held by the engine."""
        tasks = list(self._tasks.values())
        for session_id in list(self._sessions):
            self.cancel_session(session_id)
        if tasks:
            await asyncio.wait(tasks)

    async def _current_price(self) -> Decimal:
        try:
            price = await self._oracle.get_price()
        except Exception as exc:
            logger.warning(
                "Price fetch failed, using last known price %s: %s",
                self.last_known_price, exc,
            )
            return self.last_known_price
        self.last_known_price = price
        return price

    def _is_polling(self, session: PaymentSession) -> bool:
        return (
            session.state is SessionState.AWAITING_PAYMENT
            and not session.cancelled
            and session.confirmed_transaction is None
        )

    async def _poll(self, session: PaymentSession) -> None:
        try:
            while self._is_polling(session):
                if self._clock() < session.deadline:
                    try:
                        confirmed = await self._tick(session)
                    except Exception:
                        logger.exception("Tick for session %s failed", session.session_id)
                        confirmed = False
                    if confirmed or not self._is_polling(session):
                        return
                if self._clock() >= session.deadline:
                    self._transition(session, SessionState.TIMED_OUT, error=TIMEOUT_MESSAGE)
                    return
                await self._sleep(self.config.poll_interval_seconds)
        except Exception as exc:
            logger.exception("Polling for session %s crashed", session.session_id)
            if session.state is SessionState.AWAITING_PAYMENT:
                self._transition(session, SessionState.FAILED, error=f"Payment polling failed: {exc}")
        finally:
            if self._tasks.get(session.session_id) is asyncio.current_task():
                del self._tasks[session.session_id]

    async def _tick(self, session: PaymentSession) -> bool:
        """Run one polling tick. Returns True if the session got confirmed."""
        address = session.pay_address
        try:
            balance = await self._ledger.get_balance(address)
        except Exception as exc:
            logger.warning("Balance query for %s... failed: %s", address[:8], exc)
            balance = session.observed_balance

        signatures: list[SignatureInfo]
        try:
            signatures = await self._ledger.get_signatures(address)
        except Exception as exc:
            logger.warning("Signature query for %s... failed: %s", address[:8], exc)
            signatures = []

        # cancelled or confirmed while the queries were in flight
        if not self._is_polling(session):
            return False

        session.observed_balance = balance
        logger.debug(
            "Session %s balance %s / required %s, %d signatures",
            session.session_id, balance, session.required_balance, len(signatures),
        )

        if balance >= session.required_balance and signatures:
            await self._confirm(session, signatures[0])
            return True

        self._emit(session)
        return False

    async def _confirm(self, session: PaymentSession, latest: SignatureInfo) -> None:
        session.confirmed_transaction = ConfirmedTransaction.from_signature(latest, self._clock())
        self._transition(session, SessionState.CONFIRMED)
        await self._notify("payment_confirmed", session)
        await self.confirm_session(session)

    def _transition(
        self,
        session: PaymentSession,
        new_state: SessionState,
        error: Optional[str] = None,
    ) -> None:
        if new_state not in ALLOWED_TRANSITIONS[session.state]:
            raise InvalidTransitionError(
                f"Session {session.session_id}: {session.state.value} -> {new_state.value}"
            )
        previous = session.state
        session.state = new_state
        if new_state.is_terminal:
            session.retire_private_material()
            session.error = error
        logger.info(
            "Session %s: %s -> %s", session.session_id, previous.value, new_state.value
        )
        self._emit(session)

    def _emit(self, session: PaymentSession) -> None:
        for listener in list(self._listeners.get(session.session_id, ())):
            try:
                listener(session)
            except Exception:
                logger.exception("Listener for session %s raised", session.session_id)

    async def _notify(self, kind: str, session: PaymentSession) -> None:
        try:
            await self._notifier.notify(ShareEvent.for_session(kind, session))
        except Exception as exc:
            logger.warning("Notification %s for session %s failed: %s", kind, session.session_id, exc)
