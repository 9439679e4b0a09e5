"""
Tests for solshare.types module.

Tests ShareConfig policy values, ShareRecord party rules and row layout,
and the ledger-to-proof conversion.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from solshare.types import (
    ConfirmedTransaction,
    PaymentSession,
    SessionState,
    ShareConfig,
    ShareMethod,
    ShareRecord,
    SignatureInfo,
)


FILE_FIELDS = {
    "file_id": "file_001",
    "file_name": "report.pdf",
    "file_type": "application/pdf",
    "file_size": 1024,
}


class TestShareConfig:
    """Tests for ShareConfig."""

    def test_defaults(self):
        config = ShareConfig()
        assert config.public_fiat_target == Decimal("0.10")
        assert config.private_fiat_target == Decimal("1.00")
        assert config.confirmation_threshold == Decimal("0.9")
        assert config.poll_interval_seconds == 5
        assert config.session_window_seconds == 300
        assert config.fallback_price == Decimal("150")

    def test_camel_case_alias(self):
        config = ShareConfig.model_validate(
            {"publicFiatTarget": "0.25", "confirmationThreshold": "0.95"}
        )
        assert config.public_fiat_target == Decimal("0.25")
        assert config.confirmation_threshold == Decimal("0.95")

    def test_fiat_target_by_method(self):
        config = ShareConfig()
        assert config.fiat_target(ShareMethod.ONCHAIN_PUBLIC) == Decimal("0.10")
        assert config.fiat_target(ShareMethod.ONCHAIN_PRIVATE) == Decimal("1.00")

    def test_private_direct_has_no_fee(self):
        with pytest.raises(ValueError):
            ShareConfig().fiat_target(ShareMethod.PRIVATE_DIRECT)

    def test_threshold_bounds(self):
        with pytest.raises(ValidationError):
            ShareConfig(confirmation_threshold=Decimal("1.5"))
        with pytest.raises(ValidationError):
            ShareConfig(confirmation_threshold=0)

    def test_fallback_price_positive(self):
        with pytest.raises(ValidationError):
            ShareConfig(fallback_price=0)

    def test_sub_units_positive(self):
        assert ShareConfig(lamportsPerSol=1000).lamports_per_sol == 1000
        with pytest.raises(ValidationError):
            ShareConfig(lamports_per_sol=0)


class TestEnums:
    """Tests for ShareMethod and SessionState helpers."""

    def test_requires_payment(self):
        assert not ShareMethod.PRIVATE_DIRECT.requires_payment
        assert ShareMethod.ONCHAIN_PRIVATE.requires_payment
        assert ShareMethod.ONCHAIN_PUBLIC.requires_payment

    def test_terminal_states(self):
        assert not SessionState.CREATED.is_terminal
        assert not SessionState.AWAITING_PAYMENT.is_terminal
        assert SessionState.TIMED_OUT.is_terminal


class TestShareRecord:
    """Tests for ShareRecord validation."""

    def test_private_requires_receiver(self):
        with pytest.raises(ValidationError):
            ShareRecord(visibility="private", sender_share_id="alice01", **FILE_FIELDS)

    def test_private_cannot_be_public(self):
        with pytest.raises(ValidationError):
            ShareRecord(
                visibility="private", sender_share_id="a", receiver_share_id="b",
                is_public=True, **FILE_FIELDS,
            )

    def test_public_requires_owner(self):
        with pytest.raises(ValidationError):
            ShareRecord(visibility="public", is_public=True, **FILE_FIELDS)

    def test_public_cannot_have_receiver(self):
        with pytest.raises(ValidationError):
            ShareRecord(
                visibility="public", owner_share_id="a", receiver_share_id="b",
                is_public=True, **FILE_FIELDS,
            )

    def test_public_must_be_flagged(self):
        with pytest.raises(ValidationError):
            ShareRecord(visibility="public", owner_share_id="a", **FILE_FIELDS)

    def test_private_direct_is_not_onchain(self):
        record = ShareRecord(
            visibility="private", sender_share_id="a", receiver_share_id="b", **FILE_FIELDS
        )
        assert not record.is_onchain

    def test_for_session_public(self, sample_file):
        session = PaymentSession(
            session_id="s1",
            method=ShareMethod.ONCHAIN_PUBLIC,
            file=sample_file,
            user_share_id="alice01",
            created_at=0.0,
            confirmed_transaction=ConfirmedTransaction(
                signature="sig", block_time=10, slot=20, confirmation_status="confirmed"
            ),
        )
        record = ShareRecord.for_session(session)

        assert record.owner_share_id == "alice01"
        assert record.is_public
        assert record.file_size == sample_file.size_bytes
        assert record.file_url == sample_file.url
        assert (record.transaction_signature, record.block_time, record.slot) == ("sig", 10, 20)
        assert record.confirmation_status == "confirmed"

    def test_for_session_requires_transaction(self, sample_file):
        session = PaymentSession(
            session_id="s1",
            method=ShareMethod.ONCHAIN_PUBLIC,
            file=sample_file,
            user_share_id="alice01",
            created_at=0.0,
        )
        with pytest.raises(ValueError):
            ShareRecord.for_session(session)

    def test_to_row(self):
        record = ShareRecord(
            visibility="public", owner_share_id="alice01", is_public=True,
            transaction_signature="sig", **FILE_FIELDS,
        )
        row = record.to_row()
        assert "visibility" not in row
        assert "receiver_share_id" not in row
        assert row["views"] == 0 and row["likes"] == 0
        assert isinstance(row["created_at"], str)


class TestConfirmedTransaction:
    """Tests for ConfirmedTransaction.from_signature."""

    def test_copies_ledger_fields(self):
        info = SignatureInfo(
            signature="s", block_time=100, slot=7, confirmation_status="confirmed"
        )
        tx = ConfirmedTransaction.from_signature(info, now=999.0)
        assert (tx.signature, tx.block_time, tx.slot, tx.confirmation_status) == (
            "s", 100, 7, "confirmed"
        )

    def test_fills_missing_fields(self):
        tx = ConfirmedTransaction.from_signature(SignatureInfo(signature="s"), now=999.7)
        assert tx.block_time == 999
        assert tx.slot == 0
        assert tx.confirmation_status == "finalized"


class TestPaymentSession:
    """Tests for PaymentSession helpers."""

    def test_time_remaining(self, sample_file):
        session = PaymentSession(
            session_id="s", method=ShareMethod.ONCHAIN_PUBLIC, file=sample_file,
            created_at=100.0, deadline=400.0,
        )
        assert session.time_remaining(250.0) == 150.0
        assert session.time_remaining(500.0) == 0.0

    def test_time_remaining_without_deadline(self, sample_file):
        session = PaymentSession(
            session_id="s", method=ShareMethod.ONCHAIN_PUBLIC, file=sample_file,
            created_at=100.0,
        )
        assert session.time_remaining(100.0) == 0.0
