"""Tests for event logging and aggregate analytics."""
from unittest.mock import patch

from core.ledger import Participant
from core.receipts import ReceiptItem
from storage import groups
from storage.analytics import get_analytics, log_event
from storage.database import SessionLocal, UserEvent


class TestAnalytics:
    def test_empty_database(self, db):
        stats = get_analytics()
        assert stats == {
            "total_receipts": 0,
            "successful_scans": 0,
            "total_splits": 0,
            "manual_splits": 0,
            "receipt_splits": 0,
            "total_groups": 0,
            "ocr_accuracy": 0.0,
            "processed_receipts": 0,
        }

    def test_counts_and_ocr_accuracy(self, db):
        groups.register_group(-100, "Trip", "group")
        groups.add_split(-100, payer_id=1, amount=10, participants=[Participant(member_id=2)])
        groups.add_split(
            -100, payer_id=1, amount=10,
            receipt_items=[ReceiptItem(name="Roti", total_price=10, assigned_to=[2])],
        )

        # within 1%: 100 + 10 + 6 vs 116.5
        groups.save_receipt_scan(1, -100, True, subtotal=100, total=116.5, service_charge=10, service_tax=6)
        # off by 10%
        groups.save_receipt_scan(1, -100, True, subtotal=100, total=110, service_charge=10, service_tax=10)
        # failed scans never count towards accuracy
        groups.save_receipt_scan(1, -100, False)

        stats = get_analytics()

        assert stats["total_receipts"] == 3
        assert stats["successful_scans"] == 2
        assert stats["total_splits"] == 2
        assert stats["manual_splits"] == 1
        assert stats["receipt_splits"] == 1
        assert stats["total_groups"] == 1
        assert stats["processed_receipts"] == 2
        assert stats["ocr_accuracy"] == 50.0

    def test_log_event(self, db):
        log_event(1, -100, "help_command", username="alice")
        with SessionLocal() as session:
            event = session.query(UserEvent).one()
            assert event.event_type == "help_command"
            assert event.username == "alice"

    def test_log_event_without_database_does_not_raise(self):
        with patch("storage.analytics.SessionLocal", side_effect=RuntimeError("not initialised")):
            log_event(1, -100, "help_command")
