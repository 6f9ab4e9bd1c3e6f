"""
Storage tests for groups, splits and payments against in-memory SQLite.
"""
from datetime import datetime
from unittest.mock import patch

import pytest
import pytz
from sqlalchemy.exc import SQLAlchemyError

from core.ledger import Participant, SplitMode
from core.receipts import ReceiptData, ReceiptItem, apply_charges
from core.settlement import simplify
from storage import groups
from storage.database import Payment, SessionLocal, Split, SplitParticipant, utcnow


@pytest.fixture
def group(db):
    groups.register_group(-100, "Langkawi trip", "group")
    groups.register_user_in_group(3, -100, "Carol")
    groups.register_user_in_group(1, -100, "Alice", username="alice")
    groups.register_user_in_group(2, -100, "Bob", last_name="Tan")
    return -100


class TestGroups:
    def test_members_sorted_by_first_name(self, group):
        info = groups.get_group(group)
        assert info.title == "Langkawi trip"
        assert [m.name for m in info.members] == ["Alice", "Bob Tan", "Carol"]
        assert info.members[0].username == "alice"

    def test_register_user_twice(self, group):
        assert groups.register_user_in_group(1, group, "Alicia") is False
        names = [m.name for m in groups.group_members(group)]
        assert names == ["Alicia", "Bob Tan", "Carol"]

    def test_unknown_group(self, db):
        assert groups.get_group(-1) is None
        assert groups.group_members(-1) == []

    def test_user_groups(self, group):
        groups.register_user_in_group(1, -200, "Alice")
        assert [g.id for g in groups.get_user_groups(1)] == [-200, -100]
        assert groups.get_user_groups(404) == []

    def test_display_name_falls_back_to_username(self, db):
        groups.register_user_in_group(9, -100, "", username="ghost")
        assert groups.group_members(-100)[0].name == "ghost"


class TestSplits:
    def test_equal_split_round_trip(self, group):
        participants = [Participant(member_id=i, raw_value=99) for i in (1, 2, 3)]
        groups.add_split(group, payer_id=3, amount=90, mode=SplitMode.EQUALLY, participants=participants)

        [split] = groups.get_splits(group)
        assert split.mode == SplitMode.EQUALLY
        assert [p.raw_value for p in split.participants] == [None, None, None]

        edges = simplify(groups.group_members(group), groups.get_splits(group), groups.get_payments(group))
        assert {(e.debtor_id, e.creditor_id, e.amount) for e in edges} == {(1, 3, 30.0), (2, 3, 30.0)}

    def test_only_selected_participants_are_stored(self, group):
        participants = [
            Participant(member_id=1, raw_value=1),
            Participant(member_id=2, raw_value=3, selected=False),
        ]
        groups.add_split(group, payer_id=3, amount=40, mode=SplitMode.SHARES, participants=participants)
        [split] = groups.get_splits(group)
        assert [(p.member_id, p.raw_value) for p in split.participants] == [(1, 1)]

    def test_receipt_split_becomes_unequally(self, group):
        items = [
            ReceiptItem(name="Nasi Lemak", total_price=20, assigned_to=[1, 2]),
            ReceiptItem(name="Teh Tarik", total_price=30, assigned_to=[2]),
        ]
        split_id = groups.add_split(
            group, payer_id=3, amount=58, description="Kopi Corner",
            receipt_items=items, service_charge=5, service_tax=3,
        )

        [split] = groups.get_splits(group)
        assert split.mode == SplitMode.UNEQUALLY
        amounts = {p.member_id: p.raw_value for p in split.participants}
        assert amounts[1] == pytest.approx(11.6)
        assert amounts[2] == pytest.approx(46.4)

        with SessionLocal() as session:
            stored = session.get(Split, split_id)
            assert stored.is_manual_split is False
            assert stored.receipt_items[0]["totalPrice"] == 20

    def test_scanned_receipt_split_adds_up_to_receipt_total(self, group):
        receipt = ReceiptData.model_validate({
            "metadata": {"storeName": "Kopi Corner"},
            "items": [
                {"name": "Nasi Lemak", "totalPrice": 40},
                {"name": "Teh Tarik", "totalPrice": 60},
            ],
            "summary": {"subtotal": 100, "serviceCharge": 10, "serviceTax": 6, "total": 116},
        })
        charged = apply_charges(receipt)
        items = [
            charged[0].model_copy(update={"assigned_to": [1, 2]}),
            charged[1].model_copy(update={"assigned_to": [3]}),
        ]
        groups.add_split(
            group, payer_id=3, amount=receipt.summary.total, description="Kopi Corner",
            receipt_items=items, service_charge=10, service_tax=6,
        )

        [split] = groups.get_splits(group)
        amounts = {p.member_id: p.raw_value for p in split.participants}
        assert sum(amounts.values()) == pytest.approx(116)
        assert amounts[3] == pytest.approx(69.6)

        edges = simplify(groups.group_members(group), groups.get_splits(group), [])
        assert {(e.debtor_id, e.creditor_id, e.amount) for e in edges} == {(1, 3, 23.2), (2, 3, 23.2)}

    def test_splits_newest_first(self, group):
        groups.add_split(group, payer_id=1, amount=10, participants=[Participant(member_id=2)], description="first")
        groups.add_split(group, payer_id=1, amount=20, participants=[Participant(member_id=2)], description="second")
        assert [s.description for s in groups.get_splits(group)] == ["second", "first"]

    def test_edit_split_replaces_participants(self, group):
        split_id = groups.add_split(
            group, payer_id=1, amount=30, mode=SplitMode.UNEQUALLY,
            participants=[Participant(member_id=2, raw_value=30)],
        )
        assert groups.edit_split(
            split_id, payer_id=1, amount=30, mode=SplitMode.EQUALLY,
            participants=[Participant(member_id=2), Participant(member_id=3)],
        )

        [split] = groups.get_splits(group)
        assert split.mode == SplitMode.EQUALLY
        assert [(p.member_id, p.raw_value) for p in split.participants] == [(2, None), (3, None)]
        with SessionLocal() as session:
            assert session.query(SplitParticipant).count() == 2

    def test_delete_split(self, group):
        split_id = groups.add_split(group, payer_id=1, amount=30, participants=[Participant(member_id=2)])
        assert groups.delete_split(split_id)
        assert groups.get_splits(group) == []
        assert not groups.delete_split(split_id)
        assert not groups.edit_split(split_id, 1, 10, SplitMode.EQUALLY, [])

    def test_add_split_error_is_raised(self, group):
        with patch("storage.groups.Split", side_effect=SQLAlchemyError("boom")):
            with pytest.raises(SQLAlchemyError):
                groups.add_split(group, payer_id=1, amount=10)


class TestPayments:
    def test_payment_settles_split(self, group):
        groups.add_split(group, payer_id=1, amount=100, participants=[Participant(member_id=1), Participant(member_id=2)])
        payment_id = groups.add_payment(group, payer_id=2, payee_id=1, amount=50)

        members = groups.group_members(group)
        assert simplify(members, groups.get_splits(group), groups.get_payments(group)) == []

        assert groups.edit_payment(payment_id, payer_id=2, payee_id=1, amount=20)
        [edge] = simplify(members, groups.get_splits(group), groups.get_payments(group))
        assert (edge.debtor_id, edge.creditor_id, edge.amount) == (2, 1, 30.0)

        assert groups.delete_payment(payment_id)
        assert groups.get_payments(group) == []
        assert not groups.delete_payment(payment_id)
        assert not groups.edit_payment(payment_id, 1, 2, 5)

    def test_payment_date_is_naive_utc(self, group):
        before = datetime.now(pytz.UTC).replace(tzinfo=None)
        payment_id = groups.add_payment(group, payer_id=2, payee_id=1, amount=5)
        after = utcnow()

        with SessionLocal() as session:
            stored = session.get(Payment, payment_id)
            assert stored.date.tzinfo is None
            assert before <= stored.date <= after

    def test_receipt_scan_saved(self, group):
        items =[ReceiptItem(name="Roti", total_price=4)]
        scan_id = groups.save_receipt_scan(
            user_id=1, chat_id=group, success=True, items=items, subtotal=4, total=4, store_name="Kopi Corner"
        )
        assert scan_id > 0
