"""Tests for receipt charge distribution and item allocation."""
import pytest

from core.receipts import (
    ReceiptData,
    ReceiptItem,
    ReceiptSummary,
    allocate_receipt_items,
    apply_charges,
    receipt_charges,
    receipt_participants,
    taxes_included,
)


@pytest.fixture
def receipt():
    return ReceiptData.model_validate({
        "metadata": {"storeName": "Kopi Corner", "date": "2024-05-01"},
        "items": [
            {"name": "Nasi Lemak", "quantity": 2, "unitPrice": 10, "totalPrice": 20},
            {"name": "Teh Tarik", "quantity": 3, "unitPrice": 10, "totalPrice": 30},
        ],
        "summary": {"subtotal": 50, "serviceCharge": 5, "serviceTax": 3, "total": 58},
    })


class TestCharges:
    def test_taxes_included_when_total_matches_subtotal(self):
        assert taxes_included(ReceiptSummary(subtotal=50, total=50.005))
        assert not taxes_included(ReceiptSummary(subtotal=50, total=58))

    def test_included_taxes_zero_the_charges(self):
        charges = receipt_charges(ReceiptSummary(subtotal=50, total=50, service_charge=5, service_tax=3))
        assert charges.taxes_included
        assert charges.service_charge == 0
        assert charges.service_tax == 0

    def test_missing_charges_are_zero(self):
        charges = receipt_charges(ReceiptSummary(subtotal=50, total=58))
        assert charges.total == 0

    def test_apply_charges_in_proportion_to_price(self, receipt):
        items = apply_charges(receipt)

        assert [item.original_price for item in items] == [20, 30]
        assert items[0].charges == pytest.approx(3.2)
        assert items[1].charges == pytest.approx(4.8)
        assert items[0].total_price == pytest.approx(23.2)
        assert sum(item.total_price for item in items) == pytest.approx(58)
        # the parsed receipt itself is untouched
        assert receipt.items[0].total_price == 20

    def test_apply_charges_with_zero_subtotal(self):
        receipt = ReceiptData(
            items=[ReceiptItem(name="Free water", total_price=0)],
            summary=ReceiptSummary(subtotal=0, total=2, service_charge=2),
        )
        items = apply_charges(receipt)
        assert items[0].charges == 0
        assert items[0].total_price == 0


class TestAllocation:
    def test_item_split_among_assignees(self):
        items = [
            ReceiptItem(name="Nasi Lemak", total_price=20, assigned_to=[1, 2]),
            ReceiptItem(name="Teh Tarik", total_price=30, assigned_to=[2]),
        ]
        shares = allocate_receipt_items(items, service_charge=5, service_tax=3)

        assert shares[1] == pytest.approx(11.6)
        assert shares[2] == pytest.approx(46.4)
        assert sum(shares.values()) == pytest.approx(58)

    def test_unassigned_items_contribute_nothing(self):
        items = [
            ReceiptItem(name="Roti", total_price=10, assigned_to=[1]),
            ReceiptItem(name="Mystery", total_price=10),
        ]
        shares = allocate_receipt_items(items, service_charge=2)
        assert shares == {1: pytest.approx(11.0)}

    def test_zero_subtotal_does_not_divide_by_zero(self):
        items = [ReceiptItem(name="Free water", total_price=0, assigned_to=[1, 2])]
        assert allocate_receipt_items(items, service_charge=2) == {1: 0.0, 2: 0.0}

    def test_charged_items_are_not_charged_again(self, receipt):
        items = [
            item.model_copy(update={"assigned_to": assignees})
            for item, assignees in zip(apply_charges(receipt), [[1, 2], [2]])
        ]
        shares = allocate_receipt_items(items, service_charge=5, service_tax=3)

        assert shares[1] == pytest.approx(11.6)
        assert shares[2] == pytest.approx(46.4)
        assert sum(shares.values()) == pytest.approx(receipt.summary.total)

    def test_participants_are_selected_amounts(self):
        items = [ReceiptItem(name="Roti", total_price=12, assigned_to=[1, 2, 3])]
        participants = receipt_participants(items)

        assert [(p.member_id, p.raw_value, p.selected) for p in participants] == [
            (1, 4.0, True),
            (2, 4.0, True),
            (3, 4.0, True),
        ]

    def test_aliases_round_trip_for_web_app(self):
        item = ReceiptItem(name="Roti", unit_price=2, total_price=4, assigned_to=[7])
        dumped = item.model_dump(by_alias=True)
        assert dumped["unitPrice"] == 2
        assert dumped["totalPrice"] == 4
        assert dumped["assignedTo"] == [7]
