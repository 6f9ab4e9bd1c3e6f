"""
Receipt data models and the arithmetic that turns receipt line items into
per-member shares.
"""
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.ledger import Participant

logger = logging.getLogger(__name__)

# Totals within this distance of the subtotal mean charges are already in the prices.
TAXES_INCLUDED_TOLERANCE = 0.01


class ReceiptItem(BaseModel):
    name: str
    quantity: float = 1
    unit_price: float = Field(0.0, alias="unitPrice")
    total_price: float = Field(..., alias="totalPrice")
    assigned_to: List[int] = Field(default_factory=list, alias="assignedTo")
    original_price: Optional[float] = Field(None, alias="originalPrice")
    charges: Optional[float] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ReceiptMetadata(BaseModel):
    store_name: str = Field("", alias="storeName")
    date: str = ""
    store_address: Optional[str] = Field(None, alias="storeAddress")
    time: Optional[str] = None
    receipt_number: Optional[str] = Field(None, alias="receiptNumber")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ReceiptSummary(BaseModel):
    subtotal: float = 0.0
    total: float = 0.0
    service_charge: Optional[float] = Field(None, alias="serviceCharge")
    service_tax: Optional[float] = Field(None, alias="serviceTax")
    payment_method: Optional[str] = Field(None, alias="paymentMethod")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ReceiptData(BaseModel):
    metadata: ReceiptMetadata = Field(default_factory=ReceiptMetadata)
    items: List[ReceiptItem]
    summary: ReceiptSummary
    additional_notes: List[str] = Field(default_factory=list, alias="additionalNotes")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ReceiptCharges(BaseModel):
    service_charge: float
    service_tax: float
    taxes_included: bool

    @property
    def total(self) -> float:
        return self.service_charge + self.service_tax


def taxes_included(summary: ReceiptSummary) -> bool:
    return abs(summary.total - summary.subtotal) < TAXES_INCLUDED_TOLERANCE


def receipt_charges(summary: ReceiptSummary) -> ReceiptCharges:
    """Service charge and tax to distribute; both zero when prices already include them."""
    included = taxes_included(summary)
    if included:
        return ReceiptCharges(service_charge=0.0, service_tax=0.0, taxes_included=True)
    return ReceiptCharges(
        service_charge=summary.service_charge or 0.0,
        service_tax=summary.service_tax or 0.0,
        taxes_included=False,
    )


def apply_charges(receipt: ReceiptData) -> List[ReceiptItem]:
    """
    Spread service charge and tax over the items in proportion to their price.

    Each returned item keeps its printed price in ``original_price`` and the
    share of charges in ``charges``; ``total_price`` includes both.
    """
    charges = receipt_charges(receipt.summary)
    subtotal = receipt.summary.subtotal

    processed: List[ReceiptItem] = []
    for item in receipt.items:
        item_charges = 0.0
        if charges.total and subtotal:
            item_charges = charges.total * (item.total_price / subtotal)
        processed.append(item.model_copy(update={
            "total_price": item.total_price + item_charges,
            "original_price": item.total_price,
            "charges": item_charges,
            "assigned_to": [],
        }))
        logger.debug(f"{item.name}: original={item.total_price}, charges={item_charges:.2f}")
    return processed


def _base_price(item: ReceiptItem) -> float:
    return item.original_price if item.original_price is not None else item.total_price


def allocate_receipt_items(
    items: List[ReceiptItem],
    service_charge: Optional[float] = None,
    service_tax: Optional[float] = None,
) -> Dict[int, float]:
    """
    Amount each member owes for a receipt, keyed by member id.

    Charges are spread over items in proportion to their printed price, then
    every item's total is divided equally among the members it is assigned
    to. Items nobody is assigned to contribute nothing. Items coming out of
    ``apply_charges`` already carry charges in ``total_price``, so their
    ``original_price`` is used as the base.
    """
    total_charges = (service_charge or 0.0) + (service_tax or 0.0)
    subtotal = sum(_base_price(item) for item in items)

    shares: Dict[int, float] = {}
    for item in items:
        if not item.assigned_to:
            logger.debug(f"Receipt item '{item.name}' has no assignees, skipping")
            continue
        price = _base_price(item)
        item_ratio = price / subtotal if subtotal else 0.0
        share_amount = (price + total_charges * item_ratio) / len(item.assigned_to)
        for member_id in item.assigned_to:
            shares[member_id] = shares.get(member_id, 0.0) + share_amount
    return shares


def receipt_participants(
    items: List[ReceiptItem],
    service_charge: Optional[float] = None,
    service_tax: Optional[float] = None,
) -> List[Participant]:
    """Receipt shares as participant entries of an ``unequally`` split."""
    shares = allocate_receipt_items(items, service_charge, service_tax)
    return [Participant(member_id=member_id, raw_value=amount, selected=True) for member_id, amount in shares.items()]
