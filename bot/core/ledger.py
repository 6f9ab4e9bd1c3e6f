"""
Ledger aggregation: turns a group's splits and payments into a graph of
pairwise obligations between members.

graph[debtor][creditor] holds the cumulative amount debtor owes creditor.
Both directions of a pair are accumulated independently; netting happens
later in core.settlement.
"""
import logging
import math
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

ObligationGraph = Dict[int, Dict[int, float]]
Contribution = Tuple[int, int, float]  # (debtor_id, creditor_id, amount)


class SplitMode(str, Enum):
    EQUALLY = "equally"
    UNEQUALLY = "unequally"
    PERCENTAGES = "percentages"
    SHARES = "shares"


class Member(BaseModel):
    id: int
    name: str
    username: Optional[str] = None


class Participant(BaseModel):
    member_id: int
    raw_value: Optional[float] = Field(None, alias="amount")
    selected: bool = True

    model_config = ConfigDict(populate_by_name=True)


class SplitRecord(BaseModel):
    payer_id: int
    amount: Optional[float] = None
    mode: SplitMode = SplitMode.EQUALLY
    participants: List[Participant] = Field(default_factory=list)
    description: Optional[str] = None


class PaymentRecord(BaseModel):
    payer_id: int
    payee_id: Optional[int] = None
    amount: Optional[float] = None


def _finite(value: Optional[float]) -> float:
    """Missing values count as zero; so do NaN and infinities."""
    if value is None:
        return 0.0
    if not math.isfinite(value):
        logger.warning(f"Ignoring non-finite amount {value!r} in ledger data")
        return 0.0
    return float(value)


def split_contributions(split: SplitRecord) -> List[Contribution]:
    """Amounts each selected participant owes the payer for one split."""
    total = _finite(split.amount)
    listed = len(split.participants)
    share_sum = 0.0
    if split.mode == SplitMode.SHARES:
        share_sum = sum(_finite(p.raw_value) for p in split.participants if p.selected)
        if share_sum == 0:
            logger.debug(f"Split paid by {split.payer_id} has zero total shares, skipping")
            return []

    contributions: List[Contribution] = []
    for participant in split.participants:
        if not participant.selected:
            continue

        value = _finite(participant.raw_value)
        if split.mode == SplitMode.EQUALLY:
            owed = total / listed
        elif split.mode == SplitMode.UNEQUALLY:
            owed = value
        elif split.mode == SplitMode.PERCENTAGES:
            owed = total * value / 100
        else:
            owed = total * value / share_sum

        if participant.member_id != split.payer_id and owed > 0:
            contributions.append((participant.member_id, split.payer_id, owed))

    return contributions


def payment_contribution(payment: PaymentRecord) -> Optional[Contribution]:
    """
    A payment from X to Y is recorded as Y owing X.

    The payer was previously owed money by the payee's side of the ledger, so
    adding the reverse edge is what cancels the debt once positions are netted.
    """
    if payment.payee_id is None or payment.payer_id == payment.payee_id:
        return None
    amount = _finite(payment.amount)
    if amount <= 0:
        return None
    return (payment.payee_id, payment.payer_id, amount)


def empty_graph(members: Iterable[Member]) -> ObligationGraph:
    ids = [m.id for m in members]
    return {debtor: {creditor: 0.0 for creditor in ids if creditor != debtor} for debtor in ids}


def build_obligation_graph(
    members: List[Member],
    splits: List[SplitRecord],
    payments: List[PaymentRecord],
) -> ObligationGraph:
    """Accumulate every split and payment contribution into one graph."""
    graph = empty_graph(members)

    contributions: List[Contribution] = []
    for split in splits:
        contributions.extend(split_contributions(split))
    for payment in payments:
        contribution = payment_contribution(payment)
        if contribution:
            contributions.append(contribution)

    for debtor, creditor, amount in contributions:
        if debtor not in graph or creditor not in graph[debtor]:
            logger.warning(f"Skipping contribution {debtor} -> {creditor}: not both members of the group")
            continue
        graph[debtor][creditor] += amount

    return graph
