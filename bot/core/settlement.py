"""
Debt simplification using the greedy min-cash-flow algorithm.

Net positions are derived from the obligation graph and rounded to whole cents
so that they still sum to zero. The largest creditor is then repeatedly matched
with the largest debtor until nobody is left with a nonzero position.
"""
import logging
import math
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from core.ledger import (
    Member,
    ObligationGraph,
    PaymentRecord,
    SplitRecord,
    build_obligation_graph,
)

logger = logging.getLogger(__name__)


class SettlementEdge(BaseModel):
    debtor_id: int
    creditor_id: int
    amount: float


class Debt(BaseModel):
    """One line under a member: positive means the member owes the counterparty."""
    counterparty: Member
    amount: float


class MemberDebts(BaseModel):
    member: Member
    debts: List[Debt] = Field(default_factory=list)


def to_cents(amount: float) -> int:
    # Half rounds toward +inf, same as Math.round(amount * 100).
    return int(math.floor(amount * 100 + 0.5))


def round2(amount: float) -> float:
    return to_cents(amount) / 100


def net_positions(graph: ObligationGraph) -> Dict[int, float]:
    """Owed-to minus owing, per member. Positive means the member is owed money."""
    positions: Dict[int, float] = {}
    for member_id in graph:
        positions[member_id] = 0.0
        for other_id in graph:
            if other_id == member_id:
                continue
            positions[member_id] += graph[other_id].get(member_id, 0.0) - graph[member_id].get(other_id, 0.0)
    return positions


def balanced_cents(positions: Dict[int, float]) -> Dict[int, int]:
    """
    Round positions to cents, keeping the total at zero.

    Rounding each position on its own can leave a few cents over. Those go,
    one cent each, to the members whose rounding moved furthest in the same
    direction, so nobody ends up more than a cent away from their position.
    """
    cents = {member_id: to_cents(value) for member_id, value in positions.items()}
    residue = sum(cents.values())
    if not residue:
        return cents

    errors = {member_id: cents[member_id] - positions[member_id] * 100 for member_id in cents}
    order = sorted(cents, key=lambda member_id: errors[member_id], reverse=residue > 0)
    step = -1 if residue > 0 else 1
    for member_id in order[:abs(residue)]:
        cents[member_id] += step
    logger.debug(f"Spread {residue} cent(s) of rounding residue")
    return cents


def _extremes(cents: Dict[int, int]) -> Tuple[Optional[int], Optional[int]]:
    """Max and min holders. Ties go to the last one seen."""
    max_id: Optional[int] = None
    min_id: Optional[int] = None
    for member_id, value in cents.items():
        if max_id is None or value >= cents[max_id]:
            max_id = member_id
        if min_id is None or value <= cents[min_id]:
            min_id = member_id
    return max_id, min_id


def settle(positions: Dict[int, float]) -> List[SettlementEdge]:
    """Reduce net positions to a minimal list of debtor -> creditor transfers."""
    cents = balanced_cents(positions)
    edges: List[SettlementEdge] = []

    while True:
        creditor, debtor = _extremes(cents)
        if creditor is None or debtor is None or creditor == debtor:
            break
        if cents[creditor] <= 0 or cents[debtor] >= 0:
            break

        amount = min(-cents[debtor], cents[creditor])
        edges.append(SettlementEdge(debtor_id=debtor, creditor_id=creditor, amount=amount / 100))
        cents[creditor] -= amount
        cents[debtor] += amount

    residue = sum(cents.values())
    if residue:
        logger.debug(f"Settlement left {residue} cent(s) unmatched")
    return edges


def simplify(
    members: List[Member],
    splits: List[SplitRecord],
    payments: List[PaymentRecord],
) -> List[SettlementEdge]:
    graph = build_obligation_graph(members, splits, payments)
    return settle(net_positions(graph))


def debts_by_member(members: List[Member], edges: List[SettlementEdge]) -> List[MemberDebts]:
    """
    Group settlement edges under each member for display.

    The debtor lists the creditor with a positive amount, the creditor lists the
    debtor with a negative amount. Members without any debts are left out and
    the result is ordered by display name.
    """
    by_id = {m.id: m for m in members}
    grouped: Dict[int, MemberDebts] = {}

    for edge in edges:
        debtor = by_id.get(edge.debtor_id)
        creditor = by_id.get(edge.creditor_id)
        if debtor is None or creditor is None:
            logger.warning(f"Settlement edge references unknown member: {edge}")
            continue
        grouped.setdefault(debtor.id, MemberDebts(member=debtor)).debts.append(
            Debt(counterparty=creditor, amount=edge.amount)
        )
        grouped.setdefault(creditor.id, MemberDebts(member=creditor)).debts.append(
            Debt(counterparty=debtor, amount=-edge.amount)
        )

    return sorted(grouped.values(), key=lambda entry: entry.member.name.casefold())
