# shopdesk/consolidation/units.py
# ---------------------------------------------------------
# Consolidation units: one member's eligible, selected order items for a
# single run. Rebuilt on every run; nothing here outlives it.
# ---------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from shopdesk.backend.models import OrderItem
from shopdesk.consolidation.errors import IdentityMissingError, UnitError


@dataclass
class ConsolidationUnit:
    member_id: Optional[str]
    items: List[OrderItem] = field(default_factory=list)

    @property
    def item_ids(self) -> List[str]:
        return [i.id for i in self.items]

    @property
    def identity(self) -> Optional[str]:
        """External messaging identity of the member, taken from the first item that carries one."""
        for item in self.items:
            if item.member is not None and item.member.line_user_id:
                return item.member.line_user_id
        return None

    @property
    def customer_name(self) -> Optional[str]:
        first = self.items[0] if self.items else None
        if first is None:
            return None
        if first.customer_name:
            return first.customer_name
        if first.member is not None:
            return first.member.display_name
        return None


@dataclass
class UnitOutcome:
    unit: ConsolidationUnit
    succeeded: bool
    checkout_id: Optional[str] = None
    linked_count: Optional[int] = None
    error: Optional[UnitError] = None


def partition_by_member(items: Iterable[OrderItem]) -> Tuple[List[ConsolidationUnit], List[UnitOutcome]]:
    """
    Group items by stable member id, in first-seen order.

    Returns (units ready to run, outcomes already failed). Units whose member
    has no messaging identity fail here with IdentityMissingError; items with
    no member reference at all share one such failed unit.
    """
    by_member: Dict[Optional[str], ConsolidationUnit] = {}
    for item in items:
        unit = by_member.get(item.member_id)
        if unit is None:
            unit = ConsolidationUnit(member_id=item.member_id)
            by_member[item.member_id] = unit
        unit.items.append(item)

    runnable: List[ConsolidationUnit] = []
    failed: List[UnitOutcome] = []
    for member_id, unit in by_member.items():
        if member_id is None or not unit.identity:
            failed.append(UnitOutcome(unit=unit, succeeded=False, error=IdentityMissingError(member_id)))
        else:
            runnable.append(unit)
    return runnable, failed
