# shopdesk/consolidation/reporter.py
# ---------------------------------------------------------
# Operator-facing summaries for the console's bulk flows.
#
# Consolidation reports three buckets (succeeded / failed / skipped) plus a
# per-customer failure list, the same shape the bulk-delete flows use.
# ---------------------------------------------------------
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from shopdesk.backend.models import (
    OrderDeleteResult,
    ProductDeleteResult,
    RestockResult,
    ShippingMethod,
    StatusUpdateResult,
)
from shopdesk.consolidation.units import UnitOutcome

logger = logging.getLogger("uvicorn.error")

SETTLED_SUCCESS = "success"
SETTLED_PARTIAL = "partial"
SETTLED_ALL_FAILED = "all_failed"


@dataclass
class UnitFailure:
    member_id: Optional[str]
    customer_name: Optional[str]
    order_item_ids: List[str]
    step: Optional[str]
    code: str
    message: str
    # set when create_checkout went through but linking did not
    orphan_checkout_id: Optional[str] = None


@dataclass
class ConsolidationSummary:
    kind: str
    shipping_method: str
    succeeded: int
    failed: int
    skipped: int
    # order items the backend reported as linked, summed over succeeded units
    linked_items: int = 0
    checkout_ids: List[str] = field(default_factory=list)
    failures: List[UnitFailure] = field(default_factory=list)
    refreshed: bool = True
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def settled_kind(succeeded: int, failed: int) -> str:
    if failed == 0:
        return SETTLED_SUCCESS
    if succeeded == 0:
        return SETTLED_ALL_FAILED
    return SETTLED_PARTIAL


def _failure(outcome: UnitOutcome) -> UnitFailure:
    err = outcome.error
    return UnitFailure(
        member_id=outcome.unit.member_id,
        customer_name=outcome.unit.customer_name,
        order_item_ids=outcome.unit.item_ids,
        step=getattr(err, "step", None),
        code=getattr(err, "code", "unit_failed"),
        message=str(err) if err is not None else "unknown error",
        orphan_checkout_id=outcome.checkout_id,
    )


def report_consolidation(
    outcomes: Iterable[UnitOutcome],
    *,
    skipped: int,
    shipping_method: ShippingMethod,
    refreshed: bool = True,
) -> ConsolidationSummary:
    outcomes = list(outcomes)
    ok = [o for o in outcomes if o.succeeded]
    bad = [o for o in outcomes if not o.succeeded]
    method = ShippingMethod(shipping_method)

    parts = [f"Created checkouts for {len(ok)} customer(s) (shipping: {method.label})"]
    if bad:
        parts.append(f"{len(bad)} customer(s) failed")
    if skipped:
        parts.append(f"{skipped} item(s) skipped (not arrived or already checked out)")
    if not refreshed:
        parts.append("order list could not be refreshed")

    summary = ConsolidationSummary(
        kind=settled_kind(len(ok), len(bad)),
        shipping_method=method.value,
        succeeded=len(ok),
        failed=len(bad),
        skipped=skipped,
        linked_items=sum(o.linked_count or 0 for o in ok),
        checkout_ids=[o.checkout_id for o in ok if o.checkout_id],
        failures=[_failure(o) for o in bad],
        refreshed=refreshed,
        message="; ".join(parts),
    )
    for f in summary.failures:
        logger.warning(
            "[CONSOLIDATE] member=%s items=%s step=%s code=%s: %s",
            f.member_id, f.order_item_ids, f.step, f.code, f.message,
        )
    return summary


# --- Sibling bulk flows ----------------------------------------------------

def report_order_delete(result: OrderDeleteResult) -> Dict[str, Any]:
    messages = [f"Deleted {result.deleted_count} order item(s)"]
    if result.skipped_count > 0:
        messages.append(f"{result.skipped_count} skipped because already checked out")
    return {
        "deleted": result.deleted_count,
        "skipped": result.skipped_count,
        "deleted_ids": list(result.deleted_ids),
        "message": "; ".join(messages),
    }


def report_product_delete(result: ProductDeleteResult) -> Dict[str, Any]:
    messages = []
    if result.hard_deleted_count > 0:
        messages.append(f"{result.hard_deleted_count} permanently deleted")
    if result.soft_deleted_count > 0:
        messages.append(f"{result.soft_deleted_count} unlisted (have linked orders)")
    if result.skipped_count > 0:
        messages.append(f"{result.skipped_count} skipped")
    return {
        "hard_deleted": result.hard_deleted_count,
        "soft_deleted": result.soft_deleted_count,
        "skipped": result.skipped_count,
        "message": ", ".join(messages) or "Nothing deleted",
    }


def report_status_update(result: StatusUpdateResult, requested: int, status: str) -> Dict[str, Any]:
    # the backend may omit the count; fall back to what was asked for
    updated = result.updated_count if result.updated_count is not None else requested
    verb = "Listed" if status == "active" else "Unlisted"
    return {"updated": updated, "status": status, "message": f"{verb} {updated} product(s)"}


def report_restock(result: RestockResult, sku: str) -> Dict[str, Any]:
    return {
        "sku": sku,
        "allocated_count": result.allocated_count,
        "message": result.message or f"Restocked {sku}",
    }
