"""Consolidation orchestrator: merges selected, arrived order items into one
checkout per customer.

State machine:
    IDLE -> CONFIRMING -> RUNNING -> SETTLED -> IDLE

Run (on confirm):
    1. eligibility filter: selected items that have arrived and carry no checkout
    2. partition by member; members without a messaging identity fail right away
    3. per unit, strictly one after another:
         create_checkout -> link_order_items
       a failed call fails that unit only and the loop moves on
    4. settle: re-fetch order items, prune the selection, build the summary

There is no retry token. Re-running after a partial failure is safe because
step 1 drops every item the backend has already linked.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Tuple

from shopdesk.backend.models import OrderItem, ShippingMethod
from shopdesk.backend.results import Err
from shopdesk.consolidation.errors import (
    ConsolidationBusyError,
    ExternalCallError,
    InvalidTransitionError,
    ValidationError,
)
from shopdesk.consolidation.reporter import ConsolidationSummary, report_consolidation
from shopdesk.consolidation.units import ConsolidationUnit, UnitOutcome, partition_by_member
from shopdesk.models.audit_log import add_audit_entry
from shopdesk.views import is_consolidation_eligible

if TYPE_CHECKING:
    from shopdesk.console import ConsoleState

logger = logging.getLogger("uvicorn.error")

STEP_CREATE = "create_checkout"
STEP_LINK = "link_order_items"

NOTHING_ELIGIBLE = "No selected order items can be checked out (they must have arrived and not be checked out yet)"
STALE_ORDERS = "The order list is out of date after the last run; reload it before consolidating again"


class Phase(str, Enum):
    IDLE = "idle"
    CONFIRMING = "confirming"
    RUNNING = "running"
    SETTLED = "settled"


class ConsolidationOrchestrator:
    """Drives one tenant's consolidation runs against the backend."""

    def __init__(self, console: "ConsoleState"):
        self.console = console
        self.phase = Phase.IDLE
        self.last_summary: Optional[ConsolidationSummary] = None

    # --- selection reads ---

    def split_selection(self) -> Tuple[List[OrderItem], int]:
        """(eligible selected items in list order, count of selected ids that are not eligible)."""
        selected = self.console.order_selection.selected
        eligible = [o for o in self.console.orders if o.id in selected and is_consolidation_eligible(o)]
        return eligible, len(selected) - len(eligible)

    def preview(self) -> dict:
        eligible, skipped = self.split_selection()
        runnable, failed = partition_by_member(eligible)
        return {
            "phase": self.phase.value,
            "eligible_items": len(eligible),
            "skipped_items": skipped,
            "customers": len(runnable),
            "customers_missing_identity": len(failed),
            "orders_stale": self.console.orders_stale,
        }

    # --- transitions ---

    def open(self) -> dict:
        if self.phase is Phase.RUNNING:
            raise ConsolidationBusyError("consolidation already running")
        if self.phase is not Phase.IDLE:
            raise InvalidTransitionError("open", self.phase.value)
        if self.console.orders_stale:
            raise ValidationError(STALE_ORDERS)
        eligible, _ = self.split_selection()
        if not eligible:
            raise ValidationError(NOTHING_ELIGIBLE)
        self.phase = Phase.CONFIRMING
        return self.preview()

    def cancel(self) -> None:
        if self.phase is not Phase.CONFIRMING:
            raise InvalidTransitionError("cancel", self.phase.value)
        self.phase = Phase.IDLE

    def acknowledge(self) -> None:
        if self.phase is not Phase.SETTLED:
            raise InvalidTransitionError("acknowledge", self.phase.value)
        self.phase = Phase.IDLE

    async def confirm(self, shipping_method: ShippingMethod) -> ConsolidationSummary:
        if self.phase is Phase.RUNNING:
            raise ConsolidationBusyError("consolidation already running")
        if self.phase is not Phase.CONFIRMING:
            raise InvalidTransitionError("confirm", self.phase.value)
        method = ShippingMethod(shipping_method)

        eligible, skipped = self.split_selection()
        if not eligible:
            self.phase = Phase.IDLE
            raise ValidationError(NOTHING_ELIGIBLE)

        # entered before the first await; a second confirm sees RUNNING
        self.phase = Phase.RUNNING
        self.last_summary = None
        tenant_id = self.console.tenant_id
        try:
            runnable, outcomes = partition_by_member(eligible)
            logger.info(
                "[CONSOLIDATE] tenant=%s start: %d item(s), %d customer(s), %d without identity, method=%s",
                tenant_id, len(eligible), len(runnable), len(outcomes), method.value,
            )

            for unit in runnable:
                outcomes.append(await self._run_unit(unit, method))

            refreshed = await self._settle(outcomes)
            summary = report_consolidation(outcomes, skipped=skipped, shipping_method=method, refreshed=refreshed)
            self.last_summary = summary
        finally:
            # a run never stays RUNNING, even when settling blew up
            self.phase = Phase.SETTLED

        add_audit_entry(
            "Consolidation",
            "operator",
            f"kind={summary.kind} succeeded={summary.succeeded} failed={summary.failed} "
            f"skipped={summary.skipped} linked={summary.linked_items} method={method.value}",
            tenant_id=tenant_id,
        )
        logger.info("[CONSOLIDATE] tenant=%s settled: %s", tenant_id, summary.message)
        return summary

    # --- run steps ---

    async def _run_unit(self, unit: ConsolidationUnit, method: ShippingMethod) -> UnitOutcome:
        backend = self.console.backend
        tenant_id = self.console.tenant_id
        try:
            created = await backend.create_checkout(
                tenant_id,
                unit.identity,
                method,
                receiver_name=unit.customer_name,
                receiver_phone=None,
                receiver_pickup_point=None,
            )
            if isinstance(created, Err):
                return UnitOutcome(unit, False, error=ExternalCallError(STEP_CREATE, created.code, created.message))

            checkout_id = created.value.checkout_id
            linked = await backend.link_order_items(tenant_id, checkout_id, unit.item_ids)
            if isinstance(linked, Err):
                # the checkout stays behind without items; the backend owns that
                return UnitOutcome(
                    unit, False, checkout_id=checkout_id,
                    error=ExternalCallError(STEP_LINK, linked.code, linked.message),
                )
            return UnitOutcome(unit, True, checkout_id=checkout_id, linked_count=linked.value.linked_count)
        except Exception as e:
            logger.exception("[CONSOLIDATE] member=%s unexpected error", unit.member_id)
            return UnitOutcome(unit, False, error=ExternalCallError("unit", "unexpected", str(e)))

    async def _settle(self, outcomes: List[UnitOutcome]) -> bool:
        """
        Reload from the backend. Local rows are never patched from assumed results.

        When the reload fails, the linked items of succeeded units leave the
        selection and the order list is marked stale, so a retry cannot send
        them to create_checkout a second time.
        """
        tenant_id = self.console.tenant_id
        try:
            res = await self.console.reload_orders()
        except Exception as e:
            logger.exception("[CONSOLIDATE] tenant=%s refresh after run raised", tenant_id)
            res = Err("unexpected", str(e))
        if isinstance(res, Err):
            logger.error("[CONSOLIDATE] tenant=%s refresh after run failed: %s", tenant_id, res)
            linked = [i for o in outcomes if o.succeeded for i in o.unit.item_ids]
            self.console.order_selection.discard(linked)
            self.console.orders_stale = True
            return False
        return True
