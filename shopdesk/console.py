#=======================================================================================
# shopdesk/console.py
# Per-tenant application state: loaded records, both selection stores, and the
# consolidation orchestrator. Everything that changes this state goes through a
# method here (or through the store/orchestrator it owns).
#=======================================================================================
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from shopdesk.backend.client import BackendClient
from shopdesk.backend.models import OrderItem, Product
from shopdesk.backend.results import Err, Ok, Result
from shopdesk.catalog.variant_groups import (
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    ProductGroup,
    filter_products,
    group_product_ids,
    group_products,
)
from shopdesk.consolidation.errors import ValidationError
from shopdesk.consolidation.orchestrator import ConsolidationOrchestrator
from shopdesk.consolidation.reporter import (
    report_order_delete,
    report_product_delete,
    report_restock,
    report_status_update,
)
from shopdesk.models.audit_log import add_audit_entry
from shopdesk.selection import SelectionStore
from shopdesk.views import Page, filter_orders, is_consolidation_eligible, paginate

logger = logging.getLogger("uvicorn.error")

PRODUCT_STATUS_DELETED = "deleted"


class ConsoleState:
    def __init__(self, tenant_id: str, backend: BackendClient):
        self.tenant_id = tenant_id
        self.backend = backend
        self.orders: List[OrderItem] = []
        self.products: List[Product] = []
        # set when a reload after a consolidation run failed; cleared by the next good load
        self.orders_stale = False
        self._orders_by_id: Dict[str, OrderItem] = {}
        self._products_by_id: Dict[str, Product] = {}
        self.order_selection = SelectionStore(self._order_selectable, name="orders")
        self.product_selection = SelectionStore(self._product_selectable, name="products")
        self.consolidation = ConsolidationOrchestrator(self)

    # --- eligibility ---

    def _order_selectable(self, order_id: str) -> bool:
        order = self._orders_by_id.get(order_id)
        return order is not None and not order.is_terminal

    def _product_selectable(self, product_id: str) -> bool:
        product = self._products_by_id.get(product_id)
        return product is not None and product.status != PRODUCT_STATUS_DELETED

    # --- loading ---

    def set_orders(self, orders: List[OrderItem]) -> None:
        self.orders = list(orders)
        self._orders_by_id = {o.id: o for o in self.orders}
        self.orders_stale = False
        self.order_selection.prune(self._orders_by_id.keys())

    def set_products(self, products: List[Product]) -> None:
        # soft-deleted rows never reach the catalog view
        self.products = [p for p in products if p.status != PRODUCT_STATUS_DELETED]
        self._products_by_id = {p.id: p for p in self.products}
        self.product_selection.prune(self._products_by_id.keys())

    async def reload_orders(self) -> Result:
        res = await self.backend.fetch_order_items(self.tenant_id)
        if isinstance(res, Ok):
            self.set_orders(res.value)
        return res

    async def reload_products(self) -> Result:
        res = await self.backend.fetch_products(self.tenant_id)
        if isinstance(res, Ok):
            self.set_products(res.value)
        return res

    # --- views ---

    def order_page(
        self,
        *,
        status: str = "all",
        query: str | None = None,
        show_completed: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[OrderItem]:
        rows = filter_orders(self.orders, status=status, query=query, show_completed=show_completed)
        return paginate(rows, page, page_size)

    def product_page(self, *, query: str | None = None, page: int = 1, page_size: int = 20) -> Page[ProductGroup]:
        groups = group_products(filter_products(self.products, query))
        return paginate(groups, page, page_size)

    @staticmethod
    def visible_order_ids(page: Page[OrderItem]) -> List[str]:
        return [o.id for o in page.items if not o.is_terminal]

    @staticmethod
    def visible_product_ids(page: Page[ProductGroup]) -> List[str]:
        return [pid for g in page.items for pid in group_product_ids(g)]

    def order_selection_stats(self) -> Dict[str, int]:
        selected = self.order_selection.selected
        ready = sum(1 for o in self.orders if o.id in selected and is_consolidation_eligible(o))
        return {"selected": len(selected), "ready": ready}

    def product_selection_stats(self) -> Dict[str, int]:
        selected = self.product_selection.selected
        active = sum(1 for p in self.products if p.id in selected and p.status == STATUS_ACTIVE)
        return {"selected": len(selected), "active": active, "inactive": len(selected) - active}

    # --- bulk flows ---

    async def delete_selected_orders(self) -> Result:
        ids = self.order_selection.ids()
        if not ids:
            raise ValidationError("Select at least one order item first")
        res = await self.backend.batch_delete_order_items(self.tenant_id, ids)
        if isinstance(res, Err):
            return res
        report = report_order_delete(res.value)
        add_audit_entry("Order Bulk Delete", "operator", report["message"], tenant_id=self.tenant_id)
        self.order_selection.clear()
        await self._refresh_orders_after("order bulk delete")
        return Ok(report)

    async def delete_selected_products(self) -> Result:
        ids = self.product_selection.ids()
        if not ids:
            raise ValidationError("Select at least one product first")
        res = await self.backend.batch_delete_products(self.tenant_id, ids, force_soft_delete=False)
        if isinstance(res, Err):
            return res
        report = report_product_delete(res.value)
        add_audit_entry("Product Bulk Delete", "operator", report["message"], tenant_id=self.tenant_id)
        self.product_selection.clear()
        await self._refresh_products_after("product bulk delete")
        return Ok(report)

    async def set_selected_product_status(self, status: str) -> Result:
        if status not in (STATUS_ACTIVE, STATUS_INACTIVE):
            raise ValidationError(f"Unknown product status: {status}")
        ids = self.product_selection.ids()
        if not ids:
            raise ValidationError("Select at least one product first")
        res = await self.backend.batch_update_product_status(self.tenant_id, ids, status)
        if isinstance(res, Err):
            return res
        report = report_status_update(res.value, requested=len(ids), status=status)
        add_audit_entry("Product Status", "operator", report["message"], tenant_id=self.tenant_id)
        self.product_selection.clear()
        await self._refresh_products_after("product status update")
        return Ok(report)

    async def restock(self, sku: str, quantity: int) -> Result:
        sku = (sku or "").strip()
        if not sku:
            raise ValidationError("A sku is required")
        if quantity <= 0:
            raise ValidationError("Restock quantity must be positive")
        res = await self.backend.restock(self.tenant_id, sku, quantity)
        if isinstance(res, Err):
            return res
        report = report_restock(res.value, sku)
        add_audit_entry(
            "Restock", "operator",
            f"sku={sku} qty={quantity} allocated={report['allocated_count']}",
            tenant_id=self.tenant_id,
        )
        # allocation moved stock and arrival flags on the backend
        await self._refresh_products_after("restock")
        await self._refresh_orders_after("restock")
        return Ok(report)

    async def _refresh_orders_after(self, flow: str) -> None:
        res = await self.reload_orders()
        if isinstance(res, Err):
            logger.warning("[CONSOLE] tenant=%s order refresh after %s failed: %s", self.tenant_id, flow, res)

    async def _refresh_products_after(self, flow: str) -> None:
        res = await self.reload_products()
        if isinstance(res, Err):
            logger.warning("[CONSOLE] tenant=%s product refresh after %s failed: %s", self.tenant_id, flow, res)


class ConsoleRegistry:
    """One ConsoleState per tenant, created on first use."""

    def __init__(self, backend: Optional[BackendClient] = None):
        self.backend = backend or BackendClient()
        self._consoles: Dict[str, ConsoleState] = {}
        self._lock = asyncio.Lock()

    async def get(self, tenant_id: str) -> ConsoleState:
        async with self._lock:
            console = self._consoles.get(tenant_id)
            if console is None:
                console = ConsoleState(tenant_id, self.backend)
                self._consoles[tenant_id] = console
                logger.info("[CONSOLE] tenant=%s state created", tenant_id)
            return console

    def snapshot(self) -> Dict[str, Any]:
        return {
            tid: {
                "orders": len(c.orders),
                "products": len(c.products),
                "consolidation": c.consolidation.phase.value,
            }
            for tid, c in self._consoles.items()
        }
