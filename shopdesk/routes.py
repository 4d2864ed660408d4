#=======================================================================================
# shopdesk/routes.py
# Operator console endpoints, one set per tenant: /api/t/{tenant_id}/*
# Protected via Basic Auth in main_app.py.
#
#   products   : grouped catalog, selection, bulk status/delete, restock
#   orders     : filtered order items, selection, bulk delete
#   consolidation : open -> confirm -> acknowledge (or cancel)
#=======================================================================================

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from shopdesk.backend.models import ShippingMethod
from shopdesk.backend.results import Err, Result
from shopdesk.catalog.variant_groups import ProductGroup, active_variant_count, group_product_ids
from shopdesk.config import settings
from shopdesk.console import ConsoleRegistry, ConsoleState
from shopdesk.consolidation.errors import (
    ConsolidationBusyError,
    InvalidTransitionError,
    ValidationError,
)
from shopdesk.models.audit_log import get_audit_log
from shopdesk.views import ORDER_STATUS_FILTERS, Page, order_status, page_numbers

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/api/t/{tenant_id}", tags=["Console API"])

# ---------------------------
# Registry / dependencies
# ---------------------------
_REGISTRY: Optional[ConsoleRegistry] = None


def get_registry() -> ConsoleRegistry:
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = ConsoleRegistry()
    return _REGISTRY


async def get_console(tenant_id: str, registry: ConsoleRegistry = Depends(get_registry)) -> ConsoleState:
    return await registry.get(tenant_id)


# ---------------------------
# Request bodies
# ---------------------------
class ToggleReq(BaseModel):
    id: str


class OrderViewReq(BaseModel):
    ids: Optional[List[str]] = None
    status: str = "all"
    q: Optional[str] = None
    show_completed: bool = False
    page: int = 1
    page_size: Optional[int] = None


class ProductViewReq(BaseModel):
    ids: Optional[List[str]] = None
    q: Optional[str] = None
    page: int = 1
    page_size: Optional[int] = None


class StatusReq(BaseModel):
    status: str


class RestockReq(BaseModel):
    sku: str
    quantity: int


class ConfirmReq(BaseModel):
    shipping_method: Optional[ShippingMethod] = None


# ---------------------------
# Helpers
# ---------------------------
def _page_size(v: Optional[int]) -> int:
    return v if v and v > 0 else settings.DEFAULT_PAGE_SIZE


def _unwrap(res: Result) -> Any:
    """Backend Err -> 502; Ok -> its value."""
    if isinstance(res, Err):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(res))
    return res.value


def _group_json(g: ProductGroup, console: ConsoleState) -> Dict[str, Any]:
    sel = console.product_selection
    return {
        "group_key": g.group_key,
        "base_name": g.base_name,
        "price": g.price,
        "image_url": g.image_url,
        "category": g.category,
        "status": g.status,
        "total_stock": g.total_stock,
        "total_sold": g.total_sold,
        "has_variants": g.has_variants,
        "active_variants": active_variant_count(g),
        "product_ids": group_product_ids(g),
        "main_product": (
            {**g.main_product.model_dump(), "selected": sel.is_selected(g.main_product.id)}
            if g.main_product is not None else None
        ),
        "variants": [
            {**v.product.model_dump(), "variant_name": v.variant_name, "selected": sel.is_selected(v.id)}
            for v in g.variants
        ],
    }


def _page_meta(page: Page) -> Dict[str, Any]:
    return {
        "page": page.page,
        "page_size": page.page_size,
        "total": page.total,
        "total_pages": page.total_pages,
        "page_numbers": page_numbers(page.page, page.total_pages),
    }


def _order_page(console: ConsoleState, body: OrderViewReq) -> Page:
    if body.status not in ORDER_STATUS_FILTERS:
        raise HTTPException(status_code=400, detail=f"status must be one of {', '.join(ORDER_STATUS_FILTERS)}")
    return console.order_page(
        status=body.status, query=body.q, show_completed=body.show_completed,
        page=body.page, page_size=_page_size(body.page_size),
    )


# ---------------------------
# Products
# ---------------------------
@router.post("/products/reload")
async def reload_products(console: ConsoleState = Depends(get_console)):
    rows = _unwrap(await console.reload_products())
    return JSONResponse({"ok": True, "count": len(rows)})


@router.get("/products")
async def list_product_groups(
    console: ConsoleState = Depends(get_console),
    q: Optional[str] = Query(None),
    page: int = Query(1),
    page_size: Optional[int] = Query(None),
):
    pg = console.product_page(query=q, page=page, page_size=_page_size(page_size))
    visible = console.visible_product_ids(pg)
    return JSONResponse({
        **_page_meta(pg),
        "groups": [_group_json(g, console) for g in pg.items],
        "all_visible_selected": console.product_selection.all_visible_selected(visible),
        "selection": console.product_selection_stats(),
    })


@router.post("/products/selection/toggle")
async def toggle_product(body: ToggleReq, console: ConsoleState = Depends(get_console)):
    selected = console.product_selection.toggle(body.id)
    return JSONResponse({"id": body.id, "selected": selected, "selection": console.product_selection_stats()})


@router.post("/products/selection/select-all")
async def select_all_products(body: ProductViewReq, console: ConsoleState = Depends(get_console)):
    if body.ids is not None:
        visible = body.ids
    else:
        visible = console.visible_product_ids(
            console.product_page(query=body.q, page=body.page, page_size=_page_size(body.page_size))
        )
    selected = console.product_selection.select_all_visible(visible)
    return JSONResponse({"selected": selected, "selection": console.product_selection_stats()})


@router.post("/products/selection/clear")
async def clear_products(console: ConsoleState = Depends(get_console)):
    console.product_selection.clear()
    return JSONResponse({"selection": console.product_selection_stats()})


@router.post("/products/status")
async def update_product_status(body: StatusReq, console: ConsoleState = Depends(get_console)):
    return JSONResponse(_unwrap(await console.set_selected_product_status(body.status)))


@router.post("/products/delete")
async def delete_products(console: ConsoleState = Depends(get_console)):
    return JSONResponse(_unwrap(await console.delete_selected_products()))


@router.post("/products/restock")
async def restock_product(body: RestockReq, console: ConsoleState = Depends(get_console)):
    return JSONResponse(_unwrap(await console.restock(body.sku, body.quantity)))


# ---------------------------
# Orders
# ---------------------------
@router.post("/orders/reload")
async def reload_orders(console: ConsoleState = Depends(get_console)):
    rows = _unwrap(await console.reload_orders())
    return JSONResponse({"ok": True, "count": len(rows)})


@router.get("/orders")
async def list_orders(
    console: ConsoleState = Depends(get_console),
    status_filter: str = Query("all", alias="status"),
    q: Optional[str] = Query(None),
    show_completed: bool = Query(False),
    page: int = Query(1),
    page_size: Optional[int] = Query(None),
):
    view = OrderViewReq(status=status_filter, q=q, show_completed=show_completed, page=page, page_size=page_size)
    pg = _order_page(console, view)
    sel = console.order_selection
    return JSONResponse({
        **_page_meta(pg),
        "items": [
            {**o.model_dump(), "state": order_status(o), "selected": sel.is_selected(o.id)}
            for o in pg.items
        ],
        "all_visible_selected": sel.all_visible_selected(console.visible_order_ids(pg)),
        "selection": console.order_selection_stats(),
    })


@router.post("/orders/selection/toggle")
async def toggle_order(body: ToggleReq, console: ConsoleState = Depends(get_console)):
    selected = console.order_selection.toggle(body.id)
    return JSONResponse({"id": body.id, "selected": selected, "selection": console.order_selection_stats()})


@router.post("/orders/selection/select-all")
async def select_all_orders(body: OrderViewReq, console: ConsoleState = Depends(get_console)):
    visible = body.ids if body.ids is not None else console.visible_order_ids(_order_page(console, body))
    selected = console.order_selection.select_all_visible(visible)
    return JSONResponse({"selected": selected, "selection": console.order_selection_stats()})


@router.post("/orders/selection/clear")
async def clear_orders(console: ConsoleState = Depends(get_console)):
    console.order_selection.clear()
    return JSONResponse({"selection": console.order_selection_stats()})


@router.post("/orders/delete")
async def delete_orders(console: ConsoleState = Depends(get_console)):
    return JSONResponse(_unwrap(await console.delete_selected_orders()))


# ---------------------------
# Consolidation
# ---------------------------
@router.get("/consolidation")
async def consolidation_status(console: ConsoleState = Depends(get_console)):
    orch = console.consolidation
    last = orch.last_summary.to_dict() if orch.last_summary is not None else None
    return JSONResponse({**orch.preview(), "last_summary": last})


@router.post("/consolidation/open")
async def consolidation_open(console: ConsoleState = Depends(get_console)):
    return JSONResponse(console.consolidation.open())


@router.post("/consolidation/cancel")
async def consolidation_cancel(console: ConsoleState = Depends(get_console)):
    console.consolidation.cancel()
    return JSONResponse({"phase": console.consolidation.phase.value})


@router.post("/consolidation/confirm")
async def consolidation_confirm(body: ConfirmReq, console: ConsoleState = Depends(get_console)):
    method = body.shipping_method or ShippingMethod(settings.DEFAULT_SHIPPING_METHOD)
    summary = await console.consolidation.confirm(method)
    return JSONResponse({"phase": console.consolidation.phase.value, "summary": summary.to_dict()})


@router.post("/consolidation/acknowledge")
async def consolidation_acknowledge(console: ConsoleState = Depends(get_console)):
    console.consolidation.acknowledge()
    return JSONResponse({"phase": console.consolidation.phase.value})


# ---------------------------
# Audit
# ---------------------------
@router.get("/audit")
async def audit(tenant_id: str):
    return JSONResponse({"entries": get_audit_log(tenant_id)})


# ---------------------------
# Error mapping (registered on the app in main_app.py)
# ---------------------------
async def validation_error_handler(request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"ok": False, "reason": "validation", "detail": str(exc)})


async def conflict_error_handler(request, exc: Exception):
    reason = "busy" if isinstance(exc, ConsolidationBusyError) else "invalid_transition"
    return JSONResponse(status_code=409, content={"ok": False, "reason": reason, "detail": str(exc)})


EXCEPTION_HANDLERS = {
    ValidationError: validation_error_handler,
    ConsolidationBusyError: conflict_error_handler,
    InvalidTransitionError: conflict_error_handler,
}
