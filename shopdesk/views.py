# shopdesk/views.py
# ---------------------------------------------------------
# Filtering and paging for the console tables. These decide which ids are
# "visible", which is what page-scoped select-all works on.
# ---------------------------------------------------------
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, Iterable, List, Optional, Sequence, TypeVar

from shopdesk.backend.models import OrderItem

T = TypeVar("T")

# order status filter values
STATUS_ALL = "all"
STATUS_PENDING = "pending"
STATUS_PARTIAL = "partial"
STATUS_READY = "ready"
STATUS_COMPLETED = "completed"
ORDER_STATUS_FILTERS = (STATUS_ALL, STATUS_PENDING, STATUS_PARTIAL, STATUS_READY, STATUS_COMPLETED)

# every unit counted in but the row not flagged arrived yet; only "all" lists it
STATUS_UNFLAGGED = "unflagged"


def order_status(order: OrderItem) -> str:
    """completed (terminal) > ready (arrived) > partial (some arrived) > pending (none arrived)."""
    if order.checkout_id:
        return STATUS_COMPLETED
    if order.is_arrived:
        return STATUS_READY
    arrived = order.arrived_qty or 0
    if arrived == 0:
        return STATUS_PENDING
    if arrived < order.quantity:
        return STATUS_PARTIAL
    return STATUS_UNFLAGGED


def is_consolidation_eligible(order: OrderItem) -> bool:
    return order.is_arrived and order.checkout_id is None


def filter_orders(
    orders: Iterable[OrderItem],
    *,
    status: str = STATUS_ALL,
    query: str | None = None,
    show_completed: bool = False,
) -> List[OrderItem]:
    q = (query or "").strip().lower()
    out: List[OrderItem] = []
    for o in orders:
        # completed rows stay hidden unless asked for (or explicitly filtered)
        if o.checkout_id and not show_completed and status != STATUS_COMPLETED:
            continue
        if q and not (
            q in (o.item_name or "").lower()
            or q in (o.customer_name or "").lower()
            or q in (o.sku or "").lower()
        ):
            continue
        if status != STATUS_ALL and order_status(o) != status:
            continue
        out.append(o)
    return out


@dataclass
class Page(Generic[T]):
    items: List[T]
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


def paginate(items: Sequence[T], page: int = 1, page_size: int = 20) -> Page[T]:
    """1-based pages; out-of-range pages are clamped to the last one."""
    page_size = max(1, int(page_size))
    total = len(items)
    last = max(1, math.ceil(total / page_size))
    page = min(max(1, int(page)), last)
    start = (page - 1) * page_size
    return Page(items=list(items[start:start + page_size]), page=page, page_size=page_size, total=total)


def page_numbers(current: int, total_pages: int, window: int = 5) -> List[Optional[int]]:
    """Page links with None standing for an ellipsis, e.g. [1, None, 4, 5, 6, None, 10]."""
    if total_pages <= window + 2:
        return list(range(1, total_pages + 1))
    pages: List[Optional[int]] = [1]
    if current > 3:
        pages.append(None)
    for i in range(max(2, current - 1), min(total_pages - 1, current + 1) + 1):
        pages.append(i)
    if current < total_pages - 2:
        pages.append(None)
    pages.append(total_pages)
    return pages
