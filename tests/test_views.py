from shopdesk.views import filter_orders, order_status, page_numbers, paginate
from fakes import make_order

orders = [
    make_order("pending", arrived=False, quantity=2),
    make_order("partial", arrived=False, quantity=3, arrived_qty=1),
    make_order("ready", arrived=True, customer_name="Alice"),
    make_order("done", arrived=True, checkout_id="co-1", sku="MUG"),
]


def test_order_status():
    assert [order_status(o) for o in orders] == ["pending", "partial", "ready", "completed"]


def test_fully_counted_but_unflagged_row_is_only_listed_under_all():
    row = make_order("counted", arrived=False, quantity=2, arrived_qty=2)
    assert order_status(row) == "unflagged"
    for status in ("pending", "partial", "ready", "completed"):
        assert filter_orders([row], status=status) == []
    assert filter_orders([row]) == [row]


def test_completed_hidden_by_default():
    assert [o.id for o in filter_orders(orders)] == ["pending", "partial", "ready"]
    assert len(filter_orders(orders, show_completed=True)) == 4


def test_status_filters():
    assert [o.id for o in filter_orders(orders, status="ready")] == ["ready"]
    assert [o.id for o in filter_orders(orders, status="partial")] == ["partial"]
    assert [o.id for o in filter_orders(orders, status="completed")] == ["done"]


def test_search_matches_customer_item_and_sku():
    assert [o.id for o in filter_orders(orders, query="alice")] == ["ready"]
    assert [o.id for o in filter_orders(orders, query="mug", show_completed=True)] == ["done"]


def test_paginate_clamps_page():
    pg = paginate(list(range(45)), page=9, page_size=20)
    assert pg.page == 3
    assert pg.items == list(range(40, 45))
    assert pg.total_pages == 3
    empty = paginate([], page=2, page_size=20)
    assert empty.page == 1 and empty.items == [] and empty.total_pages == 0


def test_page_numbers_with_ellipsis():
    assert page_numbers(1, 5) == [1, 2, 3, 4, 5]
    assert page_numbers(5, 10) == [1, None, 4, 5, 6, None, 10]
    assert page_numbers(1, 10) == [1, 2, None, 10]
