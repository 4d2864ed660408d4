import pytest
from fastapi.testclient import TestClient

from shopdesk.config import settings
from shopdesk.console import ConsoleRegistry
from shopdesk.main_app import app
from shopdesk.routes import get_registry
from fakes import FakeBackend, make_order, make_product

AUTH = (settings.ADMIN_USER, settings.ADMIN_PASS)
BASE = "/api/t/shop-1"


@pytest.fixture
def backend():
    return FakeBackend(
        orders=[
            make_order("a", "X"),
            make_order("b", "X"),
            make_order("c", "Y", arrived=False),
            make_order("d", "Y", checkout_id="co-old"),
        ],
        products=[
            make_product("p1", "TEE", name="Tee", stock=5, sold=1),
            make_product("p2", "TEE_RED", name="Tee-RED", stock=2, sold=7),
            make_product("p3", "MUG", name="Mug", stock=1, status="inactive"),
        ],
    )


@pytest.fixture
def client(backend):
    registry = ConsoleRegistry(backend=backend)
    app.dependency_overrides[get_registry] = lambda: registry
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _load(client):
    assert client.post(f"{BASE}/orders/reload", auth=AUTH).status_code == 200
    assert client.post(f"{BASE}/products/reload", auth=AUTH).status_code == 200


def test_requires_basic_auth(client):
    assert client.get(f"{BASE}/orders").status_code == 401
    assert client.get(f"{BASE}/orders", auth=("admin", "wrong-password")).status_code == 401


def test_root(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "running"


def test_product_groups(client):
    _load(client)
    r = client.get(f"{BASE}/products", auth=AUTH)
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 2
    tee = body["groups"][0]
    assert tee["group_key"] == "TEE"
    assert tee["base_name"] == "Tee"
    assert tee["total_stock"] == 7
    assert tee["total_sold"] == 8
    assert tee["product_ids"] == ["p1", "p2"]
    assert tee["has_variants"] is True
    assert tee["variants"][0]["variant_name"] == "RED"


def test_product_select_all_then_bulk_status(client, backend):
    _load(client)
    r = client.post(f"{BASE}/products/selection/select-all", json={"q": "tee"}, auth=AUTH)
    assert r.json()["selected"] is True
    assert r.json()["selection"]["selected"] == 2

    r = client.post(f"{BASE}/products/status", json={"status": "inactive"}, auth=AUTH)
    assert r.status_code == 200
    assert r.json()["updated"] == 2
    assert backend.calls[-2][0] == "batch_update_product_status"
    assert client.get(f"{BASE}/products?q=tee", auth=AUTH).json()["groups"][0]["status"] == "inactive"


def test_product_status_rejects_unknown_value(client):
    _load(client)
    client.post(f"{BASE}/products/selection/toggle", json={"id": "p1"}, auth=AUTH)
    r = client.post(f"{BASE}/products/status", json={"status": "archived"}, auth=AUTH)
    assert r.status_code == 422


def test_restock(client, backend):
    _load(client)
    r = client.post(f"{BASE}/products/restock", json={"sku": "TEE_RED", "quantity": 3}, auth=AUTH)
    assert r.status_code == 200
    assert r.json()["allocated_count"] == 2
    assert ("restock", "TEE_RED", 3) in backend.calls


def test_order_listing_hides_completed(client):
    _load(client)
    body = client.get(f"{BASE}/orders", auth=AUTH).json()
    assert [i["id"] for i in body["items"]] == ["a", "b", "c"]
    ready = client.get(f"{BASE}/orders?status=ready", auth=AUTH).json()
    assert [i["id"] for i in ready["items"]] == ["a", "b"]
    assert client.get(f"{BASE}/orders?status=bogus", auth=AUTH).status_code == 400


def test_terminal_order_cannot_be_selected(client):
    _load(client)
    r = client.post(f"{BASE}/orders/selection/toggle", json={"id": "d"}, auth=AUTH)
    assert r.json()["selected"] is False


def test_consolidation_flow(client, backend):
    _load(client)
    r = client.post(f"{BASE}/orders/selection/select-all", json={}, auth=AUTH)
    assert r.json()["selection"] == {"selected": 3, "ready": 2}

    r = client.post(f"{BASE}/consolidation/open", auth=AUTH)
    assert r.status_code == 200
    assert r.json()["customers"] == 1

    r = client.post(f"{BASE}/consolidation/confirm", json={"shipping_method": "pickup"}, auth=AUTH)
    assert r.status_code == 200
    summary = r.json()["summary"]
    assert summary["succeeded"] == 1
    assert summary["skipped"] == 1
    assert summary["shipping_method"] == "pickup"
    assert r.json()["phase"] == "settled"

    # a second confirm without acknowledging is refused
    assert client.post(f"{BASE}/consolidation/confirm", json={}, auth=AUTH).status_code == 409
    assert client.post(f"{BASE}/consolidation/acknowledge", auth=AUTH).json()["phase"] == "idle"

    status_body = client.get(f"{BASE}/consolidation", auth=AUTH).json()
    assert status_body["last_summary"]["succeeded"] == 1
    assert status_body["eligible_items"] == 0

    audit = client.get(f"{BASE}/audit", auth=AUTH).json()["entries"]
    assert audit[-1]["action"] == "Consolidation"


def test_consolidation_open_with_nothing_eligible(client):
    _load(client)
    client.post(f"{BASE}/orders/selection/toggle", json={"id": "c"}, auth=AUTH)
    r = client.post(f"{BASE}/consolidation/open", auth=AUTH)
    assert r.status_code == 422
    assert r.json()["reason"] == "validation"


def test_confirm_rejects_unknown_shipping_method(client):
    _load(client)
    client.post(f"{BASE}/orders/selection/toggle", json={"id": "a"}, auth=AUTH)
    client.post(f"{BASE}/consolidation/open", auth=AUTH)
    r = client.post(f"{BASE}/consolidation/confirm", json={"shipping_method": "drone"}, auth=AUTH)
    assert r.status_code == 422


def test_order_bulk_delete(client, backend):
    _load(client)
    client.post(f"{BASE}/orders/selection/toggle", json={"id": "c"}, auth=AUTH)
    r = client.post(f"{BASE}/orders/delete", auth=AUTH)
    assert r.status_code == 200
    assert r.json()["deleted"] == 1
    ids = [i["id"] for i in client.get(f"{BASE}/orders", auth=AUTH).json()["items"]]
    assert "c" not in ids


def test_backend_read_failure_is_502(client, backend):
    backend.fail_fetch = True
    assert client.post(f"{BASE}/orders/reload", auth=AUTH).status_code == 502
