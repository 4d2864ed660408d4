import asyncio

import pytest

from shopdesk.backend.models import ShippingMethod
from shopdesk.console import ConsoleState
from shopdesk.consolidation.errors import (
    ConsolidationBusyError,
    IdentityMissingError,
    InvalidTransitionError,
    ValidationError,
)
from shopdesk.consolidation.orchestrator import Phase
from shopdesk.consolidation.units import partition_by_member
from shopdesk.models.audit_log import get_audit_log
from fakes import FakeBackend, make_order


def _console(orders):
    backend = FakeBackend(orders=orders)
    console = ConsoleState("tenant-1", backend)
    asyncio.run(console.reload_orders())
    backend.calls.clear()
    return console, backend


def _select(console, *ids):
    for i in ids:
        console.order_selection.toggle(i)


def _run(console, method=ShippingMethod.MYSHIP):
    console.consolidation.open()
    return asyncio.run(console.consolidation.confirm(method))


def test_scenario_one_customer_two_items_same_checkout():
    console, backend = _console([
        make_order("orderA", "X"),
        make_order("orderB", "X"),
        make_order("orderC", "Y", arrived=False),
    ])
    _select(console, "orderA", "orderB", "orderC")

    summary = _run(console)

    assert backend.call_names() == ["create_checkout", "link_order_items", "fetch_order_items"]
    assert backend.calls[1][2] == ("orderA", "orderB")
    rows = {o.id: o for o in console.orders}
    assert rows["orderA"].checkout_id is not None
    assert rows["orderA"].checkout_id == rows["orderB"].checkout_id
    assert rows["orderC"].checkout_id is None
    assert summary.kind == "success"
    assert summary.succeeded == 1
    assert summary.skipped == 1
    assert console.consolidation.phase is Phase.SETTLED


def test_partition_three_items_two_customers():
    console, backend = _console([
        make_order("1", "X"),
        make_order("2", "Y"),
        make_order("3", "X"),
    ])
    _select(console, "1", "2", "3")

    summary = _run(console)

    creates = [c for c in backend.calls if c[0] == "create_checkout"]
    assert [c[1] for c in creates] == ["U-X", "U-Y"]
    assert summary.succeeded == 2


def test_calls_are_strictly_sequential_per_customer():
    console, backend = _console([make_order(str(i), f"m{i % 3}") for i in range(6)])
    console.order_selection.select_all_visible([o.id for o in console.orders])

    _run(console)

    names = backend.call_names()
    assert names[:-1] == ["create_checkout", "link_order_items"] * 3
    assert names[-1] == "fetch_order_items"


def test_link_failure_leaves_items_unlinked():
    console, backend = _console([make_order("1", "X"), make_order("2", "Y")])
    backend.fail_link_for.add("U-X")
    _select(console, "1", "2")

    summary = _run(console)

    rows = {o.id: o for o in console.orders}
    assert rows["1"].checkout_id is None
    assert rows["2"].checkout_id is not None
    assert summary.kind == "partial"
    (failure,) = summary.failures
    assert failure.step == "link_order_items"
    assert failure.orphan_checkout_id is not None
    assert failure.order_item_ids == ["1"]


def test_create_failure_moves_on_to_next_customer():
    console, backend = _console([make_order("1", "X"), make_order("2", "Y")])
    backend.fail_create_for.add("U-X")
    _select(console, "1", "2")

    summary = _run(console)

    assert backend.call_names() == ["create_checkout", "create_checkout", "link_order_items", "fetch_order_items"]
    assert summary.succeeded == 1
    assert summary.failures[0].step == "create_checkout"
    assert summary.failures[0].code == "rejected"


def test_all_failed_still_settles():
    console, backend = _console([make_order("1", "X")])
    backend.fail_create_for.add("U-X")
    _select(console, "1")

    summary = _run(console)

    assert summary.kind == "all_failed"
    assert console.consolidation.phase is Phase.SETTLED
    assert "1" in console.order_selection


def test_retry_only_reattempts_unresolved_items():
    console, backend = _console([make_order("1", "X"), make_order("2", "Y")])
    backend.fail_link_for.add("U-Y")
    _select(console, "1", "2")
    _run(console)
    console.consolidation.acknowledge()

    # item 1 is terminal now and was pruned; item 2 is still selected
    assert console.order_selection.selected == {"2"}
    backend.fail_link_for.clear()
    backend.calls.clear()
    _select(console, "1")          # terminal ids cannot come back
    summary = _run(console)

    creates = [c for c in backend.calls if c[0] == "create_checkout"]
    assert [c[1] for c in creates] == ["U-Y"]
    assert summary.kind == "success"
    assert all(o.checkout_id for o in console.orders)


def test_missing_identity_fails_unit_without_aborting():
    console, backend = _console([
        make_order("1", "X", has_identity=False),
        make_order("2", "Y"),
    ])
    _select(console, "1", "2")

    summary = _run(console)

    creates = [c for c in backend.calls if c[0] == "create_checkout"]
    assert [c[1] for c in creates] == ["U-Y"]
    assert summary.failed == 1
    assert summary.failures[0].code == "identity_missing"


def test_partition_items_without_member_share_one_failed_unit():
    runnable, failed = partition_by_member([
        make_order("1", None),
        make_order("2", None),
        make_order("3", "X"),
    ])
    assert [u.member_id for u in runnable] == ["X"]
    assert len(failed) == 1
    assert failed[0].unit.item_ids == ["1", "2"]
    assert isinstance(failed[0].error, IdentityMissingError)


def test_nothing_eligible_raises_and_makes_no_calls():
    console, backend = _console([
        make_order("1", "X", arrived=False),
        make_order("2", "X", checkout_id="co-old"),
    ])
    _select(console, "1", "2")

    with pytest.raises(ValidationError):
        console.consolidation.open()

    assert console.consolidation.phase is Phase.IDLE
    assert backend.calls == []


def test_confirm_revalidates_selection():
    console, backend = _console([make_order("1", "X")])
    _select(console, "1")
    console.consolidation.open()
    console.order_selection.clear()

    with pytest.raises(ValidationError):
        asyncio.run(console.consolidation.confirm(ShippingMethod.PICKUP))

    assert console.consolidation.phase is Phase.IDLE
    assert backend.calls == []


def test_receiver_name_falls_back_to_member_display_name():
    console, backend = _console([make_order("1", "X", customer_name=None)])
    _select(console, "1")
    _run(console, ShippingMethod.DELIVERY)
    _, identity, method, receiver = backend.calls[0]
    assert (identity, method, receiver) == ("U-X", "delivery", "Display X")


def test_no_second_run_while_running():
    console, backend = _console([make_order("1", "X"), make_order("2", "Y")])
    _select(console, "1", "2")
    console.consolidation.open()
    seen = {}

    real_create = backend.create_checkout

    async def create_and_poke(*args, **kwargs):
        with pytest.raises(ConsolidationBusyError):
            await console.consolidation.confirm(ShippingMethod.MYSHIP)
        with pytest.raises(ConsolidationBusyError):
            console.consolidation.open()
        seen["phase"] = console.consolidation.phase
        return await real_create(*args, **kwargs)

    backend.create_checkout = create_and_poke
    asyncio.run(console.consolidation.confirm(ShippingMethod.MYSHIP))

    assert seen["phase"] is Phase.RUNNING
    assert console.consolidation.phase is Phase.SETTLED


def test_transitions_are_checked():
    console, _ = _console([make_order("1", "X")])
    with pytest.raises(InvalidTransitionError):
        console.consolidation.cancel()
    with pytest.raises(InvalidTransitionError):
        asyncio.run(console.consolidation.confirm(ShippingMethod.MYSHIP))
    _select(console, "1")
    console.consolidation.open()
    with pytest.raises(InvalidTransitionError):
        console.consolidation.open()
    console.consolidation.cancel()
    assert console.consolidation.phase is Phase.IDLE


def test_refresh_failure_is_reported_and_run_settles():
    console, backend = _console([make_order("1", "X")])
    _select(console, "1")
    backend.fail_fetch = True

    summary = _run(console)

    assert summary.refreshed is False
    assert summary.succeeded == 1
    # local rows are not patched from assumed results
    assert console.orders[0].checkout_id is None
    assert console.consolidation.phase is Phase.SETTLED


def test_run_is_written_to_audit_log():
    console, _ = _console([make_order("1", "X")])
    _select(console, "1")
    _run(console)
    (entry,) = get_audit_log("tenant-1")
    assert entry["action"] == "Consolidation"
    assert "succeeded=1" in entry["details"]


def test_refresh_raising_still_settles_and_frees_the_tenant():
    console, backend = _console([make_order("1", "X"), make_order("2", "Y")])
    backend.fail_create_for.add("U-Y")
    _select(console, "1", "2")
    real_fetch = backend.fetch_order_items

    async def exploding_fetch(tenant_id):
        raise RuntimeError("malformed backend url")

    backend.fetch_order_items = exploding_fetch
    summary = _run(console)

    assert console.consolidation.phase is Phase.SETTLED
    assert summary.refreshed is False
    assert summary.succeeded == 1
    console.consolidation.acknowledge()

    backend.fetch_order_items = real_fetch
    asyncio.run(console.reload_orders())
    preview = console.consolidation.open()
    assert preview["customers"] == 1
    assert console.consolidation.phase is Phase.CONFIRMING


def test_retry_after_failed_refresh_does_not_checkout_twice():
    console, backend = _console([make_order("1", "X")])
    _select(console, "1")
    backend.fail_fetch = True

    first = _run(console)
    console.consolidation.acknowledge()

    assert first.refreshed is False
    assert "1" not in console.order_selection
    # the local row still looks eligible, so reselecting works but opening does not
    _select(console, "1")
    with pytest.raises(ValidationError):
        console.consolidation.open()

    backend.fail_fetch = False
    asyncio.run(console.reload_orders())
    assert console.orders_stale is False
    assert "1" not in console.order_selection
    with pytest.raises(ValidationError):
        console.consolidation.open()

    creates = [c for c in backend.calls if c[0] == "create_checkout"]
    assert len(creates) == 1
