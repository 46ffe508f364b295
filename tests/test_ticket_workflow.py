from __future__ import annotations

from decimal import Decimal

import pytest

from fakes import FIXED_NOW, item_record, ticket_record
from repairshop.gateway import Collection, GatewayTimeoutError, WriteError
from repairshop.tickets import (
    InsufficientStockError,
    InvalidTicketDraftError,
    TicketDraft,
    TicketMirror,
    TicketNotFoundError,
    TicketStatus,
    TicketWriteError,
)


def _draft(part_id: str | None = None, *, repair_price: str = "100") -> TicketDraft:
    return TicketDraft(
        client_name="Alice",
        device="Galaxy S21",
        problem="Cracked screen",
        part_id=part_id,
        repair_price=Decimal(repair_price),
    )


def _stock(gateway, item_id: str) -> int:
    return gateway.collections[Collection.INVENTORY][item_id]["stock"]


@pytest.mark.asyncio
async def test_create_without_part_has_zero_part_cost(gateway, workflow):
    ticket_id = await workflow.create_ticket(_draft())

    stored = gateway.collections[Collection.TICKETS][ticket_id]
    assert stored["status"] == TicketStatus.PENDING.value
    assert stored["part_cost"] == "0"
    assert stored["repair_price"] == "100"
    assert stored["created_at"] == FIXED_NOW.isoformat()
    assert stored["part_id"] is None
    assert ("decrement", Collection.INVENTORY) not in gateway.calls


@pytest.mark.asyncio
async def test_create_with_part_takes_one_unit_and_snapshots_cost(gateway, workflow):
    item_id = gateway.seed(Collection.INVENTORY, item_record("Screen", 3, "45.50"))

    ticket_id = await workflow.create_ticket(_draft(item_id))

    assert _stock(gateway, item_id) == 2
    stored = gateway.collections[Collection.TICKETS][ticket_id]
    assert stored["part_id"] == item_id
    assert Decimal(stored["part_cost"]) == Decimal("45.50")


@pytest.mark.asyncio
async def test_stock_decrement_is_issued_before_ticket_create(gateway, workflow):
    item_id = gateway.seed(Collection.INVENTORY, item_record("Battery", 1, "20"))
    gateway.calls.clear()

    await workflow.create_ticket(_draft(item_id))

    assert gateway.calls == [("decrement", Collection.INVENTORY), ("create", Collection.TICKETS)]


@pytest.mark.asyncio
async def test_out_of_stock_part_is_refused_without_writes(gateway, workflow):
    item_id = gateway.seed(Collection.INVENTORY, item_record("Screen", 0, "45"))
    gateway.calls.clear()

    with pytest.raises(InsufficientStockError):
        await workflow.create_ticket(_draft(item_id))

    assert gateway.calls == []
    assert gateway.collections[Collection.TICKETS] == {}
    assert _stock(gateway, item_id) == 0


@pytest.mark.asyncio
async def test_unknown_part_is_refused(gateway, workflow):
    with pytest.raises(InsufficientStockError):
        await workflow.create_ticket(_draft("missing-part"))

    assert gateway.collections[Collection.TICKETS] == {}


@pytest.mark.asyncio
async def test_stock_never_goes_negative(gateway, workflow):
    item_id = gateway.seed(Collection.INVENTORY, item_record("Charging port", 2, "8"))

    accepted = 0
    for _ in range(5):
        try:
            await workflow.create_ticket(_draft(item_id))
        except InsufficientStockError:
            continue
        accepted += 1

    assert accepted == 2
    assert _stock(gateway, item_id) == 0
    assert len(gateway.collections[Collection.TICKETS]) == 2


@pytest.mark.asyncio
async def test_stale_ledger_is_rejected_by_conditional_decrement(gateway, workflow, ledger):
    item_id = gateway.seed(Collection.INVENTORY, item_record("Screen", 1, "45"))
    # Another operator takes the last unit; this session has not seen it yet.
    gateway.collections[Collection.INVENTORY][item_id]["stock"] = 0
    assert ledger.has_stock(item_id)

    with pytest.raises(InsufficientStockError):
        await workflow.create_ticket(_draft(item_id))

    assert _stock(gateway, item_id) == 0
    assert gateway.collections[Collection.TICKETS] == {}


@pytest.mark.asyncio
async def test_part_cost_does_not_follow_later_price_changes(gateway, workflow):
    item_id = gateway.seed(Collection.INVENTORY, item_record("Screen", 2, "45"))
    ticket_id = await workflow.create_ticket(_draft(item_id))

    await gateway.update(Collection.INVENTORY, item_id, {"unit_cost": "99"})

    mirror = TicketMirror()
    mirror.apply_snapshot(gateway.documents(Collection.TICKETS))
    assert mirror.get(ticket_id).part_cost == Decimal("45")


@pytest.mark.asyncio
async def test_failed_decrement_creates_no_ticket(gateway, workflow):
    item_id = gateway.seed(Collection.INVENTORY, item_record("Screen", 2, "45"))
    gateway.fail("decrement", Collection.INVENTORY, WriteError("connection reset"))

    with pytest.raises(TicketWriteError):
        await workflow.create_ticket(_draft(item_id))

    assert gateway.collections[Collection.TICKETS] == {}
    assert _stock(gateway, item_id) == 2


@pytest.mark.asyncio
async def test_failed_ticket_write_keeps_decremented_stock(gateway, workflow, caplog):
    item_id = gateway.seed(Collection.INVENTORY, item_record("Screen", 2, "45"))
    gateway.fail("create", Collection.TICKETS, GatewayTimeoutError("create timed out"))

    with pytest.raises(TicketWriteError) as exc_info:
        await workflow.create_ticket(_draft(item_id))

    assert isinstance(exc_info.value.__cause__, GatewayTimeoutError)
    assert _stock(gateway, item_id) == 1
    assert "already taken from stock" in caplog.text


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["client_name", "device", "problem"])
async def test_draft_requires_text_fields(gateway, workflow, field):
    values = {"client_name": "Alice", "device": "Phone", "problem": "Dead", field: "   "}

    with pytest.raises(InvalidTicketDraftError):
        await workflow.create_ticket(TicketDraft(**values))

    assert gateway.calls == []


@pytest.mark.asyncio
async def test_draft_rejects_negative_price(workflow):
    with pytest.raises(InvalidTicketDraftError):
        await workflow.create_ticket(_draft(repair_price="-1"))


@pytest.mark.asyncio
async def test_update_status_allows_any_order_and_is_idempotent(gateway, workflow):
    ticket_id = gateway.seed(Collection.TICKETS, ticket_record("Alice"))

    for status in (TicketStatus.DELIVERED, TicketStatus.PENDING, TicketStatus.READY, TicketStatus.IN_PROGRESS):
        assert await workflow.update_status(ticket_id, status) == status
        assert gateway.collections[Collection.TICKETS][ticket_id]["status"] == status.value

    await workflow.update_status(ticket_id, "ready")
    first = dict(gateway.collections[Collection.TICKETS][ticket_id])
    await workflow.update_status(ticket_id, TicketStatus.READY)
    assert gateway.collections[Collection.TICKETS][ticket_id] == first


@pytest.mark.asyncio
async def test_update_status_rejects_unknown_values(gateway, workflow):
    ticket_id = gateway.seed(Collection.TICKETS, ticket_record("Alice"))

    with pytest.raises(ValueError):
        await workflow.update_status(ticket_id, "archived")


@pytest.mark.asyncio
async def test_update_status_of_missing_ticket(workflow):
    with pytest.raises(TicketNotFoundError):
        await workflow.update_status("gone", TicketStatus.READY)


@pytest.mark.asyncio
async def test_update_status_write_failure(gateway, workflow):
    ticket_id = gateway.seed(Collection.TICKETS, ticket_record("Alice"))
    gateway.fail("update", Collection.TICKETS, WriteError("boom"))

    with pytest.raises(TicketWriteError):
        await workflow.update_status(ticket_id, TicketStatus.READY)


@pytest.mark.asyncio
async def test_delete_removes_ticket_and_keeps_stock(gateway, workflow):
    item_id = gateway.seed(Collection.INVENTORY, item_record("Screen", 2, "45"))
    ticket_id = await workflow.create_ticket(_draft(item_id))

    await workflow.delete_ticket(ticket_id)

    mirror = TicketMirror()
    mirror.apply_snapshot(gateway.documents(Collection.TICKETS))
    assert mirror.get(ticket_id) is None
    assert _stock(gateway, item_id) == 1


@pytest.mark.asyncio
async def test_delete_missing_ticket(workflow):
    with pytest.raises(TicketNotFoundError):
        await workflow.delete_ticket("gone")


@pytest.mark.asyncio
@pytest.mark.parametrize("price", ["NaN", "Infinity", "-Infinity", "sNaN"])
async def test_draft_rejects_non_finite_price(gateway, workflow, price):
    with pytest.raises(InvalidTicketDraftError):
        await workflow.create_ticket(_draft(repair_price=price))

    assert gateway.calls == []
