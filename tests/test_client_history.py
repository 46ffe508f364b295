from __future__ import annotations

import pytest

from fakes import ticket_record
from repairshop.gateway import Collection, ReadError
from repairshop.tickets import ClientHistory, HistoryLookupError


@pytest.fixture
def history(gateway) -> ClientHistory:
    gateway.seed(Collection.TICKETS, ticket_record("Alice", repair_price="10"))
    gateway.seed(Collection.TICKETS, ticket_record("Bob"))
    gateway.seed(Collection.TICKETS, ticket_record("Alice", repair_price="20"))
    return ClientHistory(gateway)


@pytest.mark.asyncio
async def test_search_returns_exact_matches_only(history):
    results = await history.search("Alice")

    assert len(results) == 2
    assert {ticket.client_name for ticket in results} == {"Alice"}
    assert history.term == "Alice"


@pytest.mark.asyncio
async def test_search_is_case_sensitive(history):
    assert await history.search("alice") == []
    assert await history.search("Ali") == []


@pytest.mark.asyncio
async def test_new_search_replaces_previous_result(history):
    await history.search("Alice")
    results = await history.search("Bob")

    assert [ticket.client_name for ticket in results] == ["Bob"]
    assert history.results == results


@pytest.mark.asyncio
@pytest.mark.parametrize("term", ["", None])
async def test_empty_term_is_a_no_op(history, gateway, term):
    await history.search("Alice")
    gateway.calls.clear()

    results = await history.search(term)

    assert len(results) == 2
    assert history.term == "Alice"
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_results_do_not_follow_later_changes(history, gateway):
    await history.search("Bob")
    gateway.seed(Collection.TICKETS, ticket_record("Bob"))

    assert len(history.results) == 1
    assert len(await history.search("Bob")) == 2


@pytest.mark.asyncio
async def test_lookup_failure_keeps_previous_result(history, gateway):
    await history.search("Alice")
    gateway.fail("query", Collection.TICKETS, ReadError("offline"))

    with pytest.raises(HistoryLookupError):
        await history.search("Bob")

    assert history.term == "Alice"
    assert len(history.results) == 2
