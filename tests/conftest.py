from __future__ import annotations

import pytest

from fakes import FIXED_NOW, InMemoryGateway
from repairshop.gateway import Collection
from repairshop.inventory import InventoryLedger
from repairshop.tickets import StatusNotifier, TicketWorkflow


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def ledger(gateway: InMemoryGateway) -> InventoryLedger:
    ledger = InventoryLedger()
    gateway.subscribe(Collection.INVENTORY, ledger.apply_snapshot, lambda exc: None)
    return ledger


@pytest.fixture
def workflow(gateway: InMemoryGateway, ledger: InventoryLedger) -> TicketWorkflow:
    return TicketWorkflow(gateway, ledger, clock=lambda: FIXED_NOW)


@pytest.fixture
def notifier() -> StatusNotifier:
    return StatusNotifier(phone_number="5491122334455", base_url="https://wa.me")
