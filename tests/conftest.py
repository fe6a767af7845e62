"""
Shared fixtures.

No real network or disk access outside tmp_path: stores are in memory.
Async operations are driven with asyncio.run.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from finance_tracker.audit import AuditLogger
from finance_tracker.ledger import IdGenerator
from finance_tracker.models.transaction import Transaction, TransactionType
from finance_tracker.orchestrator import FinanceTracker, ProfileRegistry, ProfileSession
from finance_tracker.services.storage import InMemoryDocumentStore, MemoryLocalStore
from finance_tracker.sync import SyncEngine
from finance_tracker.validation import TransactionValidator


INCOME_CATEGORIES = ("Salaire", "Freelance", "Remboursement", "Autre")


def run(coro):
    return asyncio.run(coro)


def make_transaction(
    id: int,
    type: TransactionType = TransactionType.EXPENSE,
    amount: str = "10.00",
    category: str = "Courses",
    description: str = "Test",
    on: date = date(2024, 1, 15),
) -> Transaction:
    return Transaction(
        id=id,
        type=type,
        amount=Decimal(amount),
        category=category,
        description=description,
        date=on,
    )


@pytest.fixture
def local_store():
    return MemoryLocalStore()


@pytest.fixture
def remote_store():
    return InMemoryDocumentStore()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def validator():
    return TransactionValidator(INCOME_CATEGORIES)


@pytest.fixture
def sync_engine(local_store, remote_store, audit_logger):
    return SyncEngine(local_store, remote_store, audit_logger)


@pytest.fixture
def local_only_engine(local_store, audit_logger):
    return SyncEngine(local_store, None, audit_logger)


@pytest.fixture
def session(sync_engine, validator, audit_logger):
    return run(ProfileSession.open(
        "hemank",
        sync_engine,
        validator=validator,
        audit_logger=audit_logger,
    ))


@pytest.fixture
def tracker(local_store, sync_engine, validator, audit_logger):
    registry = ProfileRegistry(("hemank", "partner"), local_store, pins={"partner": "4321"})
    return FinanceTracker(
        registry=registry,
        sync_engine=sync_engine,
        validator=validator,
        audit_logger=audit_logger,
    )


@pytest.fixture
def counter_clock():
    """Id clock frozen at 1000 ms, so ids come only from the monotonic bump."""
    return lambda: 1000


@pytest.fixture
def id_generator(counter_clock):
    return IdGenerator(clock=counter_clock)
