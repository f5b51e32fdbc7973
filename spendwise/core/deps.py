"""
Dependency providers.
Stores and the planner are built once per process and injected into routes,
so tests can swap them through app.dependency_overrides.
"""
from datetime import datetime
from functools import lru_cache

from spendwise.core.config import settings
from spendwise.models.expense import utcnow
from spendwise.utils.advisor import AdvisoryPlanner
from spendwise.utils.aggregator import LedgerAggregator


@lru_cache
def get_ledger_store():
    if settings.STORE_BACKEND == "memory":
        from spendwise.db.memory import InMemoryLedgerStore
        return InMemoryLedgerStore()
    from spendwise.db.dynamo import DynamoLedgerStore
    return DynamoLedgerStore()


@lru_cache
def get_budget_store():
    if settings.STORE_BACKEND == "memory":
        from spendwise.db.memory import InMemoryBudgetStore
        return InMemoryBudgetStore()
    from spendwise.db.dynamo import DynamoBudgetStore
    return DynamoBudgetStore()


@lru_cache
def get_planner() -> AdvisoryPlanner:
    from spendwise.utils.generation import OpenAIAdvisoryGenerator
    return AdvisoryPlanner(
        OpenAIAdvisoryGenerator(),
        timeout=settings.ADVISOR_TIMEOUT_SECONDS,
        max_workers=settings.ADVISOR_MAX_WORKERS,
    )


def get_aggregator() -> LedgerAggregator:
    return LedgerAggregator()


def current_period_start() -> datetime:
    """First instant of the current calendar month, UTC."""
    return utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
