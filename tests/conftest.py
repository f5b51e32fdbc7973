import os

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("JWT_SECRET", "spendwise-test-secret-0123456789abcdef")

import pytest
from fastapi.testclient import TestClient

from spendwise.core.deps import get_budget_store, get_ledger_store, get_planner
from spendwise.core.security import create_access_token
from spendwise.db.memory import InMemoryBudgetStore, InMemoryLedgerStore
from spendwise.main import app


class FakeGenerator:
    """Generation double: replays canned responses or raises queued errors."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def __call__(self, request):
        self.calls.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def sample_plan(**overrides):
    plan = {
        "budgets": [
            {"category": "Food", "recommended": 400, "current": 450.5, "reasoning": "Cook at home more"},
            {"category": "Transport", "recommended": 150, "current": 120, "reasoning": "Keep it steady"},
        ],
        "strategy": {"needs": 2500, "wants": 1500, "savings": 1000, "description": "50/30/20"},
        "recommendations": [
            {"title": "Meal prep", "description": "Plan weekly meals", "impact": "$50/month savings"},
        ],
        "totalSavings": 50,
        "summary": "Healthy overall",
    }
    plan.update(overrides)
    return plan


@pytest.fixture
def ledger():
    return InMemoryLedgerStore()


@pytest.fixture
def budget_store():
    return InMemoryBudgetStore()


@pytest.fixture
def client(ledger, budget_store):
    app.dependency_overrides[get_ledger_store] = lambda: ledger
    app.dependency_overrides[get_budget_store] = lambda: budget_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    token = create_access_token({"sub": "user-1"})
    return {"Authorization": f"Bearer {token}"}
