import asyncio
import math
import threading
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import FakeGenerator, sample_plan
from spendwise.core.errors import (
    GenerationFailed,
    InvalidInput,
    SchemaViolation,
    TransientGenerationError,
)
from spendwise.db.memory import InMemoryBudgetStore, InMemoryLedgerStore
from spendwise.models.budget import BudgetItem
from spendwise.models.expense import ExpenseCreate
from spendwise.utils.advisor import (
    AdvisoryPlanner,
    PlannerState,
    build_request,
    plan_to_budgets,
    validate_plan,
)
from spendwise.utils.aggregator import LedgerAggregator

rollup = LedgerAggregator().aggregate([
    {"category": "Food", "amount": 300.25},
    {"category": "Food", "amount": 150.25},
    {"category": "Transport", "amount": 120},
])


def test_build_request_uses_rollup_only():
    request = build_request(5000.0, rollup).to_dict()
    assert request == {
        "income": 5000.0,
        "categoryTotals": [
            {"category": "Food", "current": 450.5},
            {"category": "Transport", "current": 120.0},
        ],
        "transactionCount": 3,
    }


def test_successful_plan():
    generator = FakeGenerator(sample_plan())
    result = AdvisoryPlanner(generator).plan(5000, rollup)

    assert result.ok
    assert result.state is PlannerState.VALIDATED
    assert result.attempts == 1
    assert result.warnings == ()
    assert result.unwrap().to_dict() == sample_plan()
    assert generator.calls[0]["transactionCount"] == 3


@pytest.mark.parametrize("income", [0, -100, None, "5000", True, math.nan, math.inf, 10**400])
def test_invalid_income_never_calls_generation(income):
    generator = FakeGenerator(sample_plan())
    result = AdvisoryPlanner(generator).plan(income, rollup)

    assert result.state is PlannerState.FAILED
    assert isinstance(result.error, InvalidInput)
    assert generator.calls == []
    with pytest.raises(InvalidInput):
        result.unwrap()


def test_missing_strategy_is_schema_violation():
    raw = sample_plan()
    del raw["strategy"]
    result = AdvisoryPlanner(FakeGenerator(raw)).plan(5000, rollup)

    assert result.state is PlannerState.FAILED
    assert isinstance(result.error, SchemaViolation)
    assert result.plan is None
    assert any(d.startswith("strategy") for d in result.error.details)


@pytest.mark.parametrize(
    "raw",
    [
        sample_plan(totalSavings="50"),
        sample_plan(totalSavings=-5),
        sample_plan(totalSavings=10**400),
        sample_plan(budgets=[{"category": "Food", "recommended": -10**400, "current": 1, "reasoning": "x"}]),
        sample_plan(summary=42),
        sample_plan(budgets=[{"category": "Food", "recommended": True, "current": 1, "reasoning": "x"}]),
        sample_plan(budgets=[{"category": "Food", "recommended": 1, "current": -1, "reasoning": "x"}]),
        sample_plan(budgets=[{"category": "Food", "recommended": 1, "current": 1}]),
        sample_plan(strategy={"needs": 1, "wants": 1, "savings": 1, "description": "x", "extra": 1}),
        sample_plan(strategy={"needs": 1, "wants": 1, "description": "x"}),
        sample_plan(strategy={"needs": math.inf, "wants": 1, "savings": 1, "description": "x"}),
        sample_plan(recommendations={"title": "not a list"}),
        ["not", "an", "object"],
        "plain text",
    ],
)
def test_schema_violations(raw):
    with pytest.raises(SchemaViolation):
        validate_plan(raw)


def test_validation_is_deterministic():
    raw = sample_plan()
    assert validate_plan(raw) == validate_plan(raw)

    broken = sample_plan(summary=None)
    messages = []
    for _ in range(2):
        with pytest.raises(SchemaViolation) as exc_info:
            validate_plan(broken)
        messages.append(exc_info.value.details)
    assert messages[0] == messages[1]


def test_negative_recommended_is_clamped():
    raw = sample_plan(budgets=[
        {"category": "Food", "recommended": -25, "current": 10, "reasoning": "x"},
        {"category": "Rent", "recommended": 900, "current": 900, "reasoning": "y"},
    ])
    plan = validate_plan(raw)
    assert [b.recommended for b in plan.budgets] == [0, 900]
    # input is not mutated
    assert raw["budgets"][0]["recommended"] == -25


def test_strategy_mismatch_is_a_warning_not_a_failure():
    raw = sample_plan(strategy={"needs": 100, "wants": 100, "savings": 100, "description": "x"})
    result = AdvisoryPlanner(FakeGenerator(raw)).plan(5000, rollup)

    assert result.ok
    assert len(result.warnings) == 1
    assert result.plan.strategy.needs == 100


def test_transient_failure_is_retried_once():
    generator = FakeGenerator(TransientGenerationError("blip"), sample_plan())
    result = AdvisoryPlanner(generator).plan(5000, rollup)

    assert result.ok
    assert result.attempts == 2
    assert len(generator.calls) == 2


def test_two_transient_failures_fail_generation():
    generator = FakeGenerator(ConnectionError("down"), ConnectionError("still down"), sample_plan())
    result = AdvisoryPlanner(generator).plan(5000, rollup)

    assert result.state is PlannerState.FAILED
    assert isinstance(result.error, GenerationFailed)
    assert len(generator.calls) == 2


def test_non_transient_failure_is_not_retried():
    generator = FakeGenerator(RuntimeError("bad request"), sample_plan())
    result = AdvisoryPlanner(generator).plan(5000, rollup)

    assert isinstance(result.error, GenerationFailed)
    assert len(generator.calls) == 1


def test_capability_schema_error_passes_through():
    generator = FakeGenerator(SchemaViolation("not json"), sample_plan())
    result = AdvisoryPlanner(generator).plan(5000, rollup)

    assert isinstance(result.error, SchemaViolation)
    assert len(generator.calls) == 1


def test_timeout_counts_as_transient():
    release = threading.Event()
    calls = []

    def slow_generate(request):
        calls.append(request)
        release.wait(2)
        return sample_plan()

    planner = AdvisoryPlanner(slow_generate, timeout=0.2)
    try:
        result = planner.plan(5000, rollup)
    finally:
        release.set()
        planner.shutdown()

    assert isinstance(result.error, GenerationFailed)
    assert len(calls) == 2


def test_cancelled_request_leaves_planner_usable():
    release = threading.Event()

    def slow_generate(request):
        release.wait(2)
        return sample_plan()

    planner = AdvisoryPlanner(slow_generate, timeout=5)

    async def cancel_midway():
        task = asyncio.ensure_future(planner.plan_async(5000, rollup))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        release.set()

    asyncio.run(cancel_midway())

    result = planner.plan(5000, rollup)
    assert result.ok


def test_advise_reads_period_expenses():
    ledger = InMemoryLedgerStore()
    ledger.create_expense("u1", ExpenseCreate(name="Lunch", category="Food", amount=Decimal("12.50"),
                                              date=datetime(2025, 11, 3, tzinfo=timezone.utc)))
    ledger.create_expense("u1", ExpenseCreate(name="Old", category="Food", amount=Decimal("99"),
                                              date=datetime(2025, 10, 30, tzinfo=timezone.utc)))
    generator = FakeGenerator(sample_plan())

    result = AdvisoryPlanner(generator).advise("u1", 5000, ledger, datetime(2025, 11, 1, tzinfo=timezone.utc))

    assert result.ok
    assert generator.calls[0]["categoryTotals"] == [{"category": "Food", "current": 12.5}]
    assert generator.calls[0]["transactionCount"] == 1


def test_failed_plan_leaves_budgets_untouched():
    store = InMemoryBudgetStore()
    store.replace_all_budgets("u1", [BudgetItem(category="Food", amount=Decimal("100"))])
    raw = sample_plan()
    del raw["strategy"]

    result = AdvisoryPlanner(FakeGenerator(raw)).plan(5000, rollup)

    assert isinstance(result.error, SchemaViolation)
    assert [(b.category, b.amount) for b in store.read_budgets("u1")] == [("Food", Decimal("100"))]


def test_plan_to_budgets():
    plan = validate_plan(sample_plan())
    items = plan_to_budgets(plan)
    assert [(i.category, i.amount) for i in items] == [
        ("Food", Decimal("400.00")),
        ("Transport", Decimal("150.00")),
    ]


def test_oversized_plan_number_is_a_failed_result():
    generator = FakeGenerator(sample_plan(totalSavings=10**400))
    result = AdvisoryPlanner(generator).plan(5000, rollup)

    assert result.state is PlannerState.FAILED
    assert isinstance(result.error, SchemaViolation)
    assert any(d.startswith("totalSavings") for d in result.error.details)


def test_advise_rejects_income_before_reading_store():
    class ExplodingLedger:
        def read_expenses(self, owner, since):
            raise AssertionError("store should not be read")

    generator = FakeGenerator(sample_plan())
    result = AdvisoryPlanner(generator).advise("u1", 10**400, ExplodingLedger(),
                                               datetime(2025, 11, 1, tzinfo=timezone.utc))

    assert isinstance(result.error, InvalidInput)
    assert generator.calls == []


def test_advise_async_runs_the_same_pipeline():
    ledger = InMemoryLedgerStore()
    ledger.create_expense("u1", ExpenseCreate(name="Bus", category="Transport", amount=Decimal("2.75"),
                                              date=datetime(2025, 11, 4, tzinfo=timezone.utc)))
    generator = FakeGenerator(sample_plan())

    result = asyncio.run(
        AdvisoryPlanner(generator).advise_async("u1", 5000, ledger, datetime(2025, 11, 1, tzinfo=timezone.utc))
    )

    assert result.ok
    assert generator.calls[0]["categoryTotals"] == [{"category": "Transport", "current": 2.75}]


def test_stuck_attempt_is_logged_when_timed_out(caplog):
    release = threading.Event()

    def stuck_generate(request):
        release.wait(2)
        return sample_plan()

    planner = AdvisoryPlanner(stuck_generate, timeout=0.1, max_attempts=1, max_workers=1)
    try:
        result = planner.plan(5000, rollup)
    finally:
        release.set()
        planner.shutdown()

    assert isinstance(result.error, GenerationFailed)
    assert "worker is held" in caplog.text
