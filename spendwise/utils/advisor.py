"""
Advisory Planner
Turns a ledger rollup and a declared income into a validated AdvisoryPlan.

Pipeline per request:
    IDLE -> REQUEST_PREPARED -> AWAITING_GENERATION -> VALIDATED | FAILED

The generation capability is injected as a plain callable taking the request
payload and returning a JSON-like structure. It is untrusted: its output is
validated against the plan schema before anything leaves the planner.
"""
from __future__ import annotations

import asyncio
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from spendwise.core.errors import (
    GenerationFailed,
    InvalidInput,
    SchemaViolation,
    SpendwiseError,
    TransientGenerationError,
)
from spendwise.models.advisory import AdvisoryPlan, CategoryTotal, GenerationRequest
from spendwise.models.budget import BudgetItem
from spendwise.models.money import to_cents
from spendwise.utils.aggregator import LedgerAggregator, LedgerRollup

logger = logging.getLogger(__name__)

GenerateFn = Callable[[Dict[str, Any]], Any]

TRANSIENT_ERRORS = (TransientGenerationError, TimeoutError, ConnectionError)
STRATEGY_TOLERANCE = 0.01


class PlannerState(str, Enum):
    IDLE = "idle"
    REQUEST_PREPARED = "request_prepared"
    AWAITING_GENERATION = "awaiting_generation"
    VALIDATED = "validated"
    FAILED = "failed"


@dataclass(frozen=True)
class PlanResult:
    """Tagged outcome of one planning request: a plan or a typed failure."""

    state: PlannerState
    plan: Optional[AdvisoryPlan] = None
    error: Optional[SpendwiseError] = None
    warnings: Tuple[str, ...] = ()
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.state is PlannerState.VALIDATED

    def unwrap(self) -> AdvisoryPlan:
        if self.error is not None:
            raise self.error
        return self.plan


def validate_income(income: Any) -> float:
    if isinstance(income, bool) or not isinstance(income, (int, float, Decimal)):
        raise InvalidInput("Income must be a number")
    try:
        value = float(income)
    except OverflowError:
        raise InvalidInput("Income must be a finite positive number")
    if not math.isfinite(value) or value <= 0:
        raise InvalidInput("Income must be a finite positive number")
    return value


def build_request(income: float, rollup: LedgerRollup) -> GenerationRequest:
    return GenerationRequest(
        income=income,
        category_totals=[
            CategoryTotal(category=category, current=float(to_cents(total)))
            for category, total in rollup.ranked()
        ],
        transaction_count=rollup.transaction_count,
    )


def validate_plan(raw: Any) -> AdvisoryPlan:
    """Check a raw response against the plan schema and normalize it. Pure."""
    if not isinstance(raw, dict):
        raise SchemaViolation(f"Expected a JSON object, got {type(raw).__name__}")
    try:
        plan = AdvisoryPlan.model_validate(raw)
    except ValidationError as exc:
        details = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        ]
        raise SchemaViolation("Advisory plan failed schema validation", details=details)
    return normalize_plan(plan)


def normalize_plan(plan: AdvisoryPlan) -> AdvisoryPlan:
    """Clamp negative recommended budgets to zero. Strategy is left as-is."""
    if all(b.recommended >= 0 for b in plan.budgets):
        return plan
    budgets = [
        b if b.recommended >= 0 else b.model_copy(update={"recommended": 0})
        for b in plan.budgets
    ]
    return plan.model_copy(update={"budgets": budgets})


def strategy_warnings(plan: AdvisoryPlan, income: float) -> List[str]:
    strategy = plan.strategy
    allocated = strategy.needs + strategy.wants + strategy.savings
    if abs(allocated - income) > STRATEGY_TOLERANCE:
        return [
            f"Strategy allocates {allocated:.2f} (needs + wants + savings) "
            f"but declared income is {income:.2f}"
        ]
    return []


def plan_to_budgets(plan: AdvisoryPlan) -> List[BudgetItem]:
    """Recommended amounts as a budget set ready for replace-all."""
    return [
        BudgetItem(category=b.category, amount=to_cents(b.recommended))
        for b in plan.budgets
    ]


class AdvisoryPlanner:
    """
    Runs the advisory pipeline against an injected generation capability.

    Each attempt runs on the planner's own pool and is bounded by ``timeout``.
    A thread cannot be killed, so an attempt that times out keeps its worker
    until the capability returns. Capabilities must therefore honour a timeout
    of their own (OpenAIAdvisoryGenerator passes it to the client), otherwise
    stuck attempts pile up and later requests wait for a free worker.
    """

    def __init__(
        self,
        generate: GenerateFn,
        timeout: float = 30.0,
        max_attempts: int = 2,
        executor: Optional[ThreadPoolExecutor] = None,
        max_workers: int = 16,
    ) -> None:
        self._generate = generate
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="advisory-generation"
        )

    def _call_generation(self, payload: Dict[str, Any]) -> Any:
        future = self._executor.submit(self._generate, payload)
        try:
            return future.result(timeout=self._timeout)
        except FutureTimeout:
            if not future.cancel():
                logger.warning("Timed-out generation attempt still running; its worker is held until it returns")
            raise TransientGenerationError(
                f"Generation timed out after {self._timeout:.1f}s"
            )

    def _generate_with_retry(self, payload: Dict[str, Any]) -> Tuple[Any, int]:
        attempt = 0
        while True:
            attempt += 1
            try:
                return self._call_generation(payload), attempt
            except SpendwiseError:
                raise
            except TRANSIENT_ERRORS as exc:
                logger.warning(f"Generation attempt {attempt} failed: {exc}")
                if attempt >= self._max_attempts:
                    raise GenerationFailed(
                        f"Generation unavailable after {attempt} attempts: {exc}"
                    )
            except Exception as exc:
                logger.error(f"Generation capability error: {exc}", exc_info=True)
                raise GenerationFailed(f"Generation capability error: {exc}")

    def plan(self, income: Any, rollup: LedgerRollup) -> PlanResult:
        state = PlannerState.IDLE
        attempts = 0
        try:
            value = validate_income(income)
            request = build_request(value, rollup)
            state = PlannerState.REQUEST_PREPARED
            logger.info(
                f"Advisory request prepared: {len(request.category_totals)} categories, "
                f"{request.transaction_count} transactions"
            )

            state = PlannerState.AWAITING_GENERATION
            raw, attempts = self._generate_with_retry(request.to_dict())

            plan = validate_plan(raw)
            warnings = tuple(strategy_warnings(plan, value))
            for warning in warnings:
                logger.warning(warning)
        except SpendwiseError as exc:
            logger.warning(f"Advisory plan failed in state {state.value}: {exc}")
            if exc.details:
                logger.debug(f"Failure details: {exc.details}")
            return PlanResult(state=PlannerState.FAILED, error=exc, attempts=attempts)

        return PlanResult(
            state=PlannerState.VALIDATED,
            plan=plan,
            warnings=warnings,
            attempts=attempts,
        )

    async def plan_async(self, income: Any, rollup: LedgerRollup) -> PlanResult:
        """
        Run plan() in a worker thread. Cancelling the awaiting task discards
        the in-flight attempt; the planner never writes, so nothing is left
        half-done.
        """
        try:
            return await asyncio.to_thread(self.plan, income, rollup)
        except asyncio.CancelledError:
            logger.info("Advisory request cancelled by caller")
            raise

    def advise(
        self,
        owner: str,
        income: Any,
        ledger_store: Any,
        period_start: datetime,
        aggregator: Optional[LedgerAggregator] = None,
    ) -> PlanResult:
        """Read the owner's period expenses, aggregate them and plan."""
        # Bad income is rejected before the store is touched
        try:
            validate_income(income)
            expenses = ledger_store.read_expenses(owner, period_start)
            rollup = (aggregator or LedgerAggregator()).aggregate(expenses)
        except InvalidInput as exc:
            logger.warning(f"Advisory input rejected for {owner}: {exc}")
            return PlanResult(state=PlannerState.FAILED, error=exc)
        logger.info(f"Advisory request for {owner}: {rollup.transaction_count} expenses this period")
        return self.plan(income, rollup)

    async def advise_async(
        self,
        owner: str,
        income: Any,
        ledger_store: Any,
        period_start: datetime,
        aggregator: Optional[LedgerAggregator] = None,
    ) -> PlanResult:
        """advise() in a worker thread, cancellable like plan_async()."""
        try:
            return await asyncio.to_thread(
                self.advise, owner, income, ledger_store, period_start, aggregator
            )
        except asyncio.CancelledError:
            logger.info("Advisory request cancelled by caller")
            raise

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
