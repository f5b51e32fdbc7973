import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, status

from spendwise.core.deps import (
    current_period_start,
    get_aggregator,
    get_budget_store,
    get_ledger_store,
)
from spendwise.core.security import get_current_user_id
from spendwise.models.expense import ExpenseCreate, ExpensePublic
from spendwise.utils.aggregator import LedgerAggregator, category_share
from spendwise.utils.reconciler import budgets_to_mapping, variance_report

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/", response_model=ExpensePublic, status_code=status.HTTP_201_CREATED)
def create_expense(
    expense: ExpenseCreate,
    user_id: str = Depends(get_current_user_id),
    ledger=Depends(get_ledger_store),
):
    created = ledger.create_expense(user_id, expense)
    logger.info(f"Expense {created.id} recorded for {user_id} in {created.category}")
    return ExpensePublic(**created.model_dump(exclude={"owner"}))


@router.get("/", response_model=List[ExpensePublic])
def list_expenses(user_id: str = Depends(get_current_user_id), ledger=Depends(get_ledger_store)):
    return [ExpensePublic(**e.model_dump(exclude={"owner"})) for e in ledger.list_expenses(user_id)]


@router.get("/summary")
def current_period_summary(
    user_id: str = Depends(get_current_user_id),
    ledger=Depends(get_ledger_store),
    budget_store=Depends(get_budget_store),
    aggregator: LedgerAggregator = Depends(get_aggregator),
) -> Dict:
    """
    Spend for the current month reconciled against the user's budgets.
    """
    period_start = current_period_start()
    expenses = ledger.read_expenses(user_id, period_start)
    rollup = aggregator.aggregate(expenses)
    budgets = budgets_to_mapping(budget_store.read_budgets(user_id))
    report = variance_report(rollup.totals, budgets)

    return {
        "period_start": period_start.isoformat(),
        **rollup.to_dict(),
        "category_share": category_share(rollup),
        "variance": report.to_dict(),
    }
