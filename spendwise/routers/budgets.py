from typing import List

from fastapi import APIRouter, Depends

from spendwise.core.deps import get_budget_store
from spendwise.core.security import get_current_user_id
from spendwise.models.budget import BudgetPublic, BudgetReplace, BudgetReplaceResult

router = APIRouter()


@router.get("/", response_model=List[BudgetPublic])
def read_budgets(user_id: str = Depends(get_current_user_id), store=Depends(get_budget_store)):
    return [BudgetPublic(category=b.category, amount=b.amount) for b in store.read_budgets(user_id)]


@router.post("/", response_model=BudgetReplaceResult)
def replace_budgets(
    body: BudgetReplace,
    user_id: str = Depends(get_current_user_id),
    store=Depends(get_budget_store),
):
    """Replace the user's entire budget set. Any previous category not in the body is dropped."""
    count = store.replace_all_budgets(user_id, body.budgets)
    return BudgetReplaceResult(success=True, count=count)
