from typing import Iterable, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from spendwise.core.errors import InvalidInput
from spendwise.models.money import Money


class BudgetItem(BaseModel):
    category: str = Field(min_length=1)
    amount: Money

    @field_validator("category")
    @classmethod
    def strip_category(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class Budget(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    amount: Money
    owner: str


class BudgetPublic(BaseModel):
    category: str
    amount: Money


class BudgetReplace(BaseModel):
    budgets: List[BudgetItem]


class BudgetReplaceResult(BaseModel):
    success: bool = True
    count: int


def check_budget_set(items: Iterable[BudgetItem]) -> List[BudgetItem]:
    """Reject a budget set that names the same category twice."""
    items = list(items)
    seen = set()
    duplicates = []
    for item in items:
        if item.category in seen:
            duplicates.append(item.category)
        seen.add(item.category)
    if duplicates:
        raise InvalidInput(
            "Duplicate budget categories",
            details=sorted(set(duplicates)),
        )
    return items
