from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from spendwise.models.money import to_cents
from spendwise.utils.aggregator import ZERO


@dataclass(frozen=True)
class CategoryRollup:
    """Spend against budget for a single category."""

    category: str
    spent: Decimal
    budget: Optional[Decimal] = None

    @property
    def over_budget(self) -> bool:
        return self.budget is not None and self.spent > self.budget

    @property
    def remaining(self) -> Optional[Decimal]:
        if self.budget is None:
            return None
        return to_cents(self.budget - self.spent)

    def to_dict(self) -> Dict[str, Any]:
        # budget stays None (null) when unset; 0 is a real budget
        return {
            "category": self.category,
            "spent": float(self.spent),
            "budget": float(self.budget) if self.budget is not None else None,
            "overBudget": self.over_budget,
        }


def budgets_to_mapping(budgets: Iterable[Any]) -> Dict[str, Decimal]:
    """Fold Budget models (or category/amount mappings) into category -> amount."""
    mapping: Dict[str, Decimal] = {}
    for budget in budgets:
        if isinstance(budget, Mapping):
            category, amount = budget["category"], budget["amount"]
        else:
            category, amount = budget.category, budget.amount
        mapping[category] = to_cents(amount)
    return mapping


def reconcile(
    spend: Mapping[str, Decimal],
    budgets: Mapping[str, Decimal],
) -> List[CategoryRollup]:
    """
    Merge spend totals with declared budgets.

    Every category from either side gets one rollup. Ordered by spend
    descending, then category name, so budget-only categories (spent 0)
    land last in alphabetical order.
    """
    categories = set(spend) | set(budgets)
    rollups = [
        CategoryRollup(
            category=category,
            spent=to_cents(spend.get(category, ZERO)),
            budget=to_cents(budgets[category]) if category in budgets else None,
        )
        for category in categories
    ]
    rollups.sort(key=lambda r: (-r.spent, r.category))
    return rollups


@dataclass(frozen=True)
class VarianceReport:
    rollups: List[CategoryRollup] = field(default_factory=list)

    @property
    def total_spent(self) -> Decimal:
        return to_cents(sum((r.spent for r in self.rollups), ZERO))

    @property
    def total_budgeted(self) -> Decimal:
        return to_cents(sum((r.budget for r in self.rollups if r.budget is not None), ZERO))

    @property
    def over_budget_categories(self) -> List[str]:
        return [r.category for r in self.rollups if r.over_budget]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rollups": [r.to_dict() for r in self.rollups],
            "total_spent": float(self.total_spent),
            "total_budgeted": float(self.total_budgeted),
            "over_budget_categories": self.over_budget_categories,
        }


def variance_report(
    spend: Mapping[str, Decimal],
    budgets: Mapping[str, Decimal],
) -> VarianceReport:
    return VarianceReport(rollups=reconcile(spend, budgets))
