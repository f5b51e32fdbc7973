from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from spendwise.core.errors import InvalidInput
from spendwise.models.money import MAX_AMOUNT, to_cents

ZERO = Decimal("0.00")


def rank_totals(totals: Mapping[str, Decimal]) -> List[Tuple[str, Decimal]]:
    """Spend descending, ties broken by category name ascending."""
    return sorted(totals.items(), key=lambda pair: (-pair[1], pair[0]))


@dataclass(frozen=True)
class LedgerRollup:
    """Per-category spend for one owner over one period."""

    totals: Dict[str, Decimal] = field(default_factory=dict)
    transaction_count: int = 0

    @property
    def total_spent(self) -> Decimal:
        return to_cents(sum(self.totals.values(), ZERO))

    def ranked(self) -> List[Tuple[str, Decimal]]:
        return rank_totals(self.totals)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category_totals": {cat: float(total) for cat, total in self.ranked()},
            "transaction_count": self.transaction_count,
            "total_spent": float(self.total_spent),
        }


class LedgerAggregator:
    """
    Groups expense records into per-category totals.

    Records may be Expense models or plain mappings with ``category`` and
    ``amount`` keys (as they come back from the store layer).
    """

    @staticmethod
    def _field(record: Any, name: str) -> Any:
        if isinstance(record, Mapping):
            return record.get(name)
        return getattr(record, name, None)

    def _category_and_amount(self, record: Any) -> Tuple[str, Decimal]:
        category = self._field(record, "category")
        if not isinstance(category, str) or not category.strip():
            raise InvalidInput("Expense record has no category", details=[record])

        raw_amount = self._field(record, "amount")
        if isinstance(raw_amount, bool) or raw_amount is None:
            raise InvalidInput(f"Expense in '{category}' has no numeric amount")
        try:
            amount = raw_amount if isinstance(raw_amount, Decimal) else Decimal(str(raw_amount))
        except InvalidOperation:
            raise InvalidInput(f"Expense in '{category}' has a non-numeric amount")
        if not amount.is_finite() or amount < 0 or amount >= MAX_AMOUNT:
            raise InvalidInput(f"Expense in '{category}' has an invalid amount: {raw_amount}")
        return category.strip(), amount

    def aggregate(self, expenses: Iterable[Any]) -> LedgerRollup:
        totals: Dict[str, Decimal] = defaultdict(Decimal)
        count = 0
        for exp in expenses:
            category, amount = self._category_and_amount(exp)
            totals[category] += amount
            count += 1
        return LedgerRollup(
            totals={cat: to_cents(total) for cat, total in totals.items()},
            transaction_count=count,
        )

    def category_totals(self, expenses: Iterable[Any]) -> Dict[str, Decimal]:
        return self.aggregate(expenses).totals


def category_share(rollup: LedgerRollup) -> Dict[str, float]:
    """Percentage of total spend per category, in ranked order."""
    total = rollup.total_spent
    if total == 0:
        return {cat: 0.0 for cat, _ in rollup.ranked()}
    return {
        cat: float((amount / total * 100).quantize(Decimal("0.1")))
        for cat, amount in rollup.ranked()
    }
