"""
In-process stores with the same interface as the DynamoDB ones.
Used for local runs (STORE_BACKEND=memory) and tests.
"""
import logging
import threading
from datetime import datetime
from types import MappingProxyType
from typing import Dict, Iterable, List

from spendwise.db.dynamo import new_expense_id
from spendwise.models.budget import Budget, BudgetItem, check_budget_set
from spendwise.models.expense import Expense, ExpenseCreate, as_utc, utcnow

logger = logging.getLogger(__name__)


class InMemoryLedgerStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._expenses: Dict[str, List[Expense]] = {}

    def create_expense(self, owner: str, fields: ExpenseCreate) -> Expense:
        date = fields.date or utcnow()
        expense = Expense(
            id=new_expense_id(date),
            owner=owner,
            name=fields.name,
            category=fields.category,
            amount=fields.amount,
            date=date,
        )
        with self._lock:
            self._expenses.setdefault(owner, []).append(expense)
        return expense

    def list_expenses(self, owner: str) -> List[Expense]:
        with self._lock:
            expenses = list(self._expenses.get(owner, []))
        return sorted(expenses, key=lambda e: e.id, reverse=True)

    def read_expenses(self, owner: str, period_start: datetime) -> List[Expense]:
        start = as_utc(period_start)
        return [e for e in self.list_expenses(owner) if as_utc(e.date) >= start]


class InMemoryBudgetStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        # owner -> read-only snapshot; replaced wholesale, never edited in place
        self._budgets: Dict[str, MappingProxyType] = {}

    def read_budgets(self, owner: str) -> List[Budget]:
        snapshot = self._budgets.get(owner, MappingProxyType({}))
        return [
            Budget(category=category, amount=amount, owner=owner)
            for category, amount in sorted(snapshot.items())
        ]

    def replace_all_budgets(self, owner: str, budgets: Iterable[BudgetItem]) -> int:
        items = check_budget_set(budgets)
        snapshot = MappingProxyType({b.category: b.amount for b in items})
        with self._lock:
            self._budgets[owner] = snapshot
        logger.info(f"Replaced budgets for {owner}: {len(items)} categories")
        return len(items)
