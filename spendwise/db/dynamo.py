"""
DynamoDB stores for expenses and budgets.

Expenses table: PK user_id, SK expense_id ("<ISO UTC date>#<hex>"), so a
period read is a single range query on the sort key.
Budgets table: PK user_id, one item per owner holding the whole budget set.
Replacing the set is one PutItem, which DynamoDB applies atomically, so a
concurrent reader sees either the old set or the new one.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional
from uuid import uuid4

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from spendwise.core.config import settings
from spendwise.core.errors import PersistenceFailure
from spendwise.models.budget import Budget, BudgetItem, check_budget_set
from spendwise.models.expense import Expense, ExpenseCreate, as_utc, utcnow

logger = logging.getLogger(__name__)


def _convert_for_dynamo(obj: Any):
    """
    Recursively convert floats to Decimal for DynamoDB compatibility.
    """
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, datetime):
        return as_utc(obj).isoformat()
    if isinstance(obj, dict):
        return {k: _convert_for_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_for_dynamo(v) for v in obj]
    return obj


def _error_message(e: Exception) -> str:
    if isinstance(e, ClientError):
        return e.response["Error"]["Message"]
    return str(e)


def new_expense_id(date: datetime) -> str:
    return f"{as_utc(date).isoformat()}#{uuid4().hex[:8]}"


class DynamoLedgerStore:
    def __init__(self, table=None):
        if table is None:
            dynamodb = boto3.resource("dynamodb", region_name=settings.DYNAMO_REGION)
            table = dynamodb.Table(settings.DYNAMO_TABLE_EXPENSES)
        self._table = table

    @staticmethod
    def _to_expense(item: dict) -> Expense:
        return Expense(
            id=item["expense_id"],
            owner=item["user_id"],
            name=item["name"],
            category=item["category"],
            amount=item["amount"],
            date=item["date"],
        )

    def create_expense(self, owner: str, fields: ExpenseCreate) -> Expense:
        """Insert a new expense for a user."""
        date = fields.date or utcnow()
        expense = Expense(
            id=new_expense_id(date),
            owner=owner,
            name=fields.name,
            category=fields.category,
            amount=fields.amount,
            date=date,
        )
        item = {
            "user_id": owner,
            "expense_id": expense.id,
            "name": expense.name,
            "category": expense.category,
            "amount": expense.amount,
            "date": expense.date,
        }
        try:
            self._table.put_item(Item=_convert_for_dynamo(item))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"create_expense failed for {owner}: {_error_message(e)}")
            raise PersistenceFailure("Failed to save expense")
        return expense

    def _query(self, condition) -> List[Expense]:
        items: List[dict] = []
        kwargs = {"KeyConditionExpression": condition, "ScanIndexForward": False}
        while True:
            response = self._table.query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key
        return [self._to_expense(item) for item in items]

    def read_expenses(self, owner: str, period_start: datetime) -> List[Expense]:
        """All expenses for a user dated at or after period_start, newest first."""
        condition = Key("user_id").eq(owner) & Key("expense_id").gte(as_utc(period_start).isoformat())
        try:
            return self._query(condition)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"read_expenses failed for {owner}: {_error_message(e)}")
            raise PersistenceFailure("Failed to read expenses")

    def list_expenses(self, owner: str) -> List[Expense]:
        try:
            return self._query(Key("user_id").eq(owner))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"list_expenses failed for {owner}: {_error_message(e)}")
            raise PersistenceFailure("Failed to read expenses")


class DynamoBudgetStore:
    def __init__(self, table=None):
        if table is None:
            dynamodb = boto3.resource("dynamodb", region_name=settings.DYNAMO_REGION)
            table = dynamodb.Table(settings.DYNAMO_TABLE_BUDGETS)
        self._table = table

    def read_budgets(self, owner: str) -> List[Budget]:
        """Current budget set for a user, sorted by category."""
        try:
            response = self._table.get_item(Key={"user_id": owner}, ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"read_budgets failed for {owner}: {_error_message(e)}")
            raise PersistenceFailure("Failed to read budgets")

        item: Optional[dict] = response.get("Item")
        if not item:
            return []
        entries = item.get("budgets") or {}
        return [
            Budget(category=category, amount=amount, owner=owner)
            for category, amount in sorted(entries.items())
        ]

    def replace_all_budgets(self, owner: str, budgets: Iterable[BudgetItem]) -> int:
        """Swap the user's whole budget set for a new one in a single write."""
        items = check_budget_set(budgets)
        record = {
            "user_id": owner,
            "budgets": {b.category: b.amount for b in items},
            "updated_at": utcnow(),
        }
        try:
            self._table.put_item(Item=_convert_for_dynamo(record))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"replace_all_budgets failed for {owner}: {_error_message(e)}")
            raise PersistenceFailure("Failed to save budgets")
        logger.info(f"Replaced budgets for {owner}: {len(items)} categories")
        return len(items)
