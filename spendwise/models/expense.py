from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from spendwise.models.money import Money


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ExpenseCreate(BaseModel):
    name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    amount: Money
    date: Optional[datetime] = None

    @field_validator("name", "category")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("date")
    @classmethod
    def normalize_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None


class Expense(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    owner: str
    name: str
    category: str
    amount: Money
    date: datetime


class ExpensePublic(BaseModel):
    id: str
    name: str
    category: str
    amount: Money
    date: datetime
