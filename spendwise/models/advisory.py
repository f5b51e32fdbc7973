"""
Advisory plan schema.

The generation capability is untrusted, so these models are strict: strings
must be strings, numbers must be real finite numbers (bools and numeric
strings are rejected), and the strategy block must carry exactly
needs/wants/savings/description.
"""
import math
from typing import Annotated, Any, List, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StrictFloat, StrictInt, StrictStr


def _plan_number(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("must be a number")
    try:
        finite = math.isfinite(value)
    except OverflowError:
        finite = False
    if not finite:
        raise ValueError("must be finite")
    return value


def _plan_amount(value: Any) -> Any:
    value = _plan_number(value)
    if value < 0:
        raise ValueError("must be non-negative")
    return value


# recommended budgets may come back negative; they are clamped after validation
SignedNumber = Annotated[Union[StrictInt, StrictFloat], BeforeValidator(_plan_number)]
Amount = Annotated[Union[StrictInt, StrictFloat], BeforeValidator(_plan_amount)]


class _PlanModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class BudgetRecommendation(_PlanModel):
    category: StrictStr
    recommended: SignedNumber
    current: Amount
    reasoning: StrictStr


class Strategy(_PlanModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    needs: Amount
    wants: Amount
    savings: Amount
    description: StrictStr


class Recommendation(_PlanModel):
    title: StrictStr
    description: StrictStr
    impact: StrictStr


class AdvisoryPlan(_PlanModel):
    budgets: List[BudgetRecommendation]
    strategy: Strategy
    recommendations: List[Recommendation]
    total_savings: Amount = Field(alias="totalSavings")
    summary: StrictStr

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class AdviceRequest(BaseModel):
    # Left untyped so a bad income reaches the planner's own validation
    income: Any = Field(default=None, description="Declared monthly income")


class CategoryTotal(BaseModel):
    category: str
    current: float


class GenerationRequest(BaseModel):
    """Payload handed to the generation capability."""

    income: float
    category_totals: List[CategoryTotal] = Field(alias="categoryTotals")
    transaction_count: int = Field(alias="transactionCount")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)
