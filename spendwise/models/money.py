from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from pydantic import Field, PlainSerializer

CENTS = Decimal("0.01")
# 14 digits, 2 of them after the point
MAX_AMOUNT = Decimal("1e12")

# Non-negative amount with cent precision, rendered as a JSON number
Money = Annotated[
    Decimal,
    Field(ge=0, max_digits=14, decimal_places=2),
    PlainSerializer(float, return_type=float, when_used="json"),
]


def to_cents(value) -> Decimal:
    """Round any numeric value to cents."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)
