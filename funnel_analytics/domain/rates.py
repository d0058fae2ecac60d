from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict


class Rate(BaseModel):
    """A percentage kept in numeric and display form."""

    model_config = ConfigDict(frozen=True)

    value: float  # percentage points, unrounded
    formatted: str

    @classmethod
    def zero(cls) -> "Rate":
        return cls(value=0.0, formatted="0%")


def _format(value: Decimal) -> str:
    rounded = value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    if rounded == 0:
        return "0%"
    return f"{rounded}%"


def percentage(numerator: float, denominator: float) -> Rate:
    """numerator/denominator as a rate clamped to [0%, 100%]; 0% when empty."""
    if not denominator:
        return Rate.zero()
    # exact ratio so half-way values round up
    exact = Decimal(str(numerator)) * 100 / Decimal(str(denominator))
    exact = min(Decimal(100), max(Decimal(0), exact))
    return Rate(value=float(exact), formatted=_format(exact))


def difference(minuend: Rate, subtrahend: Rate) -> Rate:
    """Signed difference in percentage points; may be negative."""
    value = minuend.value - subtrahend.value
    return Rate(value=value, formatted=_format(Decimal(str(value))))


def average(total: float, count: int, digits: int = 2) -> float:
    if not count:
        return 0
    return round(total / count, digits)
