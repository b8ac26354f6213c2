"""
Shared request/response bases and amount parsing for the API schemas.
"""
from decimal import Decimal
from typing import Any, Union

from pydantic import BaseModel, ConfigDict

from ..core.exceptions import ValidationException
from ..core.money import Money

# Request amounts arrive as JSON strings ("24.29") or numbers.
AmountInput = Union[str, Decimal, int]


class StandardizedModel(BaseModel):  # type: ignore[misc]
    """Response base: enums leave as their string values."""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True)


class StrictModel(BaseModel):  # type: ignore[misc]
    """Request base: forbid extras, validate defaults and assignments."""

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
        validate_assignment=True,
    )


def money_str(value: Any) -> str:
    """Money amounts always leave the API as plain decimal strings."""
    if isinstance(value, Money):
        return value.to_json()
    return Money.of(value).to_json()


def parse_amount(value: AmountInput, field: str) -> Money:
    try:
        return Money.parse(value)
    except (TypeError, ValueError) as exc:
        raise ValidationException(
            f"{field} must be a decimal amount",
            code="INVALID_AMOUNT",
            details={"field": field, "value": str(value)},
        ) from exc
