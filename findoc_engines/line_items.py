"""
Line Item Normalizer - derive per-line amounts.

Pure functions with no I/O.  Each input line is read (never mutated) and
turned into a ``PricedLine`` carrying amount = quantity x unit_price.

Usage:
    from findoc_engines.line_items import LineItemNormalizer

    lines = LineItemNormalizer().normalize([
        {"description": "Consulting", "quantity": 2, "unit_price": "5000"},
        {"description": "Support", "quantity": 1, "unit_price": "10000"},
    ])
    print(lines[0].amount)  # Decimal("10000")
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence

from findoc_engines.tracer import traced_engine
from findoc_kernel.db.types import ZERO, to_decimal
from findoc_kernel.exceptions import ValidationError
from findoc_kernel.logging_config import get_logger

logger = get_logger("engines.line_items")

_MISSING = object()


def read_field(item: Any, name: str) -> Any:
    """Read ``name`` from a mapping or an attribute object.

    Returns the module sentinel ``_MISSING`` when absent so callers can
    tell "missing" from an explicit None.
    """
    if isinstance(item, Mapping):
        return item.get(name, _MISSING)
    return getattr(item, name, _MISSING)


def is_missing(value: Any) -> bool:
    return value is _MISSING or value is None


@dataclass(frozen=True)
class PricedLine:
    """A validated line with its derived amount (unrounded)."""

    index: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal


def _non_negative(
    item: Any, index: int, name: str, errors: list[dict]
) -> Decimal | None:
    raw = read_field(item, name)
    if is_missing(raw):
        errors.append({"index": index, "field": name, "message": "is required"})
        return None
    try:
        value = to_decimal(raw)
    except ValueError:
        errors.append({"index": index, "field": name, "message": "must be a number"})
        return None
    if value < ZERO:
        errors.append({"index": index, "field": name, "message": "must not be negative"})
        return None
    return value


class LineItemNormalizer:
    """
    Validate line items and compute amount = quantity x unit_price.

    Every offending line is reported in one ValidationError so a form can
    flag all bad rows at once.
    """

    @traced_engine("line_items", "1.0", fingerprint_fields=("items",))
    def normalize(self, items: Sequence[Any]) -> tuple[PricedLine, ...]:
        """
        Normalize a sequence of line items.

        Args:
            items: Mappings or objects exposing ``quantity``, ``unit_price``
                and optionally ``description``.

        Returns:
            One PricedLine per input, in input order.

        Raises:
            ValidationError: Missing, non-numeric or negative quantity or
                unit_price.  ``field_errors`` carry the offending index.
        """
        errors: list[dict] = []
        priced: list[PricedLine] = []

        for index, item in enumerate(items):
            quantity = _non_negative(item, index, "quantity", errors)
            unit_price = _non_negative(item, index, "unit_price", errors)
            if quantity is None or unit_price is None:
                continue
            description = read_field(item, "description")
            priced.append(
                PricedLine(
                    index=index,
                    description="" if is_missing(description) else str(description),
                    quantity=quantity,
                    unit_price=unit_price,
                    amount=quantity * unit_price,
                )
            )

        if errors:
            logger.warning(
                "line_items_rejected",
                extra={"error_count": len(errors), "field_errors": errors},
            )
            raise ValidationError(
                f"{len(errors)} invalid line item field(s)", errors
            )

        return tuple(priced)


def line_amount(quantity: Any, unit_price: Any) -> Decimal:
    """Amount for a single line; same validation as the normalizer."""
    (line,) = LineItemNormalizer().normalize(
        [{"quantity": quantity, "unit_price": unit_price}]
    )
    return line.amount
