"""
Tax Aggregator - apply independent percentage taxes to a subtotal.

Pure functions with no I/O.  Every tax is computed off the same untaxed
subtotal; taxes never compound and their order never matters
(VAT 7.5% + WHT 2.5% on 10,000 is 750 + 250 = 1,000).

Usage:
    from findoc_engines.tax import TaxAggregator
    from decimal import Decimal

    result = TaxAggregator().aggregate(
        Decimal("100000"),
        [{"tax_name": "VAT", "tax_percentage": "7.5"}],
    )
    print(result.tax_amount)  # Decimal("7500.0")
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence

from findoc_engines.line_items import is_missing, read_field
from findoc_engines.tracer import traced_engine
from findoc_kernel.db.types import ZERO, round_money, to_decimal
from findoc_kernel.exceptions import ValidationError
from findoc_kernel.logging_config import get_logger

logger = get_logger("engines.tax")

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class AppliedTax:
    """One tax computed against the subtotal (unrounded)."""

    index: int
    tax_name: str
    tax_percentage: Decimal
    tax_amount: Decimal

    @property
    def display_amount(self) -> Decimal:
        """Per-line amount rounded for display; totals use the aggregate."""
        return round_money(self.tax_amount)


@dataclass(frozen=True)
class TaxAggregation:
    """Result of applying all taxes to one subtotal."""

    taxable_amount: Decimal
    taxes: tuple[AppliedTax, ...]

    @property
    def tax_amount(self) -> Decimal:
        """Sum of the per-tax amounts, unrounded."""
        return sum((t.tax_amount for t in self.taxes), ZERO)

    @property
    def tax_count(self) -> int:
        return len(self.taxes)


class TaxAggregator:
    """
    Apply N independent percentage taxes to a subtotal.

    tax_percentage must lie in [0, 100] inclusive.
    """

    @traced_engine("tax", "1.0", fingerprint_fields=("subtotal", "taxes"))
    def aggregate(self, subtotal: Decimal, taxes: Sequence[Any]) -> TaxAggregation:
        """
        Compute each tax and their sum.

        Args:
            subtotal: Untaxed base amount.
            taxes: Mappings or objects exposing ``tax_percentage`` and
                optionally ``tax_name``.

        Raises:
            ValidationError: Missing, non-numeric or out-of-range percentage.
        """
        base = to_decimal(subtotal)
        errors: list[dict] = []
        applied: list[AppliedTax] = []

        for index, tax in enumerate(taxes):
            raw = read_field(tax, "tax_percentage")
            if is_missing(raw):
                errors.append({"index": index, "field": "tax_percentage", "message": "is required"})
                continue
            try:
                pct = to_decimal(raw)
            except ValueError:
                errors.append({"index": index, "field": "tax_percentage", "message": "must be a number"})
                continue
            if pct < ZERO or pct > HUNDRED:
                errors.append({
                    "index": index,
                    "field": "tax_percentage",
                    "message": "must be between 0 and 100",
                })
                continue
            name = read_field(tax, "tax_name")
            applied.append(
                AppliedTax(
                    index=index,
                    tax_name="" if is_missing(name) else str(name),
                    tax_percentage=pct,
                    tax_amount=base * pct / HUNDRED,
                )
            )

        if errors:
            logger.warning(
                "taxes_rejected",
                extra={"error_count": len(errors), "field_errors": errors},
            )
            raise ValidationError(f"{len(errors)} invalid tax line(s)", errors)

        return TaxAggregation(taxable_amount=base, taxes=tuple(applied))
