"""
Document Totals Calculator - subtotal, tax and total for invoices and bills.

Pure functions with no I/O.  Combines the line item normalizer and the tax
aggregator and applies the rounding policy:

    subtotal   = round2(sum(quantity x unit_price))
    tax_amount = round2(sum(subtotal x pct / 100))   # aggregate rounded once
    total      = round2(subtotal + tax_amount)

Rounding is ROUND_HALF_UP to two places via ``round_money``.  Taxes are
computed on the rounded subtotal, the figure printed on the document.
Identical inputs always produce identical outputs.

Usage:
    from findoc_engines.totals import compute_totals

    totals = compute_totals(
        [{"quantity": 3, "unit_price": "33.33"}],
        [{"tax_name": "VAT", "tax_percentage": "7.5"}],
    )
    print(totals.subtotal, totals.tax_amount, totals.total)
    # 99.99 7.50 107.49
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence

from findoc_engines.line_items import LineItemNormalizer, PricedLine
from findoc_engines.tax import AppliedTax, TaxAggregator
from findoc_engines.tracer import traced_engine
from findoc_kernel.db.types import ZERO, round_money, to_decimal
from findoc_kernel.logging_config import get_logger

logger = get_logger("engines.totals")


@dataclass(frozen=True)
class DocumentTotals:
    """Rounded monetary totals of one document."""

    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal

    @classmethod
    def zero(cls) -> DocumentTotals:
        return cls(
            subtotal=round_money(ZERO),
            tax_amount=round_money(ZERO),
            total=round_money(ZERO),
        )


@dataclass(frozen=True)
class TotalsBreakdown:
    """Totals together with the per-line and per-tax detail."""

    totals: DocumentTotals
    lines: tuple[PricedLine, ...]
    taxes: tuple[AppliedTax, ...]


class TotalsCalculator:
    """
    Compute document totals.

    Either the whole computation succeeds or a ValidationError is raised;
    partial totals are never returned.
    """

    def __init__(self) -> None:
        self._normalizer = LineItemNormalizer()
        self._aggregator = TaxAggregator()

    @traced_engine("totals", "1.0", fingerprint_fields=("line_items", "taxes"))
    def breakdown(
        self,
        line_items: Sequence[Any],
        taxes: Sequence[Any] = (),
    ) -> TotalsBreakdown:
        """Compute totals plus per-line and per-tax detail."""
        lines = self._normalizer.normalize(line_items)
        subtotal = round_money(sum((line.amount for line in lines), ZERO))

        aggregation = self._aggregator.aggregate(subtotal, taxes)
        tax_amount = round_money(aggregation.tax_amount)

        total = round_money(subtotal + tax_amount)

        return TotalsBreakdown(
            totals=DocumentTotals(
                subtotal=subtotal,
                tax_amount=tax_amount,
                total=total,
            ),
            lines=lines,
            taxes=aggregation.taxes,
        )

    def compute(
        self,
        line_items: Sequence[Any],
        taxes: Sequence[Any] = (),
    ) -> DocumentTotals:
        """Compute subtotal, tax_amount and total."""
        return self.breakdown(line_items, taxes).totals


def compute_totals(
    line_items: Sequence[Any],
    taxes: Sequence[Any] = (),
) -> DocumentTotals:
    """Convenience wrapper around ``TotalsCalculator().compute``."""
    return TotalsCalculator().compute(line_items, taxes)


def amount_due(total: Any, amount_paid: Any) -> Decimal:
    """
    total - amount_paid.

    No rounding beyond the already-rounded inputs.  Negative when the
    document is overpaid; use ``display_amount_due`` for presentation.
    """
    return to_decimal(total) - to_decimal(amount_paid)


def display_amount_due(total: Any, amount_paid: Any) -> Decimal:
    """Amount due clamped at zero."""
    return max(amount_due(total, amount_paid), ZERO)
