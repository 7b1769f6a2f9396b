"""
Module: findoc_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for the
    modules layer.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import findoc_kernel (types, exceptions, logging) and sibling
    engine modules.  MUST NOT import findoc_modules.

Invariants enforced:
    - Purity: engines never read the clock or the database.
    - Decimal-only arithmetic: floats are converted through str() at the
      boundary and never used in computation.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from findoc_engines import compute_totals, TaxAggregator, LineItemNormalizer
"""

from findoc_engines.line_items import LineItemNormalizer, PricedLine, line_amount
from findoc_engines.tax import AppliedTax, TaxAggregation, TaxAggregator
from findoc_engines.totals import (
    DocumentTotals,
    TotalsBreakdown,
    TotalsCalculator,
    amount_due,
    compute_totals,
    display_amount_due,
)
from findoc_engines.tracer import traced_engine

__all__ = [
    "LineItemNormalizer",
    "PricedLine",
    "line_amount",
    "AppliedTax",
    "TaxAggregation",
    "TaxAggregator",
    "DocumentTotals",
    "TotalsBreakdown",
    "TotalsCalculator",
    "amount_due",
    "compute_totals",
    "display_amount_due",
    "traced_engine",
]
