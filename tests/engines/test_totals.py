"""
Tests for the Document Totals Calculator.

Covers:
- Worked scenarios (single/multiple lines, single/multiple taxes, rounding)
- Round-half-up to two places
- Empty input, idempotence
- Amount due
- FINDOC_ENGINE_TRACE records
"""

from decimal import Decimal

import pytest

from findoc_engines.totals import (
    DocumentTotals,
    TotalsCalculator,
    amount_due,
    compute_totals,
    display_amount_due,
)
from findoc_kernel.exceptions import ValidationError


class TestScenarios:
    """Worked examples of invoice totals."""

    def test_multiple_lines_no_tax(self):
        totals = compute_totals(
            [
                {"description": "Consulting", "quantity": 2, "unit_price": "5000"},
                {"description": "Support", "quantity": 1, "unit_price": "10000"},
            ],
        )

        assert totals == DocumentTotals(
            subtotal=Decimal("20000.00"),
            tax_amount=Decimal("0.00"),
            total=Decimal("20000.00"),
        )

    def test_single_vat(self):
        totals = compute_totals(
            [{"description": "Project", "quantity": 1, "unit_price": "100000"}],
            [{"tax_name": "VAT", "tax_percentage": "7.5"}],
        )

        assert totals.subtotal == Decimal("100000.00")
        assert totals.tax_amount == Decimal("7500.00")
        assert totals.total == Decimal("107500.00")

    def test_two_taxes_additive(self):
        totals = compute_totals(
            [{"description": "Units", "quantity": 10, "unit_price": "1000"}],
            [
                {"tax_name": "VAT", "tax_percentage": "7.5"},
                {"tax_name": "WHT", "tax_percentage": "2.5"},
            ],
        )

        assert totals.subtotal == Decimal("10000.00")
        assert totals.tax_amount == Decimal("1000.00")
        assert totals.total == Decimal("11000.00")

    def test_rounding_half_up(self):
        totals = compute_totals(
            [{"description": "Widget", "quantity": 3, "unit_price": "33.33"}],
            [{"tax_name": "VAT", "tax_percentage": "7.5"}],
        )

        assert totals.subtotal == Decimal("99.99")
        assert totals.tax_amount == Decimal("7.50")
        assert totals.total == Decimal("107.49")

    def test_amounts_have_two_places(self):
        totals = compute_totals([{"quantity": 1, "unit_price": "10"}])

        assert str(totals.subtotal) == "10.00"
        assert str(totals.total) == "10.00"

    def test_aggregate_rounded_once(self):
        # 0.005 + 0.005 rounds to 0.01 once; rounding each first would give 0.02
        totals = compute_totals(
            [{"quantity": 1, "unit_price": "1"}],
            [{"tax_percentage": "0.5"}, {"tax_percentage": "0.5"}],
        )

        assert totals.tax_amount == Decimal("0.01")


class TestEdgeCases:

    def test_empty(self):
        assert compute_totals([], []) == DocumentTotals.zero()
        assert DocumentTotals.zero().total == Decimal("0.00")

    def test_idempotent(self):
        items = [{"quantity": "7", "unit_price": "14.285"}]
        taxes = [{"tax_percentage": "12.5"}]

        assert compute_totals(items, taxes) == compute_totals(items, taxes)

    def test_malformed_line_no_partial_result(self):
        with pytest.raises(ValidationError) as exc_info:
            compute_totals([
                {"quantity": 1, "unit_price": 100},
                {"quantity": 1, "unit_price": "oops"},
            ])

        assert exc_info.value.indexes == [1]

    def test_breakdown_exposes_detail(self):
        breakdown = TotalsCalculator().breakdown(
            [{"description": "A", "quantity": 2, "unit_price": "2.50"}],
            [{"tax_name": "VAT", "tax_percentage": "10"}],
        )

        assert breakdown.lines[0].amount == Decimal("5.00")
        assert breakdown.taxes[0].display_amount == Decimal("0.50")
        assert breakdown.totals.total == Decimal("5.50")


class TestAmountDue:

    def test_partial(self):
        assert amount_due(Decimal("107.49"), Decimal("50")) == Decimal("57.49")

    def test_overpaid_negative_internally(self):
        assert amount_due(Decimal("100.00"), Decimal("120.00")) == Decimal("-20.00")
        assert display_amount_due(Decimal("100.00"), Decimal("120.00")) == 0


class TestTracing:

    def test_trace_emitted(self, captured_logs):
        compute_totals([{"quantity": 1, "unit_price": "10"}])

        traces = [r for r in captured_logs() if r["message"] == "FINDOC_ENGINE_TRACE"]
        engines = {r["engine_name"] for r in traces}
        assert {"totals", "line_items", "tax"} <= engines

    def test_fingerprint_stable(self, captured_logs):
        items = [{"quantity": 1, "unit_price": "10"}]
        compute_totals(items)
        compute_totals(items)

        fingerprints = [
            r["input_fingerprint"]
            for r in captured_logs()
            if r["message"] == "FINDOC_ENGINE_TRACE" and r["engine_name"] == "totals"
        ]
        assert len(fingerprints) == 2
        assert fingerprints[0] == fingerprints[1]
