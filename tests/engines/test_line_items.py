"""
Tests for the Line Item Normalizer.

Covers:
- amount = quantity x unit_price, unrounded
- Mappings and attribute objects as input
- Every invalid line reported in one ValidationError with its index
- Input never mutated
"""

from dataclasses import dataclass
from decimal import Decimal

import pytest

from findoc_engines.line_items import LineItemNormalizer, line_amount
from findoc_kernel.exceptions import ValidationError


@dataclass
class _Row:
    description: str
    quantity: object
    unit_price: object


class TestNormalize:
    """Happy path normalization."""

    def setup_method(self):
        self.normalizer = LineItemNormalizer()

    def test_amount_is_quantity_times_price(self):
        lines = self.normalizer.normalize([
            {"description": "Consulting", "quantity": 2, "unit_price": "5000"},
            {"description": "Support", "quantity": 1, "unit_price": "10000"},
        ])

        assert [line.amount for line in lines] == [Decimal("10000"), Decimal("10000")]
        assert [line.index for line in lines] == [0, 1]
        assert lines[0].description == "Consulting"

    def test_amount_not_rounded_per_line(self):
        (line,) = self.normalizer.normalize([{"quantity": "1.5", "unit_price": "0.333"}])

        assert line.amount == Decimal("0.4995")

    def test_attribute_objects_accepted(self):
        lines = self.normalizer.normalize([_Row("Widget", 3, Decimal("33.33"))])

        assert lines[0].amount == Decimal("99.99")

    def test_float_goes_through_str(self):
        (line,) = self.normalizer.normalize([{"quantity": 3, "unit_price": 33.33}])

        assert line.amount == Decimal("99.99")

    def test_zero_quantity_and_price_allowed(self):
        lines = self.normalizer.normalize([
            {"quantity": 0, "unit_price": "100"},
            {"quantity": 5, "unit_price": 0},
        ])

        assert all(line.amount == 0 for line in lines)

    def test_empty_input(self):
        assert self.normalizer.normalize([]) == ()

    def test_missing_description_is_blank(self):
        (line,) = self.normalizer.normalize([{"quantity": 1, "unit_price": 1}])

        assert line.description == ""

    def test_input_not_mutated(self):
        item = {"description": "A", "quantity": "2", "unit_price": "3"}
        snapshot = dict(item)

        self.normalizer.normalize([item])

        assert item == snapshot


class TestValidation:
    """Malformed lines are rejected, never corrected."""

    def setup_method(self):
        self.normalizer = LineItemNormalizer()

    def test_negative_quantity(self):
        with pytest.raises(ValidationError) as exc_info:
            self.normalizer.normalize([
                {"quantity": 1, "unit_price": 10},
                {"quantity": -1, "unit_price": 10},
            ])

        assert exc_info.value.indexes == [1]
        assert exc_info.value.field_errors[0]["field"] == "quantity"
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_negative_price(self):
        with pytest.raises(ValidationError) as exc_info:
            self.normalizer.normalize([{"quantity": 1, "unit_price": "-0.01"}])

        assert exc_info.value.field_errors == [
            {"index": 0, "field": "unit_price", "message": "must not be negative"},
        ]

    @pytest.mark.parametrize("bad", ["abc", None, "NaN", "Infinity", True, ""])
    def test_non_numeric_or_missing(self, bad):
        with pytest.raises(ValidationError) as exc_info:
            self.normalizer.normalize([{"quantity": bad, "unit_price": 1}])

        assert exc_info.value.indexes == [0]

    def test_missing_field(self):
        with pytest.raises(ValidationError) as exc_info:
            self.normalizer.normalize([{"quantity": 1}])

        assert exc_info.value.field_errors[0]["field"] == "unit_price"
        assert exc_info.value.field_errors[0]["message"] == "is required"

    def test_all_offending_lines_reported(self):
        with pytest.raises(ValidationError) as exc_info:
            self.normalizer.normalize([
                {"quantity": -1, "unit_price": 1},
                {"quantity": 1, "unit_price": 1},
                {"quantity": "x", "unit_price": -5},
            ])

        assert exc_info.value.indexes == [0, 2]
        assert len(exc_info.value.field_errors) == 3

    def test_rejection_logged(self, captured_logs):
        with pytest.raises(ValidationError):
            self.normalizer.normalize([{"quantity": -1, "unit_price": 1}])

        records = [r for r in captured_logs() if r["message"] == "line_items_rejected"]
        assert records and records[0]["error_count"] == 1


class TestLineAmount:

    def test_single_line(self):
        assert line_amount("2.5", "4") == Decimal("10.0")

    def test_invalid(self):
        with pytest.raises(ValidationError):
            line_amount(-1, 1)
