"""
Property-based tests for document totals (Hypothesis).

Properties:
- subtotal == round2(sum(quantity x unit_price))
- total == subtotal + tax_amount, both already rounded
- Tax order never changes the result
- compute_totals is deterministic
"""

from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from findoc_engines.totals import compute_totals
from findoc_kernel.db.types import round_money

quantities = st.decimals(min_value=0, max_value=10_000, places=3, allow_nan=False, allow_infinity=False)
prices = st.decimals(min_value=0, max_value=1_000_000, places=2, allow_nan=False, allow_infinity=False)
percentages = st.decimals(min_value=0, max_value=100, places=3, allow_nan=False, allow_infinity=False)

line_items = st.lists(
    st.fixed_dictionaries({"quantity": quantities, "unit_price": prices}),
    max_size=8,
)
taxes = st.lists(st.fixed_dictionaries({"tax_percentage": percentages}), max_size=4)


class TestTotalsProperties:

    @given(items=line_items, tax_lines=taxes)
    @settings(max_examples=200, deadline=None)
    def test_subtotal_is_rounded_sum(self, items, tax_lines):
        totals = compute_totals(items, tax_lines)
        expected = round_money(
            sum((i["quantity"] * i["unit_price"] for i in items), Decimal("0"))
        )

        assert totals.subtotal == expected

    @given(items=line_items, tax_lines=taxes)
    @settings(max_examples=200, deadline=None)
    def test_total_is_subtotal_plus_tax(self, items, tax_lines):
        totals = compute_totals(items, tax_lines)

        assert totals.total == totals.subtotal + totals.tax_amount
        assert totals.total == round_money(totals.total)

    @given(items=line_items, tax_lines=taxes)
    @settings(max_examples=100, deadline=None)
    def test_tax_order_irrelevant(self, items, tax_lines):
        assert compute_totals(items, tax_lines) == compute_totals(items, list(reversed(tax_lines)))

    @given(items=line_items, tax_lines=taxes)
    @settings(max_examples=100, deadline=None)
    def test_deterministic(self, items, tax_lines):
        assert compute_totals(items, tax_lines) == compute_totals(items, tax_lines)

    @given(items=line_items)
    @settings(max_examples=100, deadline=None)
    def test_no_tax_means_total_equals_subtotal(self, items):
        totals = compute_totals(items, [])

        assert totals.tax_amount == 0
        assert totals.total == totals.subtotal
