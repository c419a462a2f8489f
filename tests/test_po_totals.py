from decimal import Decimal

import pytest

from medsupply.utils.money import from_paise, percent_of, split_in_half, to_paise
from medsupply.utils.po_totals import (
    Adjustment,
    DiscountType,
    LineInput,
    TaxType,
    calculate_line,
    calculate_totals,
)


def test_worked_example_igst():
    line = LineInput(quantity=100, foc=10, unit_price=50, discount=10, discount_type=DiscountType.PERCENTAGE)
    totals = calculate_totals([line], tax_type=TaxType.IGST, gst_rate=5)

    assert totals.lines[0].net == Decimal("4050.00")
    assert totals.sub_total_paise == 405000
    assert totals.product_level_discount_paise == 45000
    assert totals.igst_paise == 20250
    assert totals.cgst_paise == 0 and totals.sgst_paise == 0
    assert totals.as_decimal()["grand_total"] == Decimal("4252.50")


def test_cgst_sgst_split_matches_igst():
    lines = [LineInput(quantity=7, unit_price="13.37", discount="2.5")]
    igst = calculate_totals(lines, tax_type=TaxType.IGST, gst_rate=12)
    split = calculate_totals(lines, tax_type=TaxType.CGST_SGST, gst_rate=12)

    assert split.cgst_paise + split.sgst_paise == igst.igst_paise
    assert split.gst_amount_paise == igst.gst_amount_paise
    assert split.grand_total_paise == igst.grand_total_paise


def test_odd_paisa_goes_to_sgst():
    # 5% of 1.01 rounds to 5 paise
    totals = calculate_totals([LineInput(quantity=1, unit_price="1.01")], tax_type=TaxType.CGST_SGST, gst_rate=5)
    assert totals.gst_amount_paise == 5
    assert (totals.cgst_paise, totals.sgst_paise) == (2, 3)


def test_flat_line_discount_order_discount_and_shipping():
    lines = [
        LineInput(quantity=10, unit_price=100, discount=50, discount_type=DiscountType.AMOUNT),
        LineInput(quantity=3, unit_price="33.33"),
    ]
    totals = calculate_totals(
        lines,
        additional_discount=Adjustment(value=10, type=DiscountType.PERCENTAGE),
        shipping=Adjustment(value=100, type=DiscountType.AMOUNT),
        gst_rate=5,
    )
    assert totals.sub_total_paise == 95000 + 9999
    # 10% of 1049.99 rounds half-up to 105.00
    assert totals.additional_discount_paise == 10500
    assert totals.total_after_discount_paise == 94499
    assert totals.gst_amount_paise == 4725
    assert totals.shipping_amount_paise == 10000
    assert totals.grand_total_paise == 94499 + 4725 + 10000


def test_percentage_shipping_is_taken_on_discounted_total():
    totals = calculate_totals(
        [LineInput(quantity=2, unit_price=500)],
        additional_discount=Adjustment(value=100, type=DiscountType.AMOUNT),
        shipping=Adjustment(value=2, type=DiscountType.PERCENTAGE),
        gst_rate=0,
    )
    assert totals.total_after_discount_paise == 90000
    assert totals.shipping_amount_paise == 1800
    assert totals.grand_total_paise == 91800


def test_foc_equal_to_quantity_bills_nothing():
    line_totals = calculate_line(LineInput(quantity=5, foc=5, unit_price=40, discount=10))
    assert (line_totals.base_paise, line_totals.discount_paise, line_totals.net_paise) == (0, 0, 0)


def test_float_prices_accumulate_exactly():
    totals = calculate_totals([LineInput(quantity=1, unit_price=0.1) for _ in range(3)], gst_rate=0)
    assert totals.sub_total_paise == 30
    assert from_paise(totals.grand_total_paise) == Decimal("0.30")


def test_empty_order_is_all_zero():
    totals = calculate_totals([])
    assert set(totals.as_paise().values()) == {0}


@pytest.mark.parametrize("rupees, paise", [
    ("0.005", 1),
    ("0.004", 0),
    ("12.345", 1235),
    (Decimal("99.99"), 9999),
    (None, 0),
])
def test_to_paise_rounds_half_up(rupees, paise):
    assert to_paise(rupees) == paise


def test_percent_of_rounds_once():
    assert percent_of(405000, 5) == 20250
    assert percent_of(101, Decimal("5")) == 5
    assert percent_of(105, "2.5") == 3


def test_split_in_half_always_adds_back():
    for amount in (0, 1, 2, 5, 20251):
        first, second = split_in_half(amount)
        assert first + second == amount
        assert second - first in (0, 1)
