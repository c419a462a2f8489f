"""Purchase order total and tax calculator.

Pure functions only: no database access and no request objects. The routers
and crud layer feed line data in and persist the returned paise figures.
"""
import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from medsupply.utils.money import Number, from_paise, percent_of, split_in_half, to_decimal, to_paise

DEFAULT_GST_RATE = Decimal(5)


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    AMOUNT = "amount"


class TaxType(str, enum.Enum):
    IGST = "IGST"
    CGST_SGST = "CGST_SGST"


@dataclass(frozen=True)
class LineInput:
    quantity: int
    unit_price: Number
    foc: int = 0
    discount: Number = 0
    discount_type: DiscountType = DiscountType.PERCENTAGE


@dataclass(frozen=True)
class Adjustment:
    """An order-level discount or shipping charge: a percentage or a flat amount."""
    value: Number = 0
    type: DiscountType = DiscountType.AMOUNT


@dataclass
class LineTotals:
    base_paise: int
    discount_paise: int
    net_paise: int

    @property
    def net(self) -> Decimal:
        return from_paise(self.net_paise)


@dataclass
class POTotals:
    lines: List[LineTotals] = field(default_factory=list)
    sub_total_paise: int = 0
    product_level_discount_paise: int = 0
    additional_discount_paise: int = 0
    total_after_discount_paise: int = 0
    cgst_paise: int = 0
    sgst_paise: int = 0
    igst_paise: int = 0
    gst_amount_paise: int = 0
    shipping_amount_paise: int = 0
    grand_total_paise: int = 0

    def as_paise(self) -> Dict[str, int]:
        return {
            "sub_total_paise": self.sub_total_paise,
            "product_level_discount_paise": self.product_level_discount_paise,
            "additional_discount_paise": self.additional_discount_paise,
            "total_after_discount_paise": self.total_after_discount_paise,
            "cgst_paise": self.cgst_paise,
            "sgst_paise": self.sgst_paise,
            "igst_paise": self.igst_paise,
            "gst_amount_paise": self.gst_amount_paise,
            "shipping_amount_paise": self.shipping_amount_paise,
            "grand_total_paise": self.grand_total_paise,
        }

    def as_decimal(self) -> Dict[str, Decimal]:
        return {key[:-len("_paise")]: from_paise(value) for key, value in self.as_paise().items()}


def _apply(base_paise: int, value: Number, kind: DiscountType) -> int:
    if DiscountType(kind) == DiscountType.PERCENTAGE:
        return percent_of(base_paise, value)
    return to_paise(value)


def calculate_line(line: LineInput) -> LineTotals:
    """(quantity - foc) x unit price, less the line discount."""
    billable = int(line.quantity) - int(line.foc or 0)
    base = billable * to_paise(line.unit_price)
    discount = _apply(base, line.discount or 0, line.discount_type)
    return LineTotals(base_paise=base, discount_paise=discount, net_paise=base - discount)


def calculate_totals(
    lines: Iterable[LineInput],
    additional_discount: Optional[Adjustment] = None,
    shipping: Optional[Adjustment] = None,
    tax_type: TaxType = TaxType.IGST,
    gst_rate: Number = DEFAULT_GST_RATE,
) -> POTotals:
    """Compute every stored figure of a purchase order.

    GST is computed once on the post-discount total and, for CGST_SGST, split
    into two halves so that CGST + SGST equals the IGST figure exactly.
    """
    totals = POTotals()
    for line in lines:
        line_totals = calculate_line(line)
        totals.lines.append(line_totals)
        totals.sub_total_paise += line_totals.net_paise
        totals.product_level_discount_paise += line_totals.discount_paise

    if additional_discount is not None:
        totals.additional_discount_paise = _apply(
            totals.sub_total_paise, additional_discount.value or 0, additional_discount.type
        )
    totals.total_after_discount_paise = totals.sub_total_paise - totals.additional_discount_paise

    gst = percent_of(totals.total_after_discount_paise, to_decimal(gst_rate))
    totals.gst_amount_paise = gst
    if TaxType(tax_type) == TaxType.CGST_SGST:
        totals.cgst_paise, totals.sgst_paise = split_in_half(gst)
    else:
        totals.igst_paise = gst

    if shipping is not None:
        totals.shipping_amount_paise = _apply(
            totals.total_after_discount_paise, shipping.value or 0, shipping.type
        )

    totals.grand_total_paise = (
        totals.total_after_discount_paise + totals.gst_amount_paise + totals.shipping_amount_paise
    )
    return totals
