"""Purchase order form validation.

Collects every problem as a (field, message) pair instead of stopping at the
first one, so a client can highlight all offending inputs at once.
"""
from decimal import Decimal
from typing import List

from medsupply.utils.errors import FieldError
from medsupply.utils.money import to_paise
from medsupply.utils.po_totals import DiscountType


def _check_adjustment(errors: List[FieldError], field: str, label: str, adjustment) -> None:
    if adjustment is None:
        return
    value = Decimal(adjustment.value or 0)
    if value < 0:
        errors.append(FieldError(f"{field}.value", f"{label} cannot be negative"))
    elif DiscountType(adjustment.type) == DiscountType.PERCENTAGE and value > 100:
        errors.append(FieldError(f"{field}.value", f"{label} percentage cannot exceed 100"))


def validate_line(errors: List[FieldError], index: int, line) -> None:
    prefix = f"products[{index}]"
    if not line.product_id:
        errors.append(FieldError(f"{prefix}.product_id", "Product is required"))
    if line.quantity is None or line.quantity <= 0:
        errors.append(FieldError(f"{prefix}.quantity", "Quantity must be greater than 0"))
    if line.unit_price is None or Decimal(line.unit_price) <= 0:
        errors.append(FieldError(f"{prefix}.unit_price", "Unit price must be greater than 0"))
    foc = line.foc or 0
    if foc < 0:
        errors.append(FieldError(f"{prefix}.foc", "FOC cannot be negative"))
    elif line.quantity and foc > line.quantity:
        errors.append(FieldError(f"{prefix}.foc", "FOC cannot exceed quantity"))

    discount = Decimal(line.discount or 0)
    if discount < 0:
        errors.append(FieldError(f"{prefix}.discount", "Discount cannot be negative"))
    elif DiscountType(line.discount_type) == DiscountType.PERCENTAGE:
        if discount > 100:
            errors.append(FieldError(f"{prefix}.discount", "Discount percentage cannot exceed 100"))
    elif line.quantity and line.unit_price and 0 <= foc <= line.quantity:
        base = (line.quantity - foc) * to_paise(line.unit_price)
        if to_paise(discount) > base:
            errors.append(FieldError(f"{prefix}.discount", "Discount cannot exceed the line amount"))

    if line.gst_rate is not None and not (0 <= Decimal(line.gst_rate) <= 100):
        errors.append(FieldError(f"{prefix}.gst_rate", "GST rate must be between 0 and 100"))


def validate_purchase_order(po) -> List[FieldError]:
    """Validate a create payload (or a fully merged update)."""
    errors: List[FieldError] = []

    if not po.principal_id:
        errors.append(FieldError("principal_id", "Principal is required"))

    bill_to = po.bill_to
    if bill_to is None or not (bill_to.branch_warehouse or "").strip():
        errors.append(FieldError("bill_to.branch_warehouse", "Bill to branch/warehouse is required"))
    if bill_to is None or not (bill_to.name or "").strip():
        errors.append(FieldError("bill_to.name", "Bill to name is required"))
    ship_to = po.ship_to
    if ship_to is None or not (ship_to.branch_warehouse or "").strip():
        errors.append(FieldError("ship_to.branch_warehouse", "Ship to branch/warehouse is required"))

    products = po.products or []
    if not products:
        errors.append(FieldError("products", "At least one product is required"))
    for index, line in enumerate(products):
        validate_line(errors, index, line)

    if not [email for email in (po.to_emails or []) if email and email.strip()]:
        errors.append(FieldError("to_emails", "At least one recipient email is required"))
    for index, email in enumerate(list(po.to_emails or []) + list(po.cc_emails or [])):
        if email and "@" not in email:
            errors.append(FieldError("to_emails" if index < len(po.to_emails or []) else "cc_emails",
                                     f"Invalid email address: {email}"))

    if po.gst_rate is None or not (0 <= Decimal(po.gst_rate) <= 100):
        errors.append(FieldError("gst_rate", "GST rate must be between 0 and 100"))

    _check_adjustment(errors, "additional_discount", "Additional discount", po.additional_discount)
    _check_adjustment(errors, "shipping_charges", "Shipping charges", po.shipping_charges)

    return errors
