from medsupply.schemas.purchase_orders import PurchaseOrderCreate
from medsupply.utils.po_validation import validate_purchase_order


def _order(**overrides) -> PurchaseOrderCreate:
    data = {
        "principal_id": 1,
        "bill_to": {"branch_warehouse": "Chennai Branch", "name": "MedSupply Chennai"},
        "ship_to": {"branch_warehouse": "Chennai Warehouse"},
        "to_emails": ["orders@example.com"],
        "products": [{"product_id": 1, "quantity": 10, "unit_price": "25"}],
    }
    data.update(overrides)
    return PurchaseOrderCreate(**data)


def _fields(errors):
    return {error.field for error in errors}


def test_valid_order_has_no_errors():
    assert validate_purchase_order(_order()) == []


def test_empty_order_reports_every_missing_field():
    errors = validate_purchase_order(PurchaseOrderCreate())
    assert {
        "principal_id",
        "bill_to.branch_warehouse",
        "bill_to.name",
        "ship_to.branch_warehouse",
        "products",
        "to_emails",
    } <= _fields(errors)


def test_line_errors_are_indexed():
    errors = validate_purchase_order(_order(products=[
        {"product_id": 1, "quantity": 10, "unit_price": "25"},
        {"product_id": None, "quantity": 0, "unit_price": "0"},
    ]))
    assert _fields(errors) == {"products[1].product_id", "products[1].quantity", "products[1].unit_price"}


def test_foc_cannot_exceed_quantity():
    errors = validate_purchase_order(_order(products=[{"product_id": 1, "quantity": 5, "foc": 6, "unit_price": "10"}]))
    assert _fields(errors) == {"products[0].foc"}


def test_discount_limits():
    percentage = validate_purchase_order(_order(products=[
        {"product_id": 1, "quantity": 5, "unit_price": "10", "discount": "101", "discount_type": "percentage"},
    ]))
    flat = validate_purchase_order(_order(products=[
        {"product_id": 1, "quantity": 5, "foc": 1, "unit_price": "10", "discount": "40.01", "discount_type": "amount"},
    ]))
    negative = validate_purchase_order(_order(products=[
        {"product_id": 1, "quantity": 5, "unit_price": "10", "discount": "-1"},
    ]))
    assert _fields(percentage) == {"products[0].discount"}
    assert _fields(flat) == {"products[0].discount"}
    assert _fields(negative) == {"products[0].discount"}


def test_flat_discount_equal_to_line_amount_is_allowed():
    errors = validate_purchase_order(_order(products=[
        {"product_id": 1, "quantity": 5, "foc": 1, "unit_price": "10", "discount": "40", "discount_type": "amount"},
    ]))
    assert errors == []


def test_email_checks():
    errors = validate_purchase_order(_order(to_emails=["not-an-email"], cc_emails=["also-bad"]))
    assert _fields(errors) == {"to_emails", "cc_emails"}
    assert validate_purchase_order(_order(to_emails=["  "]))[0].field == "to_emails"


def test_order_level_adjustments():
    errors = validate_purchase_order(_order(
        gst_rate="120",
        additional_discount={"type": "percentage", "value": "150"},
        shipping_charges={"type": "amount", "value": "-5"},
    ))
    assert _fields(errors) == {"gst_rate", "additional_discount.value", "shipping_charges.value"}
