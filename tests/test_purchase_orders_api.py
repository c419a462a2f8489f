import warnings
from datetime import date
from decimal import Decimal

from medsupply.models.principals import Principal
from medsupply.models.purchase_order_items import PurchaseOrderItem
from medsupply.models.purchase_orders import PurchaseOrder
from medsupply.utils.pdf_utils import generate_purchase_order_pdf


def _action(client, headers, po_id, action, remarks=None):
    return client.post(f"/purchase-orders/{po_id}/actions", json={"action": action, "remarks": remarks},
                       headers=headers)


class TestCreate:
    def test_create_computes_totals_and_starts_in_draft(self, client, admin, po_payload):
        response = client.post("/purchase-orders/", json=po_payload(), headers=admin)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        po = body["data"]
        assert po["po_number"] == f"PO-{date.today():%Y%m}-0001"
        assert po["current_stage"] == "DRAFT"
        assert po["status"] == "draft"
        assert po["principal_name"] == "Sun Pharma"
        assert Decimal(po["sub_total"]) == Decimal("4050")
        assert Decimal(po["igst"]) == Decimal("202.50")
        assert Decimal(po["grand_total"]) == Decimal("4252.50")
        assert po["items"][0]["product_name"] == "Paracetamol 500mg"
        assert Decimal(po["items"][0]["total_cost"]) == Decimal("4050")
        assert po["items"][0]["backlog_qty"] == 100
        assert [entry["action"] for entry in po["history"]] == ["created"]

    def test_numbers_are_sequential(self, create_po):
        first = create_po()
        second = create_po()
        assert int(second["po_number"].rsplit("-", 1)[1]) == int(first["po_number"].rsplit("-", 1)[1]) + 1

    def test_line_gst_defaults_to_product_rate(self, create_po):
        po = create_po()
        assert Decimal(po["items"][0]["gst_rate"]) == Decimal("12")
        assert po["items"][0]["unit"] == "BOX"

    def test_stored_line_gst_defaults_to_five_percent(self, db, create_po, products):
        po = create_po()
        item = PurchaseOrderItem(purchase_order_id=po["id"], product_id=products[1].id,
                                 product_name=products[1].name, quantity=1, unit_price_paise=1000)
        db.add(item)
        db.flush()
        assert item.gst_rate == Decimal("5")

    def test_requires_token(self, client, po_payload):
        response = client.post("/purchase-orders/", json=po_payload())
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_rejects_unknown_user(self, client, po_payload, token_headers):
        response = client.post("/purchase-orders/", json=po_payload(), headers=token_headers("ghost"))
        assert response.status_code == 401

    def test_requires_create_permission(self, client, make_user, po_payload):
        viewer = make_user("viewer", ["purchase_orders.view"])
        response = client.post("/purchase-orders/", json=po_payload(), headers=viewer)

        assert response.status_code == 403
        assert response.json() == {
            "success": False,
            "message": "Permission denied: purchase_orders.create required",
            "errors": [],
            "data": None,
        }

    def test_collects_every_validation_error(self, client, admin, po_payload):
        response = client.post("/purchase-orders/", headers=admin, json=po_payload(
            bill_to={"branch_warehouse": ""},
            to_emails=[],
            products=[{"product_id": None, "quantity": 0, "unit_price": "0"}],
        ))

        assert response.status_code == 422
        fields = {error["field"] for error in response.json()["errors"]}
        assert {"bill_to.branch_warehouse", "bill_to.name", "to_emails", "products[0].product_id",
                "products[0].quantity", "products[0].unit_price"} <= fields

    def test_malformed_body_is_flattened(self, client, admin, po_payload):
        payload = po_payload()
        payload["products"][0]["quantity"] = "lots"
        response = client.post("/purchase-orders/", json=payload, headers=admin)

        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "products.0.quantity"

    def test_inactive_principal_is_rejected(self, client, db, admin, po_payload, principal):
        principal.is_active = False
        db.commit()
        response = client.post("/purchase-orders/", json=po_payload(), headers=admin)

        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "principal_id"

    def test_unknown_product_is_rejected(self, client, admin, po_payload):
        response = client.post("/purchase-orders/", headers=admin, json=po_payload(
            products=[{"product_id": 9999, "quantity": 1, "unit_price": "10"}],
        ))
        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "products[0].product_id"

    def test_additional_discount_cannot_exceed_subtotal(self, client, admin, po_payload):
        response = client.post("/purchase-orders/", headers=admin, json=po_payload(
            additional_discount={"type": "amount", "value": "5000"},
        ))
        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "additional_discount.value"


def test_calculate_totals_preview(client, admin, po_payload):
    response = client.post("/purchase-orders/calculate-totals", headers=admin,
                           json=po_payload(tax_type="CGST_SGST"))

    assert response.status_code == 200
    data = response.json()["data"]
    assert Decimal(data["cgst"]) + Decimal(data["sgst"]) == Decimal("202.50")
    assert Decimal(data["grand_total"]) == Decimal("4252.50")
    assert [Decimal(value) for value in data["line_totals"]] == [Decimal("4050")]


class TestListAndRead:
    def test_list_filters_and_paginates(self, client, admin, create_po):
        first = create_po()
        create_po(bill_to={"branch_warehouse": "Madurai", "name": "Madurai Depot"})
        create_po()
        _action(client, admin, first["id"], "approve")

        response = client.get("/purchase-orders/", params={"page": 1, "limit": 2}, headers=admin)
        data = response.json()["data"]
        assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
        assert len(data["items"]) == 2

        by_status = client.get("/purchase-orders/", params={"status": "pending_approval"}, headers=admin)
        assert [po["id"] for po in by_status.json()["data"]["items"]] == [first["id"]]

        by_search = client.get("/purchase-orders/", params={"search": "madurai"}, headers=admin)
        assert [po["bill_to_name"] for po in by_search.json()["data"]["items"]] == ["Madurai Depot"]

        by_date = client.get("/purchase-orders/", params={"from_date": "2000-01-01", "to_date": "2000-12-31"},
                             headers=admin)
        assert by_date.json()["data"]["items"] == []

    def test_missing_order_is_404(self, client, admin):
        response = client.get("/purchase-orders/12345", headers=admin)
        assert response.status_code == 404
        assert response.json()["message"] == "Purchase Order not found"


class TestUpdate:
    def test_update_recomputes_totals_and_records_changes(self, client, admin, create_po, products):
        po = create_po()
        response = client.patch(f"/purchase-orders/{po['id']}", headers=admin, json={
            "notes": "Deliver before Diwali",
            "products": [{"product_id": products[1].id, "quantity": 10, "unit_price": "100"}],
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["notes"] == "Deliver before Diwali"
        assert [item["product_id"] for item in data["items"]] == [products[1].id]
        assert Decimal(data["grand_total"]) == Decimal("1050.00")
        assert data["history"][-1]["action"] == "updated"
        assert "grand_total_paise" in data["history"][-1]["changes"]

    def test_null_clears_optional_text(self, client, admin, create_po):
        po = create_po(notes="urgent", terms="Net 30")
        response = client.patch(f"/purchase-orders/{po['id']}", headers=admin, json={"notes": None})

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["notes"] is None
        assert data["terms"] == "Net 30"

    def test_omitted_fields_are_left_alone(self, client, admin, create_po):
        po = create_po(notes="urgent")
        response = client.patch(f"/purchase-orders/{po['id']}", headers=admin, json={"tax_type": "CGST_SGST"})
        assert response.json()["data"]["notes"] == "urgent"

    def test_header_only_update_keeps_lines(self, client, admin, create_po):
        po = create_po()
        response = client.patch(f"/purchase-orders/{po['id']}", headers=admin, json={"tax_type": "CGST_SGST"})

        data = response.json()["data"]
        assert len(data["items"]) == 1
        assert Decimal(data["igst"]) == 0
        assert Decimal(data["cgst"]) + Decimal(data["sgst"]) == Decimal("202.50")

    def test_cannot_edit_outside_edit_stages(self, client, admin, create_po):
        po = create_po()
        _action(client, admin, po["id"], "approve")
        response = client.patch(f"/purchase-orders/{po['id']}", headers=admin, json={"notes": "late change"})
        assert response.status_code == 409

    def test_edit_needs_update_permission(self, client, make_user, create_po):
        po = create_po()
        clerk = make_user("clerk", ["purchase_orders.view", "purchase_orders.create"])
        response = client.patch(f"/purchase-orders/{po['id']}", headers=clerk, json={"notes": "x"})
        assert response.status_code == 403


class TestDelete:
    def test_draft_is_soft_deleted(self, client, db, admin, create_po):
        po = create_po()
        response = client.delete(f"/purchase-orders/{po['id']}", headers=admin)

        assert response.status_code == 200
        assert client.get(f"/purchase-orders/{po['id']}", headers=admin).status_code == 404
        row = db.query(PurchaseOrder).filter(PurchaseOrder.id == po["id"]) \
            .execution_options(include_deleted=True).one()
        assert row.deleted_by == "admin"
        # Numbers of deleted orders are not reused
        assert create_po()["po_number"].endswith("-0002")

    def test_only_drafts_can_be_deleted(self, client, admin, create_po):
        po = create_po()
        _action(client, admin, po["id"], "approve")
        assert client.delete(f"/purchase-orders/{po['id']}", headers=admin).status_code == 409


class TestWorkflow:
    def test_approval_chain_to_ordered(self, client, admin, create_po):
        po = create_po()
        stages = []
        for _ in range(4):
            response = _action(client, admin, po["id"], "approve")
            assert response.status_code == 200
            stages.append(response.json()["data"]["current_stage"])

        assert stages == ["PENDING_APPROVAL", "APPROVED_L1", "APPROVED_FINAL", "ORDERED"]
        data = response.json()["data"]
        assert data["status"] == "ordered"
        assert data["approved_by"] == "admin"
        assert data["approved_date"] is not None

    def test_reject_requires_remarks_and_reads_rejected(self, client, admin, create_po):
        po = create_po()
        _action(client, admin, po["id"], "approve")

        missing = _action(client, admin, po["id"], "reject")
        assert missing.status_code == 422
        assert missing.json()["errors"][0]["field"] == "remarks"

        response = _action(client, admin, po["id"], "reject", "Prices too high")
        data = response.json()["data"]
        assert (data["current_stage"], data["status"]) == ("CANCELLED", "rejected")
        assert data["history"][-1]["remarks"] == "Prices too high"
        assert data["history"][-1]["changes"]["from_stage"] == "PENDING_APPROVAL"

    def test_return_goes_back_one_level(self, client, admin, create_po):
        po = create_po()
        _action(client, admin, po["id"], "approve")
        _action(client, admin, po["id"], "approve")
        response = _action(client, admin, po["id"], "return", "Check quantities")
        assert response.json()["data"]["current_stage"] == "PENDING_APPROVAL"

    def test_unlisted_and_unknown_actions_are_refused(self, client, admin, create_po):
        po = create_po()
        assert _action(client, admin, po["id"], "complete").status_code == 400
        assert _action(client, admin, po["id"], "teleport").status_code == 400
        assert _action(client, admin, po["id"], "edit").status_code == 400
        assert _action(client, admin, po["id"], "receive").status_code == 400

    def test_action_needs_table_permission(self, client, admin, make_user, create_po):
        po = create_po()
        _action(client, admin, po["id"], "approve")
        level2 = make_user("level2", ["purchase_orders.view", "po_workflow.approve_level2"])

        response = _action(client, level2, po["id"], "approve")
        assert response.status_code == 403
        assert "po_workflow.approve_level1" in response.json()["message"]

    def test_terminal_stage_accepts_nothing(self, client, admin, create_po):
        po = create_po()
        _action(client, admin, po["id"], "cancel", "Duplicate order")
        assert _action(client, admin, po["id"], "approve").status_code == 400

    def test_validate_action_is_a_dry_run(self, client, admin, make_user, create_po):
        po = create_po()
        viewer = make_user("viewer", ["purchase_orders.view"])

        denied = client.post(f"/purchase-orders/{po['id']}/validate-action", json={"action": "approve"},
                             headers=viewer).json()["data"]
        assert denied["is_valid"] is False
        assert denied["next_stage"] == "PENDING_APPROVAL"
        assert denied["required_permission"] == "purchase_orders.create"

        allowed = client.post(f"/purchase-orders/{po['id']}/validate-action", json={"action": "approve"},
                              headers=admin).json()["data"]
        assert allowed["is_valid"] is True
        assert client.get(f"/purchase-orders/{po['id']}", headers=admin).json()["data"]["current_stage"] == "DRAFT"

    def test_available_actions_depend_on_caller(self, client, admin, make_user, create_po):
        po = create_po()
        clerk = make_user("clerk", ["purchase_orders.view", "purchase_orders.update"])

        assert client.get(f"/purchase-orders/{po['id']}/available-actions", headers=admin).json()["data"] == \
            ["edit", "approve", "cancel"]
        assert client.get(f"/purchase-orders/{po['id']}/available-actions", headers=clerk).json()["data"] == ["edit"]

    def test_history_is_newest_first(self, client, admin, create_po):
        po = create_po()
        _action(client, admin, po["id"], "approve")
        response = client.get(f"/purchase-orders/{po['id']}/history", headers=admin)

        items = response.json()["data"]["items"]
        assert [entry["action"] for entry in items] == ["approve", "created"]
        assert items[0]["action_by"] == "admin"


class TestDocuments:
    def test_csv_export(self, client, admin, create_po):
        po = create_po()
        response = client.get("/purchase-orders/export", params={"format": "csv"}, headers=admin)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.splitlines()
        assert lines[0].startswith('"PO Number","PO Date","Principal"')
        assert lines[1].startswith(f'"{po["po_number"]}"')
        assert '"4252.50"' in lines[1]

    def test_xlsx_export(self, client, admin, create_po):
        create_po()
        response = client.get("/purchase-orders/export", params={"format": "xlsx"}, headers=admin)
        assert response.status_code == 200
        assert response.content[:2] == b"PK"

    def test_export_needs_permission(self, client, make_user):
        viewer = make_user("viewer", ["purchase_orders.view"])
        assert client.get("/purchase-orders/export", headers=viewer).status_code == 403

    def test_pdf(self, client, admin, create_po):
        po = create_po(terms="Payment within 30 days")
        response = client.get(f"/purchase-orders/{po['id']}/pdf", headers=admin)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    def test_pdf_uses_current_layout_api(self, db, create_po):
        po = create_po(notes="Keep refrigerated", terms="Payment within 30 days")
        db_po = db.query(PurchaseOrder).filter(PurchaseOrder.id == po["id"]).one()
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            content = generate_purchase_order_pdf(db_po)
        assert content.startswith(b"%PDF")


def test_soft_deleted_orders_still_block_principal_removal(client, db, admin, create_po):
    # No products belong to this principal, so only the deleted order refers to it
    distributor = Principal(name="Cipla Distributors", created_by="tests")
    db.add(distributor)
    db.commit()
    po = create_po(principal_id=distributor.id)
    assert client.delete(f"/purchase-orders/{po['id']}", headers=admin).status_code == 200

    response = client.delete(f"/principals/{distributor.id}", headers=admin)
    assert response.status_code == 409
    db.expire_all()
    assert db.query(Principal).filter(Principal.id == distributor.id).one().is_active is False
