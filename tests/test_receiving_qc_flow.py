from datetime import date, timedelta
from decimal import Decimal

import pytest

from medsupply.crud.permissions import get_permissions_by_keys
from medsupply.crud.stage_permissions import assign_stage_permissions
from medsupply.models.users import User


def _receive(client, headers, po_id, lines, **extra):
    payload = {
        "purchase_order_id": po_id,
        "invoice_number": extra.pop("invoice_number", "INV-1001"),
        "invoice_date": date.today().isoformat(),
        "invoice_amount": "580",
        "products": lines,
    }
    payload.update(extra)
    return client.post("/invoice-receivings/", json=payload, headers=headers)


def _stage(client, headers, po_id):
    return client.get(f"/purchase-orders/{po_id}", headers=headers).json()["data"]["current_stage"]


@pytest.fixture
def received(client, admin, ordered_po, products, receipt_line):
    """An ordered PO received in full on one invoice; returns (po, receiving)."""
    po = ordered_po()
    response = _receive(client, admin, po["id"], [
        receipt_line(products[0].id, 10, "PARA-B1"),
        receipt_line(products[1].id, 4, "AMOX-B1"),
    ])
    assert response.status_code == 201, response.json()
    return po, response.json()["data"]


@pytest.fixture
def open_qc(client, admin, received):
    po, receiving = received
    response = client.post("/quality-control/", json={"invoice_receiving_id": receiving["id"], "priority": "high"},
                           headers=admin)
    assert response.status_code == 201, response.json()
    return po, response.json()["data"]


class TestInvoiceReceiving:
    def test_partial_then_full_receipt(self, client, admin, ordered_po, products, receipt_line):
        po = ordered_po()

        first = _receive(client, admin, po["id"], [receipt_line(products[0].id, 6)])
        assert first.status_code == 201
        assert first.json()["data"]["items"][0]["ordered_qty"] == 10
        assert _stage(client, admin, po["id"]) == "PARTIAL_RECEIVED"

        backlog = client.get(f"/purchase-orders/{po['id']}/backlog", headers=admin).json()["data"]
        assert {line["product_id"]: line["backlog_qty"] for line in backlog} == {
            products[0].id: 4,
            products[1].id: 4,
        }

        second = _receive(client, admin, po["id"], [
            receipt_line(products[0].id, 4),
            receipt_line(products[1].id, 4),
        ], invoice_number="INV-1002")
        assert second.status_code == 201
        assert _stage(client, admin, po["id"]) == "RECEIVED"
        assert client.get(f"/purchase-orders/{po['id']}/backlog", headers=admin).json()["data"] == []

    def test_single_full_receipt_moves_twice(self, client, admin, received):
        po, receiving = received
        detail = client.get(f"/purchase-orders/{po['id']}", headers=admin).json()["data"]

        assert detail["current_stage"] == "RECEIVED"
        assert [entry["action"] for entry in detail["history"]][-2:] == ["receive", "receive"]
        assert all(item["received_qty"] == item["quantity"] for item in detail["items"])
        assert receiving["status"] == "submitted"
        assert Decimal(receiving["items"][0]["unit_price"]) == Decimal("50")

    def test_cannot_receive_more_than_ordered(self, client, admin, ordered_po, products, receipt_line):
        po = ordered_po()
        _receive(client, admin, po["id"], [receipt_line(products[0].id, 8)])
        response = _receive(client, admin, po["id"], [receipt_line(products[0].id, 3)], invoice_number="INV-2")

        assert response.status_code == 422
        assert "exceeds ordered quantity" in response.json()["errors"][0]["message"]

    def test_line_date_checks(self, client, admin, ordered_po, products, receipt_line):
        po = ordered_po()
        response = _receive(client, admin, po["id"], [
            receipt_line(products[0].id, 1, mfg_date=date.today().isoformat(),
                         exp_date=(date.today() - timedelta(days=1)).isoformat()),
        ], invoice_date=(date.today() + timedelta(days=1)).isoformat())

        assert response.status_code == 422
        fields = {error["field"] for error in response.json()["errors"]}
        assert fields == {"invoice_date", "products[0].exp_date"}

    def test_product_must_be_on_the_order(self, client, admin, ordered_po, receipt_line):
        po = ordered_po()
        response = _receive(client, admin, po["id"], [receipt_line(9999, 1)])
        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "products[0].product_id"

    def test_draft_orders_cannot_receive(self, client, admin, create_po, products, receipt_line):
        po = create_po()
        response = _receive(client, admin, po["id"], [receipt_line(products[0].id, 1)])
        assert response.status_code == 409

    def test_backlog_lines_do_not_count_as_received(self, client, admin, ordered_po, products, receipt_line):
        po = ordered_po()
        response = _receive(client, admin, po["id"], [receipt_line(products[0].id, 10, status="backlog")])

        assert response.status_code == 201
        assert _stage(client, admin, po["id"]) == "ORDERED"

    def test_list_and_get(self, client, admin, received):
        po, receiving = received
        listed = client.get("/invoice-receivings/", params={"purchase_order_id": po["id"]}, headers=admin)
        assert [row["id"] for row in listed.json()["data"]["items"]] == [receiving["id"]]
        assert client.get(f"/invoice-receivings/{receiving['id']}", headers=admin).json()["data"]["invoice_number"] \
            == "INV-1001"
        assert client.get("/invoice-receivings/999", headers=admin).status_code == 404

    def test_stage_grant_covers_both_steps_of_a_full_receipt(self, client, db, admin, make_user, ordered_po,
                                                              products, receipt_line):
        clerk = make_user("clerk", ["invoice_receiving.create"])
        clerk_id = db.query(User).filter(User.username == "clerk").one().id
        assign_stage_permissions(db, clerk_id, "ORDERED", get_permissions_by_keys(db, ["po_receiving.receive"]), "admin")
        db.commit()

        partial = _receive(client, clerk, ordered_po()["id"], [receipt_line(products[0].id, 5)])
        assert partial.status_code == 201

        po = ordered_po()
        full = _receive(client, clerk, po["id"], [
            receipt_line(products[0].id, 10),
            receipt_line(products[1].id, 4),
        ], invoice_number="INV-FULL")
        assert full.status_code == 201, full.json()
        assert _stage(client, admin, po["id"]) == "RECEIVED"

    def test_receipt_pdf(self, client, admin, received):
        _, receiving = received
        response = client.get(f"/invoice-receivings/{receiving['id']}/pdf", headers=admin)
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")
        assert "GRN-INV-1001.pdf" in response.headers["content-disposition"]


class TestDraftReceiving:
    def test_draft_leaves_the_order_alone(self, client, admin, ordered_po, products, receipt_line):
        po = ordered_po()
        response = _receive(client, admin, po["id"], [receipt_line(products[0].id, 10)], save_as_draft=True)

        assert response.status_code == 201
        assert response.json()["message"] == "Invoice receiving saved as draft"
        assert response.json()["data"]["status"] == "draft"
        assert _stage(client, admin, po["id"]) == "ORDERED"
        backlog = client.get(f"/purchase-orders/{po['id']}/backlog", headers=admin).json()["data"]
        assert sum(line["backlog_qty"] for line in backlog) == 14

    def test_edit_then_submit(self, client, admin, ordered_po, products, receipt_line):
        po = ordered_po()
        draft = _receive(client, admin, po["id"], [receipt_line(products[0].id, 3)], save_as_draft=True).json()["data"]
        url = f"/invoice-receivings/{draft['id']}"

        edited = client.put(url, headers=admin, json={
            "invoice_number": "INV-1001-A",
            "notes": "Two cartons",
            "products": [receipt_line(products[0].id, 10), receipt_line(products[1].id, 4)],
        })
        assert edited.status_code == 200, edited.json()
        data = edited.json()["data"]
        assert data["invoice_number"] == "INV-1001-A"
        assert [item["received_qty"] for item in data["items"]] == [10, 4]

        too_many = client.put(url, json={"products": [receipt_line(products[0].id, 11)]}, headers=admin)
        assert too_many.status_code == 422

        submitted = client.post(f"{url}/submit", headers=admin)
        assert submitted.status_code == 200
        assert submitted.json()["data"]["status"] == "submitted"
        assert _stage(client, admin, po["id"]) == "RECEIVED"

        assert client.put(url, json={"notes": "late"}, headers=admin).status_code == 409
        assert client.post(f"{url}/submit", headers=admin).status_code == 409
        assert client.delete(url, headers=admin).status_code == 409

    def test_submit_rechecks_quantities(self, client, admin, ordered_po, products, receipt_line):
        po = ordered_po()
        draft = _receive(client, admin, po["id"], [receipt_line(products[0].id, 8)], save_as_draft=True).json()["data"]
        _receive(client, admin, po["id"], [receipt_line(products[0].id, 5)], invoice_number="INV-OTHER")

        response = client.post(f"/invoice-receivings/{draft['id']}/submit", headers=admin)
        assert response.status_code == 422

    def test_delete_draft(self, client, admin, ordered_po, products, receipt_line):
        po = ordered_po()
        draft = _receive(client, admin, po["id"], [receipt_line(products[0].id, 2)], save_as_draft=True).json()["data"]

        response = client.delete(f"/invoice-receivings/{draft['id']}", headers=admin)
        assert response.status_code == 200
        assert client.get(f"/invoice-receivings/{draft['id']}", headers=admin).status_code == 404

    def test_drafts_do_not_go_to_quality_control(self, client, admin, ordered_po, products, receipt_line):
        po = ordered_po()
        draft = _receive(client, admin, po["id"], [receipt_line(products[0].id, 2)], save_as_draft=True).json()["data"]
        response = client.post("/quality-control/", json={"invoice_receiving_id": draft["id"]}, headers=admin)
        assert response.status_code == 409


class TestQualityControl:
    def test_one_item_per_received_unit(self, client, admin, open_qc):
        po, qc = open_qc

        assert qc["qc_number"].startswith("QC-")
        assert qc["status"] == "pending"
        assert qc["priority"] == "high"
        assert [len(product["items"]) for product in qc["products"]] == [10, 4]
        assert _stage(client, admin, po["id"]) == "QC_PENDING"

    def test_only_one_qc_per_receiving(self, client, admin, open_qc, received):
        _, receiving = received
        response = client.post("/quality-control/", json={"invoice_receiving_id": receiving["id"]}, headers=admin)
        assert response.status_code == 409

    def test_failed_item_needs_a_reason(self, client, admin, open_qc):
        _, qc = open_qc
        item_id = qc["products"][0]["items"][0]["id"]
        response = client.patch(f"/quality-control/{qc['id']}/items/{item_id}", json={"status": "failed"},
                                headers=admin)
        assert response.status_code == 422

    def test_item_updates_roll_up(self, client, admin, open_qc):
        _, qc = open_qc
        product = qc["products"][1]
        response = client.patch(
            f"/quality-control/{qc['id']}/items/{product['items'][0]['id']}",
            json={"status": "failed", "reasons": ["damaged_packaging"], "remarks": "Crushed carton"},
            headers=admin,
        )
        data = response.json()["data"]
        assert data["status"] == "in_progress"
        assert data["products"][1]["overall_status"] == "in_progress"
        assert data["products"][1]["failed_qty"] == 1
        assert data["products"][1]["reason_summary"] == {"damaged_packaging": 1}
        assert data["overall_result"] == "pending"

    def test_unknown_item_is_404(self, client, admin, open_qc):
        _, qc = open_qc
        response = client.patch(f"/quality-control/{qc['id']}/items/99999", json={"status": "passed"}, headers=admin)
        assert response.status_code == 404

    def test_submit_requires_every_item_inspected(self, client, admin, open_qc):
        _, qc = open_qc
        client.patch(f"/quality-control/{qc['id']}/products/{qc['products'][0]['id']}/items",
                     json={"status": "passed"}, headers=admin)
        response = client.post(f"/quality-control/{qc['id']}/submit", json={}, headers=admin)

        assert response.status_code == 422
        assert "4 item(s)" in response.json()["errors"][0]["message"]

    def test_all_failed_sends_order_to_qc_failed(self, client, admin, open_qc):
        po, qc = open_qc
        for product in qc["products"]:
            client.patch(f"/quality-control/{qc['id']}/products/{product['id']}/items",
                         json={"status": "failed", "reasons": ["expired"]}, headers=admin)
        client.post(f"/quality-control/{qc['id']}/submit", json={}, headers=admin)
        response = client.post(f"/quality-control/{qc['id']}/approve", json={}, headers=admin)

        assert response.status_code == 200
        assert response.json()["message"] == "Quality control approved"
        assert response.json()["data"]["overall_result"] == "failed"
        assert _stage(client, admin, po["id"]) == "QC_FAILED"
        assert client.get("/warehouse-approvals/", headers=admin).json()["data"]["items"] == []

    def test_reject_needs_remarks_and_fails_the_order(self, client, admin, open_qc):
        po, qc = open_qc
        for product in qc["products"]:
            client.patch(f"/quality-control/{qc['id']}/products/{product['id']}/items",
                         json={"status": "passed"}, headers=admin)
        client.post(f"/quality-control/{qc['id']}/submit", json={}, headers=admin)

        assert client.post(f"/quality-control/{qc['id']}/reject", json={}, headers=admin).status_code == 422
        response = client.post(f"/quality-control/{qc['id']}/reject", json={"remarks": "Cold chain broken"},
                               headers=admin)
        assert response.json()["data"]["status"] == "rejected"
        assert _stage(client, admin, po["id"]) == "QC_FAILED"
        receiving = client.get(f"/invoice-receivings/{qc['invoice_receiving_id']}", headers=admin).json()["data"]
        assert receiving["status"] == "rejected"

    def test_approval_needs_permission(self, client, make_user, open_qc):
        _, qc = open_qc
        inspector = make_user("inspector", ["quality_control.view", "quality_control.update"])
        assert client.post(f"/quality-control/{qc['id']}/approve", json={}, headers=inspector).status_code == 403

    def test_dashboard_and_filters(self, client, admin, open_qc):
        po, qc = open_qc
        dashboard = client.get("/quality-control/dashboard", headers=admin).json()["data"]
        assert dashboard["total"] == 1
        assert dashboard["by_status"] == {"pending": 1}

        listed = client.get("/quality-control/", params={"priority": "high", "purchase_order_id": po["id"]},
                            headers=admin).json()["data"]["items"]
        assert [row["id"] for row in listed] == [qc["id"]]

    def test_bulk_assign_and_workload(self, client, admin, make_user, open_qc):
        _, qc = open_qc
        inspector = make_user("inspector", ["quality_control.view", "quality_control.update"])
        body = {"ids": [qc["id"], 99999], "assigned_to": "meena", "priority": "urgent"}
        assert client.post("/quality-control/assign", json=body, headers=inspector).status_code == 403

        response = client.post("/quality-control/assign", json=body, headers=admin)
        assert response.status_code == 200
        assert response.json()["data"] == {"requested": 2, "modified": 1, "modified_ids": [qc["id"]],
                                           "skipped_ids": [99999]}

        workload = client.get("/quality-control/workload", headers=admin).json()["data"]
        assert workload == [{"assigned_to": "meena", "total": 1, "pending": 1, "in_progress": 0,
                             "high_priority": 0, "urgent": 1}]

    def test_unassigned_inspections_are_grouped(self, client, admin, open_qc):
        workload = client.get("/quality-control/workload", headers=admin).json()["data"]
        assert [row["assigned_to"] for row in workload] == ["Unassigned"]
        assert workload[0]["high_priority"] == 1

    def test_statistics(self, client, admin, open_qc):
        _, qc = open_qc
        for product in qc["products"]:
            client.patch(f"/quality-control/{qc['id']}/products/{product['id']}/items",
                         json={"status": "failed", "reasons": ["expired"]}, headers=admin)
        client.post(f"/quality-control/{qc['id']}/submit", json={}, headers=admin)
        client.post(f"/quality-control/{qc['id']}/approve", json={}, headers=admin)

        stats = client.get("/quality-control/statistics", headers=admin).json()["data"]
        assert stats["total"] == 1
        assert stats["by_status"] == {"completed": 1}
        assert stats["by_result"] == {"failed": 1}
        assert stats["by_type"] == {"standard": 1}
        assert stats["processing_hours"]["completed"] == 1
        assert stats["processing_hours"]["average"] >= 0

        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        later = client.get("/quality-control/statistics", params={"date_from": tomorrow}, headers=admin)
        assert later.json()["data"]["total"] == 0
        assert later.json()["data"]["processing_hours"]["average"] is None
        # assigning a closed inspection is a no-op
        closed = client.post("/quality-control/assign", json={"ids": [qc["id"]], "assigned_to": "meena"},
                             headers=admin)
        assert closed.json()["data"]["modified"] == 0


def test_order_to_stock_end_to_end(client, db, admin, make_user, open_qc, products, warehouse):
    po, qc = open_qc
    para, amox = qc["products"]

    # QC: every paracetamol unit passes, one amoxicillin unit fails
    client.patch(f"/quality-control/{qc['id']}/items/{amox['items'][0]['id']}",
                 json={"status": "failed", "reasons": ["damaged_product"]}, headers=admin)
    for product in (para, amox):
        client.patch(f"/quality-control/{qc['id']}/products/{product['id']}/items",
                     json={"status": "passed"}, headers=admin)
    submitted = client.post(f"/quality-control/{qc['id']}/submit", json={"remarks": "Done"}, headers=admin)
    assert submitted.json()["data"]["overall_result"] == "partial_pass"

    approved = client.post(f"/quality-control/{qc['id']}/approve", json={"remarks": "OK"}, headers=admin)
    assert approved.status_code == 200
    assert "warehouse approval WA-" in approved.json()["message"]
    assert _stage(client, admin, po["id"]) == "QC_PASSED"

    approvals = client.get("/warehouse-approvals/", params={"purchase_order_id": po["id"]}, headers=admin)
    approval = approvals.json()["data"]["items"][0]
    assert approval["warehouse_id"] == warehouse.id
    approval = client.get(f"/warehouse-approvals/{approval['id']}", headers=admin).json()["data"]
    wa_para, wa_amox = approval["products"]
    assert (wa_para["qc_passed_qty"], wa_amox["qc_passed_qty"]) == (10, 3)

    url = f"/warehouse-approvals/{approval['id']}"
    no_zone = client.patch(f"{url}/products/{wa_para['id']}", json={"status": "approved"}, headers=admin)
    assert no_zone.status_code == 422
    client.patch(f"{url}/products/{wa_para['id']}", json={"status": "approved", "zone": "A", "rack": "R1"},
                 headers=admin)

    early = client.post(f"{url}/submit", json={}, headers=admin)
    assert early.status_code == 422

    too_many = client.patch(f"{url}/products/{wa_amox['id']}", headers=admin, json={
        "status": "partial_approved", "approved_qty": 3, "zone": "A", "rejection_reason": "Short expiry",
    })
    assert too_many.status_code == 422
    decided = client.patch(f"{url}/products/{wa_amox['id']}", headers=admin, json={
        "status": "partial_approved", "approved_qty": 2, "zone": "A", "rejection_reason": "Short expiry",
    })
    assert decided.json()["data"]["overall_result"] == "partial_approved"
    assert decided.json()["data"]["status"] == "in_progress"

    assert client.post(f"{url}/submit", json={}, headers=admin).json()["data"]["status"] == \
        "pending_manager_approval"

    supervisor = make_user("supervisor", ["warehouse_approval.view", "warehouse_approval.manager_reject"])
    denied = client.post(f"{url}/manager-decision", json={"action": "approve"}, headers=supervisor)
    assert denied.status_code == 403

    final = client.post(f"{url}/manager-decision", json={"action": "approve", "remarks": "Stock it"},
                        headers=admin).json()["data"]
    assert final["status"] == "completed"
    assert final["inventory_status"] == "completed"
    assert final["manager_approvals"][0]["approved_by"] == "admin"

    stock = client.get("/inventory/", params={"warehouse_id": warehouse.id}, headers=admin).json()["data"]["items"]
    by_product = {row["product_id"]: row for row in stock}
    assert by_product[products[0].id]["current_stock"] == 10
    assert by_product[products[0].id]["zone"] == "A"
    assert by_product[products[0].id]["batch_no"] == "PARA-B1"
    assert Decimal(by_product[products[0].id]["total_value"]) == Decimal("500")
    assert by_product[products[1].id]["available_stock"] == 2
    assert by_product[products[1].id]["warehouse_approval_id"] == approval["id"]

    movements = client.get(f"/inventory/{by_product[products[0].id]['id']}/movements", headers=admin)
    movement = movements.json()["data"]["items"][0]
    assert (movement["movement_type"], movement["quantity"], movement["reference_number"]) == \
        ("inward", 10, approval["approval_number"])

    completed = client.post(f"/purchase-orders/{po['id']}/actions", json={"action": "complete"}, headers=admin)
    assert completed.json()["data"]["current_stage"] == "COMPLETED"
    assert completed.json()["data"]["status"] == "completed"


def test_manager_rejection_adds_no_stock(client, admin, open_qc, warehouse):
    _, qc = open_qc
    for product in qc["products"]:
        client.patch(f"/quality-control/{qc['id']}/products/{product['id']}/items",
                     json={"status": "passed"}, headers=admin)
    client.post(f"/quality-control/{qc['id']}/submit", json={}, headers=admin)
    client.post(f"/quality-control/{qc['id']}/approve", json={}, headers=admin)

    approval = client.get("/warehouse-approvals/", headers=admin).json()["data"]["items"][0]
    url = f"/warehouse-approvals/{approval['id']}"
    assigned = client.patch(url, json={"assigned_to": "ravi", "storage_condition": "Cool and dry"}, headers=admin)
    assert assigned.json()["data"]["assigned_to"] == "ravi"
    detail = assigned.json()["data"]
    for product in detail["products"]:
        client.patch(f"{url}/products/{product['id']}", json={"status": "rejected", "rejection_reason": "No space"},
                     headers=admin)
    client.post(f"{url}/submit", json={}, headers=admin)

    assert client.post(f"{url}/manager-decision", json={"action": "reject"}, headers=admin).status_code == 422
    response = client.post(f"{url}/manager-decision", json={"action": "reject", "remarks": "Return to vendor"},
                           headers=admin)
    assert response.json()["data"]["status"] == "rejected"
    assert client.get("/inventory/", headers=admin).json()["data"]["items"] == []
    assert client.patch(url, json={"remarks": "Too late"}, headers=admin).status_code == 409


def test_qc_approval_without_default_warehouse_fails(client, admin, open_qc):
    _, qc = open_qc
    for product in qc["products"]:
        client.patch(f"/quality-control/{qc['id']}/products/{product['id']}/items",
                     json={"status": "passed"}, headers=admin)
    client.post(f"/quality-control/{qc['id']}/submit", json={}, headers=admin)

    response = client.post(f"/quality-control/{qc['id']}/approve", json={}, headers=admin)
    assert response.status_code == 422
    assert response.json()["errors"][0]["field"] == "warehouse_id"


@pytest.fixture
def open_approval(client, admin, open_qc, warehouse):
    _, qc = open_qc
    for product in qc["products"]:
        client.patch(f"/quality-control/{qc['id']}/products/{product['id']}/items",
                     json={"status": "passed"}, headers=admin)
    client.post(f"/quality-control/{qc['id']}/submit", json={}, headers=admin)
    client.post(f"/quality-control/{qc['id']}/approve", json={}, headers=admin)
    approval = client.get("/warehouse-approvals/", headers=admin).json()["data"]["items"][0]
    return client.get(f"/warehouse-approvals/{approval['id']}", headers=admin).json()["data"]


def test_warehouse_assignment_workload_and_dashboard(client, admin, open_approval):
    assigned = client.post("/warehouse-approvals/assign", headers=admin,
                           json={"ids": [open_approval["id"]], "assigned_to": "ravi", "priority": "high"})
    assert assigned.json()["data"]["modified"] == 1

    workload = client.get("/warehouse-approvals/workload", headers=admin).json()["data"]
    assert [(row["assigned_to"], row["pending"], row["high_priority"]) for row in workload] == [("ravi", 1, 1)]

    dashboard = client.get("/warehouse-approvals/dashboard", params={"days": 7}, headers=admin).json()["data"]
    assert dashboard["total"] == 1
    assert dashboard["open"] == 1
    assert dashboard["products"] == {"lines": 2, "qc_passed_qty": 14, "approved_qty": 0, "rejected_qty": 0}
    assert [row["approval_number"] for row in dashboard["recent"]] == [open_approval["approval_number"]]


def test_warehouse_statistics_count_completed_turnaround(client, admin, open_approval):
    url = f"/warehouse-approvals/{open_approval['id']}"
    for product in open_approval["products"]:
        client.patch(f"{url}/products/{product['id']}", json={"status": "approved", "zone": "A"}, headers=admin)
    client.post(f"{url}/submit", json={}, headers=admin)
    client.post(f"{url}/manager-decision", json={"action": "approve"}, headers=admin)

    stats = client.get("/warehouse-approvals/statistics", headers=admin).json()["data"]
    assert stats["by_status"] == {"completed": 1}
    assert stats["by_result"] == {"approved": 1}
    assert stats["processing_hours"]["completed"] == 1
    assert stats["by_type"] is None
    assert client.get("/warehouse-approvals/workload", headers=admin).json()["data"] == []
