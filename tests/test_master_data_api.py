from datetime import date, timedelta

import pytest

from medsupply.crud import inventory as crud_inventory
from medsupply.crud.audit_log import get_audit_logs
from medsupply.models.products import Product


class TestPortfolios:
    def test_crud_cycle(self, client, db, admin):
        created = client.post("/portfolios/", json={"name": "Cardiology", "description": "Heart care"}, headers=admin)
        assert created.status_code == 201
        portfolio_id = created.json()["data"]["id"]

        updated = client.patch(f"/portfolios/{portfolio_id}", json={"description": "Cardiac care"}, headers=admin)
        assert updated.json()["data"]["description"] == "Cardiac care"
        assert updated.json()["data"]["name"] == "Cardiology"

        deleted = client.delete(f"/portfolios/{portfolio_id}", headers=admin)
        assert deleted.json() == {"success": True, "message": "Portfolio deleted successfully",
                                  "data": {"id": portfolio_id}}
        assert client.get(f"/portfolios/{portfolio_id}", headers=admin).status_code == 404

        assert [log.action for log in get_audit_logs(db, "portfolios", portfolio_id)] == ["CREATE", "UPDATE", "DELETE"]

    def test_duplicate_name(self, client, admin):
        client.post("/portfolios/", json={"name": "Neurology"}, headers=admin)
        response = client.post("/portfolios/", json={"name": "Neurology"}, headers=admin)
        assert response.status_code == 422
        assert response.json()["errors"] == [{"field": "name", "message": "Neurology already exists"}]

    def test_portfolio_in_use_is_deactivated(self, client, admin):
        portfolio_id = client.post("/portfolios/", json={"name": "Diabetes"}, headers=admin).json()["data"]["id"]
        client.post("/doctors/", json={"name": "Dr. Meena", "portfolio_id": portfolio_id}, headers=admin)

        response = client.delete(f"/portfolios/{portfolio_id}", headers=admin)
        assert response.status_code == 409
        assert response.json()["message"] == "Portfolio 'Diabetes' is in use. Status changed to inactive."
        assert client.get(f"/portfolios/{portfolio_id}", headers=admin).json()["data"]["is_active"] is False


class TestPrincipals:
    def test_create_and_search(self, client, admin):
        client.post("/principals/", json={"name": "Lupin Ltd", "city": "Mumbai"}, headers=admin)
        client.post("/principals/", json={"name": "Zydus", "city": "Ahmedabad", "is_active": False}, headers=admin)

        found = client.get("/principals/", params={"search": "mumbai"}, headers=admin).json()["data"]["items"]
        assert [row["name"] for row in found] == ["Lupin Ltd"]
        inactive = client.get("/principals/", params={"is_active": False}, headers=admin).json()["data"]["items"]
        assert [row["name"] for row in inactive] == ["Zydus"]

    def test_rename_to_existing_name_fails(self, client, admin, principal):
        other = client.post("/principals/", json={"name": "Mankind"}, headers=admin).json()["data"]
        response = client.patch(f"/principals/{other['id']}", json={"name": "Sun Pharma"}, headers=admin)
        assert response.status_code == 422

        same = client.patch(f"/principals/{principal.id}", json={"name": "Sun Pharma", "city": "Mumbai"}, headers=admin)
        assert same.status_code == 200

    def test_principal_with_products_is_deactivated(self, client, admin, principal, products):
        response = client.delete(f"/principals/{principal.id}", headers=admin)
        assert response.status_code == 409
        assert response.json()["success"] is False
        assert client.get(f"/principals/{principal.id}", headers=admin).json()["data"]["is_active"] is False

    def test_unused_principal_is_deleted(self, client, admin):
        principal_id = client.post("/principals/", json={"name": "Glenmark"}, headers=admin).json()["data"]["id"]
        assert client.delete(f"/principals/{principal_id}", headers=admin).status_code == 200
        assert client.get(f"/principals/{principal_id}", headers=admin).status_code == 404


class TestProducts:
    def test_create_defaults_and_filters(self, client, admin, principal):
        created = client.post("/products/", json={"code": "CETI10", "name": "Cetirizine 10mg",
                                                  "principal_id": principal.id}, headers=admin)
        assert created.status_code == 201
        data = created.json()["data"]
        assert data["unit"] == "PCS"
        assert float(data["gst_percentage"]) == 18

        listed = client.get("/products/", params={"principal_id": principal.id, "search": "ceti"}, headers=admin)
        assert [row["code"] for row in listed.json()["data"]["items"]] == ["CETI10"]

    def test_duplicate_code_and_bad_gst(self, client, admin, products):
        duplicate = client.post("/products/", json={"code": "PARA500", "name": "Other"}, headers=admin)
        assert duplicate.status_code == 422
        assert duplicate.json()["errors"][0]["field"] == "code"

        bad_gst = client.post("/products/", json={"code": "X1", "name": "X", "gst_percentage": 120}, headers=admin)
        assert bad_gst.status_code == 422
        assert bad_gst.json()["errors"][0]["field"] == "gst_percentage"

    def test_ordered_product_is_deactivated(self, client, db, admin, products, create_po):
        create_po()
        response = client.delete(f"/products/{products[0].id}", headers=admin)
        assert response.status_code == 409
        db.expire_all()
        assert db.query(Product).filter(Product.id == products[0].id).one().is_active is False

        assert client.delete(f"/products/{products[1].id}", headers=admin).status_code == 200

    def test_view_permission_is_enough_to_read(self, client, make_user, products):
        viewer = make_user("catalogue", ["products.view"])
        assert client.get("/products/", headers=viewer).status_code == 200
        assert client.post("/products/", json={"code": "N1", "name": "N"}, headers=viewer).status_code == 403


class TestWarehouses:
    def test_only_one_default(self, client, admin, warehouse):
        created = client.post("/warehouses/", json={"warehouse_code": "WH-2", "name": "Second", "is_default": True},
                              headers=admin)
        assert created.status_code == 201

        defaults = [row["warehouse_code"] for row in client.get("/warehouses/", headers=admin).json()["data"]["items"]
                    if row["is_default"]]
        assert defaults == ["WH-2"]

        client.patch(f"/warehouses/{warehouse.id}", json={"is_default": True}, headers=admin)
        defaults = [row["warehouse_code"] for row in client.get("/warehouses/", headers=admin).json()["data"]["items"]
                    if row["is_default"]]
        assert defaults == ["WH-MAIN"]

    def test_duplicate_code(self, client, admin, warehouse):
        response = client.post("/warehouses/", json={"warehouse_code": "WH-MAIN", "name": "Again"}, headers=admin)
        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "warehouse_code"

    def test_warehouse_holding_stock_is_deactivated(self, client, db, admin, admin_ctx, products, warehouse):
        crud_inventory.receive_stock(db, admin_ctx, product_id=products[0].id, warehouse_id=warehouse.id,
                                     quantity=1, exp_date=date.today() + timedelta(days=200))
        db.commit()

        response = client.delete(f"/warehouses/{warehouse.id}", headers=admin)
        assert response.status_code == 409
        data = client.get(f"/warehouses/{warehouse.id}", headers=admin).json()["data"]
        assert (data["status"], data["is_default"]) == ("inactive", False)

        active = client.get("/warehouses/", params={"status": "active"}, headers=admin).json()["data"]["items"]
        assert active == []


class TestDoctors:
    def test_crud_cycle(self, client, admin):
        created = client.post("/doctors/", json={"name": "Dr. Arun", "specialization": "Cardiology",
                                                 "location": "Madurai"}, headers=admin)
        doctor_id = created.json()["data"]["id"]

        found = client.get("/doctors/", params={"search": "madurai"}, headers=admin).json()["data"]["items"]
        assert [row["id"] for row in found] == [doctor_id]

        updated = client.patch(f"/doctors/{doctor_id}", json={"phone": "9840000000"}, headers=admin)
        assert updated.json()["data"]["phone"] == "9840000000"

        assert client.delete(f"/doctors/{doctor_id}", headers=admin).status_code == 200
        assert client.get(f"/doctors/{doctor_id}", headers=admin).status_code == 404

    @pytest.mark.parametrize("path", ["/doctors/42", "/portfolios/42", "/principals/42", "/products/42",
                                      "/warehouses/42"])
    def test_unknown_ids(self, client, admin, path):
        response = client.get(path, headers=admin)
        assert response.status_code == 404
        assert response.json()["success"] is False


class TestCategories:
    def test_tree_nests_children_under_parents(self, client, admin):
        medicines = client.post("/categories/", json={"name": "Medicines", "code": "MED"}, headers=admin).json()["data"]
        client.post("/categories/", json={"name": "Antibiotics", "parent_id": medicines["id"]}, headers=admin)
        client.post("/categories/", json={"name": "Analgesics", "parent_id": medicines["id"]}, headers=admin)
        client.post("/categories/", json={"name": "Consumables"}, headers=admin)

        tree = client.get("/categories/tree", headers=admin).json()["data"]
        assert [node["name"] for node in tree] == ["Consumables", "Medicines"]
        assert [child["name"] for child in tree[1]["children"]] == ["Analgesics", "Antibiotics"]

    def test_cannot_move_under_own_descendant(self, client, admin):
        parent = client.post("/categories/", json={"name": "Devices"}, headers=admin).json()["data"]
        child = client.post("/categories/", json={"name": "Stents", "parent_id": parent["id"]},
                            headers=admin).json()["data"]

        response = client.patch(f"/categories/{parent['id']}", json={"parent_id": child["id"]}, headers=admin)
        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "parent_id"

    def test_unknown_parent(self, client, admin):
        response = client.post("/categories/", json={"name": "Orphans", "parent_id": 999}, headers=admin)
        assert response.status_code == 422
        assert response.json()["errors"] == [{"field": "parent_id", "message": "Category 999 not found"}]

    def test_category_with_products_is_deactivated(self, client, admin, principal):
        category = client.post("/categories/", json={"name": "Cardiac"}, headers=admin).json()["data"]
        product = client.post("/products/", json={"code": "ATOR10", "name": "Atorvastatin 10mg",
                                                  "principal_id": principal.id, "category_id": category["id"]},
                              headers=admin).json()["data"]
        assert product["category_id"] == category["id"]
        listed = client.get("/products/", params={"category_id": category["id"]}, headers=admin).json()["data"]
        assert [row["code"] for row in listed["items"]] == ["ATOR10"]

        response = client.delete(f"/categories/{category['id']}", headers=admin)
        assert response.status_code == 409
        assert client.get(f"/categories/{category['id']}", headers=admin).json()["data"]["is_active"] is False

    def test_unused_category_is_deleted(self, client, admin):
        category = client.post("/categories/", json={"name": "Surgical"}, headers=admin).json()["data"]
        assert client.delete(f"/categories/{category['id']}", headers=admin).status_code == 200
        assert client.get(f"/categories/{category['id']}", headers=admin).status_code == 404


class TestHospitals:
    def test_doctors_link_to_hospitals(self, client, admin):
        hospital = client.post("/hospitals/", json={"name": "Apollo Greams Road", "city": "Chennai"},
                               headers=admin).json()["data"]
        doctor = client.post("/doctors/", json={"name": "Dr. Kavya", "hospital_id": hospital["id"]},
                             headers=admin).json()["data"]

        found = client.get("/doctors/", params={"hospital_id": hospital["id"]}, headers=admin).json()["data"]
        assert [row["id"] for row in found["items"]] == [doctor["id"]]

        response = client.delete(f"/hospitals/{hospital['id']}", headers=admin)
        assert response.status_code == 409
        assert client.get(f"/hospitals/{hospital['id']}", headers=admin).json()["data"]["is_active"] is False

    def test_doctor_with_unknown_hospital(self, client, admin):
        response = client.post("/doctors/", json={"name": "Dr. Ravi", "hospital_id": 404}, headers=admin)
        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "hospital_id"

    def test_duplicate_name(self, client, admin):
        client.post("/hospitals/", json={"name": "MIOT"}, headers=admin)
        assert client.post("/hospitals/", json={"name": "MIOT"}, headers=admin).status_code == 422


class TestDashboard:
    def test_sections_follow_module_access(self, client, make_user, create_po):
        create_po()
        headers = make_user("storekeeper", ["dashboard.view", "inventory.view"])

        data = client.get("/dashboard/", headers=headers).json()["data"]
        assert set(data) == {"inventory"}
        assert data["inventory"]["overview"]["lots"] == 0

    def test_admin_sees_every_section(self, client, admin, create_po):
        create_po()
        data = client.get("/dashboard/", headers=admin).json()["data"]

        assert set(data) == {"purchase_orders", "invoice_receiving", "quality_control", "warehouse_approval",
                             "inventory"}
        assert data["purchase_orders"]["total"] == 1
        assert data["purchase_orders"]["pending_approval"] == 0

    def test_needs_dashboard_permission(self, client, make_user):
        headers = make_user("viewer", ["inventory.view"])
        assert client.get("/dashboard/", headers=headers).status_code == 403


def _branch_payload(**overrides) -> dict:
    payload = {
        "name": "Chennai Branch", "branch_code": "che", "email": "Chennai@MedSupply.example",
        "phone": "04400000000", "drug_license_number": "TN-DL-001", "gst_number": "33aaacm0000a1z1",
        "pan_number": "aaacm0000a", "gst_address": "12 Anna Salai", "city": "Chennai", "state": "Tamil Nadu",
        "pincode": "600002",
    }
    payload.update(overrides)
    return payload


class TestBranches:
    def test_create_normalises_registration_numbers(self, client, admin):
        response = client.post("/branches/", json=_branch_payload(), headers=admin)
        assert response.status_code == 201
        data = response.json()["data"]
        assert (data["branch_code"], data["gst_number"], data["pan_number"]) == ("CHE", "33AAACM0000A1Z1",
                                                                                 "AAACM0000A")
        assert data["email"] == "chennai@medsupply.example"
        assert data["warehouses"] == []

    def test_gst_number_is_unique(self, client, admin):
        client.post("/branches/", json=_branch_payload(), headers=admin)
        response = client.post("/branches/", json=_branch_payload(name="Other", branch_code="OTH",
                                                                  pan_number="AAACM1111B"), headers=admin)
        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "gst_number"

    def test_warehouses_belong_to_branches(self, client, admin, warehouse):
        branch = client.post("/branches/", json=_branch_payload(), headers=admin).json()["data"]
        linked = client.patch(f"/warehouses/{warehouse.id}", json={"branch_id": branch["id"]}, headers=admin)
        assert linked.json()["data"]["branch_id"] == branch["id"]

        found = client.get("/warehouses/", params={"branch_id": branch["id"]}, headers=admin).json()["data"]
        assert [row["warehouse_code"] for row in found["items"]] == ["WH-MAIN"]
        assert client.get(f"/branches/{branch['id']}", headers=admin).json()["data"]["warehouses"][0]["name"] == \
            "Main Warehouse"

        response = client.delete(f"/branches/{branch['id']}", headers=admin)
        assert response.status_code == 409
        assert client.get(f"/branches/{branch['id']}", headers=admin).json()["data"]["is_active"] is False

    def test_unknown_branch_on_warehouse(self, client, admin, warehouse):
        response = client.patch(f"/warehouses/{warehouse.id}", json={"branch_id": 999}, headers=admin)
        assert response.status_code == 422
        assert response.json()["errors"] == [{"field": "branch_id", "message": "Branch 999 not found"}]

    def test_contacts(self, client, admin, warehouse):
        branch = client.post("/branches/", json=_branch_payload(), headers=admin).json()["data"]
        contact = {"contact_person_name": "Priya", "department": "Operations", "designation": "Manager",
                   "contact_number": "9840011111", "email_address": "Priya@MedSupply.example"}

        created = client.post(f"/branches/{branch['id']}/contacts", json=contact, headers=admin)
        assert created.status_code == 201
        assert created.json()["data"]["contact_type"] == "branch"
        assert created.json()["data"]["email_address"] == "priya@medsupply.example"

        foreign = client.post(f"/branches/{branch['id']}/contacts",
                              json={**contact, "warehouse_id": warehouse.id}, headers=admin)
        assert foreign.status_code == 422
        assert foreign.json()["errors"][0]["field"] == "warehouse_id"

        client.patch(f"/warehouses/{warehouse.id}", json={"branch_id": branch["id"]}, headers=admin)
        at_warehouse = client.post(f"/branches/{branch['id']}/contacts",
                                   json={**contact, "contact_person_name": "Ravi", "warehouse_id": warehouse.id},
                                   headers=admin)
        assert at_warehouse.json()["data"]["contact_type"] == "warehouse"

        own = client.get(f"/branches/{branch['id']}/contacts", params={"include_warehouses": False},
                         headers=admin).json()["data"]
        assert [row["contact_person_name"] for row in own] == ["Priya"]

        contact_id = created.json()["data"]["id"]
        client.patch(f"/branches/{branch['id']}/contacts/{contact_id}", json={"is_active": False}, headers=admin)
        active = client.get(f"/branches/{branch['id']}/contacts", headers=admin).json()["data"]
        assert [row["contact_person_name"] for row in active] == ["Ravi"]

        deleted = client.delete(f"/branches/{branch['id']}/contacts/{contact_id}", headers=admin)
        assert deleted.status_code == 200
        missing = client.patch(f"/branches/{branch['id']}/contacts/{contact_id}", json={"designation": "Lead"},
                               headers=admin)
        assert missing.status_code == 404

    def test_unused_branch_is_deleted_with_its_contacts(self, client, admin):
        branch = client.post("/branches/", json=_branch_payload(), headers=admin).json()["data"]
        client.post(f"/branches/{branch['id']}/contacts", headers=admin, json={
            "contact_person_name": "Priya", "department": "Admin", "designation": "Owner",
            "contact_number": "9840011111", "email_address": "priya@medsupply.example",
        })
        assert client.delete(f"/branches/{branch['id']}", headers=admin).status_code == 200
        assert client.get(f"/branches/{branch['id']}", headers=admin).status_code == 404
