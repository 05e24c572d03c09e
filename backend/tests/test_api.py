from decimal import Decimal

from conftest import ACTOR


def _create_supplier(client, code="SUP-API"):
    response = client.post("/suppliers/", json={"code": code, "name": "Atlas Textiles"})
    assert response.status_code == 201, response.text
    return response.json()


def _create_item(client, sku="FAB-API", item_type="FABRIC"):
    response = client.post("/inventory-items/", json={"sku": sku, "name": "Linen", "type": item_type, "unit": "METER"})
    assert response.status_code == 201, response.text
    return response.json()


def _create_purchase(client, supplier, item, quantity="100", unit_price="500"):
    response = client.post(
        "/purchases/",
        json={
            "supplier_id": supplier["id"],
            "items": [{"inventory_item_id": item["id"], "quantity_ordered": quantity, "unit_price": unit_price}],
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_receive_over_http(client):
    supplier, item = _create_supplier(client), _create_item(client)
    purchase = _create_purchase(client, supplier, item)
    assert purchase["status"] == "DRAFT"
    assert Decimal(purchase["total_amount"]) == Decimal("50000")
    assert purchase["created_by"] == ACTOR

    preview = client.post(f"/purchases/{purchase['id']}/receive/preview")
    assert preview.status_code == 200, preview.text
    assert preview.json()["resulting_status"] == "RECEIVED"
    assert Decimal(preview.json()["lines"][0]["new_average_cost"]) == Decimal("500")

    line_id = purchase["items"][0]["id"]
    response = client.post(
        f"/purchases/{purchase['id']}/receive", json={"lines": [{"purchase_item_id": line_id, "quantity": "100"}]}
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["purchase"]["status"] == "RECEIVED"
    assert body["over_received"] is False
    assert len(body["transactions"]) == 1
    assert Decimal(body["transactions"][0]["balance_after"]) == Decimal("100")

    stored = client.get(f"/inventory-items/{item['id']}").json()
    assert Decimal(stored["quantity"]) == Decimal("100")
    assert Decimal(stored["average_cost"]) == Decimal("500")
    assert Decimal(stored["total_value"]) == Decimal("50000")

    ledger = client.get(f"/inventory-items/{item['id']}/transactions").json()
    assert [row["type"] for row in ledger] == ["PURCHASE"]

    audit = client.get("/audit-logs/", params={"entity_id": purchase["id"]}).json()
    assert {row["action"] for row in audit} == {"CREATE", "RECEIVE"}
    assert all(row["changed_by"] == ACTOR for row in audit)


def test_not_found_envelope(client):
    response = client.get("/purchases/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {
        "error": {
            "kind": "NotFoundError",
            "message": "Purchase not found",
            "details": {"entity": "Purchase", "id": "does-not-exist"},
        }
    }


def test_request_validation_uses_the_envelope(client):
    supplier = _create_supplier(client)
    response = client.post("/purchases/", json={"supplier_id": supplier["id"], "items": []})
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["kind"] == "ValidationError"
    assert error["details"]["errors"]


def test_sub_cent_receive_quantity_is_a_validation_error(client):
    supplier, item = _create_supplier(client), _create_item(client)
    purchase = _create_purchase(client, supplier, item, quantity="10")
    line_id = purchase["items"][0]["id"]

    response = client.post(
        f"/purchases/{purchase['id']}/receive", json={"lines": [{"purchase_item_id": line_id, "quantity": "0.005"}]}
    )
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "ValidationError"
    assert client.get(f"/inventory-items/{item['id']}/transactions").json() == []


def test_business_rule_violation_is_422(client):
    supplier, item = _create_supplier(client), _create_item(client)
    purchase = _create_purchase(client, supplier, item, quantity="10")
    line_id = purchase["items"][0]["id"]

    response = client.post(
        f"/purchases/{purchase['id']}/receive", json={"lines": [{"purchase_item_id": line_id, "quantity": "11"}]}
    )
    assert response.status_code == 422
    assert response.json()["error"]["kind"] == "BusinessRuleViolation"

    unchanged = client.get(f"/purchases/{purchase['id']}").json()
    assert unchanged["status"] == "DRAFT"
    assert Decimal(unchanged["items"][0]["quantity_received"]) == Decimal("0")


def test_duplicate_code_is_409(client):
    _create_supplier(client, code="DUP")
    response = client.post("/suppliers/", json={"code": "DUP", "name": "Again"})
    assert response.status_code == 409
    assert response.json()["error"]["kind"] == "ConflictError"


def test_apply_advance_over_http(client):
    supplier, item = _create_supplier(client), _create_item(client)
    purchase = _create_purchase(client, supplier, item, quantity="10", unit_price="100")
    advance = client.post(
        "/supplier-advances/",
        json={"supplier_id": supplier["id"], "amount": "600", "payment_method": "CASH", "payment_date": "2026-03-01"},
    )
    assert advance.status_code == 201, advance.text
    advance = advance.json()

    response = client.post(
        f"/supplier-advances/{advance['id']}/apply", json={"purchase_id": purchase["id"], "amount": "400"}
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["advance"]["status"] == "PARTIAL"
    assert Decimal(body["advance"]["amount_remaining"]) == Decimal("200")
    assert Decimal(body["purchase"]["amount_due"]) == Decimal("600")

    overdraw = client.post(
        f"/supplier-advances/{advance['id']}/apply", json={"purchase_id": purchase["id"], "amount": "201"}
    )
    assert overdraw.status_code == 422


def test_production_flow_over_http(client):
    fabric = _create_item(client, sku="FAB-PROD")
    finished = _create_item(client, sku="SHIRT-01", item_type="FINISHED")
    adjustment = client.post(f"/inventory-items/{fabric['id']}/adjustments", json={"quantity": "20", "reason": "Opening"})
    assert adjustment.status_code == 201, adjustment.text

    model = client.post(
        "/product-models/",
        json={
            "sku": "MOD-SHIRT",
            "name": "Shirt",
            "finished_item_id": finished["id"],
            "bom_items": [{"inventory_item_id": fabric["id"], "quantity_per_unit": "2", "waste_factor": "1.05"}],
        },
    )
    assert model.status_code == 201, model.text
    model = model.json()

    availability = client.get(f"/product-models/{model['id']}/availability", params={"planned_qty": 10}).json()
    assert availability["can_produce"] is False
    assert Decimal(availability["shortages"][0]["shortage"]) == Decimal("1")

    batch = client.post("/production/", json={"model_id": model["id"], "planned_qty": 10})
    assert batch.status_code == 201, batch.text
    consume = client.post(f"/production/{batch.json()['id']}/consume")
    assert consume.status_code == 422

    costs = client.get(f"/product-models/{model['id']}/costs")
    assert costs.status_code == 200, costs.text
    assert set(costs.json()["suggested_prices"]) == {"30", "40", "50"}

    simulated = client.post(
        f"/product-models/{model['id']}/costs/simulate", json={"labor_cost": "10", "margin_target": "50"}
    )
    assert simulated.status_code == 200, simulated.text
    assert Decimal(simulated.json()["total_cost"]) == Decimal("10")
    assert Decimal(simulated.json()["target_price"]) == Decimal("20")
    rejected = client.post(f"/product-models/{model['id']}/costs/simulate", json={"margin_target": "100"})
    assert rejected.status_code == 400
