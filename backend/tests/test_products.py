# Overview: Pytest coverage for the product catalog API and quantity decrement.

"""
Product Catalog Tests

Covers create/read/update/soft-delete through the JSON API and the
decrement endpoint:
1. A successful decrement lowers quantity by exactly the requested amount
2. An over-large or malformed decrement is rejected and changes nothing
3. SKUs are unique per company only
"""

import pytest

from retailops.models import Product
from retailops.services import products_service
from retailops.validation import InsufficientQuantityError, NotFoundError, ValidationError


class TestProductCrud:
    def test_create_product(self, client, db_session):
        resp = client.post("/products", json={
            "companyId": 1,
            "name": "Espresso Beans",
            "sku": "COF-1",
            "category": "Coffee",
            "price": 24.5,
            "costPrice": 15,
            "quantity": 12,
        })

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["name"] == "Espresso Beans"
        assert body["companyId"] == 1
        assert body["costPrice"] == 15
        assert body["quantity"] == 12
        assert body["status"] == "active"
        assert body["unit"] == "pcs"
        assert db_session.get(Product, body["id"]) is not None

    def test_create_product_missing_fields(self, client, db_session):
        resp = client.post("/products", json={"name": "No SKU"})

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Missing required fields: companyId, price, sku"

    def test_create_product_rejects_unknown_field(self, client, db_session):
        resp = client.post("/products", json={
            "companyId": 1, "name": "X", "sku": "X-1", "price": 1, "colour": "red",
        })

        assert resp.status_code == 400
        assert "colour" in resp.get_json()["message"]

    def test_create_product_rejects_negative_price(self, client, db_session):
        resp = client.post("/products", json={"companyId": 1, "name": "X", "sku": "X-1", "price": -1})

        assert resp.status_code == 400

    def test_duplicate_sku_same_company_conflicts(self, client, make_product):
        make_product(sku="DUP-1", company_id=1)

        resp = client.post("/products", json={"companyId": 1, "name": "Again", "sku": "DUP-1", "price": 2})

        assert resp.status_code == 409

    def test_same_sku_other_company_allowed(self, client, make_product):
        make_product(sku="DUP-1", company_id=1)

        resp = client.post("/products", json={"companyId": 2, "name": "Again", "sku": "DUP-1", "price": 2})

        assert resp.status_code == 201

    def test_get_product_not_found(self, client, db_session):
        resp = client.get("/products/9999")

        assert resp.status_code == 404
        assert resp.get_json() == {"message": "Product not found"}

    def test_list_company_products(self, client, make_product):
        make_product(name="A", company_id=1)
        make_product(name="B", company_id=1)
        make_product(name="C", company_id=2)

        resp = client.get("/products/company/1")

        assert resp.status_code == 200
        assert [p["name"] for p in resp.get_json()] == ["A", "B"]

    def test_list_products_paginated(self, client, make_product):
        for name in ("A", "B", "C"):
            make_product(name=name)

        resp = client.get("/products?page=2&limit=2")

        body = resp.get_json()
        assert [p["name"] for p in body["items"]] == ["C"]
        assert body["pagination"]["total"] == 3
        assert body["pagination"]["has_prev"] is True
        assert body["pagination"]["has_next"] is False

    def test_update_product(self, client, make_product):
        product = make_product(price=10)

        resp = client.put(f"/products/{product.id}", json={"price": 12.5, "category": "Sale"})

        assert resp.status_code == 200
        assert resp.get_json()["price"] == 12.5
        assert resp.get_json()["category"] == "Sale"

    def test_update_product_sku_collision(self, client, make_product):
        make_product(sku="A-1")
        other = make_product(sku="B-1")

        resp = client.put(f"/products/{other.id}", json={"sku": "A-1"})

        assert resp.status_code == 409

    def test_delete_is_soft(self, client, db_session, make_product):
        product = make_product()

        resp = client.delete(f"/products/{product.id}")

        assert resp.status_code == 200
        assert resp.get_json()["status"] == "inactive"
        db_session.refresh(product)
        assert product.status == "inactive"
        assert client.get(f"/products/{product.id}").status_code == 200


class TestDecrementEndpoint:
    def test_decrement_then_insufficient(self, client, db_session, make_product):
        """10 on hand: taking 4 leaves 6, then asking for 10 fails and leaves 6."""
        product = make_product(quantity=10)

        first = client.put(f"/products/{product.id}/decrement", json={"quantityChange": 4})

        assert first.status_code == 200
        body = first.get_json()
        assert body["message"] == "Product quantity decremented successfully"
        assert body["product"]["quantity"] == 6

        second = client.put(f"/products/{product.id}/decrement", json={"quantityChange": 10})

        assert second.status_code == 400
        assert second.get_json()["message"] == "Insufficient product quantity"
        db_session.refresh(product)
        assert product.quantity == 6

    def test_decrement_to_zero(self, client, db_session, make_product):
        product = make_product(quantity=3)

        resp = client.put(f"/products/{product.id}/decrement", json={"quantityChange": 3})

        assert resp.status_code == 200
        assert resp.get_json()["product"]["quantity"] == 0

    @pytest.mark.parametrize("value", [0, -2, "abc", None, True, 1.5])
    def test_decrement_rejects_invalid_change(self, client, db_session, make_product, value):
        product = make_product(quantity=5)

        resp = client.put(f"/products/{product.id}/decrement", json={"quantityChange": value})

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Valid quantity change is required"
        db_session.refresh(product)
        assert product.quantity == 5

    def test_decrement_unknown_product(self, client, db_session):
        resp = client.put("/products/4242/decrement", json={"quantityChange": 1})

        assert resp.status_code == 404

    def test_decrement_bumps_version(self, client, db_session, make_product):
        product = make_product(quantity=5)
        version = product.version_id

        client.put(f"/products/{product.id}/decrement", json={"quantityChange": 1})

        db_session.refresh(product)
        assert product.version_id == version + 1


class TestDecrementService:
    def test_service_raises_typed_errors(self, db_session, make_product):
        product = make_product(quantity=2)

        with pytest.raises(InsufficientQuantityError) as exc_info:
            products_service.decrement_quantity(product_id=product.id, quantity_change=3)
        assert exc_info.value.details == {"productId": product.id, "available": 2, "requested": 3}

        with pytest.raises(NotFoundError):
            products_service.decrement_quantity(product_id=99999, quantity_change=1)

        with pytest.raises(ValidationError):
            products_service.decrement_quantity(product_id=product.id, quantity_change="two")

    def test_string_digits_accepted(self, db_session, make_product):
        product = make_product(quantity=4)

        updated = products_service.decrement_quantity(product_id=product.id, quantity_change="3")

        assert updated.quantity == 1
