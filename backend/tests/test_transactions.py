# Overview: Pytest coverage for sales transactions, statistics and branch order placement.

"""
Sales Transaction Tests

Covers:
- Recording transactions as given (no inventory effect)
- Status updates and cancel-as-delete
- Statistics over completed transactions in an inclusive date range
- Order placement: price snapshot, atomic decrement and all-or-nothing commit
"""

from datetime import datetime

import pytest

from retailops.models import Product, SalesTransaction
from retailops.services import sales_service
from retailops.validation import ValidationError


def _line(product_id=1, quantity=1, price=10.0, **extra):
    return {"productId": product_id, "quantity": quantity, "price": price, **extra}


def _payload(**overrides):
    payload = {
        "customerId": "cust-9",
        "branchId": 1,
        "paymentMethod": "cash",
        "products": [_line(quantity=2, price=5.0), _line(product_id=2, quantity=1, price=3.5)],
    }
    payload.update(overrides)
    return payload


class TestCreateTransaction:
    def test_create_defaults(self, client, db_session):
        resp = client.post("/transactions", json=_payload())

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["status"] == "pending"
        assert body["totalAmount"] == 13.5
        assert body["orderId"].startswith("ORD-")
        assert [p["quantity"] for p in body["products"]] == [2, 1]

    def test_create_with_explicit_total_and_status(self, client, db_session):
        resp = client.post("/transactions", json=_payload(totalAmount=12, status="completed", orderId="ORD-X"))

        body = resp.get_json()
        assert body["totalAmount"] == 12
        assert body["status"] == "completed"
        assert body["orderId"] == "ORD-X"

    def test_create_does_not_touch_inventory(self, client, db_session, make_product):
        product = make_product(quantity=5)

        client.post("/transactions", json=_payload(products=[_line(product_id=product.id, quantity=3)]))

        db_session.refresh(product)
        assert product.quantity == 5

    def test_duplicate_order_id(self, client, db_session):
        client.post("/transactions", json=_payload(orderId="ORD-1"))

        resp = client.post("/transactions", json=_payload(orderId="ORD-1"))

        assert resp.status_code == 409

    @pytest.mark.parametrize("overrides, message", [
        ({"customerId": None}, "Missing required fields: customerId"),
        ({"products": []}, "products must be a non-empty list"),
        ({"products": [_line(quantity=0)]}, "products[0].quantity must be >= 1"),
        ({"products": [_line(price=-1)]}, "products[0].price must be >= 0"),
        ({"paymentMethod": "barter"}, "paymentMethod must be one of: cash, credit_card, debit_card, online"),
        ({"status": "lost"}, "status must be one of: cancelled, completed, pending, refunded"),
        ({"totalAmount": -5}, "totalAmount must be >= 0"),
    ])
    def test_create_validation(self, client, db_session, overrides, message):
        resp = client.post("/transactions", json=_payload(**overrides))

        assert resp.status_code == 400
        assert resp.get_json()["message"] == message
        assert db_session.query(SalesTransaction).count() == 0

    def test_get_transaction(self, client, make_transaction):
        txn = make_transaction(40)

        resp = client.get(f"/transactions/{txn.id}")

        assert resp.status_code == 200
        assert resp.get_json()["orderId"] == txn.order_id
        assert client.get("/transactions/5555").status_code == 404


class TestListing:
    def test_newest_first_with_pagination(self, client, make_transaction):
        for day in range(1, 4):
            make_transaction(day * 10, created_at=datetime(2024, 3, day))

        first_page = client.get("/transactions?page=1&limit=2").get_json()
        second_page = client.get("/transactions?page=2&limit=2").get_json()

        assert first_page["total"] == 3
        assert first_page["limit"] == 2
        assert [t["totalAmount"] for t in first_page["transactions"]] == [30, 20]
        assert [t["totalAmount"] for t in second_page["transactions"]] == [10]

    def test_filter_by_branch_and_customer(self, client, make_transaction):
        make_transaction(10, branch_id=1)
        make_transaction(20, branch_id=2)

        by_branch = client.get("/transactions/branch/2").get_json()
        by_customer = client.get("/transactions/customer/cust-1").get_json()
        nobody = client.get("/transactions/customer/nobody").get_json()

        assert [t["totalAmount"] for t in by_branch["transactions"]] == [20]
        assert by_customer["total"] == 2
        assert nobody["total"] == 0


class TestStatus:
    def test_update_status(self, client, make_transaction):
        txn = make_transaction(10, status="pending")

        resp = client.put(f"/transactions/{txn.id}/status", json={"status": "completed"})

        assert resp.status_code == 200
        assert resp.get_json()["status"] == "completed"

    def test_update_status_invalid(self, client, make_transaction):
        txn = make_transaction(10, status="pending")

        resp = client.put(f"/transactions/{txn.id}/status", json={"status": "shipped"})

        assert resp.status_code == 400

    def test_update_status_unknown(self, client, db_session):
        resp = client.put("/transactions/999/status", json={"status": "completed"})

        assert resp.status_code == 404

    def test_delete_cancels(self, client, db_session, make_transaction):
        txn = make_transaction(10)

        resp = client.delete(f"/transactions/{txn.id}")

        assert resp.status_code == 200
        assert resp.get_json()["status"] == "cancelled"
        assert db_session.get(SalesTransaction, txn.id) is not None


class TestStatistics:
    def test_two_completed_transactions(self, client, make_transaction):
        make_transaction(100, created_at=datetime(2024, 1, 10))
        make_transaction(200, created_at=datetime(2024, 1, 20))

        resp = client.get("/transactions/statistics?start=2024-01-01&end=2024-01-31")

        assert resp.status_code == 200
        assert resp.get_json() == {
            "totalSales": 300,
            "totalTransactions": 2,
            "averageTransactionValue": 150,
        }

    def test_only_completed_and_in_range_count(self, client, make_transaction):
        make_transaction(100, created_at=datetime(2024, 1, 10))
        make_transaction(50, status="pending", created_at=datetime(2024, 1, 10))
        make_transaction(70, status="cancelled", created_at=datetime(2024, 1, 10))
        make_transaction(900, created_at=datetime(2024, 2, 10))

        body = client.get("/transactions/statistics?start=2024-01-01&end=2024-01-31").get_json()

        assert body["totalSales"] == 100
        assert body["totalTransactions"] == 1

    def test_range_bounds_inclusive(self, client, make_transaction):
        make_transaction(10, created_at=datetime(2024, 1, 1, 0, 0, 0))
        make_transaction(20, created_at=datetime(2024, 1, 31, 0, 0, 0))

        body = client.get("/transactions/statistics?start=2024-01-01&end=2024-01-31").get_json()

        assert body["totalTransactions"] == 2

    def test_branch_filter(self, client, make_transaction):
        make_transaction(100, branch_id=1, created_at=datetime(2024, 1, 10))
        make_transaction(200, branch_id=2, created_at=datetime(2024, 1, 10))

        body = client.get("/transactions/statistics?start=2024-01-01&end=2024-01-31&branchId=2").get_json()

        assert body["totalSales"] == 200

    def test_empty_range_average_is_zero(self, client, db_session):
        body = client.get("/transactions/statistics?start=2024-01-01&end=2024-01-31").get_json()

        assert body == {"totalSales": 0, "totalTransactions": 0, "averageTransactionValue": 0}

    @pytest.mark.parametrize("query", [
        "start=2024-01-01",
        "end=2024-01-31",
        "start=yesterday&end=2024-01-31",
        "start=2024-02-01&end=2024-01-01",
    ])
    def test_bad_ranges_rejected(self, client, db_session, query):
        resp = client.get(f"/transactions/statistics?{query}")

        assert resp.status_code == 400

    def test_service_rejects_reversed_range(self, db_session):
        with pytest.raises(ValidationError):
            sales_service.sales_statistics(start=datetime(2024, 2, 1), end=datetime(2024, 1, 1))


class TestPlaceOrder:
    def test_order_decrements_and_records(self, client, db_session, make_product, branch):
        coffee = make_product(name="Coffee", price=4.0, quantity=10, category="Drinks")
        cake = make_product(name="Cake", price=3.5, quantity=5, category="Bakery")

        resp = client.post("/transactions/orders", json={
            "branchId": branch.id,
            "items": [{"productId": coffee.id, "quantity": 2}, {"productId": cake.id, "quantity": 1}],
        })

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["status"] == "completed"
        assert body["paymentMethod"] == "cash"
        assert body["customerId"] == "walk-in"
        assert body["totalAmount"] == 11.5
        assert [(p["productName"], p["price"], p["warehouseId"]) for p in body["products"]] == [
            ("Coffee", 4.0, branch.warehouse_id),
            ("Cake", 3.5, branch.warehouse_id),
        ]
        db_session.refresh(coffee)
        db_session.refresh(cake)
        assert coffee.quantity == 8
        assert cake.quantity == 4

    def test_repeated_items_merge(self, client, db_session, make_product, branch):
        product = make_product(quantity=10)

        resp = client.post("/transactions/orders", json={
            "branchId": branch.id,
            "items": [{"productId": product.id, "quantity": 2}, {"productId": product.id, "quantity": 3}],
        })

        assert len(resp.get_json()["products"]) == 1
        assert resp.get_json()["products"][0]["quantity"] == 5
        db_session.refresh(product)
        assert product.quantity == 5

    def test_insufficient_item_rolls_back_everything(self, client, db_session, make_product, branch):
        plenty = make_product(quantity=10)
        scarce = make_product(quantity=1)

        resp = client.post("/transactions/orders", json={
            "branchId": branch.id,
            "items": [{"productId": plenty.id, "quantity": 2}, {"productId": scarce.id, "quantity": 2}],
        })

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Insufficient product quantity"
        assert resp.get_json()["details"]["productId"] == scarce.id
        db_session.refresh(plenty)
        db_session.refresh(scarce)
        assert plenty.quantity == 10
        assert scarce.quantity == 1
        assert db_session.query(SalesTransaction).count() == 0

    def test_inactive_product_rejected(self, client, db_session, make_product, branch):
        product = make_product(status="inactive")

        resp = client.post("/transactions/orders", json={
            "branchId": branch.id, "items": [{"productId": product.id, "quantity": 1}],
        })

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Product is inactive"

    def test_unknown_branch(self, client, db_session, make_product):
        product = make_product()

        resp = client.post("/transactions/orders", json={
            "branchId": 404, "items": [{"productId": product.id, "quantity": 1}],
        })

        assert resp.status_code == 404
        assert resp.get_json()["message"] == "Branch not found"

    def test_empty_order(self, client, branch):
        resp = client.post("/transactions/orders", json={"branchId": branch.id, "items": []})

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Please add items to your order"

    def test_zero_quantity_item(self, client, db_session, make_product, branch):
        product = make_product()

        resp = client.post("/transactions/orders", json={
            "branchId": branch.id, "items": [{"productId": product.id, "quantity": 0}],
        })

        assert resp.status_code == 400
        db_session.refresh(product)
        assert product.quantity == 10

    def test_price_snapshot_survives_price_change(self, client, db_session, make_product, branch):
        product = make_product(price=4.0)
        placed = client.post("/transactions/orders", json={
            "branchId": branch.id, "items": [{"productId": product.id, "quantity": 1}],
        }).get_json()

        client.put(f"/products/{product.id}", json={"price": 9.0})

        fetched = client.get(f"/transactions/{placed['id']}").get_json()
        assert fetched["products"][0]["price"] == 4.0
        assert db_session.get(Product, product.id).price == 9.0
