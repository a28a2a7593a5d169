# Overview: Pytest coverage for sales analytics reductions and the analytics endpoint.

from datetime import datetime, timedelta

import pytest

from retailops.models import SalesTransaction, TransactionLine
from retailops.services import reporting_service
from retailops.time_utils import utcnow


def _txn(lines, *, created_at=datetime(2024, 5, 1, 9, 30), total=None):
    """Unsaved transaction; reductions only read attributes."""
    txn = SalesTransaction(
        order_id="ORD-R",
        customer_id="c",
        branch_id=1,
        payment_method="cash",
        status="completed",
        created_at=created_at,
        total_amount=total if total is not None else sum(q * p for _, q, p, *_ in lines),
    )
    for position, (name, quantity, price, *rest) in enumerate(lines):
        category, warehouse_id = (rest + [None, None])[:2]
        txn.lines.append(TransactionLine(
            position=position,
            product_id=position + 1,
            product_name=name,
            category=category,
            warehouse_id=warehouse_id,
            quantity=quantity,
            price=price,
        ))
    return txn


class TestTopProducts:
    def test_sorted_descending_by_revenue(self, app):
        txns = [_txn([("A", 1, 100.0), ("B", 5, 50.0), ("C", 2, 5.0)])]

        ranking = reporting_service.top_products(txns)

        assert [p["name"] for p in ranking] == ["B", "A", "C"]
        assert [p["revenue"] for p in ranking] == [250.0, 100.0, 10.0]

    def test_ties_keep_encounter_order(self, app):
        txns = [
            _txn([("Second", 1, 20.0)]),
            _txn([("First", 2, 10.0), ("Third", 4, 5.0)]),
        ]

        ranking = reporting_service.top_products(txns)

        assert [p["name"] for p in ranking] == ["Second", "First", "Third"]

    def test_revenue_accumulates_across_transactions(self, app):
        txns = [_txn([("A", 1, 30.0)]), _txn([("B", 1, 40.0)]), _txn([("A", 1, 30.0)])]

        ranking = reporting_service.top_products(txns)

        assert ranking[0] == {"name": "A", "productId": 1, "quantity": 2, "revenue": 60.0}

    def test_limit(self, app):
        txns = [_txn([(f"P{i}", 1, float(i)) for i in range(1, 8)])]

        ranking = reporting_service.top_products(txns)

        assert [p["name"] for p in ranking] == ["P7", "P6", "P5", "P4", "P3"]

    def test_limit_below_one_rejected(self, app):
        txns = [_txn([("A", 1, 1.0), ("B", 1, 2.0)])]

        with pytest.raises(reporting_service.ReportError):
            reporting_service.top_products(txns, limit=0)
        with pytest.raises(reporting_service.ReportError):
            reporting_service.top_products(txns, limit=-1)


class TestReductions:
    def test_sales_by_date(self, app):
        txns = [
            _txn([("A", 1, 10.0)], created_at=datetime(2024, 5, 2, 8)),
            _txn([("A", 1, 5.0)], created_at=datetime(2024, 5, 1, 23)),
            _txn([("A", 1, 2.5)], created_at=datetime(2024, 5, 2, 18)),
        ]

        assert reporting_service.sales_by_date(txns) == {"2024-05-01": 5.0, "2024-05-02": 12.5}

    def test_units_by_warehouse_and_category(self, app):
        txns = [_txn([
            ("A", 2, 10.0, "Drinks", 1),
            ("B", 3, 4.0, None, None),
            ("C", 1, 6.0, "Drinks", 2),
        ])]

        assert reporting_service.units_by_warehouse(txns) == {"1": 2, "Unknown": 3, "2": 1}
        assert reporting_service.revenue_by_category(txns) == {"Drinks": 26.0, "Uncategorized": 12.0}

    def test_summarize(self, app):
        txns = [
            _txn([("A", 2, 10.0, "Drinks", 1)]),
            _txn([("B", 1, 40.0, "Food", 1), ("C", 1, 10.0, "Food", 2)]),
        ]

        summary = reporting_service.summarize(txns)

        assert summary["totalSales"] == 70.0
        assert summary["totalOrders"] == 2
        assert summary["totalItems"] == 4
        assert summary["averageOrderValue"] == 35.0
        assert summary["uniqueWarehouses"] == 2
        assert summary["mostCommonWarehouse"] == "1"

    def test_summarize_empty(self, app):
        summary = reporting_service.summarize([])

        assert summary["averageOrderValue"] == 0
        assert summary["mostCommonWarehouse"] is None
        assert summary["topProducts"] == []


class TestAnalyticsEndpoint:
    def test_range_filters_completed_transactions(self, client, make_transaction):
        now = utcnow()
        make_transaction(10, created_at=now - timedelta(days=2))
        make_transaction(20, created_at=now - timedelta(days=20))
        make_transaction(40, created_at=now - timedelta(days=200))
        make_transaction(80, status="pending", created_at=now - timedelta(days=1))

        week = client.get("/transactions/analytics?range=week").get_json()
        month = client.get("/transactions/analytics?range=month").get_json()
        everything = client.get("/transactions/analytics").get_json()

        assert week["totalSales"] == 10
        assert month["totalSales"] == 30
        assert everything["totalSales"] == 70
        assert everything["range"] == "all"
        assert everything["generatedAt"].endswith("Z")

    def test_branch_filter(self, client, make_transaction):
        make_transaction(10, branch_id=1)
        make_transaction(20, branch_id=2)

        body = client.get("/transactions/analytics?branchId=2").get_json()

        assert body["totalOrders"] == 1
        assert body["branchId"] == 2

    def test_unknown_range(self, client, db_session):
        resp = client.get("/transactions/analytics?range=decade")

        assert resp.status_code == 400
        assert "range must be one of" in resp.get_json()["message"]

    def test_fetch_rejects_unknown_range(self, db_session):
        with pytest.raises(reporting_service.ReportError):
            reporting_service.fetch_transactions(range_name="fortnight")

    def test_negative_limit_is_clamped_to_one(self, client, make_transaction):
        make_transaction(60, lines=[(1, 1, 10.0), (2, 1, 20.0), (3, 1, 30.0)])

        body = client.get("/transactions/analytics?limit=-1").get_json()

        assert [p["productId"] for p in body["topProducts"]] == [3]

    def test_large_limit_is_capped(self, client, make_transaction):
        make_transaction(60, lines=[(1, 1, 10.0), (2, 1, 20.0), (3, 1, 30.0)])

        resp = client.get("/transactions/analytics?limit=100000")

        assert resp.status_code == 200
        assert [p["productId"] for p in resp.get_json()["topProducts"]] == [3, 2, 1]
