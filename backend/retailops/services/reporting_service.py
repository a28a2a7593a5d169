# Overview: Sales analytics; pure reductions over an already-fetched list of transactions.

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from ..extensions import db
from ..models import SalesTransaction
from ..models.sales import TRANSACTION_STATUS_COMPLETED
from ..time_utils import day_key, range_start, to_utc_z, utcnow


UNKNOWN_WAREHOUSE = "Unknown"
UNCATEGORIZED = "Uncategorized"


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


def sales_by_date(transactions: Iterable[SalesTransaction]) -> dict[str, float]:
    """Revenue per calendar day (YYYY-MM-DD), oldest day first."""
    totals: dict[str, float] = {}
    for txn in transactions:
        key = day_key(txn.created_at)
        totals[key] = totals.get(key, 0) + txn.total_amount
    return {key: round(totals[key], 2) for key in sorted(totals)}


def product_sales(transactions: Iterable[SalesTransaction]) -> dict[str, dict]:
    """
    Quantity and revenue per product, in first-encountered order.

    Keyed by product name when the line carries one, else by product id.
    """
    acc: dict[str, dict] = {}
    for txn in transactions:
        for line in txn.lines:
            key = line.product_name or str(line.product_id)
            entry = acc.setdefault(key, {"productId": line.product_id, "quantity": 0, "revenue": 0.0})
            entry["quantity"] += line.quantity
            entry["revenue"] += line.price * line.quantity
    return acc


def top_products(transactions: Iterable[SalesTransaction], limit: int = 5) -> list[dict]:
    """
    Highest-revenue products, descending.

    sorted() is stable, so equal revenues keep their first-encountered order.
    """
    if limit < 1:
        raise ReportError("limit must be >= 1")
    ranked = sorted(product_sales(transactions).items(), key=lambda kv: kv[1]["revenue"], reverse=True)
    return [
        {
            "name": name,
            "productId": data["productId"],
            "quantity": data["quantity"],
            "revenue": round(data["revenue"], 2),
        }
        for name, data in ranked[:limit]
    ]


def units_by_warehouse(transactions: Iterable[SalesTransaction]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for txn in transactions:
        for line in txn.lines:
            key = str(line.warehouse_id) if line.warehouse_id is not None else UNKNOWN_WAREHOUSE
            counts[key] = counts.get(key, 0) + line.quantity
    return counts


def revenue_by_category(transactions: Iterable[SalesTransaction]) -> dict[str, float]:
    totals: dict[str, float] = {}
    for txn in transactions:
        for line in txn.lines:
            key = line.category or UNCATEGORIZED
            totals[key] = totals.get(key, 0) + line.line_total
    return {key: round(value, 2) for key, value in totals.items()}


def summarize(transactions: list[SalesTransaction], *, top_limit: int = 5) -> dict:
    """All dashboard figures for one list of transactions."""
    total_sales = sum(t.total_amount for t in transactions)
    total_orders = len(transactions)
    total_items = sum(line.quantity for t in transactions for line in t.lines)

    warehouse_counts = units_by_warehouse(transactions)
    known = {k for k in warehouse_counts if k != UNKNOWN_WAREHOUSE}
    most_common = max(warehouse_counts.items(), key=lambda kv: kv[1])[0] if warehouse_counts else None

    return {
        "totalSales": round(total_sales, 2),
        "totalOrders": total_orders,
        "totalItems": total_items,
        "averageOrderValue": total_sales / total_orders if total_orders > 0 else 0,
        "uniqueWarehouses": len(known),
        "mostCommonWarehouse": most_common,
        "salesByDate": sales_by_date(transactions),
        "topProducts": top_products(transactions, top_limit),
        "warehouseCounts": warehouse_counts,
        "revenueByCategory": revenue_by_category(transactions),
    }


def fetch_transactions(
    *,
    range_name: str = "all",
    branch_id: int | None = None,
    status: str | None = TRANSACTION_STATUS_COMPLETED,
    now: datetime | None = None,
) -> list[SalesTransaction]:
    try:
        start = range_start(range_name, now)
    except ValueError as exc:
        raise ReportError(str(exc))

    query = db.session.query(SalesTransaction)
    if start is not None:
        query = query.filter(SalesTransaction.created_at >= start)
    if branch_id is not None:
        query = query.filter(SalesTransaction.branch_id == branch_id)
    if status:
        query = query.filter(SalesTransaction.status == status)
    return query.order_by(SalesTransaction.created_at.asc(), SalesTransaction.id.asc()).all()


def sales_analytics(
    *,
    range_name: str = "all",
    branch_id: int | None = None,
    top_limit: int = 5,
) -> dict:
    now = utcnow()
    transactions = fetch_transactions(range_name=range_name, branch_id=branch_id, now=now)
    return {
        "range": range_name,
        "branchId": branch_id,
        "generatedAt": to_utc_z(now),
        **summarize(transactions, top_limit=top_limit),
    }
