"""
Sales transaction service.

Transactions are created with fixed lines; afterwards only the status moves.
Cancelling is the soft delete, no row is ever removed.

place_order() is the branch checkout: pricing, inventory decrement and the
completed transaction record are written in one database transaction, so an
inventory change is never visible without its order and vice versa.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Branch, Product, SalesTransaction, TransactionLine
from ..models.sales import (
    PAYMENT_METHODS,
    TRANSACTION_STATUS_CANCELLED,
    TRANSACTION_STATUS_COMPLETED,
    TRANSACTION_STATUS_PENDING,
    TRANSACTION_STATUSES,
)
from ..validation import (
    ConflictError,
    InsufficientQuantityError,
    NotFoundError,
    ValidationError,
    coerce_int,
    coerce_number,
    positive_quantity,
    require_non_negative,
)
from ..time_utils import utcnow
from .concurrency import conditional_decrement

logger = logging.getLogger(__name__)


def next_order_id(now: datetime | None = None) -> str:
    stamp = (now or utcnow()).strftime("%Y%m%d%H%M%S")
    return f"ORD-{stamp}-{uuid.uuid4().hex[:6].upper()}"


def _require_choice(name: str, value, allowed: set[str]) -> str:
    if not isinstance(value, str) or value not in allowed:
        raise ValidationError(f"{name} must be one of: {', '.join(sorted(allowed))}")
    return value


def _parse_lines(raw_lines) -> list[dict]:
    if not isinstance(raw_lines, list) or not raw_lines:
        raise ValidationError("products must be a non-empty list")

    lines = []
    for index, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            raise ValidationError(f"products[{index}] must be an object")
        if raw.get("productId") is None:
            raise ValidationError(f"products[{index}].productId is required")
        quantity = coerce_int(f"products[{index}].quantity", raw.get("quantity"))
        if quantity < 1:
            raise ValidationError(f"products[{index}].quantity must be >= 1")
        if raw.get("price") is None:
            raise ValidationError(f"products[{index}].price is required")
        price = coerce_number(f"products[{index}].price", raw["price"])
        if price < 0:
            raise ValidationError(f"products[{index}].price must be >= 0")
        warehouse_id = raw.get("warehouseId")
        lines.append({
            "product_id": coerce_int(f"products[{index}].productId", raw["productId"]),
            "product_name": raw.get("productName"),
            "category": raw.get("category"),
            "warehouse_id": coerce_int("warehouseId", warehouse_id) if warehouse_id is not None else None,
            "quantity": quantity,
            "price": price,
        })
    return lines


def _ensure_unique_order_id(order_id: str) -> None:
    if db.session.query(SalesTransaction).filter_by(order_id=order_id).first():
        raise ConflictError(f"Order {order_id} already exists")


def _build_transaction(*, order_id, customer_id, branch_id, lines, total_amount,
                       payment_method, status) -> SalesTransaction:
    txn = SalesTransaction(
        order_id=order_id,
        customer_id=customer_id,
        branch_id=branch_id,
        total_amount=round(total_amount, 2),
        payment_method=payment_method,
        status=status,
    )
    for position, line in enumerate(lines):
        txn.lines.append(TransactionLine(position=position, **line))
    db.session.add(txn)
    db.session.flush()
    return txn


def create_transaction(payload: dict) -> SalesTransaction:
    """
    Record a transaction exactly as given (no inventory effect).

    totalAmount defaults to the sum of price * quantity over the lines.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    missing = [k for k in ("customerId", "branchId", "products", "paymentMethod") if payload.get(k) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    lines = _parse_lines(payload["products"])
    payment_method = _require_choice("paymentMethod", payload["paymentMethod"], PAYMENT_METHODS)
    status = _require_choice("status", payload.get("status", TRANSACTION_STATUS_PENDING), TRANSACTION_STATUSES)

    if payload.get("totalAmount") is None:
        total_amount = sum(line["price"] * line["quantity"] for line in lines)
    else:
        total_amount = coerce_number("totalAmount", payload["totalAmount"])
    require_non_negative({"totalAmount": total_amount}, "totalAmount")

    order_id = str(payload.get("orderId") or next_order_id()).strip()
    _ensure_unique_order_id(order_id)

    return _build_transaction(
        order_id=order_id,
        customer_id=str(payload["customerId"]).strip(),
        branch_id=coerce_int("branchId", payload["branchId"]),
        lines=lines,
        total_amount=total_amount,
        payment_method=payment_method,
        status=status,
    )


def get_transaction(transaction_id: int) -> SalesTransaction:
    txn = db.session.get(SalesTransaction, transaction_id)
    if txn is None:
        raise NotFoundError("Transaction not found")
    return txn


def list_transactions(
    *,
    page: int = 1,
    limit: int = 10,
    branch_id: int | None = None,
    customer_id: str | None = None,
    status: str | None = None,
) -> dict:
    """Newest first, paginated with page/limit."""
    page = max(page or 1, 1)
    limit = max(limit or 10, 1)

    query = db.session.query(SalesTransaction)
    if branch_id is not None:
        query = query.filter(SalesTransaction.branch_id == branch_id)
    if customer_id is not None:
        query = query.filter(SalesTransaction.customer_id == customer_id)
    if status:
        _require_choice("status", status, TRANSACTION_STATUSES)
        query = query.filter(SalesTransaction.status == status)

    total = query.count()
    rows = (
        query.order_by(SalesTransaction.created_at.desc(), SalesTransaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "transactions": [t.to_dict() for t in rows],
        "total": total,
        "page": page,
        "limit": limit,
    }


def update_status(transaction_id: int, status) -> SalesTransaction:
    """Unconditional status set."""
    status = _require_choice("status", status, TRANSACTION_STATUSES)
    txn = get_transaction(transaction_id)
    txn.status = status
    db.session.flush()
    return txn


def cancel_transaction(transaction_id: int) -> SalesTransaction:
    return update_status(transaction_id, TRANSACTION_STATUS_CANCELLED)


def sales_statistics(*, start: datetime, end: datetime, branch_id: int | None = None) -> dict:
    """
    Totals over completed transactions created within [start, end].

    averageTransactionValue is totalSales / totalTransactions, or 0 when
    there are none.
    """
    if start > end:
        raise ValidationError("start must not be after end")

    query = db.session.query(
        func.coalesce(func.sum(SalesTransaction.total_amount), 0),
        func.count(SalesTransaction.id),
    ).filter(
        SalesTransaction.status == TRANSACTION_STATUS_COMPLETED,
        SalesTransaction.created_at >= start,
        SalesTransaction.created_at <= end,
    )
    if branch_id is not None:
        query = query.filter(SalesTransaction.branch_id == branch_id)

    total_sales, total_transactions = query.one()
    total_sales = round(float(total_sales or 0), 2)
    total_transactions = int(total_transactions or 0)
    average = total_sales / total_transactions if total_transactions > 0 else 0

    return {
        "totalSales": total_sales,
        "totalTransactions": total_transactions,
        "averageTransactionValue": average,
    }


def _merge_items(raw_items) -> list[tuple[int, int]]:
    """Collapse repeated products, keeping first-seen order."""
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Please add items to your order")

    merged: dict[int, int] = {}
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict) or raw.get("productId") is None:
            raise ValidationError(f"items[{index}].productId is required")
        product_id = coerce_int(f"items[{index}].productId", raw["productId"])
        quantity = positive_quantity(raw.get("quantity"), f"items[{index}].quantity must be a positive integer")
        merged[product_id] = merged.get(product_id, 0) + quantity
    return list(merged.items())


def place_order(payload: dict) -> SalesTransaction:
    """
    Branch checkout as one logical step.

    For each item the catalog price is snapshotted and the product quantity
    is decremented atomically. The completed transaction is written in the
    same database transaction. Any error leaves the caller to roll back
    everything, including decrements already issued for earlier items.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    if payload.get("branchId") is None:
        raise ValidationError("Missing required field: branchId")

    branch_id = coerce_int("branchId", payload["branchId"])
    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError("Branch not found")
    payment_method = _require_choice("paymentMethod", payload.get("paymentMethod", "cash"), PAYMENT_METHODS)
    customer_id = str(payload.get("customerId") or "walk-in").strip()
    items = _merge_items(payload.get("items"))

    lines = []
    for product_id, quantity in items:
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"productId": product_id})
        if not product.is_active:
            raise ValidationError("Product is inactive", details={"productId": product_id})

        snapshot = {
            "product_id": product.id,
            "product_name": product.name,
            "category": product.category,
            "warehouse_id": branch.warehouse_id,
            "quantity": quantity,
            "price": product.price,
        }
        if not conditional_decrement(Product, product_id, quantity):
            raise InsufficientQuantityError(
                "Insufficient product quantity",
                details={"productId": product_id, "available": product.quantity, "requested": quantity},
            )
        lines.append(snapshot)

    order_id = str(payload.get("orderId") or next_order_id()).strip()
    _ensure_unique_order_id(order_id)

    txn = _build_transaction(
        order_id=order_id,
        customer_id=customer_id,
        branch_id=branch_id,
        lines=lines,
        total_amount=sum(line["price"] * line["quantity"] for line in lines),
        payment_method=payment_method,
        status=TRANSACTION_STATUS_COMPLETED,
    )
    logger.info("Placed order %s for branch %s (%d lines)", txn.order_id, branch_id, len(lines))
    return txn
