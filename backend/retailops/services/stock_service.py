# backend/retailops/services/stock_service.py
"""
Stock service: per-location quantities and the stock request workflow.

LOCATIONS:
A stock record holds one product's quantity at either a warehouse or a
branch. Locations are addressed as (location_type, location_id).

REQUEST LIFECYCLE:
1. pending: created, nothing moved
2. approved: source decremented and destination incremented (terminal)
3. rejected: nothing moved (terminal)

Every movement (approve, direct assign) writes the source side, the
destination side and, for requests, the status flip inside one database
transaction. Routes commit once at the end; any error rolls all of it back.
"""
from __future__ import annotations

import logging

from ..extensions import db
from ..models import Branch, Product, Stock, StockRequest, Warehouse
from ..models.stock import (
    LOCATION_BRANCH,
    LOCATION_TYPES,
    LOCATION_WAREHOUSE,
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_PENDING,
    REQUEST_STATUS_REJECTED,
    REQUEST_STATUSES,
)
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    InsufficientQuantityError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    coerce_int,
    positive_quantity,
)
from .concurrency import compare_and_set, conditional_decrement, increment, lock_for_update

logger = logging.getLogger(__name__)

_LOCATION_MODELS = {
    LOCATION_WAREHOUSE: Warehouse,
    LOCATION_BRANCH: Branch,
}


def _location_column(location_type: str):
    return Stock.warehouse_id if location_type == LOCATION_WAREHOUSE else Stock.branch_id


def require_location(location_type: str, location_id: int):
    if location_type not in LOCATION_TYPES:
        raise ValidationError(f"Location type must be one of: {', '.join(sorted(LOCATION_TYPES))}")
    location = db.session.get(_LOCATION_MODELS[location_type], location_id)
    if location is None:
        raise NotFoundError(f"{location_type.capitalize()} not found")
    return location


def _require_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def find_stock(location_type: str, location_id: int, product_id: int) -> Stock | None:
    return (
        db.session.query(Stock)
        .filter(_location_column(location_type) == location_id, Stock.product_id == product_id)
        .order_by(Stock.id.asc())
        .first()
    )


def get_location_stock(location_type: str, location_id: int, product_id: int) -> Stock:
    stock = find_stock(location_type, location_id, product_id)
    if stock is None:
        raise NotFoundError("Stock record not found")
    return stock


def list_location_stock(location_type: str, location_id: int) -> list[Stock]:
    return (
        db.session.query(Stock)
        .filter(_location_column(location_type) == location_id)
        .order_by(Stock.product_id.asc())
        .all()
    )


def list_stock() -> list[Stock]:
    return db.session.query(Stock).order_by(Stock.id.asc()).all()


def get_stock(stock_id: int) -> Stock:
    stock = db.session.get(Stock, stock_id)
    if stock is None:
        raise NotFoundError("Stock record not found")
    return stock


def _new_stock(location_type: str, location_id: int, product_id: int, quantity: int) -> Stock:
    stock = Stock(product_id=product_id, quantity=quantity)
    if location_type == LOCATION_WAREHOUSE:
        stock.warehouse_id = location_id
    else:
        stock.branch_id = location_id
    db.session.add(stock)
    db.session.flush()
    return stock


def create_stock(*, product_id: int, location_type: str, location_id: int, quantity) -> Stock:
    _require_product(product_id)
    require_location(location_type, location_id)
    quantity = coerce_int("quantity", quantity)
    if quantity < 0:
        raise ValidationError("quantity must be >= 0")
    if find_stock(location_type, location_id, product_id) is not None:
        raise ConflictError("Stock record already exists for this product and location")
    return _new_stock(location_type, location_id, product_id, quantity)


def update_stock(*, stock_id: int, quantity) -> Stock:
    stock = lock_for_update(db.session.query(Stock).filter(Stock.id == stock_id)).first()
    if stock is None:
        raise NotFoundError("Stock record not found")
    quantity = coerce_int("quantity", quantity)
    if quantity < 0:
        raise ValidationError("quantity must be >= 0")
    stock.quantity = quantity
    db.session.flush()
    return stock


def delete_stock(*, stock_id: int) -> None:
    stock = db.session.get(Stock, stock_id)
    if stock is None:
        raise NotFoundError("Stock record not found")
    db.session.delete(stock)
    db.session.flush()


def add_to_location(location_type: str, location_id: int, product_id: int, amount: int) -> Stock:
    """Increment the destination record, creating it on first arrival."""
    stock = find_stock(location_type, location_id, product_id)
    if stock is None:
        return _new_stock(location_type, location_id, product_id, amount)
    increment(Stock, stock.id, amount)
    return db.session.get(Stock, stock.id, populate_existing=True)


def take_from_location(location_type: str, location_id: int, product_id: int, amount: int) -> Stock:
    """Decrement the source record or raise without writing anything."""
    stock = find_stock(location_type, location_id, product_id)
    if stock is None or not conditional_decrement(Stock, stock.id, amount):
        available = 0 if stock is None else db.session.get(Stock, stock.id).quantity
        raise InsufficientQuantityError(
            "Insufficient stock at source",
            details={
                "productId": product_id,
                "sourceType": location_type,
                "sourceId": location_id,
                "available": available,
                "requested": amount,
            },
        )
    return db.session.get(Stock, stock.id, populate_existing=True)


def set_location_stock(
    *,
    location_type: str,
    location_id: int,
    product_id: int,
    quantity=None,
    quantity_change=None,
) -> Stock:
    """
    Set an absolute quantity (creating the record) or apply a signed delta.

    Exactly one of quantity / quantity_change must be given. A result below
    zero is rejected and nothing is written.
    """
    if (quantity is None) == (quantity_change is None):
        raise ValidationError("Provide exactly one of quantity or quantityChange")

    require_location(location_type, location_id)
    _require_product(product_id)

    stock = find_stock(location_type, location_id, product_id)

    if quantity is not None:
        quantity = coerce_int("quantity", quantity)
        if quantity < 0:
            raise ValidationError("quantity must be >= 0")
        if stock is None:
            return _new_stock(location_type, location_id, product_id, quantity)
        stock.quantity = quantity
        db.session.flush()
        return stock

    delta = coerce_int("quantityChange", quantity_change)
    if stock is None:
        raise NotFoundError("Stock record not found")
    if delta >= 0:
        increment(Stock, stock.id, delta)
    elif not conditional_decrement(Stock, stock.id, -delta):
        raise InsufficientQuantityError(
            "Insufficient stock quantity",
            details={"available": stock.quantity, "requested": -delta},
        )
    return db.session.get(Stock, stock.id, populate_existing=True)


def _parse_route(payload: dict) -> dict:
    def _pick(key: str):
        if payload.get(key) is None:
            raise ValidationError(f"Missing required field: {key}")
        return payload[key]

    route = {
        "product_id": coerce_int("productId", _pick("productId")),
        "source_type": str(_pick("sourceType")).strip().lower(),
        "source_id": coerce_int("sourceId", _pick("sourceId")),
        "destination_type": str(_pick("destinationType")).strip().lower(),
        "destination_id": coerce_int("destinationId", _pick("destinationId")),
    }
    if (route["source_type"], route["source_id"]) == (route["destination_type"], route["destination_id"]):
        raise ValidationError("Source and destination must differ")
    return route


def _move(route: dict, amount: int) -> tuple[Stock, Stock]:
    source = take_from_location(route["source_type"], route["source_id"], route["product_id"], amount)
    destination = add_to_location(
        route["destination_type"], route["destination_id"], route["product_id"], amount
    )
    logger.info(
        "Moved %d of product %s from %s %s to %s %s",
        amount, route["product_id"],
        route["source_type"], route["source_id"],
        route["destination_type"], route["destination_id"],
    )
    return source, destination


def assign_stock(payload: dict) -> dict:
    """
    Direct transfer with no approval step.

    Validates 0 < quantity <= source available, then decrements the source
    and creates/increments the destination.
    """
    amount = positive_quantity(payload.get("quantity"), "Valid quantity is required")
    route = _parse_route(payload)
    _require_product(route["product_id"])
    require_location(route["source_type"], route["source_id"])
    require_location(route["destination_type"], route["destination_id"])

    source, destination = _move(route, amount)
    return {"source": source.to_dict(), "destination": destination.to_dict()}


def create_stock_request(payload: dict) -> StockRequest:
    amount = positive_quantity(payload.get("quantity"), "Valid quantity is required")
    route = _parse_route(payload)
    _require_product(route["product_id"])
    require_location(route["source_type"], route["source_id"])
    require_location(route["destination_type"], route["destination_id"])

    note = payload.get("note")
    request = StockRequest(
        quantity=amount,
        status=REQUEST_STATUS_PENDING,
        note=str(note).strip()[:255] if note else None,
        **route,
    )
    db.session.add(request)
    db.session.flush()
    return request


def list_stock_requests(status: str | None = None) -> list[StockRequest]:
    query = db.session.query(StockRequest)
    if status:
        if status not in REQUEST_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(sorted(REQUEST_STATUSES))}")
        query = query.filter(StockRequest.status == status)
    return query.order_by(StockRequest.created_at.desc(), StockRequest.id.desc()).all()


def get_stock_request(request_id: int) -> StockRequest:
    request = db.session.get(StockRequest, request_id)
    if request is None:
        raise NotFoundError("Stock request not found")
    return request


def _decide(request_id: int, new_status: str) -> StockRequest:
    request = lock_for_update(
        db.session.query(StockRequest).filter(StockRequest.id == request_id)
    ).first()
    if request is None:
        raise NotFoundError("Stock request not found")
    if request.status != REQUEST_STATUS_PENDING:
        raise InvalidStateError(f"Stock request already {request.status}")

    if not compare_and_set(
        StockRequest, request.id, "status", REQUEST_STATUS_PENDING, new_status,
        decided_at=utcnow(),
    ):
        # Another caller decided the request between our read and write
        current = db.session.get(StockRequest, request_id, populate_existing=True)
        raise InvalidStateError(f"Stock request already {current.status}")
    return request


def approve_stock_request(request_id: int) -> StockRequest:
    """
    Approve a pending request and move its quantity.

    The status flip and both stock writes share one transaction; if the
    source lacks quantity the caller rolls back and the request stays pending.
    """
    request = _decide(request_id, REQUEST_STATUS_APPROVED)
    route = {
        "product_id": request.product_id,
        "source_type": request.source_type,
        "source_id": request.source_id,
        "destination_type": request.destination_type,
        "destination_id": request.destination_id,
    }
    _move(route, request.quantity)
    return db.session.get(StockRequest, request_id, populate_existing=True)


def reject_stock_request(request_id: int) -> StockRequest:
    _decide(request_id, REQUEST_STATUS_REJECTED)
    return db.session.get(StockRequest, request_id, populate_existing=True)
