# Overview: Warehouse CRUD and product assignment; encapsulates business logic and database work.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Product, Stock, Warehouse
from ..models.stock import LOCATION_WAREHOUSE
from ..validation import ConflictError, InsufficientQuantityError, NotFoundError, ValidationError, coerce_int
from .concurrency import conditional_decrement
from .stock_service import add_to_location

logger = logging.getLogger(__name__)

WAREHOUSE_MUTABLE_FIELDS = {"company_id", "name", "location", "manager_id"}


def get_warehouse(warehouse_id: int) -> Warehouse:
    warehouse = db.session.get(Warehouse, warehouse_id)
    if warehouse is None:
        raise NotFoundError("Warehouse not found")
    return warehouse


def list_warehouses(*, company_id: int | None = None, manager_id: int | None = None) -> list[Warehouse]:
    query = db.session.query(Warehouse)
    if company_id is not None:
        query = query.filter(Warehouse.company_id == company_id)
    if manager_id is not None:
        query = query.filter(Warehouse.manager_id == manager_id)
    return query.order_by(Warehouse.name.asc(), Warehouse.id.asc()).all()


def create_warehouse(*, patch: dict) -> Warehouse:
    warehouse = Warehouse()
    for k, v in patch.items():
        if k in WAREHOUSE_MUTABLE_FIELDS:
            setattr(warehouse, k, v)
    db.session.add(warehouse)
    db.session.flush()
    return warehouse


def update_warehouse(*, warehouse_id: int, patch: dict) -> Warehouse:
    warehouse = get_warehouse(warehouse_id)
    for k, v in patch.items():
        if k in WAREHOUSE_MUTABLE_FIELDS:
            setattr(warehouse, k, v)
    db.session.flush()
    return warehouse


def delete_warehouse(*, warehouse_id: int) -> None:
    """Remove a warehouse. Refused while it still holds any quantity."""
    warehouse = get_warehouse(warehouse_id)

    stocks = db.session.query(Stock).filter(Stock.warehouse_id == warehouse_id).all()
    held = sum(s.quantity for s in stocks)
    if held > 0:
        raise ConflictError(
            "Warehouse still holds stock",
            details={"warehouseId": warehouse_id, "quantity": held},
        )

    for stock in stocks:
        db.session.delete(stock)
    warehouse.products = []
    db.session.delete(warehouse)
    db.session.flush()


def assign_product(*, warehouse_id: int, product_id: int, quantity=0) -> dict:
    """
    Attach a catalog product to a warehouse.

    A positive quantity is moved out of the product's unallocated on-hand
    count into the warehouse stock record in the same transaction.
    """
    warehouse = get_warehouse(warehouse_id)
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")

    quantity = coerce_int("quantity", quantity if quantity is not None else 0)
    if quantity < 0:
        raise ValidationError("quantity must be >= 0")

    if product not in warehouse.products:
        warehouse.products.append(product)
        db.session.flush()

    stock = None
    if quantity > 0:
        if not conditional_decrement(Product, product_id, quantity):
            raise InsufficientQuantityError(
                "Insufficient product quantity",
                details={"productId": product_id, "available": product.quantity, "requested": quantity},
            )
        stock = add_to_location(LOCATION_WAREHOUSE, warehouse_id, product_id, quantity)
        logger.info("Assigned %d of product %s to warehouse %s", quantity, product_id, warehouse_id)

    return {
        "warehouse": warehouse.to_dict(),
        "product": db.session.get(Product, product_id).to_dict(),
        "stock": stock.to_dict() if stock is not None else None,
    }


def unassign_product(*, warehouse_id: int, product_id: int) -> Warehouse:
    warehouse = get_warehouse(warehouse_id)
    product = db.session.get(Product, product_id)
    if product is None or product not in warehouse.products:
        raise NotFoundError("Product is not assigned to this warehouse")
    warehouse.products.remove(product)
    db.session.flush()
    return warehouse
