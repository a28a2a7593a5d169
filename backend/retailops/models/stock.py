from __future__ import annotations

from ..extensions import db
from retailops.time_utils import to_utc_z, utcnow


LOCATION_WAREHOUSE = "warehouse"
LOCATION_BRANCH = "branch"
LOCATION_TYPES = {LOCATION_WAREHOUSE, LOCATION_BRANCH}

REQUEST_STATUS_PENDING = "pending"
REQUEST_STATUS_APPROVED = "approved"
REQUEST_STATUS_REJECTED = "rejected"
REQUEST_STATUSES = {REQUEST_STATUS_PENDING, REQUEST_STATUS_APPROVED, REQUEST_STATUS_REJECTED}


class Stock(db.Model):
    """
    Quantity of one product held at one location.

    Exactly one of warehouse_id / branch_id is set.
    """
    __tablename__ = "stocks"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_stocks_quantity_non_negative"),
        db.CheckConstraint(
            "(warehouse_id IS NULL) <> (branch_id IS NULL)",
            name="ck_stocks_single_location",
        ),
        db.Index("ix_stocks_warehouse_product", "warehouse_id", "product_id"),
        db.Index("ix_stocks_branch_product", "branch_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product", lazy="joined")

    @property
    def location_type(self) -> str:
        return LOCATION_WAREHOUSE if self.warehouse_id is not None else LOCATION_BRANCH

    @property
    def location_id(self) -> int:
        return self.warehouse_id if self.warehouse_id is not None else self.branch_id

    def __repr__(self) -> str:
        return (
            f"<Stock id={self.id} product_id={self.product_id} "
            f"{self.location_type}={self.location_id} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "productName": self.product.name if self.product else None,
            "warehouseId": self.warehouse_id,
            "branchId": self.branch_id,
            "quantity": self.quantity,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class StockRequest(db.Model):
    """
    Pending transfer between two stock locations.

    pending -> approved (quantity moved) or pending -> rejected (no movement).
    Both outcomes are terminal.
    """
    __tablename__ = "stock_requests"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_requests_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    source_type = db.Column(db.String(16), nullable=False)
    source_id = db.Column(db.Integer, nullable=False)
    destination_type = db.Column(db.String(16), nullable=False)
    destination_id = db.Column(db.Integer, nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=REQUEST_STATUS_PENDING, index=True)
    note = db.Column(db.String(255), nullable=True)

    decided_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "sourceType": self.source_type,
            "sourceId": self.source_id,
            "destinationType": self.destination_type,
            "destinationId": self.destination_id,
            "quantity": self.quantity,
            "status": self.status,
            "note": self.note,
            "decidedAt": to_utc_z(self.decided_at),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
