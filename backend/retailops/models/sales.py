from __future__ import annotations

from ..extensions import db
from retailops.time_utils import to_utc_z, utcnow


TRANSACTION_STATUS_PENDING = "pending"
TRANSACTION_STATUS_COMPLETED = "completed"
TRANSACTION_STATUS_CANCELLED = "cancelled"
TRANSACTION_STATUS_REFUNDED = "refunded"
TRANSACTION_STATUSES = {
    TRANSACTION_STATUS_PENDING,
    TRANSACTION_STATUS_COMPLETED,
    TRANSACTION_STATUS_CANCELLED,
    TRANSACTION_STATUS_REFUNDED,
}

PAYMENT_METHODS = {"cash", "credit_card", "debit_card", "online"}


class SalesTransaction(db.Model):
    """
    A sales order. Lines are fixed after creation; only status changes.
    Cancelled is the soft delete.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("total_amount >= 0", name="ck_transactions_total_non_negative"),
        db.Index("ix_transactions_branch_created", "branch_id", "created_at"),
        db.Index("ix_transactions_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(64), nullable=False, unique=True)
    customer_id = db.Column(db.String(64), nullable=False, index=True)
    branch_id = db.Column(db.Integer, nullable=False, index=True)

    total_amount = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=TRANSACTION_STATUS_PENDING)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    lines = db.relationship(
        "TransactionLine",
        backref="transaction",
        lazy="selectin",
        order_by="TransactionLine.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<SalesTransaction id={self.id} order_id={self.order_id!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderId": self.order_id,
            "customerId": self.customer_id,
            "branchId": self.branch_id,
            "products": [line.to_dict() for line in self.lines],
            "totalAmount": self.total_amount,
            "paymentMethod": self.payment_method,
            "status": self.status,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class TransactionLine(db.Model):
    __tablename__ = "transaction_lines"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_transaction_lines_quantity_positive"),
        db.CheckConstraint("price >= 0", name="ck_transaction_lines_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    # Snapshots taken at order time; the catalog may change later
    product_name = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(128), nullable=True)
    warehouse_id = db.Column(db.Integer, nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)

    @property
    def line_total(self) -> float:
        return self.price * self.quantity

    def to_dict(self) -> dict:
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "category": self.category,
            "warehouseId": self.warehouse_id,
            "quantity": self.quantity,
            "price": self.price,
        }
