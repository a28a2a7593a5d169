from __future__ import annotations

from ..extensions import db
from retailops.time_utils import to_utc_z, utcnow


PRODUCT_STATUS_ACTIVE = "active"
PRODUCT_STATUS_INACTIVE = "inactive"
PRODUCT_STATUSES = {PRODUCT_STATUS_ACTIVE, PRODUCT_STATUS_INACTIVE}


warehouse_products = db.Table(
    "warehouse_products",
    db.Column("warehouse_id", db.Integer, db.ForeignKey("warehouses.id"), primary_key=True),
    db.Column("product_id", db.Integer, db.ForeignKey("products.id"), primary_key=True),
)


class Product(db.Model):
    """
    Catalog product owned by a company.

    quantity is the company's unallocated on-hand quantity. It is moved into
    warehouse stock by assignment and decremented by branch sales; it never
    goes below zero (CHECK constraint plus conditional updates).

    Products are never hard-deleted; status=inactive is the soft delete.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("company_id", "sku", name="uq_products_company_sku"),
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.Index("ix_products_company_name", "company_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True, index=True)
    sku = db.Column(db.String(64), nullable=False)
    unit = db.Column(db.String(32), nullable=False, default="pcs")

    price = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    cost_price = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PRODUCT_STATUS_ACTIVE, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_active(self) -> bool:
        return self.status == PRODUCT_STATUS_ACTIVE

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "companyId": self.company_id,
            "name": self.name,
            "category": self.category,
            "sku": self.sku,
            "unit": self.unit,
            "price": self.price,
            "costPrice": self.cost_price,
            "status": self.status,
            "quantity": self.quantity,
            "versionId": self.version_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class Warehouse(db.Model):
    __tablename__ = "warehouses"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    location = db.Column(db.String(255), nullable=False)
    manager_id = db.Column(db.Integer, nullable=False, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    products = db.relationship(
        "Product",
        secondary=warehouse_products,
        lazy="selectin",
        order_by="Product.id",
    )

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "companyId": self.company_id,
            "name": self.name,
            "location": self.location,
            "managerId": self.manager_id,
            "products": [p.id for p in self.products],
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class Branch(db.Model):
    """Retail location selling to end customers, supplied by a warehouse."""
    __tablename__ = "branches"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    location = db.Column(db.String(255), nullable=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    warehouse = db.relationship("Warehouse", backref=db.backref("branches", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "companyId": self.company_id,
            "name": self.name,
            "location": self.location,
            "warehouseId": self.warehouse_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
