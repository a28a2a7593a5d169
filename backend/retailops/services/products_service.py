# backend/retailops/services/products_service.py
"""
Product catalog service.

Products are company-scoped: SKUs are unique within a company. quantity is
the company's unallocated on-hand count and is only ever lowered through
decrement_quantity(), which uses an atomic conditional update.
"""
from __future__ import annotations

import logging

from ..extensions import db
from ..models import Product
from ..models.catalog import PRODUCT_STATUS_ACTIVE, PRODUCT_STATUS_INACTIVE
from ..validation import ConflictError, NotFoundError, InsufficientQuantityError, positive_quantity
from .concurrency import conditional_decrement, lock_for_update

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {
    "company_id", "name", "category", "sku", "unit",
    "price", "cost_price", "status", "quantity",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_unique_sku(company_id: int, sku: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product).filter(
        Product.company_id == company_id,
        Product.sku == sku,
    )
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("SKU already exists for this company.")


def list_products(
    *,
    company_id: int | None = None,
    status: str | None = None,
    category: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
    max_per_page: int = 100,
) -> dict:
    """
    Product listing with optional filters and pagination.

    Returns a dict with 'items', 'count' and, when page is given,
    'pagination' metadata.
    """
    base_query = db.session.query(Product)
    if company_id is not None:
        base_query = base_query.filter(Product.company_id == company_id)
    if status:
        base_query = base_query.filter(Product.status == status)
    if category:
        base_query = base_query.filter(Product.category == category)
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {"items": [p.to_dict() for p in products], "count": len(products)}

    per_page = min(per_page or 20, max_per_page)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def create_product(*, patch: dict) -> Product:
    """Create a product from a validated patch. Caller commits."""
    _ensure_unique_sku(patch["company_id"], patch["sku"])

    p = Product(status=PRODUCT_STATUS_ACTIVE, quantity=0)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.flush()
    logger.info("Created product id=%s sku=%s company_id=%s", p.id, p.sku, p.company_id)
    return p


def update_product(*, product_id: int, patch: dict) -> Product:
    p = lock_for_update(db.session.query(Product).filter(Product.id == product_id)).first()
    if not p:
        raise NotFoundError("Product not found")

    company_id = patch.get("company_id", p.company_id)
    sku = patch.get("sku", p.sku)
    if company_id != p.company_id or sku != p.sku:
        _ensure_unique_sku(company_id, sku, exclude_id=p.id)

    apply_product_patch(p, patch)
    db.session.flush()
    return p


def deactivate_product(*, product_id: int) -> Product:
    """Soft-delete: preserve the row and every reference to it."""
    p = db.session.query(Product).filter(Product.id == product_id).first()
    if not p:
        raise NotFoundError("Product not found")

    if p.status != PRODUCT_STATUS_INACTIVE:
        p.status = PRODUCT_STATUS_INACTIVE
        db.session.flush()
    return p


def decrement_quantity(*, product_id: int, quantity_change) -> Product:
    """
    Lower a product's on-hand quantity by a positive amount.

    Raises:
        ValidationError: quantity_change is not a positive integer
        NotFoundError: product does not exist
        InsufficientQuantityError: product holds less than quantity_change

    On any error the stored quantity is unchanged.
    """
    amount = positive_quantity(quantity_change, "Valid quantity change is required")

    if not conditional_decrement(Product, product_id, amount):
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found")
        raise InsufficientQuantityError(
            "Insufficient product quantity",
            details={"productId": product_id, "available": product.quantity, "requested": amount},
        )

    return db.session.get(Product, product_id, populate_existing=True)
