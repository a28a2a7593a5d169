# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

# backend/retailops/routes/products.py
"""
Product catalog routes.

Writes are validated against PRODUCT_POLICY; the JSON API speaks camelCase.
Deleting a product only marks it inactive.
"""
from flask import Blueprint, current_app, jsonify, request

from ..models import Product
from ..models.catalog import PRODUCT_STATUSES
from ..services import products_service
from ..services.concurrency import commit_with_retry
from ..validation import ModelValidationPolicy, ServiceError, require_non_negative, validate_payload
from ..errors import service_error_response, unexpected_error_response

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "company_id", "name", "category", "sku", "unit",
        "price", "cost_price", "status", "quantity",
    },
    required_on_create={"company_id", "name", "sku", "price"},
    aliases={"companyId": "company_id", "costPrice": "cost_price"},
    choices={"status": PRODUCT_STATUSES},
)

products_bp = Blueprint("products", __name__, url_prefix="/products")


def _validated(partial: bool) -> dict:
    patch = validate_payload(
        model=Product,
        payload=request.get_json(silent=True),
        policy=PRODUCT_POLICY,
        partial=partial,
    )
    require_non_negative(patch, "price", "cost_price", "quantity")
    return patch


@products_bp.get("")
def list_products():
    """
    List products.

    Query params:
    - companyId, status, category: optional filters
    - page, limit: optional pagination. Without page the body is a plain array.
    """
    page = request.args.get("page", type=int)
    try:
        result = products_service.list_products(
            company_id=request.args.get("companyId", type=int),
            status=request.args.get("status"),
            category=request.args.get("category"),
            page=page,
            per_page=request.args.get("limit", type=int),
            max_per_page=current_app.config["MAX_PAGE_SIZE"],
        )
    except Exception as e:
        return unexpected_error_response(e, "Error fetching products")

    if page is None:
        return jsonify(result["items"]), 200
    return jsonify(result), 200


@products_bp.post("")
def create_product():
    try:
        product = commit_with_retry(lambda: products_service.create_product(patch=_validated(partial=False)))
        return jsonify(product.to_dict()), 201
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error creating product")


@products_bp.get("/company/<int:company_id>")
def list_company_products(company_id: int):
    try:
        result = products_service.list_products(company_id=company_id)
        return jsonify(result["items"]), 200
    except Exception as e:
        return unexpected_error_response(e, "Error fetching company products")


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    try:
        return jsonify(products_service.get_product(product_id).to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error fetching product")


@products_bp.put("/<int:product_id>")
def update_product(product_id: int):
    try:
        product = commit_with_retry(
            lambda: products_service.update_product(product_id=product_id, patch=_validated(partial=True))
        )
        return jsonify(product.to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error updating product")


@products_bp.delete("/<int:product_id>")
def delete_product(product_id: int):
    """Soft delete (status=inactive)."""
    try:
        product = commit_with_retry(lambda: products_service.deactivate_product(product_id=product_id))
        return jsonify(product.to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error deleting product")


@products_bp.put("/<int:product_id>/decrement")
def decrement_product_quantity(product_id: int):
    """
    Decrement on-hand quantity.

    Request body:
    {
        "quantityChange": int > 0
    }

    Returns:
        200: {"message", "product"}
        400: Invalid or insufficient quantity
        404: Product not found
    """
    data = request.get_json(silent=True) or {}
    try:
        product = commit_with_retry(lambda: products_service.decrement_quantity(
            product_id=product_id,
            quantity_change=data.get("quantityChange"),
        ))
        return jsonify({
            "message": "Product quantity decremented successfully",
            "product": product.to_dict(),
        }), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Failed to decrement product quantity")
