# Overview: Flask API routes for warehouses and their product assignments.

from flask import Blueprint, jsonify, request

from ..models import Warehouse
from ..services import warehouse_service
from ..services.concurrency import commit_with_retry
from ..validation import ModelValidationPolicy, ServiceError, require_id, validate_payload
from ..errors import service_error_response, unexpected_error_response

WAREHOUSE_POLICY = ModelValidationPolicy(
    writable_fields={"company_id", "name", "location", "manager_id"},
    required_on_create={"name", "location", "manager_id"},
    aliases={"companyId": "company_id", "managerId": "manager_id"},
)

warehouses_bp = Blueprint("warehouses", __name__, url_prefix="/warehouses")


@warehouses_bp.get("")
def list_warehouses():
    try:
        warehouses = warehouse_service.list_warehouses(
            company_id=request.args.get("companyId", type=int),
        )
        return jsonify([w.to_dict() for w in warehouses]), 200
    except Exception as e:
        return unexpected_error_response(e, "Error fetching warehouses")


@warehouses_bp.post("")
def create_warehouse():
    try:
        patch = validate_payload(
            model=Warehouse, payload=request.get_json(silent=True),
            policy=WAREHOUSE_POLICY, partial=False,
        )
        warehouse = commit_with_retry(lambda: warehouse_service.create_warehouse(patch=patch))
        return jsonify(warehouse.to_dict()), 201
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error creating warehouse")


@warehouses_bp.get("/manager/<int:manager_id>")
def list_manager_warehouses(manager_id: int):
    try:
        warehouses = warehouse_service.list_warehouses(manager_id=manager_id)
        return jsonify([w.to_dict() for w in warehouses]), 200
    except Exception as e:
        return unexpected_error_response(e, "Error fetching manager warehouses")


@warehouses_bp.get("/<int:warehouse_id>")
def get_warehouse(warehouse_id: int):
    try:
        return jsonify(warehouse_service.get_warehouse(warehouse_id).to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error fetching warehouse")


@warehouses_bp.put("/<int:warehouse_id>")
def update_warehouse(warehouse_id: int):
    try:
        patch = validate_payload(
            model=Warehouse, payload=request.get_json(silent=True),
            policy=WAREHOUSE_POLICY, partial=True,
        )
        warehouse = commit_with_retry(
            lambda: warehouse_service.update_warehouse(warehouse_id=warehouse_id, patch=patch)
        )
        return jsonify(warehouse.to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error updating warehouse")


@warehouses_bp.delete("/<int:warehouse_id>")
def delete_warehouse(warehouse_id: int):
    try:
        commit_with_retry(lambda: warehouse_service.delete_warehouse(warehouse_id=warehouse_id))
        return jsonify({"message": "Warehouse deleted"}), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error deleting warehouse")


@warehouses_bp.post("/<int:warehouse_id>/products")
def assign_product(warehouse_id: int):
    """
    Assign a catalog product to a warehouse.

    Request body:
    {
        "productId": int,
        "quantity": int >= 0 (optional, moved out of the product's on-hand)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        result = commit_with_retry(lambda: warehouse_service.assign_product(
            warehouse_id=warehouse_id,
            product_id=require_id(data, "productId"),
            quantity=data.get("quantity", 0),
        ))
        return jsonify(result), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error assigning product to warehouse")


@warehouses_bp.delete("/<int:warehouse_id>/products/<int:product_id>")
def unassign_product(warehouse_id: int, product_id: int):
    try:
        warehouse = commit_with_retry(
            lambda: warehouse_service.unassign_product(warehouse_id=warehouse_id, product_id=product_id)
        )
        return jsonify(warehouse.to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error removing product from warehouse")
