# backend/retailops/routes/stock.py
"""
Stock API routes: per-location records, direct assignment and stock requests.
"""
from flask import Blueprint, jsonify, request

from ..models.stock import LOCATION_BRANCH, LOCATION_WAREHOUSE
from ..services import stock_service
from ..services.concurrency import commit_with_retry
from ..validation import ServiceError, ValidationError, require_id
from ..errors import service_error_response, unexpected_error_response


stock_bp = Blueprint("stock", __name__, url_prefix="/stock")


@stock_bp.post("")
def create_stock():
    """
    Create a stock record.

    Request body:
    {
        "productId": int,
        "warehouseId": int | "branchId": int,
        "quantity": int >= 0
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        has_warehouse = data.get("warehouseId") is not None
        has_branch = data.get("branchId") is not None
        if has_warehouse == has_branch:
            raise ValidationError("Provide exactly one of warehouseId or branchId")
        location_type = LOCATION_WAREHOUSE if has_warehouse else LOCATION_BRANCH
        stock = commit_with_retry(lambda: stock_service.create_stock(
            product_id=require_id(data, "productId"),
            location_type=location_type,
            location_id=require_id(data, "warehouseId" if has_warehouse else "branchId"),
            quantity=data.get("quantity", 0),
        ))
        return jsonify(stock.to_dict()), 201
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error creating stock")


@stock_bp.get("")
def list_stock():
    try:
        return jsonify([s.to_dict() for s in stock_service.list_stock()]), 200
    except Exception as e:
        return unexpected_error_response(e, "Error fetching stock")


@stock_bp.get("/<int:stock_id>")
def get_stock(stock_id: int):
    try:
        return jsonify(stock_service.get_stock(stock_id).to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error fetching stock")


@stock_bp.put("/<int:stock_id>")
def update_stock(stock_id: int):
    data = request.get_json(silent=True) or {}
    try:
        if data.get("quantity") is None:
            raise ValidationError("Missing required field: quantity")
        stock = commit_with_retry(lambda: stock_service.update_stock(stock_id=stock_id, quantity=data["quantity"]))
        return jsonify(stock.to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error updating stock")


@stock_bp.delete("/<int:stock_id>")
def delete_stock(stock_id: int):
    try:
        commit_with_retry(lambda: stock_service.delete_stock(stock_id=stock_id))
        return jsonify({"message": "Stock deleted"}), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error deleting stock")


def _list_location(location_type: str, location_id: int):
    try:
        stocks = stock_service.list_location_stock(location_type, location_id)
        return jsonify([s.to_dict() for s in stocks]), 200
    except Exception as e:
        return unexpected_error_response(e, f"Error fetching {location_type} stock")


def _get_location_product(location_type: str, location_id: int, product_id: int):
    try:
        stock = stock_service.get_location_stock(location_type, location_id, product_id)
        return jsonify(stock.to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, f"Error fetching {location_type} stock")


def _set_location_product(location_type: str, location_id: int, product_id: int):
    """
    Request body, exactly one of:
    {"quantity": int >= 0}        absolute, creates the record if needed
    {"quantityChange": int != 0}  signed delta on an existing record
    """
    data = request.get_json(silent=True) or {}
    try:
        stock = commit_with_retry(lambda: stock_service.set_location_stock(
            location_type=location_type,
            location_id=location_id,
            product_id=product_id,
            quantity=data.get("quantity"),
            quantity_change=data.get("quantityChange"),
        ))
        return jsonify(stock.to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, f"Error updating {location_type} stock")


@stock_bp.get("/warehouse/<int:warehouse_id>")
def list_warehouse_stock(warehouse_id: int):
    return _list_location(LOCATION_WAREHOUSE, warehouse_id)


@stock_bp.get("/warehouse/<int:warehouse_id>/product/<int:product_id>")
def get_warehouse_product_stock(warehouse_id: int, product_id: int):
    return _get_location_product(LOCATION_WAREHOUSE, warehouse_id, product_id)


@stock_bp.put("/warehouse/<int:warehouse_id>/product/<int:product_id>")
def set_warehouse_product_stock(warehouse_id: int, product_id: int):
    return _set_location_product(LOCATION_WAREHOUSE, warehouse_id, product_id)


@stock_bp.get("/branch/<int:branch_id>")
def list_branch_stock(branch_id: int):
    return _list_location(LOCATION_BRANCH, branch_id)


@stock_bp.get("/branch/<int:branch_id>/product/<int:product_id>")
def get_branch_product_stock(branch_id: int, product_id: int):
    return _get_location_product(LOCATION_BRANCH, branch_id, product_id)


@stock_bp.put("/branch/<int:branch_id>/product/<int:product_id>")
def set_branch_product_stock(branch_id: int, product_id: int):
    return _set_location_product(LOCATION_BRANCH, branch_id, product_id)


@stock_bp.post("/assign")
def assign_stock():
    """
    Move quantity between two locations without an approval step.

    Request body:
    {
        "productId": int,
        "quantity": int > 0,
        "sourceType": "warehouse" | "branch",
        "sourceId": int,
        "destinationType": "warehouse" | "branch",
        "destinationId": int
    }

    Returns:
        200: {"source": stock, "destination": stock}
        400: Invalid or insufficient quantity
        404: Product or location not found
    """
    try:
        result = commit_with_retry(lambda: stock_service.assign_stock(request.get_json(silent=True) or {}))
        return jsonify(result), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error assigning stock")


@stock_bp.post("/stock-requests")
def create_stock_request():
    """
    Create a transfer request (status: pending). Nothing moves yet.

    Request body: same route fields as /stock/assign, plus optional "note".
    """
    try:
        stock_request = commit_with_retry(
            lambda: stock_service.create_stock_request(request.get_json(silent=True) or {})
        )
        return jsonify(stock_request.to_dict()), 201
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error creating stock request")


@stock_bp.get("/stock-requests")
def list_stock_requests():
    try:
        requests = stock_service.list_stock_requests(status=request.args.get("status"))
        return jsonify([r.to_dict() for r in requests]), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error fetching stock requests")


@stock_bp.get("/stock-requests/<int:request_id>")
def get_stock_request(request_id: int):
    try:
        return jsonify(stock_service.get_stock_request(request_id).to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error fetching stock request")


@stock_bp.post("/stock-requests/<int:request_id>/approve")
def approve_stock_request(request_id: int):
    """
    Approve a pending request and move its quantity.

    Returns:
        200: Request approved, stock moved
        400: Source lacks the quantity (request stays pending)
        404: Request not found
        409: Request already approved or rejected
    """
    try:
        stock_request = commit_with_retry(lambda: stock_service.approve_stock_request(request_id))
        return jsonify(stock_request.to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error approving stock request")


@stock_bp.post("/stock-requests/<int:request_id>/reject")
def reject_stock_request(request_id: int):
    try:
        stock_request = commit_with_retry(lambda: stock_service.reject_stock_request(request_id))
        return jsonify(stock_request.to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error rejecting stock request")
