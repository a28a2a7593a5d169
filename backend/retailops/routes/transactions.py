# Overview: Flask API routes for sales transactions, statistics and order placement.

from flask import Blueprint, current_app, jsonify, request

from ..services import reporting_service, sales_service
from ..services.concurrency import commit_with_retry
from ..time_utils import parse_iso_datetime
from ..validation import ServiceError, ValidationError
from ..errors import error_response, service_error_response, unexpected_error_response


transactions_bp = Blueprint("transactions", __name__, url_prefix="/transactions")


def _page_args() -> dict:
    config = current_app.config
    limit = request.args.get("limit", config["DEFAULT_PAGE_SIZE"], type=int)
    return {
        "page": request.args.get("page", 1, type=int),
        "limit": min(max(limit, 1), config["MAX_PAGE_SIZE"]),
    }


@transactions_bp.post("")
def create_transaction():
    try:
        txn = commit_with_retry(lambda: sales_service.create_transaction(request.get_json(silent=True)))
        return jsonify(txn.to_dict()), 201
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error creating transaction")


@transactions_bp.get("")
def list_transactions():
    """
    Query params: page, limit, branchId, customerId, status.
    Returns {"transactions", "total", "page", "limit"}, newest first.
    """
    try:
        result = sales_service.list_transactions(
            branch_id=request.args.get("branchId", type=int),
            customer_id=request.args.get("customerId"),
            status=request.args.get("status"),
            **_page_args(),
        )
        return jsonify(result), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error fetching transactions")


@transactions_bp.get("/customer/<customer_id>")
def list_customer_transactions(customer_id: str):
    try:
        return jsonify(sales_service.list_transactions(customer_id=customer_id, **_page_args())), 200
    except Exception as e:
        return unexpected_error_response(e, "Error fetching customer transactions")


@transactions_bp.get("/branch/<int:branch_id>")
def list_branch_transactions(branch_id: int):
    try:
        return jsonify(sales_service.list_transactions(branch_id=branch_id, **_page_args())), 200
    except Exception as e:
        return unexpected_error_response(e, "Error fetching branch transactions")


@transactions_bp.get("/statistics")
def sales_statistics():
    """
    Query params: start, end (ISO-8601, inclusive, required), branchId (optional).
    Returns {"totalSales", "totalTransactions", "averageTransactionValue"}.
    """
    try:
        try:
            start = parse_iso_datetime(request.args.get("start"))
            end = parse_iso_datetime(request.args.get("end"))
        except ValueError:
            raise ValidationError("start and end must be ISO-8601 dates")
        if start is None or end is None:
            raise ValidationError("start and end are required")

        stats = sales_service.sales_statistics(
            start=start,
            end=end,
            branch_id=request.args.get("branchId", type=int),
        )
        return jsonify(stats), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error calculating sales statistics")


@transactions_bp.get("/analytics")
def sales_analytics():
    """
    Dashboard figures over completed transactions.

    Query params: range (week|month|year|all, default all), branchId, limit (top products).
    """
    config = current_app.config
    limit = request.args.get("limit", config["TOP_PRODUCTS_LIMIT"], type=int)
    try:
        report = reporting_service.sales_analytics(
            range_name=request.args.get("range", "all"),
            branch_id=request.args.get("branchId", type=int),
            top_limit=min(max(limit, 1), config["MAX_PAGE_SIZE"]),
        )
        return jsonify(report), 200
    except reporting_service.ReportError as e:
        return error_response(str(e), 400)
    except Exception as e:
        return unexpected_error_response(e, "Error building sales analytics")


@transactions_bp.post("/orders")
def place_order():
    """
    Branch checkout: price lines from the catalog, decrement product
    quantities and record a completed transaction, all in one commit.

    Request body:
    {
        "branchId": int,
        "customerId": str (optional, default "walk-in"),
        "paymentMethod": str (optional, default "cash"),
        "items": [{"productId": int, "quantity": int > 0}, ...]
    }
    """
    try:
        txn = commit_with_retry(lambda: sales_service.place_order(request.get_json(silent=True)))
        return jsonify(txn.to_dict()), 201
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Failed to place order")


@transactions_bp.get("/<int:transaction_id>")
def get_transaction(transaction_id: int):
    try:
        return jsonify(sales_service.get_transaction(transaction_id).to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error fetching transaction")


@transactions_bp.put("/<int:transaction_id>/status")
def update_transaction_status(transaction_id: int):
    data = request.get_json(silent=True) or {}
    try:
        txn = commit_with_retry(lambda: sales_service.update_status(transaction_id, data.get("status")))
        return jsonify(txn.to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error updating transaction status")


@transactions_bp.delete("/<int:transaction_id>")
def delete_transaction(transaction_id: int):
    """Soft delete: the transaction is marked cancelled, never removed."""
    try:
        txn = commit_with_retry(lambda: sales_service.cancel_transaction(transaction_id))
        return jsonify(txn.to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error deleting transaction")
