# backend/retailops/routes/system.py
"""
System health endpoint.

Reports database connectivity plus row counts so a deploy can be checked
at a glance.
"""

import time
from flask import Blueprint, current_app, jsonify
from ..extensions import db
from ..models import Product, Warehouse, Branch, StockRequest, SalesTransaction
from ..models.stock import REQUEST_STATUS_PENDING
from retailops.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "products": db.session.query(Product).count(),
            "warehouses": db.session.query(Warehouse).count(),
            "branches": db.session.query(Branch).count(),
            "pending_stock_requests": db.session.query(StockRequest).filter_by(
                status=REQUEST_STATUS_PENDING
            ).count(),
            "transactions": db.session.query(SalesTransaction).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unreachable
    """
    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database_health},
    }
    return jsonify(body), 200 if healthy else 503
