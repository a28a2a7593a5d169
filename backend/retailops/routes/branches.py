# Overview: Flask API routes for branches.

from flask import Blueprint, jsonify, request

from ..models import Branch
from ..services import branch_service
from ..services.concurrency import commit_with_retry
from ..validation import ModelValidationPolicy, ServiceError, validate_payload
from ..errors import service_error_response, unexpected_error_response

BRANCH_POLICY = ModelValidationPolicy(
    writable_fields={"company_id", "name", "location", "warehouse_id"},
    required_on_create={"name"},
    aliases={"companyId": "company_id", "warehouseId": "warehouse_id"},
)

branches_bp = Blueprint("branches", __name__, url_prefix="/branches")


@branches_bp.get("")
def list_branches():
    try:
        branches = branch_service.list_branches(company_id=request.args.get("companyId", type=int))
        return jsonify([b.to_dict() for b in branches]), 200
    except Exception as e:
        return unexpected_error_response(e, "Error fetching branches")


@branches_bp.post("")
def create_branch():
    try:
        patch = validate_payload(
            model=Branch, payload=request.get_json(silent=True),
            policy=BRANCH_POLICY, partial=False,
        )
        branch = commit_with_retry(lambda: branch_service.create_branch(patch=patch))
        return jsonify(branch.to_dict()), 201
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error creating branch")


@branches_bp.get("/<int:branch_id>")
def get_branch(branch_id: int):
    try:
        return jsonify(branch_service.get_branch(branch_id).to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error fetching branch")


@branches_bp.put("/<int:branch_id>")
def update_branch(branch_id: int):
    try:
        patch = validate_payload(
            model=Branch, payload=request.get_json(silent=True),
            policy=BRANCH_POLICY, partial=True,
        )
        branch = commit_with_retry(lambda: branch_service.update_branch(branch_id=branch_id, patch=patch))
        return jsonify(branch.to_dict()), 200
    except ServiceError as e:
        return service_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Error updating branch")
