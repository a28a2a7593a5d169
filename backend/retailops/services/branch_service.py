# Overview: Branch records; the retail locations that sell to customers.

from __future__ import annotations

from ..extensions import db
from ..models import Branch, Warehouse
from ..validation import NotFoundError

BRANCH_MUTABLE_FIELDS = {"company_id", "name", "location", "warehouse_id"}


def _check_warehouse(patch: dict) -> None:
    warehouse_id = patch.get("warehouse_id")
    if warehouse_id is not None and db.session.get(Warehouse, warehouse_id) is None:
        raise NotFoundError("Warehouse not found")


def get_branch(branch_id: int) -> Branch:
    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError("Branch not found")
    return branch


def list_branches(*, company_id: int | None = None) -> list[Branch]:
    query = db.session.query(Branch)
    if company_id is not None:
        query = query.filter(Branch.company_id == company_id)
    return query.order_by(Branch.name.asc(), Branch.id.asc()).all()


def create_branch(*, patch: dict) -> Branch:
    _check_warehouse(patch)
    branch = Branch(**{k: v for k, v in patch.items() if k in BRANCH_MUTABLE_FIELDS})
    db.session.add(branch)
    db.session.flush()
    return branch


def update_branch(*, branch_id: int, patch: dict) -> Branch:
    branch = get_branch(branch_id)
    _check_warehouse(patch)
    for k, v in patch.items():
        if k in BRANCH_MUTABLE_FIELDS:
            setattr(branch, k, v)
    db.session.flush()
    return branch
