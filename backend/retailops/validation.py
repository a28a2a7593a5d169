from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from retailops.time_utils import parse_iso_datetime


# Maximum price: 9,999,999,999.99 fits Numeric(12, 2)
MAX_AMOUNT = 9_999_999_999.99


class ServiceError(Exception):
    """Base for errors that map onto an HTTP response."""
    status_code = 500

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(ServiceError):
    """400-level input problem."""
    status_code = 400


class InsufficientQuantityError(ValidationError):
    """Requested quantity exceeds what the source holds."""


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """409-level business rule conflict (e.g., duplicate SKU)."""
    status_code = 409


class InvalidStateError(ConflictError):
    """Operation is not allowed from the record's current status."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: column keys clients are allowed to set
    - required_on_create: column keys required for POST
    - aliases: JSON key -> column key (the API speaks camelCase)
    - choices: column key -> allowed values
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    aliases: dict[str, str] = field(default_factory=dict)
    choices: dict[str, set[str]] = field(default_factory=dict)

    def column_for(self, key: str) -> str:
        return self.aliases.get(key, key)

    def json_name(self, column: str) -> str:
        for json_key, col in self.aliases.items():
            if col == column:
                return json_key
        return column


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(name: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    raise ValidationError(f"{name} must be an integer")


def coerce_number(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise ValidationError(f"{name} must be a number")
    else:
        raise ValidationError(f"{name} must be a number")
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{name} must be a finite number")
    return number


def _coerce_value(name: str, col, value: Any):
    coltype = col.type

    if isinstance(coltype, Integer):
        return coerce_int(name, value)

    if isinstance(coltype, (Numeric, Float)):
        return coerce_number(name, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{name} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{name} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{name} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields) and enum choices
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by column name.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    cols = _columns_by_key(model)
    by_column: dict[str, tuple[str, Any]] = {}

    for key, raw in payload.items():
        column = policy.column_for(key)
        if column not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        if column not in cols:
            raise ValidationError(f"Unknown field: {key}")
        by_column[column] = (key, raw)

    if not partial:
        missing = sorted(
            policy.json_name(c) for c in policy.required_on_create
            if c not in by_column or by_column[c][1] is None
        )
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    patch: dict = {}
    for column, (key, raw) in by_column.items():
        col = cols[column]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[column] = None
            continue

        val = _coerce_value(key, col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{key} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{key} exceeds max length {col.type.length}")

        allowed = policy.choices.get(column)
        if allowed is not None and val not in allowed:
            raise ValidationError(f"{key} must be one of: {', '.join(sorted(allowed))}")

        patch[column] = val

    return patch


def require_non_negative(patch: dict, *names: str) -> None:
    for name in names:
        value = patch.get(name)
        if value is None:
            continue
        if value < 0:
            raise ValidationError(f"{name} must be >= 0")
        if value > MAX_AMOUNT:
            raise ValidationError(f"{name} cannot exceed {MAX_AMOUNT:,.2f}")


def positive_quantity(value: Any, message: str = "Valid quantity is required") -> int:
    """Strict positive integer check used by every quantity-moving operation."""
    if value is None or isinstance(value, bool):
        raise ValidationError(message)
    try:
        quantity = coerce_int("quantity", value)
    except ValidationError:
        raise ValidationError(message)
    if quantity <= 0:
        raise ValidationError(message)
    return quantity


def require_id(payload: dict, key: str) -> int:
    if key not in payload or payload[key] is None:
        raise ValidationError(f"Missing required field: {key}")
    value = coerce_int(key, payload[key])
    if value <= 0:
        raise ValidationError(f"{key} must be a positive integer")
    return value
