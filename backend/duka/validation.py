from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, String, Text

from duka.time_utils import parse_iso_datetime


# 9,999,999.99 in major units
MAX_PRICE_CENTS = 999_999_999

# Monthly salary ceiling in whole TZS
MAX_SALARY = 1_000_000_000


class ValidationError(ValueError):
    """Bad input; routes answer 400."""


class ConflictError(ValueError):
    """Input clashes with existing rows (duplicate SKU, taken key); routes answer 409."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns a client may write through the API, and which of them a
    create request must carry.
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = field(default_factory=frozenset)


def coerce_int(name: str, value: Any) -> int:
    """
    Accept an int or a string of digits; reject bools, floats and
    strings like "1.0" or "1e3".
    """
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be an integer")

    text = value.strip()
    sign = text[:1] if text[:1] in "+-" else ""
    digits = text[len(sign):]
    if not digits.isdigit():
        raise ValidationError(f"{name} must be an integer")
    return int(text)


def _coerce_column(column, value: Any):
    kind = column.type

    if isinstance(kind, Boolean):
        if not isinstance(value, bool):
            raise ValidationError(f"{column.key} must be a boolean")
        return value

    if isinstance(kind, Integer):
        return coerce_int(column.key, value)

    if isinstance(kind, DateTime):
        if isinstance(value, datetime):
            return value
        parsed = None
        if isinstance(value, str):
            try:
                parsed = parse_iso_datetime(value)
            except ValueError:
                parsed = None
        if parsed is None:
            raise ValidationError(f"{column.key} must be an ISO-8601 datetime")
        return parsed

    if isinstance(kind, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValidationError(f"{column.key} must be a string")
        text = str(value).strip()
        if not text and not column.nullable:
            raise ValidationError(f"{column.key} cannot be blank")
        if isinstance(kind, String) and kind.length and len(text) > kind.length:
            raise ValidationError(f"{column.key} is longer than {kind.length} characters")
        return text

    return value


def validate_payload(*, model, payload: dict | None, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Clean a JSON body against the model's columns and the policy.

    partial=False is create semantics and requires every
    policy.required_on_create field; partial=True checks only the keys
    present. Returns the patch to apply.
    """
    payload = {} if payload is None else payload
    if not isinstance(payload, dict):
        raise ValidationError("JSON body must be an object")

    rejected = sorted(k for k in payload if k not in policy.writable_fields)
    if rejected:
        raise ValidationError(f"Fields not writable: {', '.join(rejected)}")

    if not partial:
        missing = sorted(policy.required_on_create - set(payload))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch = {}
    for key, raw in payload.items():
        column = columns.get(key)
        if column is None:
            raise ValidationError(f"Unknown field: {key}")
        if raw is None:
            if not column.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _coerce_column(column, raw)
    return patch


def _check_range(patch: dict, fields: tuple[str, ...], ceiling: int) -> None:
    for name in fields:
        value = patch.get(name)
        if value is None:
            continue
        if value < 0:
            raise ValidationError(f"{name} must be >= 0")
        if value > ceiling:
            raise ValidationError(f"{name} cannot exceed {ceiling}")


def enforce_rules_product(patch: dict) -> None:
    _check_range(patch, ("price_cents", "cost_cents"), MAX_PRICE_CENTS)
    if patch.get("reorder_level") is not None and patch["reorder_level"] < 0:
        raise ValidationError("reorder_level must be >= 0")
    if patch.get("sku") == "":
        patch["sku"] = None


def enforce_rules_employee(patch: dict) -> None:
    _check_range(
        patch,
        ("salary", "housing_allowance", "transport_allowance", "other_allowances", "other_deductions"),
        MAX_SALARY,
    )
    if "status" in patch and patch["status"] not in ("active", "inactive"):
        raise ValidationError("status must be 'active' or 'inactive'")
