from __future__ import annotations
from datetime import datetime
from bookstore.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime

from .models.catalog import BOOK_STATUSES
from .models.cart import CART_MIN_QUANTITY, CART_MAX_QUANTITY
from .services.errors import ValidationError


# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999
MAX_STOCK_CHANGE = 100_000


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - extra_fields: accepted keys that are not columns of the model
      (e.g. password on registration); passed through untouched
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    extra_fields: set[str] = frozenset()  # type: ignore


def _columns_by_key(model) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={"missing": missing},
            )

    cols = _columns_by_key(model)
    extras = set(policy.extra_fields or ())

    for k in payload.keys():
        if k not in policy.writable_fields and k not in extras:
            raise ValidationError(f"Field not allowed: {k}", details={"field": k})
        if k not in cols and k not in extras:
            raise ValidationError(f"Unknown field: {k}", details={"field": k})

    patch: dict = {}

    for k, raw in payload.items():
        if k in extras:
            patch[k] = raw
            continue

        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", details={"field": k})
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", details={"field": k})

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(
                    f"{k} exceeds max length {col.type.length}",
                    details={"field": k, "max_length": col.type.length},
                )

        patch[k] = val

    return patch


def parse_int(value, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """Strict integer parsing for query strings and non-column JSON values."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, str):
        value = value.strip()
        if not value or not value.lstrip("-").isdigit():
            raise ValidationError(f"{field} must be an integer")
        value = int(value)
    if not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{field} must be <= {maximum}")
    return value


# =============================================================================
# POLICIES
# =============================================================================

BOOK_FIELDS = {
    "isbn", "title", "author", "description", "image_url", "price_cents",
    "publisher", "publish_date", "page_count", "language", "category_id", "status",
}

BOOK_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=BOOK_FIELDS | {"stock_quantity"},
    required_on_create={"isbn", "title", "author", "price_cents", "category_id"},
)

# stock_quantity is deliberately absent: stock only moves through the ledger
BOOK_UPDATE_POLICY = ModelValidationPolicy(writable_fields=BOOK_FIELDS)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "is_active"},
    required_on_create={"name"},
)

ORDER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"shipping_address", "shipping_phone", "note"},
    required_on_create={"shipping_address", "shipping_phone"},
    extra_fields=frozenset({"payment_method"}),
)

REGISTER_POLICY = ModelValidationPolicy(
    writable_fields={"username", "email", "full_name", "phone_number", "address"},
    required_on_create={"username", "email", "password", "full_name"},
    extra_fields=frozenset({"password"}),
)

ADMIN_USER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"username", "email", "full_name", "phone_number", "address", "role"},
    required_on_create={"username", "email", "password", "full_name", "role"},
    extra_fields=frozenset({"password"}),
)

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={"email", "full_name", "phone_number", "address"},
)

ADMIN_USER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"email", "full_name", "phone_number", "address", "role", "is_active"},
)


# =============================================================================
# BUSINESS RULES NOT CAPTURED BY COLUMN METADATA
# =============================================================================

def enforce_rules_book(patch: dict) -> None:
    if "price_cents" in patch:
        price = patch["price_cents"]
        if price is None or price <= 0:
            raise ValidationError("price_cents must be > 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS}")

    if "stock_quantity" in patch:
        if patch["stock_quantity"] is None or patch["stock_quantity"] < 0:
            raise ValidationError("stock_quantity must be >= 0")

    if "page_count" in patch and patch["page_count"] is not None and patch["page_count"] < 0:
        raise ValidationError("page_count must be >= 0")

    if "status" in patch and patch["status"] not in BOOK_STATUSES:
        raise ValidationError(
            f"Invalid book status '{patch['status']}'. Must be one of: {', '.join(BOOK_STATUSES)}",
            details={"status": patch["status"]},
        )


def enforce_rules_cart_quantity(value) -> int:
    return parse_int(value, "quantity", minimum=CART_MIN_QUANTITY, maximum=CART_MAX_QUANTITY)


def enforce_rules_stock_adjustment(payload: dict) -> dict:
    """PUT /api/inventory/<book_id> body: quantity_change (signed, non-zero), reason, notes."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    change = parse_int(payload.get("quantity_change"), "quantity_change",
                       minimum=-MAX_STOCK_CHANGE, maximum=MAX_STOCK_CHANGE)
    if change == 0:
        raise ValidationError("quantity_change must be non-zero")

    reason = payload.get("reason")
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("reason is required")
    if len(reason.strip()) > 200:
        raise ValidationError("reason exceeds max length 200")

    notes = payload.get("notes")
    if notes is not None:
        if not isinstance(notes, str):
            raise ValidationError("notes must be a string")
        if len(notes) > 500:
            raise ValidationError("notes exceeds max length 500")

    return {"quantity_change": change, "reason": reason.strip(), "notes": notes}
