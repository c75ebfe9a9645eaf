"""
Request shape validation.

Pure functions: no database access, no Flask context. Each validator
either returns normalized values or raises ValidationError with a
message naming the offending field.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError
from .serialization import quantize_money

# Maximum price: 9,999,999,999.99 fits Numeric(12, 2)
MAX_PRICE = Decimal("9999999999.99")
MAX_QUANTITY = 1_000_000

CLIENT_NAME_MAX = 255
CLIENT_PHONE_MAX = 32

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class SaleItemRequest:
    product_id: int
    quantity: int
    sell_price: Decimal


@dataclass(frozen=True)
class SaleRequest:
    client_name: str | None
    client_phone: str | None
    items: tuple[SaleItemRequest, ...]
    # Client keys present in the payload; absent ones are left untouched on update
    fields_set: frozenset[str] = frozenset()

    def product_ids(self) -> list[int]:
        """Distinct product ids in first-seen order."""
        seen: dict[int, None] = {}
        for item in self.items:
            seen.setdefault(item.product_id, None)
        return list(seen)

    def quantities_by_product(self) -> dict[int, int]:
        totals: dict[int, int] = {}
        for item in self.items:
            totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
        return totals


def _pick(data: dict, *keys: str) -> Any:
    """First present key wins; accepts snake_case and camelCase spellings."""
    for key in keys:
        if key in data:
            return data[key]
    return None


def coerce_int(value: Any, field: str) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_positive_int(value: Any, field: str, *, maximum: int | None = None) -> int:
    number = coerce_int(value, field)
    if number < 1:
        raise ValidationError(f"{field} must be at least 1")
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must be at most {maximum}")
    return number


def coerce_money(value: Any, field: str) -> Decimal:
    """Non-negative, finite amount rounded to cents."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, (int, float, Decimal)):
        raw = str(value)
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        # Reject scientific notation (e.g., "1e3"), same as integers
        if "e" in raw.lower():
            raise ValidationError(f"{field} must be a plain number (scientific notation not allowed)")
    else:
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount < 0:
        raise ValidationError(f"{field} must not be negative")
    if amount > MAX_PRICE:
        raise ValidationError(f"{field} must not exceed {MAX_PRICE}")
    return quantize_money(amount)


def optional_text(value: Any, field: str, *, max_length: int) -> str | None:
    if value is None:
        return None
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValidationError(f"{field} must be a string")
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text


def required_text(data: dict, field: str, *, max_length: int) -> str:
    value = optional_text(data.get(field), field, max_length=max_length)
    if value is None:
        raise ValidationError(f"{field} is required")
    return value


def _require_object(payload: Any) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def validate_sale_item(raw: Any, index: int) -> SaleItemRequest:
    prefix = f"items[{index}]"
    if not isinstance(raw, dict):
        raise ValidationError(f"{prefix} must be an object")

    product_id = _pick(raw, "product_id", "productId")
    quantity = raw.get("quantity")
    sell_price = _pick(raw, "sell_price", "sellPrice")

    missing = [
        name for name, value in (
            ("product_id", product_id),
            ("quantity", quantity),
            ("sell_price", sell_price),
        )
        if value is None
    ]
    if missing:
        raise ValidationError(
            f"{prefix}.{missing[0]} is required",
            details={"index": index, "missing": missing},
        )

    return SaleItemRequest(
        product_id=coerce_positive_int(product_id, f"{prefix}.product_id"),
        quantity=coerce_positive_int(quantity, f"{prefix}.quantity", maximum=MAX_QUANTITY),
        sell_price=coerce_money(sell_price, f"{prefix}.sell_price"),
    )


def validate_sale_payload(payload: Any) -> SaleRequest:
    """
    Shape-check a create/update sale request.

    Used identically by create and update, before any store access.
    """
    payload = _require_object(payload)

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")

    return SaleRequest(
        client_name=optional_text(
            _pick(payload, "client_name", "clientName"), "client_name", max_length=CLIENT_NAME_MAX
        ),
        client_phone=optional_text(
            _pick(payload, "client_phone", "clientPhone"), "client_phone", max_length=CLIENT_PHONE_MAX
        ),
        items=tuple(validate_sale_item(raw, i) for i, raw in enumerate(items)),
        fields_set=frozenset(
            field for field in ("client_name", "client_phone")
            if field in payload or _camel(field) in payload
        ),
    )


def validate_product_payload(payload: Any) -> dict:
    payload = _require_object(payload)

    missing = [
        f for f in ("name", "price", "sell_price", "quantity")
        if _pick(payload, f, _camel(f)) in (None, "")
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    quantity = coerce_int(payload.get("quantity"), "quantity")
    if quantity < 0:
        raise ValidationError("quantity must not be negative")

    available_raw = _pick(payload, "available_quantity", "availableQuantity")
    if available_raw in (None, ""):
        available = quantity
    else:
        available = coerce_int(available_raw, "available_quantity")
        if available < 0:
            raise ValidationError("available_quantity must not be negative")
        if available > quantity:
            raise ValidationError("available_quantity must not exceed quantity")

    return {
        "name": required_text(payload, "name", max_length=255),
        "description": optional_text(payload.get("description"), "description", max_length=4000),
        "category": optional_text(payload.get("category"), "category", max_length=64) or "Uncategorized",
        "image": optional_text(payload.get("image"), "image", max_length=512),
        "price": coerce_money(payload.get("price"), "price"),
        "sell_price": coerce_money(_pick(payload, "sell_price", "sellPrice"), "sell_price"),
        "quantity": quantity,
        "available_quantity": available,
    }


def validate_store_payload(payload: Any) -> dict:
    payload = _require_object(payload)

    required = ("name", "category", "address", "country", "city")
    missing = [f for f in required if optional_text(payload.get(f), f, max_length=255) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    return {
        "name": required_text(payload, "name", max_length=120),
        "category": required_text(payload, "category", max_length=64),
        "address": required_text(payload, "address", max_length=255),
        "country": required_text(payload, "country", max_length=64),
        "city": required_text(payload, "city", max_length=64),
        "description": optional_text(payload.get("description"), "description", max_length=4000),
        "email": optional_text(payload.get("email"), "email", max_length=255),
        "phone": optional_text(payload.get("phone"), "phone", max_length=32),
        "website": optional_text(payload.get("website"), "website", max_length=255),
        "opening_hours": optional_text(
            _pick(payload, "opening_hours", "openingHours"), "opening_hours", max_length=255
        ),
    }


def validate_registration(payload: Any) -> dict:
    payload = _require_object(payload)

    email = optional_text(payload.get("email"), "email", max_length=255)
    password = payload.get("password")
    if not email or not password:
        raise ValidationError("Email and password are required")
    if not isinstance(password, str):
        raise ValidationError("password must be a string")
    if not EMAIL_RE.match(email):
        raise ValidationError("Please enter a valid email address")
    if len(password) < 6:
        raise ValidationError("Password must be at least 6 characters long")

    name = optional_text(payload.get("name"), "name", max_length=120)
    if name is not None and len(name) < 2:
        raise ValidationError("Name must be at least 2 characters long")

    return {"email": email.lower(), "password": password, "name": name}


def _camel(field: str) -> str:
    head, *rest = field.split("_")
    return head + "".join(part.title() for part in rest)
