# backend/shopdesk/services/store_service.py
"""Store creation and listing for the authenticated owner."""
from __future__ import annotations

from ..extensions import db
from ..models import Store
from ..validation import validate_store_payload
from .store_context import CallerContext, list_caller_stores
from ..errors import AuthError


def create_store(caller: CallerContext | None, payload: dict) -> Store:
    if caller is None or not caller.user_id:
        raise AuthError("Unauthorized")
    fields = validate_store_payload(payload)
    return create_store_for_user(caller.user_id, fields)


def create_store_for_user(user_id: int, fields: dict) -> Store:
    store = Store(owner_user_id=user_id, **fields)
    db.session.add(store)
    db.session.commit()
    return store


def list_stores(caller: CallerContext | None) -> list[Store]:
    return list_caller_stores(caller)
