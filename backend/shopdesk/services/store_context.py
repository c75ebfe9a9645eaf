"""
Caller and store resolution.

Every service operation receives an explicit CallerContext built from
the validated session; services never reach into flask.g for identity.

STORE RESOLUTION: a user owns exactly one store in this model. If more
than one row exists, the first (lowest id) wins.

USAGE:
    from shopdesk.services.store_context import CallerContext, resolve_caller_store

    store = resolve_caller_store(caller)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from ..extensions import db
from ..errors import AuthError, NotFoundError
from ..models import Store


@dataclass(frozen=True)
class CallerContext:
    """Authenticated caller identity, passed into every service call."""
    user_id: int
    email: str | None = None


StoreResolver = Callable[["CallerContext | None"], Store]


def first_store_for_user(user_id: int) -> Store | None:
    return (
        db.session.query(Store)
        .filter(Store.owner_user_id == user_id)
        .order_by(Store.id.asc())
        .first()
    )


def resolve_caller_store(caller: CallerContext | None) -> Store:
    """
    Resolve the store the caller acts on.

    Raises:
        AuthError: no authenticated caller
        NotFoundError: caller owns no store
    """
    if caller is None or not caller.user_id:
        raise AuthError("Unauthorized")

    store = first_store_for_user(caller.user_id)
    if store is None:
        raise NotFoundError("User or store not found")
    return store


def list_caller_stores(caller: CallerContext | None) -> list[Store]:
    if caller is None or not caller.user_id:
        raise AuthError("Unauthorized")
    return (
        db.session.query(Store)
        .filter(Store.owner_user_id == caller.user_id)
        .order_by(Store.id.asc())
        .all()
    )
