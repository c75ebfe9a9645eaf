"""Read paths for sales: list and get-by-id, joined with items and product snapshots."""
from __future__ import annotations

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..errors import NotFoundError
from ..models import Sale, SaleItem
from .store_context import CallerContext, StoreResolver, resolve_caller_store


def _with_items(query):
    return query.options(selectinload(Sale.items).selectinload(SaleItem.product))


def list_store_sales(store_id: int) -> list[dict]:
    sales = (
        _with_items(db.session.query(Sale))
        .filter(Sale.store_id == store_id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )
    return [sale.to_dict() for sale in sales]


def get_store_sale(store_id: int, sale_id: int) -> dict:
    sale = (
        _with_items(db.session.query(Sale))
        .filter(Sale.id == sale_id, Sale.store_id == store_id)
        .first()
    )
    if sale is None:
        raise NotFoundError("Sale not found")
    return sale.to_dict()


def list_sales(caller: CallerContext | None, *, store_resolver: StoreResolver = resolve_caller_store) -> list[dict]:
    """All sales of the caller's store, newest first."""
    store = store_resolver(caller)
    return list_store_sales(store.id)


def get_sale(
    caller: CallerContext | None,
    sale_id: int,
    *,
    store_resolver: StoreResolver = resolve_caller_store,
) -> dict:
    """One sale of the caller's store; NotFoundError if absent or owned elsewhere."""
    store = store_resolver(caller)
    return get_store_sale(store.id, sale_id)
