# Overview: Data access for Sale and SaleItem rows.

"""
Sale Ledger: reads and writes of sale documents and their lines.

Nothing here commits. Callers run these inside a unit_of_work so the
sale rows and the stock counters change together.
"""
from __future__ import annotations

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..errors import NotFoundError
from ..models import Sale, SaleItem
from ..serialization import utcnow
from ..validation import SaleItemRequest, SaleRequest
from .concurrency import lock_for_update


def find_store_sale(store_id: int, sale_id: int, *, lock: bool = False) -> Sale:
    """
    Load a sale with its items, scoped to the store.

    A sale owned by another store is reported exactly like a missing one.
    """
    query = (
        db.session.query(Sale)
        .options(selectinload(Sale.items))
        .filter(Sale.id == sale_id, Sale.store_id == store_id)
        .populate_existing()
    )
    if lock:
        query = lock_for_update(query)
    sale = query.first()
    if sale is None:
        raise NotFoundError("Sale not found")
    return sale


def insert_sale(store_id: int, request: SaleRequest) -> Sale:
    sale = Sale(
        store_id=store_id,
        client_name=request.client_name,
        client_phone=request.client_phone,
    )
    db.session.add(sale)
    db.session.flush()
    return sale


def insert_items(sale: Sale, items: tuple[SaleItemRequest, ...]) -> list[SaleItem]:
    """One SaleItem per request line; sell_price is the request's, not the catalog's."""
    created = []
    for item in items:
        line = SaleItem(
            product_id=item.product_id,
            quantity=item.quantity,
            sell_price=item.sell_price,
        )
        sale.items.append(line)
        created.append(line)
    db.session.flush()
    return created


def held_quantities(sale: Sale) -> dict[int, int]:
    """Units each product currently has committed to this sale."""
    held: dict[int, int] = {}
    for item in sale.items:
        held[item.product_id] = held.get(item.product_id, 0) + item.quantity
    return held


def clear_items(sale: Sale) -> None:
    """Delete every item of the sale (delete-orphan cascade)."""
    sale.items.clear()
    db.session.flush()


def update_client(sale: Sale, request: SaleRequest) -> None:
    """Assign only the client fields the request carried; explicit nulls clear."""
    if "client_name" in request.fields_set:
        sale.client_name = request.client_name
    if "client_phone" in request.fields_set:
        sale.client_phone = request.client_phone
    # Always touch the row so version_id bumps even when only items changed
    sale.updated_at = utcnow()
    db.session.flush()


def delete_sale(sale: Sale) -> None:
    db.session.delete(sale)
    db.session.flush()
