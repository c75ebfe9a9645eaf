# backend/shopdesk/services/catalog_service.py
"""
Catalog Service: products and their stock counters.

Every query is scoped by store_id. available_quantity is moved by
decrement_available / restore_available, which the sale coordinator
calls inside its unit of work, and recomputed by update_product from
the units held by sales.

STOCK INVARIANT (per product):
    available_quantity + sum(active sale item quantities) == quantity
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func, update

from ..extensions import db
from ..errors import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from ..models import Product, SaleItem, Sale
from .concurrency import lock_for_update, unit_of_work


def load_store_products(store_id: int, product_ids: list[int], *, lock: bool = False) -> dict[int, Product]:
    """
    Load the given products owned by the store.

    Raises ValidationError when any id does not resolve to a product of
    this store (count mismatch between distinct ids and loaded rows).
    populate_existing refreshes rows already in the session, so counts
    read after a restore in the same transaction are current.
    """
    distinct_ids = list(dict.fromkeys(product_ids))
    if not distinct_ids:
        return {}

    query = (
        db.session.query(Product)
        .filter(Product.store_id == store_id, Product.id.in_(distinct_ids))
        .populate_existing()
    )
    if lock:
        query = lock_for_update(query)
    products = {p.id: p for p in query.all()}

    if len(products) != len(distinct_ids):
        missing = [pid for pid in distinct_ids if pid not in products]
        raise ValidationError(
            "Some products not found or do not belong to your store",
            details={"product_ids": missing},
        )
    return products


def ensure_sufficient_stock(products: dict[int, Product], quantities: dict[int, int]) -> None:
    """Raise InsufficientStockError on the first product that cannot cover its quantity."""
    for product_id, requested in quantities.items():
        product = products[product_id]
        if product.available_quantity < requested:
            raise InsufficientStockError(
                product_id=product.id,
                product_name=product.name,
                available_quantity=product.available_quantity,
                requested_quantity=requested,
            )


def decrement_available(store_id: int, product_id: int, quantity: int) -> None:
    """
    Conditionally take quantity units out of available stock.

    The guard lives in the UPDATE's WHERE clause, so the check and the
    write are one statement under the transaction's isolation. Zero
    matched rows means the stock moved under us.
    """
    result = db.session.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.store_id == store_id,
            Product.available_quantity >= quantity,
        )
        .values(available_quantity=Product.available_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        current = db.session.query(Product).filter_by(id=product_id, store_id=store_id).populate_existing().first()
        raise InsufficientStockError(
            product_id=product_id,
            product_name=current.name if current else None,
            available_quantity=current.available_quantity if current else 0,
            requested_quantity=quantity,
        )


def restore_available(store_id: int, product_id: int, quantity: int) -> None:
    """Return quantity units to available stock."""
    db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.store_id == store_id)
        .values(available_quantity=Product.available_quantity + quantity)
        .execution_options(synchronize_session=False)
    )


def create_product(store_id: int, fields: dict) -> Product:
    product = Product(store_id=store_id, **fields)
    db.session.add(product)
    db.session.commit()
    return product


def list_products(store_id: int) -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.store_id == store_id)
        .order_by(Product.created_at.desc(), Product.id.desc())
        .all()
    )


def get_product(store_id: int, product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, store_id=store_id).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def held_units(store_id: int, product_id: int) -> int:
    """Units of one product committed to the store's active sales."""
    total = (
        db.session.query(func.coalesce(func.sum(SaleItem.quantity), 0))
        .join(Sale, Sale.id == SaleItem.sale_id)
        .filter(Sale.store_id == store_id, SaleItem.product_id == product_id)
        .scalar()
    )
    return int(total)


def _locked_product(store_id: int, product_id: int) -> Product:
    query = (
        db.session.query(Product)
        .filter_by(id=product_id, store_id=store_id)
        .populate_existing()
    )
    product = lock_for_update(query).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def update_product(store_id: int, product_id: int, fields: dict) -> Product:
    """
    Replace a product's catalog fields.

    available_quantity is always recomputed as quantity minus the units
    held by active sales; a client-sent value is ignored. A quantity
    below the held units is rejected.
    """
    fields = dict(fields)
    fields.pop("available_quantity", None)

    with unit_of_work():
        product = _locked_product(store_id, product_id)
        held = held_units(store_id, product_id)
        if fields["quantity"] < held:
            raise ValidationError(
                f"quantity cannot be lower than the {held} units held by existing sales",
                details={"product_id": product_id, "held_quantity": held},
            )

        for key, value in fields.items():
            setattr(product, key, value)
        product.available_quantity = fields["quantity"] - held

    current_app.logger.info("Product %s updated in store %s", product_id, store_id)
    return product


def delete_product(store_id: int, product_id: int) -> dict:
    """Remove a product; refused while any sale item still references it."""
    with unit_of_work():
        product = _locked_product(store_id, product_id)
        lines = db.session.query(SaleItem).filter(SaleItem.product_id == product_id).count()
        if lines:
            raise ConflictError(
                "Product has sales and cannot be deleted",
                details={"product_id": product_id, "sale_item_count": lines},
            )
        db.session.delete(product)

    current_app.logger.info("Product %s deleted from store %s", product_id, store_id)
    return {"message": "Product deleted successfully"}


def sold_quantities(store_id: int) -> dict[int, int]:
    """Units held by active sale items, per product."""
    rows = (
        db.session.query(SaleItem.product_id, func.coalesce(func.sum(SaleItem.quantity), 0))
        .join(Sale, Sale.id == SaleItem.sale_id)
        .filter(Sale.store_id == store_id)
        .group_by(SaleItem.product_id)
        .all()
    )
    return {product_id: int(total) for product_id, total in rows}


def audit_stock(store_id: int) -> list[dict]:
    """
    Check the stock invariant for every product of the store.

    Returns one entry per product where
    quantity - available_quantity != units held by active sale items.
    """
    sold = sold_quantities(store_id)
    discrepancies = []
    for product in list_products(store_id):
        held = sold.get(product.id, 0)
        expected_available = product.quantity - held
        if product.available_quantity != expected_available:
            discrepancies.append({
                "product_id": product.id,
                "name": product.name,
                "quantity": product.quantity,
                "available_quantity": product.available_quantity,
                "sold_quantity": held,
                "expected_available_quantity": expected_available,
            })
    return discrepancies
