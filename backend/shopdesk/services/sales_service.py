"""
Sales Service - sale transactions with consistent inventory

Create, update and delete a sale together with the matching
available_quantity adjustments, as one unit of work each.

ORDER OF CHECKS:
1. payload shape (validation.py) - no database access
2. caller's store (store_context) - AuthError / NotFoundError
3. inside the write transaction: ownership, product scoping, stock

STOCK: sufficiency is read inside the transaction and every decrement
is conditional, so two concurrent sales cannot both take the last
units. A failed decrement aborts the whole unit with
InsufficientStockError.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import InternalError
from ..validation import validate_sale_payload
from . import catalog_service, sale_ledger, sale_query_service
from .concurrency import run_with_retry, unit_of_work
from .store_context import CallerContext, StoreResolver, resolve_caller_store


def _execute(operation: str, func):
    """
    Run func with retry; persistence failures become InternalError.

    ServiceErrors raised by func (stock, not-found, validation) pass
    through untouched; unit_of_work has already rolled back.
    """
    try:
        return run_with_retry(func)
    except SQLAlchemyError as exc:
        current_app.logger.error("Sale %s rolled back after persistence error", operation, exc_info=exc)
        raise InternalError() from exc


def _take_stock(store_id: int, quantities: dict[int, int]) -> None:
    for product_id, quantity in quantities.items():
        catalog_service.decrement_available(store_id, product_id, quantity)


def _return_stock(store_id: int, quantities: dict[int, int]) -> None:
    for product_id, quantity in quantities.items():
        catalog_service.restore_available(store_id, product_id, quantity)


def create_sale(
    caller: CallerContext | None,
    payload: dict,
    *,
    store_resolver: StoreResolver = resolve_caller_store,
) -> dict:
    """
    Record a new sale and take its units out of available stock.

    Returns the committed sale re-read with items and product snapshots.
    """
    request = validate_sale_payload(payload)
    store_id = store_resolver(caller).id
    quantities = request.quantities_by_product()

    def _op():
        with unit_of_work():
            products = catalog_service.load_store_products(store_id, request.product_ids(), lock=True)
            catalog_service.ensure_sufficient_stock(products, quantities)

            sale = sale_ledger.insert_sale(store_id, request)
            sale_ledger.insert_items(sale, request.items)
            _take_stock(store_id, quantities)
            return sale.id

    sale_id = _execute("create", _op)
    current_app.logger.info(
        "Sale %s created in store %s (%d lines)", sale_id, store_id, len(request.items)
    )
    return sale_query_service.get_store_sale(store_id, sale_id)


def update_sale(
    caller: CallerContext | None,
    sale_id: int,
    payload: dict,
    *,
    store_resolver: StoreResolver = resolve_caller_store,
) -> dict:
    """
    Replace a sale's client fields and items.

    Steps, all in one transaction: restore the old items' stock, delete
    the old items, update the client fields, insert the new items, take
    the new items' stock. Sufficiency for the new items is judged after
    the restore, so shrinking or growing a line of the same product works
    against the stock the sale already held.
    """
    request = validate_sale_payload(payload)
    store_id = store_resolver(caller).id
    quantities = request.quantities_by_product()

    def _op():
        with unit_of_work():
            sale = sale_ledger.find_store_sale(store_id, sale_id, lock=True)

            _return_stock(store_id, sale_ledger.held_quantities(sale))
            sale_ledger.clear_items(sale)
            sale_ledger.update_client(sale, request)

            products = catalog_service.load_store_products(store_id, request.product_ids(), lock=True)
            catalog_service.ensure_sufficient_stock(products, quantities)

            sale_ledger.insert_items(sale, request.items)
            _take_stock(store_id, quantities)

    _execute("update", _op)
    current_app.logger.info(
        "Sale %s updated in store %s (%d lines)", sale_id, store_id, len(request.items)
    )
    return sale_query_service.get_store_sale(store_id, sale_id)


def delete_sale(
    caller: CallerContext | None,
    sale_id: int,
    *,
    store_resolver: StoreResolver = resolve_caller_store,
) -> dict:
    """Delete a sale and give its units back to available stock."""
    store_id = store_resolver(caller).id

    def _op():
        with unit_of_work():
            sale = sale_ledger.find_store_sale(store_id, sale_id, lock=True)

            _return_stock(store_id, sale_ledger.held_quantities(sale))
            sale_ledger.clear_items(sale)
            sale_ledger.delete_sale(sale)

    _execute("delete", _op)
    current_app.logger.info("Sale %s deleted from store %s", sale_id, store_id)
    return {"message": "Sale deleted successfully"}
