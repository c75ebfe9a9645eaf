# Overview: Flask API routes for the product catalog.

# backend/shopdesk/routes/products.py
"""
Product catalog routes, scoped to the caller's store.

Edits never take available_quantity from the request body; they
recompute it from quantity and the units held by sales.
"""
from flask import Blueprint, request, g, current_app

from ..services import catalog_service
from ..services.store_context import resolve_caller_store
from ..validation import validate_product_payload
from ..errors import ServiceError
from ..decorators import require_auth

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    try:
        store = resolve_caller_store(g.caller)
        products = catalog_service.list_products(store.id)
        return {"items": [p.to_dict() for p in products], "count": len(products)}
    except ServiceError as e:
        return e.to_dict(), e.status_code


@products_bp.post("")
@require_auth
def create_product_route():
    """
    Create a product in the caller's store.

    available_quantity defaults to quantity.
    """
    try:
        fields = validate_product_payload(request.get_json(silent=True))
        store = resolve_caller_store(g.caller)
        product = catalog_service.create_product(store.id, fields)
    except ServiceError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return product.to_dict(), 201


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        store = resolve_caller_store(g.caller)
        return catalog_service.get_product(store.id, product_id).to_dict()
    except ServiceError as e:
        return e.to_dict(), e.status_code


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    """
    Replace a product's fields.

    available_quantity is derived from quantity and the units held by sales.
    """
    try:
        fields = validate_product_payload(request.get_json(silent=True))
        store = resolve_caller_store(g.caller)
        product = catalog_service.update_product(store.id, product_id, fields)
    except ServiceError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return product.to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        store = resolve_caller_store(g.caller)
        return catalog_service.delete_product(store.id, product_id)
    except ServiceError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Internal server error"}, 500


@products_bp.get("/stock-audit")
@require_auth
def stock_audit_route():
    """Products whose available stock disagrees with their active sale items."""
    try:
        store = resolve_caller_store(g.caller)
        discrepancies = catalog_service.audit_stock(store.id)
        return {"discrepancies": discrepancies, "count": len(discrepancies)}
    except ServiceError as e:
        return e.to_dict(), e.status_code
