# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/shopdesk/routes/sales.py
"""
Sales API routes.

All routes act on the caller's store. A sale owned by another store
answers 404 exactly like a missing one.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service, sale_query_service
from ..errors import ServiceError
from ..decorators import require_auth


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    """List the store's sales with items, newest first."""
    try:
        sales = sale_query_service.list_sales(g.caller)
        return jsonify({"items": sales, "count": len(sales)}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Create a sale.

    Body: {"client_name"?, "client_phone"?, "items": [{"product_id", "quantity", "sell_price"}]}
    """
    try:
        sale = sales_service.create_sale(g.caller, request.get_json(silent=True))
        return jsonify(sale), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        return jsonify(sale_query_service.get_sale(g.caller, sale_id)), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:sale_id>")
@require_auth
def update_sale_route(sale_id: int):
    """Replace client fields and items; stock is re-balanced atomically."""
    try:
        sale = sales_service.update_sale(g.caller, sale_id, request.get_json(silent=True))
        return jsonify(sale), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
@require_auth
def delete_sale_route(sale_id: int):
    try:
        return jsonify(sales_service.delete_sale(g.caller, sale_id)), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
