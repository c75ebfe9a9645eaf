# Overview: Flask API routes for the caller's stores.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import store_service
from ..errors import ServiceError
from ..decorators import require_auth

stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")


@stores_bp.get("")
@require_auth
def list_stores_route():
    stores = store_service.list_stores(g.caller)
    return jsonify({"items": [s.to_dict() for s in stores]}), 200


@stores_bp.post("")
@require_auth
def create_store_route():
    """
    Create a store owned by the caller.

    Only the caller's first store is used by catalog and sale routes.
    """
    try:
        store = store_service.create_store(g.caller, request.get_json(silent=True))
        return jsonify(store.to_dict()), 201

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create store")
        return jsonify({"error": "Internal server error"}), 500
