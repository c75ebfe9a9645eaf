# Overview: Error taxonomy shared by services and routes.

"""
Service errors carry the HTTP status the routes answer with.

Routes catch ServiceError and return ``exc.to_dict()`` with
``exc.status_code``; anything else is an unexpected failure and is
logged and answered with a generic 500.
"""
from __future__ import annotations


class ServiceError(Exception):
    """Base class for failures reported back to the caller."""
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class AuthError(ServiceError):
    """No valid session for the caller."""
    status_code = 401


class ValidationError(ServiceError, ValueError):
    """400-level input problem."""
    status_code = 400


class NotFoundError(ServiceError):
    """
    Target does not exist or is owned by another store.

    Ownership mismatches use this error too so that other stores' data
    is not revealed.
    """
    status_code = 404


class ConflictError(ServiceError):
    """409-level business rule conflict (e.g., duplicate email)."""
    status_code = 409


class InsufficientStockError(ServiceError):
    """Requested quantity exceeds a product's available quantity."""
    status_code = 400

    def __init__(
        self,
        *,
        product_id: int,
        product_name: str | None,
        available_quantity: int,
        requested_quantity: int,
    ):
        label = product_name if product_name else f"#{product_id}"
        super().__init__(
            f"Insufficient quantity for product {label}. "
            f"Available: {available_quantity}, Requested: {requested_quantity}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "available_quantity": available_quantity,
                "requested_quantity": requested_quantity,
            },
        )
        self.product_id = product_id
        self.available_quantity = available_quantity
        self.requested_quantity = requested_quantity


class InternalError(ServiceError):
    """Unexpected persistence failure; nothing was committed."""
    status_code = 500

    def __init__(self, message: str = "Internal server error", details: dict | None = None):
        super().__init__(message, details)
