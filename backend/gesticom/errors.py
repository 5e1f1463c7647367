# Overview: Domain error taxonomy shared by services and routes.

"""
Every service raises one of these (or a subclass). Routes translate them
into ``jsonify(error.to_dict()), error.status_code``.

- ValidationError:        400, malformed or missing input
- InsufficientStockError: 400, names product, available and requested
- ForbiddenError:         403, role check failed
- NotFoundError:          404
- ConflictError:          409, already marked, duplicates, business rule
- InternalError:          500, persistence or unexpected failure
"""

from __future__ import annotations


class GestiComError(Exception):
    """Base class for domain errors with an HTTP status and optional details."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        payload.update(self.details)
        return payload


class ValidationError(GestiComError):
    """400-level input problem."""

    status_code = 400


class ConflictError(GestiComError):
    """409-level business rule conflict (e.g., duplicate code)."""

    status_code = 409


class ForbiddenError(GestiComError):
    """403-level role check failure."""

    status_code = 403


class NotFoundError(GestiComError):
    """404-level missing resource."""

    status_code = 404


class InternalError(GestiComError):
    """500-level persistence or unexpected failure."""

    status_code = 500


class InsufficientStockError(ValidationError):
    """Requested quantity exceeds live stock for a product."""

    def __init__(self, product_id: int, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name} (product {product_id}). "
            f"Available: {available}, Requested: {requested}",
            details={
                "producto_id": product_id,
                "producto_nombre": product_name,
                "disponible": available,
                "solicitado": requested,
            },
        )
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested
