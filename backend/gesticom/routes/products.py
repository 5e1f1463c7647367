# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product management routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_INVENTORY permission
- Write operations require MANAGE_PRODUCTS permission
"""
from flask import Blueprint, request, jsonify, current_app

from ..services import inventory_service, products_service
from ..models import Product
from ..errors import GestiComError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
)
from ..decorators import require_auth, require_permission
from .labels import error_response, movement_json, product_from_payload, product_json

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "description", "price", "stock", "category", "supplier"},
    required_on_create={"code", "name", "price"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/productos")


@products_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_products():
    """
    List all products with optional search and pagination.

    Query params:
    - search: str (optional) - matches name, code or category
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    result = products_service.list_products(
        search=request.args.get("search"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    result["items"] = [product_json(p) for p in result["items"]]
    return jsonify(result), 200


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except GestiComError as e:
        return error_response(e)
    return jsonify(product_json(product)), 200


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """Create a new product. Codes are unique (409 on duplicate)."""
    payload = product_from_payload(request.get_json(silent=True) or {})

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)  # Handles price validation including max check
    except ValidationError as e:
        return error_response(e)

    try:
        created = products_service.create_product(patch=patch)
    except GestiComError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(product_json(created)), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    """Update a product. A stock change re-evaluates its stock alert."""
    payload = product_from_payload(request.get_json(silent=True) or {})

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return error_response(e)

    try:
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except GestiComError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(product_json(updated)), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    """Delete a product. Products that appear on sales cannot be deleted (409)."""
    try:
        products_service.delete_product(product_id=product_id)
    except GestiComError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Product deleted"}), 200


@products_bp.get("/<int:product_id>/movimientos")
@require_auth
@require_permission("VIEW_INVENTORY")
def product_movements_route(product_id: int):
    """Stock movements recorded by sales and voids, newest first."""
    try:
        products_service.get_product(product_id)
    except GestiComError as e:
        return error_response(e)

    limit = min(request.args.get("limit", default=100, type=int) or 100, 500)
    movements = inventory_service.list_movements(product_id=product_id, limit=limit)
    return jsonify([movement_json(m) for m in movements]), 200
