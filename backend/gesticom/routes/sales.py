# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""
Sales routes.

- POST /api/ventas: register a sale from a cart (CREATE_SALE)
- PUT /api/ventas/<id>/anular: void a sale (owners only, enforced by the service)
- GET /api/ventas, GET /api/ventas/<id>: history (VIEW_SALES)
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_permission
from ..errors import GestiComError
from ..services import sales_service
from .labels import error_response, money, sale_json


sales_bp = Blueprint("sales", __name__, url_prefix="/api/ventas")


def _cart_items(raw):
    """Client cart keys -> service keys. Non-dict entries are passed on for the service to reject."""
    if not isinstance(raw, list):
        return raw
    items = []
    for item in raw:
        if isinstance(item, dict):
            items.append({
                "product_id": item.get("producto_id"),
                "quantity": item.get("cantidad"),
                "unit_price": item.get("precio_unitario"),
            })
        else:
            items.append(item)
    return items


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def create_sale_route():
    data = request.get_json(silent=True) or {}

    try:
        sale = sales_service.create_sale(
            user_id=g.current_user.id,
            items=_cart_items(data.get("items")),
            total=data.get("total"),
        )
        return jsonify({
            "message": "Sale registered",
            "venta_id": sale.id,
            "total": money(sale.total),
        }), 201
    except GestiComError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:sale_id>/anular")
@require_auth
def void_sale_route(sale_id: int):
    try:
        sales_service.void_sale(
            sale_id=sale_id,
            actor_user_id=g.current_user.id,
            actor_role=g.current_user.role,
        )
        return jsonify({"message": "Sale voided"}), 200
    except GestiComError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to void sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    limit = request.args.get("limit", type=int)
    sales = sales_service.list_sales(limit=limit)
    return jsonify([sale_json(s) for s in sales]), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except GestiComError as e:
        return error_response(e)
    return jsonify(sale_json(sale)), 200
