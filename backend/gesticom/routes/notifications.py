# Overview: Flask API routes for notifications and stock thresholds; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_permission
from ..errors import GestiComError
from ..services import notification_service
from ..validation import ValidationError, coerce_int
from .labels import (
    NOTIFICATION_STATUS_VALUES,
    NOTIFICATION_TYPE_VALUES,
    PRIORITY_VALUES,
    error_response,
    from_label,
    notification_json,
)


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notificaciones")


@notifications_bp.get("")
@require_auth
@require_permission("VIEW_NOTIFICATIONS")
def list_notifications_route():
    """Active notifications by default; ?estado=leida|archivada|todas."""
    label = request.args.get("estado", "activa")
    status = None if label == "todas" else from_label(NOTIFICATION_STATUS_VALUES, label)
    try:
        notifications = notification_service.list_notifications(status)
    except GestiComError as e:
        return error_response(e)
    return jsonify([notification_json(n) for n in notifications]), 200


@notifications_bp.get("/stock-bajo")
@require_auth
@require_permission("VIEW_NOTIFICATIONS")
def low_stock_route():
    return jsonify([
        {
            "id": entry["product_id"],
            "codigo": entry["code"],
            "nombre": entry["name"],
            "stock": entry["stock"],
            "umbral_minimo": entry["min_stock"],
        }
        for entry in notification_service.low_stock_products()
    ]), 200


@notifications_bp.post("/generar-alertas")
@require_auth
@require_permission("MANAGE_NOTIFICATIONS")
def generate_alerts_route():
    try:
        result = notification_service.evaluate_thresholds()
    except Exception:
        current_app.logger.exception("Failed to evaluate stock thresholds")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "mensaje": f"{result.created} new stock alerts generated",
        "alertas_generadas": result.created,
        "alertas_archivadas": result.archived,
    }), 200


@notifications_bp.put("/<int:notification_id>/marcar-leida")
@require_auth
@require_permission("VIEW_NOTIFICATIONS")
def mark_read_route(notification_id: int):
    try:
        notification = notification_service.mark_read(notification_id)
    except GestiComError as e:
        return error_response(e)
    return jsonify({"mensaje": "Notification marked as read", "notificacion": notification_json(notification)}), 200


@notifications_bp.put("/<int:notification_id>/archivar")
@require_auth
@require_permission("MANAGE_NOTIFICATIONS")
def archive_route(notification_id: int):
    try:
        notification = notification_service.archive(notification_id)
    except GestiComError as e:
        return error_response(e)
    return jsonify({"mensaje": "Notification archived", "notificacion": notification_json(notification)}), 200


@notifications_bp.delete("/<int:notification_id>")
@require_auth
@require_permission("MANAGE_NOTIFICATIONS")
def delete_route(notification_id: int):
    try:
        notification_service.delete(notification_id)
    except GestiComError as e:
        return error_response(e)
    return jsonify({"mensaje": "Notification deleted"}), 200


@notifications_bp.post("/crear")
@require_auth
@require_permission("MANAGE_NOTIFICATIONS")
def create_route():
    data = request.get_json(silent=True) or {}
    try:
        product_id = data.get("producto_id")
        user_id = data.get("usuario_id")
        notification = notification_service.create_manual(
            title=data.get("titulo"),
            message=data.get("mensaje"),
            type=from_label(NOTIFICATION_TYPE_VALUES, data.get("tipo") or "manual"),
            priority=from_label(PRIORITY_VALUES, data.get("prioridad") or "media"),
            product_id=coerce_int(product_id, "producto_id") if product_id is not None else None,
            user_id=coerce_int(user_id, "usuario_id") if user_id is not None else None,
        )
    except GestiComError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create notification")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"mensaje": "Notification created", "notificacion": notification_json(notification)}), 201


@notifications_bp.get("/configuracion")
@require_auth
@require_permission("MANAGE_NOTIFICATIONS")
def threshold_config_route():
    return jsonify([
        {
            "id": entry["product_id"],
            "nombre": entry["name"],
            "codigo": entry["code"],
            "stock": entry["stock"],
            "umbral_minimo": entry["min_stock"],
            "configurado": entry["configured"],
        }
        for entry in notification_service.list_threshold_config()
    ]), 200


@notifications_bp.post("/configuracion")
@require_auth
@require_permission("MANAGE_NOTIFICATIONS")
def set_threshold_route():
    data = request.get_json(silent=True) or {}
    try:
        if data.get("producto_id") is None or data.get("umbral_minimo") is None:
            raise ValidationError("producto_id and umbral_minimo are required")
        threshold = notification_service.set_threshold(
            product_id=coerce_int(data["producto_id"], "producto_id"),
            min_stock=coerce_int(data["umbral_minimo"], "umbral_minimo"),
        )
    except GestiComError as e:
        return error_response(e)

    return jsonify({
        "mensaje": "Threshold updated",
        "producto_id": threshold.product_id,
        "umbral_minimo": threshold.min_stock,
    }), 200
