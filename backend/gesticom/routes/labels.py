# Overview: Spanish wire labels and JSON shapes; the only place internal enums meet client vocabulary.

"""
Internal values are English enums (owner, check_in, low_stock, ...). The
client speaks Spanish (dueño, entrada, stock_bajo, ...). Routes translate in
both directions here and nowhere else.
"""

from __future__ import annotations

from flask import jsonify

from ..errors import GestiComError
from ..models.auth import ROLE_OWNER, ROLE_WORKER, STATUS_DISABLED, STATUS_ENABLED
from ..models.communications import (
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    STATUS_ACTIVE,
    STATUS_ARCHIVED,
    STATUS_READ,
    TYPE_LARGE_SALE,
    TYPE_LOW_STOCK,
    TYPE_MANUAL,
    TYPE_OUT_OF_STOCK,
)
from ..models.inventory import MOVEMENT_IN, MOVEMENT_OUT
from ..models.sales import SALE_ACTIVE, SALE_VOIDED
from ..models.timekeeping import BREAK_END, BREAK_START, CHECK_IN, CHECK_OUT
from gesticom.time_utils import to_clock_time, to_utc_z


ROLE_LABELS = {ROLE_OWNER: "dueño", ROLE_WORKER: "trabajador"}
USER_STATUS_LABELS = {STATUS_ENABLED: "habilitado", STATUS_DISABLED: "deshabilitado"}
SALE_STATUS_LABELS = {SALE_ACTIVE: "activa", SALE_VOIDED: "anulada"}
CHECKPOINT_LABELS = {
    CHECK_IN: "entrada",
    BREAK_START: "inicio_colacion",
    BREAK_END: "fin_colacion",
    CHECK_OUT: "salida",
}
NOTIFICATION_TYPE_LABELS = {
    TYPE_LOW_STOCK: "stock_bajo",
    TYPE_OUT_OF_STOCK: "sin_stock",
    TYPE_LARGE_SALE: "venta_alta",
    TYPE_MANUAL: "manual",
}
PRIORITY_LABELS = {PRIORITY_LOW: "baja", PRIORITY_MEDIUM: "media", PRIORITY_HIGH: "alta"}
NOTIFICATION_STATUS_LABELS = {STATUS_ACTIVE: "activa", STATUS_READ: "leida", STATUS_ARCHIVED: "archivada"}
REPORT_STATUS_LABELS = {"complete": "completo", "incomplete": "incompleto", "absent": "ausente"}
MOVEMENT_TYPE_LABELS = {MOVEMENT_OUT: "salida", MOVEMENT_IN: "entrada"}

# Client product keys -> Product columns
PRODUCT_FIELDS = {
    "codigo": "code",
    "nombre": "name",
    "descripcion": "description",
    "precio": "price",
    "stock": "stock",
    "categoria": "category",
    "proveedor": "supplier",
}


def _reverse(mapping: dict) -> dict:
    return {label: value for value, label in mapping.items()}


ROLE_VALUES = _reverse(ROLE_LABELS)
USER_STATUS_VALUES = _reverse(USER_STATUS_LABELS)
CHECKPOINT_VALUES = _reverse(CHECKPOINT_LABELS)
NOTIFICATION_TYPE_VALUES = _reverse(NOTIFICATION_TYPE_LABELS)
PRIORITY_VALUES = _reverse(PRIORITY_LABELS)
NOTIFICATION_STATUS_VALUES = _reverse(NOTIFICATION_STATUS_LABELS)


def from_label(mapping: dict, label):
    """Translate a client label to its internal value; unknown labels pass through unchanged."""
    if isinstance(label, str):
        return mapping.get(label.strip(), label.strip())
    return label


def error_response(e: GestiComError):
    return jsonify(e.to_dict()), e.status_code


def money(value) -> float | None:
    return float(value) if value is not None else None


def user_json(user) -> dict:
    return {
        "id": user.id,
        "nombre": user.name,
        "rut": user.national_id,
        "email": user.email,
        "rol": ROLE_LABELS.get(user.role, user.role),
        "estado": USER_STATUS_LABELS.get(user.status, user.status),
        "fecha_creacion": to_utc_z(user.created_at),
        "ultimo_acceso": to_utc_z(user.last_login_at) if user.last_login_at else None,
    }


def product_json(product) -> dict:
    return {
        "id": product.id,
        "codigo": product.code,
        "nombre": product.name,
        "descripcion": product.description,
        "precio": money(product.price),
        "stock": product.stock,
        "categoria": product.category,
        "proveedor": product.supplier,
        "created_at": to_utc_z(product.created_at),
        "updated_at": to_utc_z(product.updated_at),
    }


def product_from_payload(payload: dict) -> dict:
    """Rename client keys to column names. Unknown keys are kept so validation can reject them."""
    return {PRODUCT_FIELDS.get(key, key): value for key, value in payload.items()}


def sale_json(sale) -> dict:
    return {
        "id": sale.id,
        "usuario_id": sale.user_id,
        "vendedor_nombre": sale.seller.name if sale.seller else None,
        "total": money(sale.total),
        "estado": SALE_STATUS_LABELS.get(sale.status, sale.status),
        "fecha": to_utc_z(sale.created_at),
        "anulada_por": sale.voided_by_user_id,
        "fecha_anulacion": to_utc_z(sale.voided_at) if sale.voided_at else None,
        "items": [
            {
                "producto_id": line.product_id,
                "producto_nombre": line.product.name if line.product else None,
                "cantidad": line.quantity,
                "precio_unitario": money(line.unit_price),
                "subtotal": money(line.subtotal),
            }
            for line in sale.lines
        ],
    }


def attendance_json(record) -> dict:
    return {
        "fecha": record.work_date.isoformat(),
        "hora_entrada": to_clock_time(record.check_in),
        "hora_inicio_colacion": to_clock_time(record.break_start),
        "hora_fin_colacion": to_clock_time(record.break_end),
        "hora_salida": to_clock_time(record.check_out),
    }


def notification_json(notification) -> dict:
    product = notification.product
    user = notification.user
    return {
        "id": notification.id,
        "tipo": NOTIFICATION_TYPE_LABELS.get(notification.type, notification.type),
        "titulo": notification.title,
        "mensaje": notification.message,
        "producto_id": notification.product_id,
        "producto_nombre": product.name if product else None,
        "stock_actual": product.stock if product else None,
        "usuario_id": notification.user_id,
        "usuario_nombre": user.name if user else None,
        "prioridad": PRIORITY_LABELS.get(notification.priority, notification.priority),
        "estado": NOTIFICATION_STATUS_LABELS.get(notification.status, notification.status),
        "fecha": to_utc_z(notification.created_at),
        "fecha_lectura": to_utc_z(notification.read_at) if notification.read_at else None,
    }


def movement_json(movement) -> dict:
    return {
        "id": movement.id,
        "producto_id": movement.product_id,
        "tipo": MOVEMENT_TYPE_LABELS.get(movement.movement_type, movement.movement_type),
        "cantidad": movement.quantity,
        "usuario_id": movement.user_id,
        "motivo": movement.reason,
        "fecha": to_utc_z(movement.created_at),
    }


def activity_json(entry) -> dict:
    return {
        "id": entry.id,
        "usuario_id": entry.user_id,
        "accion": entry.action,
        "descripcion": entry.description,
        "ip": entry.ip_address,
        "fecha": to_utc_z(entry.created_at),
    }
