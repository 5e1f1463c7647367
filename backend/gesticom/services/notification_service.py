# Overview: Stock threshold evaluation, large-sale alerts and notification lifecycle.

"""
Notification Service

Stock alerts:
- stock <= threshold and stock == 0 -> one active out_of_stock alert (high)
- stock <= threshold and stock > 0  -> one active low_stock alert (medium)
- stock > threshold                 -> active stock alerts archived

At most one active stock alert exists per product: raising one type
archives an active alert of the other type. Thresholds come from
StockThreshold, falling back to LOW_STOCK_DEFAULT_THRESHOLD.

LIFECYCLE: active -> read, active -> archived. Nothing returns to active.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Notification, Product, StockThreshold, User
from ..models.communications import (
    PRIORITY_HIGH,
    PRIORITY_MEDIUM,
    STATUS_ACTIVE,
    STATUS_ARCHIVED,
    STATUS_READ,
    STOCK_ALERT_TYPES,
    TYPE_LARGE_SALE,
    TYPE_LOW_STOCK,
    TYPE_MANUAL,
    TYPE_OUT_OF_STOCK,
    VALID_NOTIFICATION_STATUSES,
    VALID_NOTIFICATION_TYPES,
    VALID_PRIORITIES,
)
from gesticom.time_utils import utcnow


@dataclass
class EvaluationResult:
    created: int = 0
    archived: int = 0

    def __iadd__(self, other: "EvaluationResult") -> "EvaluationResult":
        self.created += other.created
        self.archived += other.archived
        return self

    def to_dict(self) -> dict:
        return {"created": self.created, "archived": self.archived}


def default_threshold() -> int:
    return current_app.config.get("LOW_STOCK_DEFAULT_THRESHOLD", 5)


def threshold_for(product: Product) -> int:
    if product.threshold is not None:
        return product.threshold.min_stock
    return default_threshold()


def _active_stock_alerts(product_id: int) -> list[Notification]:
    return (
        db.session.query(Notification)
        .filter(
            Notification.product_id == product_id,
            Notification.type.in_(STOCK_ALERT_TYPES),
            Notification.status == STATUS_ACTIVE,
        )
        .all()
    )


def _stock_alert_message(product: Product, minimum: int) -> tuple[str, str]:
    if product.stock == 0:
        return "Out of stock", f'Product "{product.name}" has no stock available'
    return "Low stock", f'Product "{product.name}" has only {product.stock} units left (minimum: {minimum})'


def _evaluate(product: Product) -> EvaluationResult:
    """Bring one product's stock alerts in line with its stock. Does not commit."""
    result = EvaluationResult()
    minimum = threshold_for(product)
    active = _active_stock_alerts(product.id)

    if product.stock <= minimum:
        wanted = TYPE_OUT_OF_STOCK if product.stock == 0 else TYPE_LOW_STOCK
        has_wanted = False
        for alert in active:
            if alert.type == wanted:
                has_wanted = True
            else:
                alert.status = STATUS_ARCHIVED
                result.archived += 1

        if not has_wanted:
            title, message = _stock_alert_message(product, minimum)
            db.session.add(Notification(
                type=wanted,
                title=title,
                message=message,
                product_id=product.id,
                priority=PRIORITY_HIGH if wanted == TYPE_OUT_OF_STOCK else PRIORITY_MEDIUM,
                status=STATUS_ACTIVE,
            ))
            result.created += 1
    else:
        for alert in active:
            alert.status = STATUS_ARCHIVED
            result.archived += 1

    return result


def evaluate_product(product_id: int) -> EvaluationResult:
    """Evaluate a single product (after a sale, void or stock edit) and commit."""
    product = db.session.get(Product, product_id)
    if product is None:
        return EvaluationResult()

    # Stock may have changed through a conditional UPDATE in this session
    db.session.refresh(product)
    result = _evaluate(product)
    db.session.commit()
    return result


def evaluate_thresholds() -> EvaluationResult:
    """Evaluate every product. Returns counts of created and archived alerts."""
    total = EvaluationResult()
    for product in db.session.query(Product).order_by(Product.id.asc()).all():
        total += _evaluate(product)
    db.session.commit()
    return total


def notify_large_sale(*, sale_id: int, total, seller_name: str) -> Notification | None:
    """Create a large_sale notification when total exceeds LARGE_SALE_THRESHOLD."""
    limit = current_app.config.get("LARGE_SALE_THRESHOLD", 10000)
    if total is None or total <= limit:
        return None

    notification = Notification(
        type=TYPE_LARGE_SALE,
        title="Large sale",
        message=f"Sale #{sale_id} for ${total:,.0f} made by {seller_name}",
        priority=PRIORITY_MEDIUM,
        status=STATUS_ACTIVE,
    )
    db.session.add(notification)
    db.session.commit()
    return notification


def list_notifications(status: str | None = STATUS_ACTIVE) -> list[Notification]:
    """Newest first. ``status=None`` returns every notification."""
    query = db.session.query(Notification)
    if status is not None:
        if status not in VALID_NOTIFICATION_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        query = query.filter(Notification.status == status)
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def get_notification(notification_id: int) -> Notification:
    notification = db.session.get(Notification, notification_id)
    if notification is None:
        raise NotFoundError("Notification not found")
    return notification


def create_manual(
    *,
    title: str,
    message: str,
    type: str = TYPE_MANUAL,
    priority: str = PRIORITY_MEDIUM,
    product_id: int | None = None,
    user_id: int | None = None,
) -> Notification:
    title = (title or "").strip() if isinstance(title, str) else ""
    message = (message or "").strip() if isinstance(message, str) else ""
    if not title or not message:
        raise ValidationError("title and message are required")
    if type not in VALID_NOTIFICATION_TYPES:
        raise ValidationError(f"Invalid notification type: {type}")
    if priority not in VALID_PRIORITIES:
        raise ValidationError(f"Invalid priority: {priority}")
    if product_id is not None and db.session.get(Product, product_id) is None:
        raise ValidationError("Product not found")
    if user_id is not None and db.session.get(User, user_id) is None:
        raise ValidationError("User not found")

    notification = Notification(
        type=type,
        title=title[:255],
        message=message,
        priority=priority,
        product_id=product_id,
        user_id=user_id,
        status=STATUS_ACTIVE,
    )
    db.session.add(notification)
    db.session.commit()
    return notification


def mark_read(notification_id: int) -> Notification:
    """active -> read. Marking an already-read notification is a no-op."""
    notification = get_notification(notification_id)
    if notification.status == STATUS_READ:
        return notification
    if notification.status != STATUS_ACTIVE:
        raise ConflictError("Only active notifications can be marked as read")

    notification.status = STATUS_READ
    notification.read_at = utcnow()
    db.session.commit()
    return notification


def archive(notification_id: int) -> Notification:
    """active -> archived. Archiving an archived notification is a no-op."""
    notification = get_notification(notification_id)
    if notification.status == STATUS_ARCHIVED:
        return notification
    if notification.status != STATUS_ACTIVE:
        raise ConflictError("Only active notifications can be archived")

    notification.status = STATUS_ARCHIVED
    db.session.commit()
    return notification


def delete(notification_id: int) -> None:
    notification = get_notification(notification_id)
    db.session.delete(notification)
    db.session.commit()


def list_threshold_config() -> list[dict]:
    """Every product with its effective threshold (configured or default)."""
    fallback = default_threshold()
    rows = (
        db.session.query(Product, StockThreshold)
        .outerjoin(StockThreshold, StockThreshold.product_id == Product.id)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    return [
        {
            "product_id": product.id,
            "name": product.name,
            "code": product.code,
            "stock": product.stock,
            "min_stock": threshold.min_stock if threshold else fallback,
            "configured": threshold is not None,
        }
        for product, threshold in rows
    ]


def set_threshold(*, product_id: int, min_stock: int) -> StockThreshold:
    if min_stock < 0:
        raise ValidationError("min_stock must be >= 0")
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")

    threshold = product.threshold
    if threshold is None:
        threshold = StockThreshold(product_id=product.id, min_stock=min_stock)
        db.session.add(threshold)
    else:
        threshold.min_stock = min_stock
    db.session.commit()
    return threshold


def low_stock_products() -> list[dict]:
    """Products at or below their effective threshold, lowest stock first."""
    items = []
    for entry in list_threshold_config():
        if entry["stock"] <= entry["min_stock"]:
            items.append(entry)
    items.sort(key=lambda e: (e["stock"], e["name"]))
    return items
