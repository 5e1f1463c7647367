from __future__ import annotations

from ..extensions import db
from gesticom.time_utils import to_utc_z


TYPE_LOW_STOCK = "low_stock"
TYPE_OUT_OF_STOCK = "out_of_stock"
TYPE_LARGE_SALE = "large_sale"
TYPE_MANUAL = "manual"
VALID_NOTIFICATION_TYPES = {TYPE_LOW_STOCK, TYPE_OUT_OF_STOCK, TYPE_LARGE_SALE, TYPE_MANUAL}
STOCK_ALERT_TYPES = (TYPE_LOW_STOCK, TYPE_OUT_OF_STOCK)

PRIORITY_LOW = "low"
PRIORITY_MEDIUM = "medium"
PRIORITY_HIGH = "high"
VALID_PRIORITIES = {PRIORITY_LOW, PRIORITY_MEDIUM, PRIORITY_HIGH}

STATUS_ACTIVE = "active"
STATUS_READ = "read"
STATUS_ARCHIVED = "archived"
VALID_NOTIFICATION_STATUSES = {STATUS_ACTIVE, STATUS_READ, STATUS_ARCHIVED}


class Notification(db.Model):
    """
    Alerts shown on the owner dashboard.

    Created by threshold evaluation (low_stock / out_of_stock), by large
    sales, or manually by an owner.

    LIFECYCLE:
    - ACTIVE -> READ (user acknowledged)
    - ACTIVE -> ARCHIVED (stock recovered, superseded, or dismissed)

    At most one active stock alert per product.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_status_created", "status", "created_at"),
        db.Index("ix_notifications_product_type_status", "product_id", "type", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    priority = db.Column(db.String(8), nullable=False, default=PRIORITY_MEDIUM)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    product = db.relationship("Product")
    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "product_id": self.product_id,
            "user_id": self.user_id,
            "priority": self.priority,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "read_at": to_utc_z(self.read_at) if self.read_at else None,
        }
