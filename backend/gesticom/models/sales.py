from __future__ import annotations

from ..extensions import db
from gesticom.time_utils import to_utc_z


SALE_ACTIVE = "active"
SALE_VOIDED = "voided"


class Sale(db.Model):
    """
    Sale header.

    LIFECYCLE:
    - ACTIVE: created atomically with its lines and the stock decrements
    - VOIDED: reversed by an owner; stock restored in the same transaction

    A voided sale is never re-activated.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("total > 0", name="ck_sales_total_positive"),
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Seller
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    total = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SALE_ACTIVE, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Void audit trail
    voided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    seller = db.relationship("User", foreign_keys=[user_id], backref=db.backref("sales", lazy=True))
    voided_by = db.relationship("User", foreign_keys=[voided_by_user_id])
    lines = db.relationship(
        "SaleLine",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleLine.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "total": float(self.total),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "voided_by_user_id": self.voided_by_user_id,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
        }


class SaleLine(db.Model):
    """Individual line items on a sale. unit_price is captured at sale time."""
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)

    product = db.relationship("Product")

    @property
    def subtotal(self):
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": float(self.unit_price),
            "subtotal": float(self.subtotal),
        }
