"""
Sales Service - cart to committed sale, and owner voids

WHY: A sale, its lines and the stock it consumes are one unit of work.
Either the header, every line and every stock decrement commit together,
or nothing does.

Phases of create_sale:
1. Validate the payload and the seller's break state (no writes)
2. Aggregate quantities per product, check existence and live stock
3. Single transaction: insert header and lines, conditional stock decrements
4. After commit, best-effort: inventory movements, stock alerts,
   large-sale notification, activity log
"""

from __future__ import annotations

from collections import OrderedDict
from decimal import Decimal

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from ..errors import ConflictError, ForbiddenError, GestiComError, InsufficientStockError, InternalError, NotFoundError
from ..extensions import db
from ..models import Product, Sale, SaleLine, User
from ..models.auth import ROLE_OWNER
from ..models.inventory import MOVEMENT_IN, MOVEMENT_OUT
from ..models.sales import SALE_ACTIVE, SALE_VOIDED
from ..validation import MAX_INT, MAX_PRICE, ValidationError, coerce_int, coerce_money
from gesticom.time_utils import utcnow
from . import activity_service, notification_service
from .concurrency import affected_rows, begin_write_transaction, lock_for_update
from .inventory_service import current_stock, decrement_stock, record_movements, restore_stock
from .timekeeping_service import is_on_break


class SaleError(GestiComError):
    """Raised for sale operation errors."""
    status_code = 400


class SaleValidationError(SaleError, ValidationError):
    status_code = 400


class ProductNotFoundError(SaleError):
    """A cart line names a product that does not exist."""
    status_code = 400

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found", details={"producto_id": product_id})
        self.product_id = product_id


class SaleBlockedError(SaleError, ConflictError):
    """The seller is on an open break."""
    status_code = 409


class SaleForbiddenError(SaleError, ForbiddenError):
    status_code = 403


class SaleNotFoundError(SaleError, NotFoundError):
    status_code = 404


def _parse_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise SaleValidationError("Sale must contain at least one item")

    parsed = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise SaleValidationError(f"Item {idx} must be an object")
        try:
            product_id = coerce_int(item.get("product_id"), "product_id")
            quantity = coerce_int(item.get("quantity"), "quantity")
            unit_price = coerce_money(item.get("unit_price"), "unit_price")
        except ValidationError as e:
            raise SaleValidationError(f"Item {idx}: {e}")

        if not 0 < product_id <= MAX_INT:
            raise SaleValidationError(f"Item {idx}: product_id out of range")
        if quantity <= 0:
            raise SaleValidationError(f"Item {idx}: quantity must be greater than zero")
        if quantity > MAX_INT:
            raise SaleValidationError(f"Item {idx}: quantity out of range")
        if unit_price < 0:
            raise SaleValidationError(f"Item {idx}: unit_price must be >= 0")
        if unit_price > MAX_PRICE:
            raise SaleValidationError(f"Item {idx}: unit_price cannot exceed {MAX_PRICE:,}")

        parsed.append({"product_id": product_id, "quantity": quantity, "unit_price": unit_price})
    return parsed


def _best_effort(label: str, fn, *args, **kwargs):
    """Run a post-commit side effect; failures are logged and rolled back."""
    try:
        return fn(*args, **kwargs)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning("Post-commit step failed: %s", label, exc_info=True)
        return None


def create_sale(*, user_id: int, items, total) -> Sale:
    """
    Record a sale atomically.

    Args:
        user_id: Seller
        items: [{"product_id", "quantity", "unit_price"}, ...]
        total: Client-computed total; must be > 0. The stored total is
            recomputed from the lines.

    Raises:
        SaleValidationError: malformed cart or total
        SaleBlockedError: seller is on break
        ProductNotFoundError: unknown product
        InsufficientStockError: requested more than live stock
    """
    lines = _parse_items(items)

    try:
        client_total = coerce_money(total, "total")
    except ValidationError:
        raise SaleValidationError("total must be a number")
    if client_total <= 0:
        raise SaleValidationError("total must be greater than zero")

    if is_on_break(user_id):
        raise SaleBlockedError("Cannot register sales while on break")

    requested: "OrderedDict[int, int]" = OrderedDict()
    for line in lines:
        requested[line["product_id"]] = requested.get(line["product_id"], 0) + line["quantity"]
        if requested[line["product_id"]] > MAX_INT:
            raise SaleValidationError(f"quantity out of range for product {line['product_id']}")

    computed_total = sum((line["unit_price"] * line["quantity"] for line in lines), Decimal("0"))
    if computed_total <= 0:
        raise SaleValidationError("Sale total must be greater than zero")
    if computed_total != client_total:
        current_app.logger.warning(
            "Sale total mismatch for user %s: client %s, computed %s", user_id, client_total, computed_total
        )

    try:
        begin_write_transaction()

        # Validation phase: every product exists and has enough stock
        for product_id, quantity in requested.items():
            product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
            if product is None:
                raise ProductNotFoundError(product_id)
            if product.stock < quantity:
                raise InsufficientStockError(product.id, product.name, product.stock, quantity)

        sale = Sale(user_id=user_id, total=computed_total, status=SALE_ACTIVE)
        db.session.add(sale)
        for line in lines:
            sale.lines.append(SaleLine(
                product_id=line["product_id"],
                quantity=line["quantity"],
                unit_price=line["unit_price"],
            ))
        db.session.flush()

        # Commit phase: each decrement re-checks stock in its WHERE clause
        for product_id, quantity in requested.items():
            if not decrement_stock(product_id, quantity):
                product = db.session.get(Product, product_id)
                available = current_stock(product_id) or 0
                raise InsufficientStockError(product_id, product.name, available, quantity)

        db.session.commit()
    except GestiComError:
        db.session.rollback()
        raise
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to persist sale for user %s", user_id)
        raise InternalError("Could not record sale")

    sale_id = sale.id
    sale_total = sale.total

    record_movements(
        list(requested.items()),
        movement_type=MOVEMENT_OUT,
        user_id=user_id,
        reason=f"Sale #{sale_id}",
    )
    for product_id in requested:
        _best_effort(f"stock alert for product {product_id}", notification_service.evaluate_product, product_id)

    seller = db.session.get(User, user_id)
    seller_name = seller.name if seller else f"user {user_id}"
    _best_effort(
        f"large sale notification for sale {sale_id}",
        notification_service.notify_large_sale,
        sale_id=sale_id,
        total=sale_total,
        seller_name=seller_name,
    )
    activity_service.log_activity(
        user_id, activity_service.ACTION_CREATE_SALE, f"Sale #{sale_id} for {sale_total}"
    )

    return db.session.get(Sale, sale_id)


def void_sale(*, sale_id: int, actor_user_id: int, actor_role: str) -> Sale:
    """
    Void an active sale and return its stock.

    The status flip is conditional (WHERE status = 'active'), so a sale is
    voided and restocked at most once even under concurrent requests.

    Raises:
        SaleForbiddenError: actor is not an owner
        SaleNotFoundError: sale missing or already voided
    """
    if actor_role != ROLE_OWNER:
        raise SaleForbiddenError("Only an owner can void sales")

    try:
        begin_write_transaction()

        result = db.session.execute(
            update(Sale)
            .where(Sale.id == sale_id, Sale.status == SALE_ACTIVE)
            .values(status=SALE_VOIDED, voided_by_user_id=actor_user_id, voided_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if affected_rows(result) == 0:
            raise SaleNotFoundError("Sale not found or already voided")

        lines = db.session.query(SaleLine).filter(SaleLine.sale_id == sale_id).order_by(SaleLine.id).all()
        restored: "OrderedDict[int, int]" = OrderedDict()
        for line in lines:
            restore_stock(line.product_id, line.quantity)
            restored[line.product_id] = restored.get(line.product_id, 0) + line.quantity

        db.session.commit()
    except GestiComError:
        db.session.rollback()
        raise
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to void sale %s", sale_id)
        raise InternalError("Could not void sale")

    record_movements(
        list(restored.items()),
        movement_type=MOVEMENT_IN,
        user_id=actor_user_id,
        reason=f"Void sale #{sale_id}",
    )
    for product_id in restored:
        _best_effort(f"stock alert for product {product_id}", notification_service.evaluate_product, product_id)
    activity_service.log_activity(actor_user_id, activity_service.ACTION_VOID_SALE, f"Sale #{sale_id} voided")

    return db.session.get(Sale, sale_id)


def _with_details(query):
    return query.options(
        joinedload(Sale.seller),
        joinedload(Sale.lines).joinedload(SaleLine.product),
    )


def list_sales(*, status: str | None = None, limit: int | None = None) -> list[Sale]:
    """Sales newest first, with seller and line products eagerly loaded."""
    query = _with_details(db.session.query(Sale))
    if status is not None:
        query = query.filter(Sale.status == status)
    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_sale(sale_id: int) -> Sale:
    sale = _with_details(db.session.query(Sale)).filter(Sale.id == sale_id).first()
    if sale is None:
        raise SaleNotFoundError("Sale not found")
    return sale
