# Overview: Stock mutation primitives used by the sale workflow, plus the best-effort movement trail.

"""
Inventory Service

Product.stock is never read-modify-written in Python. Every change is a
single UPDATE whose WHERE clause carries the invariant:

    UPDATE products SET stock = stock - :q WHERE id = :id AND stock >= :q

Zero affected rows means another request took the stock first. Callers run
these inside their own transaction and decide whether to commit or roll back.
"""

from __future__ import annotations

from typing import Iterable

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import InventoryMovement, Product
from .concurrency import affected_rows


def decrement_stock(product_id: int, quantity: int) -> bool:
    """Conditionally take ``quantity`` units. Returns False if stock is short."""
    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    return affected_rows(result) == 1


def restore_stock(product_id: int, quantity: int) -> bool:
    """Put ``quantity`` units back. Returns False if the product no longer exists."""
    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + quantity)
        .execution_options(synchronize_session=False)
    )
    return affected_rows(result) == 1


def current_stock(product_id: int) -> int | None:
    return db.session.query(Product.stock).filter(Product.id == product_id).scalar()


def record_movements(
    movements: Iterable[tuple[int, int]],
    *,
    movement_type: str,
    user_id: int | None,
    reason: str,
) -> int:
    """
    Write one InventoryMovement per (product_id, quantity).

    Best-effort: runs after the stock change has committed. On failure the
    rows are rolled back and a warning is logged. Returns rows written.
    """
    rows = [
        InventoryMovement(
            product_id=product_id,
            movement_type=movement_type,
            quantity=quantity,
            user_id=user_id,
            reason=reason,
        )
        for product_id, quantity in movements
    ]
    if not rows:
        return 0

    try:
        db.session.add_all(rows)
        db.session.commit()
        return len(rows)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning("Could not record inventory movements (%s)", reason, exc_info=True)
        return 0


def list_movements(product_id: int | None = None, limit: int = 100) -> list[InventoryMovement]:
    query = db.session.query(InventoryMovement)
    if product_id is not None:
        query = query.filter(InventoryMovement.product_id == product_id)
    return query.order_by(InventoryMovement.id.desc()).limit(limit).all()
