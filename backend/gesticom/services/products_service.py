# Overview: Service-layer operations for products; encapsulates business logic and database work.

"""
Product catalogue CRUD.

Codes are unique. A product referenced by any sale line cannot be deleted.
Editing stock re-evaluates the product's stock alert.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import InventoryMovement, Notification, Product, SaleLine

PRODUCT_MUTABLE_FIELDS = {"code", "name", "description", "price", "stock", "category", "supplier"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_code_free(code: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product.id).filter(Product.code == code)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("Product code already exists")


def _reevaluate_alerts(product_id: int) -> None:
    # Imported here: notification_service imports from this package too.
    from .notification_service import evaluate_product

    try:
        evaluate_product(product_id)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning("Stock alert evaluation failed for product %s", product_id, exc_info=True)


def list_products(
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional search and pagination.

    Args:
        search: Case-insensitive match on name, code or category
        page: Page number (1-indexed). If None, returns all items.
        per_page: Items per page (default 20, max 100)

    Returns:
        Dict with 'items' (Product objects), 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if search:
        pattern = f"%{search.strip()}%"
        base_query = base_query.filter(
            db.or_(
                Product.name.ilike(pattern),
                Product.code.ilike(pattern),
                Product.category.ilike(pattern),
            )
        )
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": products,
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": products,
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int) -> Product:
    p = db.session.get(Product, product_id)
    if p is None:
        raise NotFoundError("Product not found")
    return p


def create_product(*, patch: dict) -> Product:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError: If code already exists
    """
    _ensure_code_free(patch["code"])

    p = Product()
    apply_product_patch(p, patch)
    db.session.add(p)
    db.session.commit()

    _reevaluate_alerts(p.id)
    return p


def update_product(*, product_id: int, patch: dict) -> Product:
    """
    Update a product.

    Raises:
        NotFoundError: unknown product
        ConflictError: If new code already exists
    """
    p = get_product(product_id)

    if "code" in patch and patch["code"] != p.code:
        _ensure_code_free(patch["code"], exclude_id=p.id)

    stock_changed = "stock" in patch and patch["stock"] != p.stock

    apply_product_patch(p, patch)
    db.session.commit()

    if stock_changed:
        _reevaluate_alerts(p.id)
    return p


def delete_product(*, product_id: int) -> None:
    """
    Hard-delete a product that no sale references.

    Raises:
        NotFoundError: unknown product
        ConflictError: product appears on a sale
    """
    p = get_product(product_id)

    referenced = db.session.query(SaleLine.id).filter(SaleLine.product_id == p.id).first()
    if referenced:
        raise ConflictError("Product has recorded sales and cannot be deleted")

    db.session.query(InventoryMovement).filter(InventoryMovement.product_id == p.id).delete(synchronize_session=False)
    db.session.query(Notification).filter(Notification.product_id == p.id).update(
        {"product_id": None}, synchronize_session=False
    )
    db.session.delete(p)
    db.session.commit()
