"""
Sale workflow tests.

Verifies:
- A sale decrements stock by the quantities sold; a void restores it exactly once
- A failed sale performs zero stock mutations
- Only owners can void; voiding twice returns 404
- Sellers on break cannot register sales
- Post-commit side effects (movements, alerts, activity) never fail the sale
"""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from gesticom.extensions import db
from gesticom.models import ActivityLog, InventoryMovement, Notification, Sale, SaleLine
from gesticom.services import notification_service, sales_service, timekeeping_service
from gesticom.services.sales_service import SaleBlockedError, SaleNotFoundError
from gesticom.errors import InsufficientStockError

from conftest import make_product, stock_of


def _cart(product_id, quantity, price=1000):
    return {"producto_id": product_id, "cantidad": quantity, "precio_unitario": price}


def _sell(client, headers, items, total):
    return client.post("/api/ventas", json={"items": items, "total": total}, headers=headers)


# =============================================================================
# CREATE
# =============================================================================


class TestCreateSale:

    def test_sale_decrements_stock(self, client, worker, worker_headers, product):
        resp = _sell(client, worker_headers, [_cart(product.id, 2)], 2000)

        assert resp.status_code == 201
        assert resp.json["total"] == 2000.0
        assert stock_of(product.id) == 3

        sale = db.session.get(Sale, resp.json["venta_id"])
        assert sale.status == "active"
        assert sale.user_id == worker.id
        assert [(line.product_id, line.quantity, float(line.unit_price)) for line in sale.lines] == [
            (product.id, 2, 1000.0)
        ]

    def test_total_is_recomputed_from_lines(self, client, worker_headers, product):
        resp = _sell(client, worker_headers, [_cart(product.id, 2, 1500)], 1)

        assert resp.status_code == 201
        assert resp.json["total"] == 3000.0

    def test_quantities_aggregated_per_product(self, client, worker_headers, product):
        resp = _sell(client, worker_headers, [_cart(product.id, 3), _cart(product.id, 3)], 6000)

        assert resp.status_code == 400
        assert resp.json["disponible"] == 5
        assert resp.json["solicitado"] == 6
        assert stock_of(product.id) == 5

    def test_multiple_products(self, client, db_session, worker_headers, product):
        other = make_product(db_session, code="P-002", name="Azucar", stock=10, price="800")

        resp = _sell(client, worker_headers, [_cart(product.id, 1), _cart(other.id, 4, 800)], 4200)

        assert resp.status_code == 201
        assert stock_of(product.id) == 4
        assert stock_of(other.id) == 6


class TestInsufficientStock:

    def test_names_product_available_and_requested(self, client, db_session, worker_headers):
        scarce = make_product(db_session, code="P-010", name="Te Verde", stock=1)

        resp = _sell(client, worker_headers, [_cart(scarce.id, 2)], 2000)

        assert resp.status_code == 400
        assert f"product {scarce.id}" in resp.json["error"]
        assert "Available: 1" in resp.json["error"]
        assert "Requested: 2" in resp.json["error"]
        assert resp.json["producto_id"] == scarce.id
        assert resp.json["disponible"] == 1
        assert resp.json["solicitado"] == 2
        assert stock_of(scarce.id) == 1
        assert db.session.query(Sale).count() == 0

    def test_failure_on_second_product_changes_nothing(self, client, db_session, worker_headers, product):
        scarce = make_product(db_session, code="P-011", name="Cafe", stock=1)

        resp = _sell(client, worker_headers, [_cart(product.id, 2), _cart(scarce.id, 3)], 5000)

        assert resp.status_code == 400
        assert stock_of(product.id) == 5
        assert stock_of(scarce.id) == 1
        assert db.session.query(Sale).count() == 0
        assert db.session.query(SaleLine).count() == 0

    def test_lost_decrement_rolls_back_whole_sale(self, db_session, worker, product, monkeypatch):
        other = make_product(db_session, code="P-012", name="Harina", stock=10)
        real_decrement = sales_service.decrement_stock

        def other_request_took_it(product_id, quantity):
            if product_id == other.id:
                return False
            return real_decrement(product_id, quantity)

        monkeypatch.setattr(sales_service, "decrement_stock", other_request_took_it)

        with pytest.raises(InsufficientStockError):
            sales_service.create_sale(
                user_id=worker.id,
                items=[
                    {"product_id": product.id, "quantity": 2, "unit_price": 1000},
                    {"product_id": other.id, "quantity": 1, "unit_price": 1000},
                ],
                total=3000,
            )

        assert stock_of(product.id) == 5
        assert stock_of(other.id) == 10
        assert db.session.query(Sale).count() == 0


class TestSaleValidation:

    @pytest.mark.parametrize(
        "body",
        [
            {"items": [], "total": 1000},
            {"total": 1000},
            {"items": "nope", "total": 1000},
            {"items": [{"producto_id": 1, "cantidad": 0, "precio_unitario": 10}], "total": 10},
            {"items": [{"producto_id": 1, "cantidad": 1.5, "precio_unitario": 10}], "total": 10},
            {"items": [{"producto_id": 1, "cantidad": 1, "precio_unitario": -5}], "total": 10},
            {"items": [{"cantidad": 1, "precio_unitario": 10}], "total": 10},
            {"items": [{"producto_id": 10**20, "cantidad": 1, "precio_unitario": 10}], "total": 10},
            {"items": [{"producto_id": 1, "cantidad": 10**20, "precio_unitario": 10}], "total": 10},
        ],
    )
    def test_malformed_cart_rejected(self, client, worker_headers, product, body):
        resp = client.post("/api/ventas", json=body, headers=worker_headers)
        assert resp.status_code == 400
        assert stock_of(product.id) == 5

    @pytest.mark.parametrize("total", [0, -100, None, "abc"])
    def test_total_must_be_positive(self, client, worker_headers, product, total):
        resp = _sell(client, worker_headers, [_cart(product.id, 1)], total)
        assert resp.status_code == 400
        assert stock_of(product.id) == 5

    def test_aggregated_quantity_out_of_range(self, client, worker_headers, product):
        big = 2**62
        resp = _sell(client, worker_headers, [_cart(product.id, big), _cart(product.id, big)], 1000)

        assert resp.status_code == 400
        assert stock_of(product.id) == 5

    def test_unknown_product_rejected(self, client, worker_headers, product):
        resp = _sell(client, worker_headers, [_cart(product.id + 999, 1)], 1000)

        assert resp.status_code == 400
        assert resp.json["producto_id"] == product.id + 999

    def test_requires_auth(self, client, product):
        resp = client.post("/api/ventas", json={"items": [_cart(product.id, 1)], "total": 1000})
        assert resp.status_code == 401


class TestBreakBlocksSales:

    def test_seller_on_break_gets_409(self, client, worker, worker_headers, product):
        timekeeping_service.mark(user_id=worker.id, checkpoint="check_in")
        timekeeping_service.mark(user_id=worker.id, checkpoint="break_start")

        resp = _sell(client, worker_headers, [_cart(product.id, 1)], 1000)

        assert resp.status_code == 409
        assert stock_of(product.id) == 5

    def test_sales_resume_after_break(self, db_session, worker, product):
        timekeeping_service.mark(user_id=worker.id, checkpoint="check_in")
        timekeeping_service.mark(user_id=worker.id, checkpoint="break_start")

        with pytest.raises(SaleBlockedError):
            sales_service.create_sale(
                user_id=worker.id,
                items=[{"product_id": product.id, "quantity": 1, "unit_price": 1000}],
                total=1000,
            )

        timekeeping_service.mark(user_id=worker.id, checkpoint="break_end")
        sale = sales_service.create_sale(
            user_id=worker.id,
            items=[{"product_id": product.id, "quantity": 1, "unit_price": 1000}],
            total=1000,
        )
        assert sale.status == "active"


# =============================================================================
# VOID
# =============================================================================


class TestVoidSale:

    @pytest.fixture
    def sale_id(self, client, worker_headers, product):
        resp = _sell(client, worker_headers, [_cart(product.id, 2)], 2000)
        assert resp.status_code == 201
        return resp.json["venta_id"]

    def test_owner_void_restores_stock(self, client, owner, owner_headers, product, sale_id):
        resp = client.put(f"/api/ventas/{sale_id}/anular", headers=owner_headers)

        assert resp.status_code == 200
        assert stock_of(product.id) == 5
        sale = db.session.get(Sale, sale_id)
        assert sale.status == "voided"
        assert sale.voided_by_user_id == owner.id
        assert sale.voided_at is not None

    def test_worker_cannot_void(self, client, worker_headers, product, sale_id):
        resp = client.put(f"/api/ventas/{sale_id}/anular", headers=worker_headers)

        assert resp.status_code == 403
        assert stock_of(product.id) == 3
        assert db.session.get(Sale, sale_id).status == "active"

    def test_void_twice_restores_once(self, client, owner_headers, product, sale_id):
        first = client.put(f"/api/ventas/{sale_id}/anular", headers=owner_headers)
        second = client.put(f"/api/ventas/{sale_id}/anular", headers=owner_headers)

        assert first.status_code == 200
        assert second.status_code == 404
        assert stock_of(product.id) == 5

    def test_unknown_sale_is_404(self, db_session, owner):
        with pytest.raises(SaleNotFoundError):
            sales_service.void_sale(sale_id=424242, actor_user_id=owner.id, actor_role=owner.role)

    def test_void_records_inbound_movement(self, client, owner_headers, product, sale_id):
        client.put(f"/api/ventas/{sale_id}/anular", headers=owner_headers)

        movements = db.session.query(InventoryMovement).filter_by(product_id=product.id).order_by(InventoryMovement.id).all()
        assert [(m.movement_type, m.quantity) for m in movements] == [("out", 2), ("in", 2)]


# =============================================================================
# SIDE EFFECTS
# =============================================================================


class TestPostCommitEffects:

    def test_low_stock_alert_after_sale(self, client, worker_headers, product):
        _sell(client, worker_headers, [_cart(product.id, 2)], 2000)

        alerts = db.session.query(Notification).filter_by(product_id=product.id, status="active").all()
        assert [a.type for a in alerts] == ["low_stock"]

    def test_out_of_stock_alert_after_selling_everything(self, client, worker_headers, product):
        _sell(client, worker_headers, [_cart(product.id, 5)], 5000)

        alerts = db.session.query(Notification).filter_by(product_id=product.id, status="active").all()
        assert [(a.type, a.priority) for a in alerts] == [("out_of_stock", "high")]

    def test_large_sale_notification(self, client, db_session, worker_headers):
        bulk = make_product(db_session, code="P-100", name="Parrilla", stock=50, price="6000")

        _sell(client, worker_headers, [_cart(bulk.id, 2, 6000)], 12000)

        large = db.session.query(Notification).filter_by(type="large_sale").all()
        assert len(large) == 1
        assert "Walter Worker" in large[0].message

    def test_sale_at_threshold_is_not_large(self, client, db_session, worker_headers):
        bulk = make_product(db_session, code="P-101", name="Horno", stock=50, price="10000")

        _sell(client, worker_headers, [_cart(bulk.id, 1, 10000)], 10000)

        assert db.session.query(Notification).filter_by(type="large_sale").count() == 0

    def test_activity_logged(self, client, worker, worker_headers, product):
        _sell(client, worker_headers, [_cart(product.id, 1)], 1000)

        assert db.session.query(ActivityLog).filter_by(user_id=worker.id, action="CREATE_SALE").count() == 1

    def test_alert_failure_does_not_fail_sale(self, client, worker_headers, product, monkeypatch):
        def broken(product_id):
            raise SQLAlchemyError("notifications table locked")

        monkeypatch.setattr(notification_service, "evaluate_product", broken)

        resp = _sell(client, worker_headers, [_cart(product.id, 2)], 2000)

        assert resp.status_code == 201
        assert stock_of(product.id) == 3
        assert db.session.get(Sale, resp.json["venta_id"]).status == "active"


# =============================================================================
# READ
# =============================================================================


class TestListSales:

    def test_list_includes_seller_and_items(self, client, worker_headers, product):
        _sell(client, worker_headers, [_cart(product.id, 1)], 1000)
        _sell(client, worker_headers, [_cart(product.id, 2)], 2000)

        resp = client.get("/api/ventas", headers=worker_headers)

        assert resp.status_code == 200
        assert [s["total"] for s in resp.json] == [2000.0, 1000.0]
        first = resp.json[0]
        assert first["vendedor_nombre"] == "Walter Worker"
        assert first["estado"] == "activa"
        assert first["items"] == [{
            "producto_id": product.id,
            "producto_nombre": "Yerba Mate",
            "cantidad": 2,
            "precio_unitario": 1000.0,
            "subtotal": 2000.0,
        }]

    def test_voided_label(self, client, worker_headers, owner_headers, product):
        sale_id = _sell(client, worker_headers, [_cart(product.id, 1)], 1000).json["venta_id"]
        client.put(f"/api/ventas/{sale_id}/anular", headers=owner_headers)

        resp = client.get(f"/api/ventas/{sale_id}", headers=worker_headers)
        assert resp.json["estado"] == "anulada"

    def test_get_unknown_sale(self, client, worker_headers):
        resp = client.get("/api/ventas/999999", headers=worker_headers)
        assert resp.status_code == 404
