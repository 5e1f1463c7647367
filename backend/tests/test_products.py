"""
Product catalog tests.

Verifies:
- CRUD through /api/productos with Spanish field names
- Duplicate codes are rejected with 409
- Products referenced by sales cannot be deleted
- Editing stock re-evaluates the product's stock alert
"""

from decimal import Decimal

import pytest

from gesticom.models import InventoryMovement, Notification, Product, Sale, SaleLine
from gesticom.models.communications import STATUS_ACTIVE

from conftest import make_product


def _active_alerts(db_session, product_id):
    return (
        db_session.query(Notification)
        .filter_by(product_id=product_id, status=STATUS_ACTIVE)
        .all()
    )


class TestCreateProduct:

    def test_create(self, client, db_session, owner_headers):
        resp = client.post(
            "/api/productos",
            json={"codigo": "CAF-01", "nombre": "Café", "precio": 2500, "stock": 40, "categoria": "Bebidas"},
            headers=owner_headers,
        )

        assert resp.status_code == 201
        assert resp.json["codigo"] == "CAF-01"
        assert resp.json["precio"] == 2500.0
        assert resp.json["stock"] == 40
        assert db_session.query(Product).filter_by(code="CAF-01").count() == 1

    def test_duplicate_code(self, client, product, owner_headers):
        resp = client.post(
            "/api/productos",
            json={"codigo": product.code, "nombre": "Otro", "precio": 100},
            headers=owner_headers,
        )
        assert resp.status_code == 409

    def test_missing_required(self, client, db_session, owner_headers):
        resp = client.post("/api/productos", json={"nombre": "Sin código"}, headers=owner_headers)
        assert resp.status_code == 400

    @pytest.mark.parametrize(
        "overrides",
        [
            {"precio": -1},
            {"precio": 1000000000},
            {"stock": -3},
            {"stock": 2.5},
            {"stock": "1e3"},
            {"sku": "X"},
        ],
    )
    def test_rejects_bad_values(self, client, db_session, owner_headers, overrides):
        payload = {"codigo": "BAD-1", "nombre": "Malo", "precio": 10}
        payload.update(overrides)

        resp = client.post("/api/productos", json=payload, headers=owner_headers)

        assert resp.status_code == 400
        assert db_session.query(Product).filter_by(code="BAD-1").count() == 0

    def test_created_without_stock_raises_alert(self, client, db_session, owner_headers):
        resp = client.post(
            "/api/productos",
            json={"codigo": "NEW-0", "nombre": "Nuevo", "precio": 100},
            headers=owner_headers,
        )

        alerts = _active_alerts(db_session, resp.json["id"])
        assert [a.type for a in alerts] == ["out_of_stock"]


class TestListProducts:

    def test_search_by_name_code_or_category(self, client, db_session, worker_headers):
        make_product(db_session, code="A-1", name="Arroz", stock=10, category="Abarrotes")
        make_product(db_session, code="B-1", name="Bebida Cola", stock=10, category="Bebidas")
        make_product(db_session, code="C-1", name="Cloro", stock=10, category="Limpieza")

        assert client.get("/api/productos", headers=worker_headers).json["count"] == 3

        names = [p["nombre"] for p in client.get("/api/productos?search=beb", headers=worker_headers).json["items"]]
        assert names == ["Bebida Cola"]

        names = [p["nombre"] for p in client.get("/api/productos?search=c-1", headers=worker_headers).json["items"]]
        assert names == ["Cloro"]

    def test_pagination(self, client, db_session, worker_headers):
        for i in range(5):
            make_product(db_session, code=f"P-{i}", name=f"Producto {i}", stock=10)

        body = client.get("/api/productos?page=2&per_page=2", headers=worker_headers).json

        assert [p["codigo"] for p in body["items"]] == ["P-2", "P-3"]
        assert body["pagination"]["total"] == 5
        assert body["pagination"]["total_pages"] == 3
        assert body["pagination"]["has_next"] is True

    def test_get_unknown(self, client, db_session, worker_headers):
        assert client.get("/api/productos/999", headers=worker_headers).status_code == 404


class TestUpdateProduct:

    def test_partial_update(self, client, product, owner_headers):
        resp = client.put(f"/api/productos/{product.id}", json={"precio": "1500.50"}, headers=owner_headers)

        assert resp.status_code == 200
        assert resp.json["precio"] == 1500.5
        assert resp.json["nombre"] == "Yerba Mate"

    def test_code_taken(self, client, db_session, product, owner_headers):
        other = make_product(db_session, code="P-002", name="Té", stock=5)
        resp = client.put(f"/api/productos/{other.id}", json={"codigo": product.code}, headers=owner_headers)
        assert resp.status_code == 409

    def test_restock_clears_alert(self, client, db_session, owner_headers):
        p = make_product(db_session, code="LOW-1", name="Azúcar", stock=2)
        client.put(f"/api/productos/{p.id}", json={"stock": 1}, headers=owner_headers)
        assert [a.type for a in _active_alerts(db_session, p.id)] == ["low_stock"]

        client.put(f"/api/productos/{p.id}", json={"stock": 50}, headers=owner_headers)

        assert _active_alerts(db_session, p.id) == []

    def test_unknown_product(self, client, db_session, owner_headers):
        resp = client.put("/api/productos/999", json={"nombre": "X"}, headers=owner_headers)
        assert resp.status_code == 404


class TestDeleteProduct:

    def test_delete(self, client, db_session, product, owner_headers):
        product_id = product.id
        resp = client.delete(f"/api/productos/{product_id}", headers=owner_headers)

        assert resp.status_code == 200
        assert db_session.get(Product, product_id) is None
        assert db_session.query(InventoryMovement).filter_by(product_id=product_id).count() == 0

    def test_referenced_by_sale(self, client, db_session, worker, product, owner_headers):
        sale = Sale(user_id=worker.id, total=Decimal("1000"))
        db_session.add(sale)
        db_session.flush()
        db_session.add(SaleLine(sale_id=sale.id, product_id=product.id, quantity=1, unit_price=Decimal("1000")))
        db_session.commit()

        resp = client.delete(f"/api/productos/{product.id}", headers=owner_headers)

        assert resp.status_code == 409
        assert db_session.get(Product, product.id) is not None


class TestMovements:

    def test_sale_and_void_recorded(self, client, product, owner_headers, worker_headers):
        resp = client.post(
            "/api/ventas",
            json={"items": [{"producto_id": product.id, "cantidad": 2, "precio_unitario": 1000}], "total": 2000},
            headers=worker_headers,
        )
        sale_id = resp.json["venta_id"]
        client.put(f"/api/ventas/{sale_id}/anular", headers=owner_headers)

        movements = client.get(f"/api/productos/{product.id}/movimientos", headers=worker_headers).json

        assert [(m["tipo"], m["cantidad"]) for m in movements] == [("entrada", 2), ("salida", 2)]
        assert movements[1]["motivo"] == f"Sale #{sale_id}"

    def test_unknown_product(self, client, db_session, worker_headers):
        assert client.get("/api/productos/999/movimientos", headers=worker_headers).status_code == 404
