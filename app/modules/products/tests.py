"""
Tests para el módulo de Productos

Cubren:
- CRUD y unicidad de código de barras
- Primitivas atómicas de stock
- Alertas de stock bajo
- Permisos de los endpoints
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from app.common.exceptions import ProductNotFound, ProductConflict, StockInsufficient, InvalidAmount
from app.modules.products.models import Product
from app.modules.products.schemas import ProductCreate, ProductUpdate
from app.modules.products.service import ProductService


class TestProductService:
    """Tests de ProductService"""

    def test_create_product(self, db_session):
        product = ProductService(db_session).create_product(ProductCreate(
            name="  Yerba 1kg ", barcode=" 7790001 ", price=Decimal("3200"), stock=12
        ))
        assert product.name == "Yerba 1kg"
        assert product.barcode == "7790001"
        assert product.min_stock >= 0
        assert product.is_low_stock is False

    def test_duplicate_barcode(self, db_session, make_product):
        make_product(barcode="7790001")
        with pytest.raises(ProductConflict):
            ProductService(db_session).create_product(ProductCreate(
                name="Otro", barcode="7790001", price=Decimal("100")
            ))

    def test_update_barcode_to_existing(self, db_session, make_product):
        make_product(name="A", barcode="111")
        other = make_product(name="B", barcode="222")
        with pytest.raises(ProductConflict):
            ProductService(db_session).update_product(other.id, ProductUpdate(barcode="111"))

    def test_update_keeps_own_barcode(self, db_session, make_product):
        product = make_product(barcode="111", price="500")
        updated = ProductService(db_session).update_product(
            product.id, ProductUpdate(barcode="111", price=Decimal("650"))
        )
        assert updated.price == Decimal("650")

    def test_update_ignores_null_for_required_fields(self, db_session, make_product):
        product = make_product(name="Té", price="700", min_stock=4, category="Infusiones")
        updated = ProductService(db_session).update_product(
            product.id, ProductUpdate(name=None, price=None, min_stock=None, category=None)
        )
        assert (updated.name, updated.price, updated.min_stock) == ("Té", Decimal("700"), 4)
        assert updated.category is None

    def test_lookup(self, db_session, make_product):
        product = make_product(name="Fideos", barcode="555")
        service = ProductService(db_session)

        assert service.get_by_barcode(" 555 ").id == product.id
        assert service.list_products(search="fid")["total"] == 1
        with pytest.raises(ProductNotFound):
            service.get_product(uuid4())
        with pytest.raises(ProductNotFound):
            service.get_by_barcode("000")

    def test_delete_product(self, db_session, make_product):
        product = make_product()
        service = ProductService(db_session)
        assert service.delete_product(product.id) is True
        with pytest.raises(ProductNotFound):
            service.get_product(product.id)


class TestStockPrimitives:
    """Descuento e ingreso atómico de stock"""

    def test_decrement_to_zero(self, db_session, make_product):
        product = make_product(stock=3)
        assert ProductService(db_session).decrement_stock(product.id, 3) == 0

    def test_decrement_insufficient(self, db_session, make_product):
        product = make_product(name="Aceite", stock=2)
        with pytest.raises(StockInsufficient) as exc_info:
            ProductService(db_session).decrement_stock(product.id, 3)
        assert exc_info.value.context["available"] == 2
        db_session.rollback()

        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 2

    def test_decrement_unknown_product(self, db_session):
        with pytest.raises(ProductNotFound):
            ProductService(db_session).decrement_stock(uuid4(), 1)

    def test_add_stock(self, db_session, make_product):
        product = make_product(stock=1)
        updated = ProductService(db_session).add_stock(product.id, 24, "Compra a proveedor")
        assert updated.stock == 25

    def test_add_stock_requires_positive_quantity(self, db_session, make_product):
        product = make_product()
        with pytest.raises(InvalidAmount):
            ProductService(db_session).add_stock(product.id, 0, "Ajuste")

    def test_low_stock_ordered_by_deficit(self, db_session, make_product):
        make_product(name="Sal", stock=2, min_stock=2)
        make_product(name="Azúcar", stock=0, min_stock=5)
        make_product(name="Harina", stock=9, min_stock=2)

        items = ProductService(db_session).low_stock_products()
        assert [(i.name, i.deficit) for i in items] == [("Azúcar", 5), ("Sal", 0)]


class TestProductEndpoints:
    """Endpoints REST de productos"""

    def test_create_requires_manager(self, client, manager_headers, admin_headers):
        payload = {"name": "Galletas", "price": "890", "stock": 6}

        denied = client.post("/api/v1/products/", json=payload)
        assert (denied.status_code, denied.json()["code"]) == (403, "permission_denied")

        assert client.post("/api/v1/products/", json=payload, headers=manager_headers).status_code == 201
        assert client.post("/api/v1/products/", json={**payload, "name": "Pan"}, headers=admin_headers).status_code == 201

    def test_counter_can_read(self, client, make_product):
        product = make_product(name="Jugo", barcode="999", stock=1, min_stock=3)

        assert client.get(f"/api/v1/products/{product.id}").json()["is_low_stock"] is True
        assert client.get("/api/v1/products/barcode/999").json()["id"] == str(product.id)
        assert client.get("/api/v1/products/low-stock").json()[0]["deficit"] == 2
        assert client.get("/api/v1/products/", params={"low_stock": True}).json()["total"] == 1

    def test_stock_and_delete(self, client, make_product, manager_headers):
        product = make_product(stock=4)

        response = client.post(
            f"/api/v1/products/{product.id}/stock", json={"quantity": 6}, headers=manager_headers
        )
        assert response.json()["stock"] == 10

        assert client.delete(f"/api/v1/products/{product.id}", headers=manager_headers).status_code == 204
        missing = client.get(f"/api/v1/products/{product.id}")
        assert (missing.status_code, missing.json()["code"]) == (404, "product_not_found")
