"""
Fixtures compartidos para los tests de los módulos del POS

Cada test usa una base SQLite propia en un archivo temporal, un reloj fijo
y un TestClient con get_db/get_clock sobrescritos.
"""
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ADMIN_PASSWORD", "admin-test")
os.environ.setdefault("MANAGER_PASSWORD", "manager-test")

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.main import app
from app.core.clock import FixedClock, get_clock
from app.database.database import Base, build_engine, get_db
from app.modules.auth.utils import create_access_token
from app.modules.clients.models import Client, PaymentSchedule
from app.modules.products.models import Product
from app.modules.shifts.models import ShiftType
from app.modules.shifts.service import ShiftService


# ===== BASE DE DATOS =====

@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'pos.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    """Reloj detenido el 10/05/2024 a las 15:00 UTC"""
    return FixedClock(datetime(2024, 5, 10, 15, 0, tzinfo=timezone.utc))


# ===== API =====

@pytest.fixture
def client(session_factory, clock):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _bearer(role: str) -> dict:
    token = create_access_token({"sub": role, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return _bearer("admin")


@pytest.fixture
def manager_headers():
    return _bearer("manager")


# ===== DATOS =====

@pytest.fixture
def make_product(db_session):
    """Fábrica de productos"""
    def _make(name="Bebida 1.5L", price="1000", stock=10, min_stock=2, barcode=None, category=None):
        product = Product(
            name=name,
            barcode=barcode,
            category=category,
            price=Decimal(price),
            stock=stock,
            min_stock=min_stock
        )
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product
    return _make


@pytest.fixture
def make_client(db_session):
    """Fábrica de clientes de fiado"""
    def _make(name="Vecino Pérez", balance="0", limit="10000", authorized=True,
              payment_schedule=PaymentSchedule.IMMEDIATE):
        fiado_client = Client(
            name=name,
            authorized=authorized,
            balance=Decimal(balance),
            limit=Decimal(limit),
            payment_schedule=payment_schedule,
            version=1
        )
        db_session.add(fiado_client)
        db_session.commit()
        db_session.refresh(fiado_client)
        return fiado_client
    return _make


@pytest.fixture
def open_shift(db_session, clock):
    """Turno de día abierto por Ana con 50.000 de efectivo inicial"""
    return ShiftService(db_session, clock).open_shift("Ana", ShiftType.DIA, Decimal("50000"))
