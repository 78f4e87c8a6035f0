import os

# before anything imports app.config
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EMAIL_ENABLED", "0")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import get_db
from app.main import app
from app.security import create_access_token
from models import Base
from models.affiliate_links import AffiliateLink
from models.products import Product, ProductStatus
from models.profiles import Profile


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # let SQLAlchemy drive BEGIN/SAVEPOINT instead of pysqlite
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# -------------------------------------------------
# Seed data
# -------------------------------------------------
def _profile(db, email, name, balance=0):
    p = Profile(email=email, full_name=name, wallet_balance=balance)
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture
def vendor(db):
    return _profile(db, "vendor1@example.com", "Vendor One")


@pytest.fixture
def vendor2(db):
    return _profile(db, "vendor2@example.com", "Vendor Two")


@pytest.fixture
def affiliate(db):
    return _profile(db, "affiliate1@example.com", "Affiliate One")


@pytest.fixture
def admin(db):
    return _profile(db, "admin@example.com", "Admin")


@pytest.fixture
def make_product(db):
    def _make(vendor, *, title="Product", price=10000, commission=30, status=ProductStatus.APPROVED):
        p = Product(
            vendor_id=vendor.id,
            title=title,
            category="general",
            price=price,
            commission=commission,
            status=status,
            sales=0,
        )
        db.add(p)
        db.commit()
        db.refresh(p)
        return p

    return _make


@pytest.fixture
def product(make_product, vendor):
    return make_product(vendor, title="Handwoven Basket", price=10000, commission=30)


@pytest.fixture
def make_link(db):
    def _make(affiliate, product, *, code="AFL-TEST0001", is_active=True, expires_at=None):
        link = AffiliateLink(
            affiliate_id=affiliate.id,
            product_id=product.id,
            code=code,
            clicks=0,
            conversions=0,
            commission_earned=0,
            is_active=is_active,
            expires_at=expires_at,
        )
        db.add(link)
        db.commit()
        db.refresh(link)
        return link

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user, *roles):
        token = create_access_token(user.id, roles)
        return {"Authorization": f"Bearer {token}"}

    return _headers
