import pytest
import os
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import constructpro.models  # noqa: F401
from constructpro.core.config import settings
from constructpro.core.deps import get_db
from constructpro.core.id_utils import generate_uuid
from constructpro.core.permissions import CurrentUser
from constructpro.db.base import Base
from constructpro.db.session import enable_sqlite_savepoints
from constructpro.main import app
from constructpro.models.material import Material
from constructpro.models.user import User


def _sqlite_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def test_context():
    original_secret = settings.secret_key
    settings.secret_key = "test-secret-key"

    engine = _sqlite_engine()
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    settings.secret_key = original_secret


@pytest.fixture()
def db():
    engine = _sqlite_engine()
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def make_user(db):
    def _make(role: str = "employee", username: str | None = None) -> CurrentUser:
        name = username or f"{role}_{generate_uuid()[:8]}"
        user = User(
            email=f"{name}@example.com",
            username=name,
            hashed_password="not-a-real-hash",
            full_name=name.replace("_", " ").title(),
            role=role,
        )
        db.add(user)
        db.commit()
        return CurrentUser(id=user.id, role=role)

    return _make


@pytest.fixture()
def make_material(db):
    def _make(
        code: str = "CEM-425",
        unit_cost: str | None = "10.00",
        minimum_stock_level: str | None = None,
        maximum_stock_level: str | None = None,
        reorder_point: str | None = None,
        is_active: bool = True,
    ) -> Material:
        material = Material(
            id=generate_uuid(),
            material_code=code,
            name=f"Material {code}",
            category="Cement",
            unit="bag",
            unit_cost=Decimal(unit_cost) if unit_cost is not None else None,
            minimum_stock_level=Decimal(minimum_stock_level) if minimum_stock_level is not None else None,
            maximum_stock_level=Decimal(maximum_stock_level) if maximum_stock_level is not None else None,
            reorder_point=Decimal(reorder_point) if reorder_point is not None else None,
            is_active=is_active,
        )
        db.add(material)
        db.commit()
        return material

    return _make
