import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="inventory-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_DB_DIR, "inventory-test.db")
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient

from database import Base, SessionLocal, engine
from main import app
from models.Category import Category
from models.Supplier import Supplier
from models.User import User
from schemas.InventoryItemSchemas import ItemCreate
from schemas.UserSchemas import Actor, UserRole
from services.event_publisher import InMemoryEventPublisher
from services.item_registry_services import ItemRegistryService
from utils import create_access_token

SEED_USERS = [
    ("admin", UserRole.ADMIN),
    ("manager", UserRole.MANAGER),
    ("teknisi", UserRole.TEKNISI),
    ("teknisi2", UserRole.TEKNISI),
    ("sales", UserRole.SALES),
]


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def users(db):
    actors = {}
    for username, role in SEED_USERS:
        user = User(
            username=username,
            email=f"{username}@isp.example",
            full_name=username.title(),
            role=role,
            is_active=True,
        )
        db.add(user)
        db.flush()
        actors[username] = Actor(id=user.id, username=user.username, role=role)
    db.commit()
    return actors


@pytest.fixture
def category(db):
    row = Category(name="Networking", code="NET")
    db.add(row)
    db.commit()
    return row.id


@pytest.fixture
def supplier(db):
    row = Supplier(name="PT Kabel Nusantara", code="KBN", city="Jakarta")
    db.add(row)
    db.commit()
    return row.id


@pytest.fixture
def publisher():
    sink = InMemoryEventPublisher()
    previous = getattr(app.state, "event_publisher", None)
    app.state.event_publisher = sink
    yield sink
    app.state.event_publisher = previous


@pytest.fixture
def client(publisher):
    return TestClient(app)


@pytest.fixture
def auth_headers(users):
    def _headers(username: str):
        actor = users[username]
        token = create_access_token(actor.id, actor.username, actor.role.value)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def make_item(db, users, category):
    counter = {"n": 0}

    def _make(quantity: int = 0, **overrides):
        counter["n"] += 1
        data = {
            "sku": f"ONT-{counter['n']:03d}",
            "name": f"ONT Router {counter['n']}",
            "category_id": category,
            "purchase_price": 250000,
            "selling_price": 350000,
            "minimum_stock": 2,
            "quantity_in_stock": quantity,
        }
        data.update(overrides)
        return ItemRegistryService(db).create(users["admin"], ItemCreate(**data))

    return _make
