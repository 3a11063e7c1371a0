"""
Pytest fixtures for the Duka backend tests.

Provides an in-memory database, two tenant organizations with members in
each default role, stocked products, and test client helpers.
"""

import json

import httpx
import pytest

from duka import create_app
from duka.extensions import db
from duka.models import Product
from duka.services import auth_service, stock_service
from duka.services.functions_client import FunctionsClient

PASSWORD = "Password123!"


@pytest.fixture(scope="session")
def app():
    """Create application for testing."""
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "FUNCTIONS_BASE_URL": "https://functions.test/v1",
        "FUNCTIONS_API_KEY": "test-key",
        "SEND_TRANSACTION_EMAILS": False,
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    return app.test_client()


@pytest.fixture(scope="function")
def db_session(app):
    """Fresh app context and empty tables for each test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        app.extensions.pop("functions_client", None)

        yield db.session

        db.session.rollback()
        cached = app.extensions.pop("functions_client", None)
        if cached is not None:
            cached.close()


def make_user(username: str, *, is_super_admin: bool = False):
    return auth_service.create_user(
        username,
        f"{username}@example.com",
        PASSWORD,
        full_name=username.replace("_", " ").title(),
        is_super_admin=is_super_admin,
    )


def make_member(org, username: str, role_name: str):
    user = make_user(username)
    auth_service.add_member(organization_id=org.id, user_id=user.id, role_name=role_name)
    return user


def make_product(org, name: str, *, price_cents: int = 1000, stock: int = 0, sku: str | None = None):
    product = Product(organization_id=org.id, name=name, sku=sku, price_cents=price_cents)
    db.session.add(product)
    db.session.commit()
    if stock:
        stock_service.seed_stock(organization_id=org.id, product_id=product.id, quantity=stock)
    return product


@pytest.fixture(scope="function")
def owner_a(db_session):
    return make_user("owner_a")


@pytest.fixture(scope="function")
def org_a(db_session, owner_a):
    """Organization A (first tenant), owned by owner_a."""
    return auth_service.create_organization(name="Acme Duka", code="ACME", owner_user_id=owner_a.id)


@pytest.fixture(scope="function")
def owner_b(db_session):
    return make_user("owner_b")


@pytest.fixture(scope="function")
def org_b(db_session, owner_b):
    """Organization B (second tenant), owned by owner_b."""
    return auth_service.create_organization(name="Beta Traders", code="BETA", owner_user_id=owner_b.id)


@pytest.fixture(scope="function")
def manager_a(org_a):
    return make_member(org_a, "manager_a", "manager")


@pytest.fixture(scope="function")
def staff_a(org_a):
    return make_member(org_a, "staff_a", "staff")


@pytest.fixture(scope="function")
def cashier_a(org_a):
    return make_member(org_a, "cashier_a", "cashier")


@pytest.fixture(scope="function")
def super_admin(db_session):
    return make_user("root_admin", is_super_admin=True)


@pytest.fixture(scope="function")
def product_a(org_a):
    """Product in Organization A with 10 units available."""
    return make_product(org_a, "Sugar 1kg", price_cents=350000, stock=10, sku="SUG-1")


@pytest.fixture(scope="function")
def product_b(org_b):
    """Product in Organization B with 5 units available."""
    return make_product(org_b, "Rice 5kg", price_cents=1500000, stock=5, sku="RIC-5")


def get_auth_token(client, username: str, password: str = PASSWORD, organization_id=None) -> str:
    """Helper to get auth token for a user."""
    body = {"username": username, "password": password}
    if organization_id is not None:
        body["organization_id"] = organization_id
    response = client.post("/api/auth/login", json=body)
    assert response.status_code == 200, response.get_json()
    return response.get_json()["token"]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def owner_headers(client, org_a, owner_a):
    return auth_headers(get_auth_token(client, owner_a.username))


@pytest.fixture(scope="function")
def owner_b_headers(client, owner_b, org_b):
    return auth_headers(get_auth_token(client, owner_b.username))


@pytest.fixture(scope="function")
def manager_headers(client, manager_a):
    return auth_headers(get_auth_token(client, manager_a.username))


@pytest.fixture(scope="function")
def staff_headers(client, staff_a):
    return auth_headers(get_auth_token(client, staff_a.username))


@pytest.fixture(scope="function")
def cashier_headers(client, cashier_a):
    return auth_headers(get_auth_token(client, cashier_a.username))


class FunctionCalls(list):
    """(function name, JSON payload, Authorization header) per call."""

    def __init__(self):
        super().__init__()
        self.responder = self.ok

    @staticmethod
    def ok(name, payload):
        return httpx.Response(200, json={
            "success": True,
            "message": f"{name} ok",
            "orderReference": payload.get("reference"),
        })

    def handle(self, request: httpx.Request) -> httpx.Response:
        name = request.url.path.rsplit("/", 1)[-1]
        payload = json.loads(request.content or b"{}")
        self.append((name, payload, request.headers.get("Authorization")))
        return self.responder(name, payload)


@pytest.fixture(scope="function")
def functions_calls(app, db_session):
    """Route serverless function calls to an in-process MockTransport."""
    calls = FunctionCalls()
    app.extensions["functions_client"] = FunctionsClient(
        base_url=app.config["FUNCTIONS_BASE_URL"],
        api_key=app.config["FUNCTIONS_API_KEY"],
        transport=httpx.MockTransport(calls.handle),
    )
    return calls
