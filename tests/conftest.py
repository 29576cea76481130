import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="menulink-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'menulink.db')}"
os.environ["BACKEND_URL"] = "http://backend.test"
os.environ["PUBLIC_URL"] = "menulink.in"
os.environ["ADMIN_EMAIL"] = "admin@menulink.in"
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import copy

import httpx
import pytest
from fastapi.testclient import TestClient

from menulink.backend import BackendClient
from menulink.db import Base, engine
from menulink.main import create_app

TACO_PLACE = {
    "success": True,
    "restaurant": {
        "id": 7,
        "slug": "taco-place",
        "name": "Taco Place",
        "description": "Street tacos",
        "phone": "+91 98765 43210",
        "whatsapp": "+91 98765 43210",
        "instagram": "@tacoplace",
        "categories": [
            {
                "id": 1,
                "name": "Tacos",
                "menuItems": [
                    {"id": "i1", "name": "Al Pastor", "price": 5.00, "isAvailable": True, "categoryId": "1"},
                    {"id": "i2", "name": "Carnitas", "price": 6.5, "isAvailable": True, "categoryId": "1"},
                    {"id": "i3", "name": "Birria", "price": 8, "isAvailable": False, "categoryId": "1"},
                ],
            }
        ],
        "settings": {"isGrid": True, "isOrder": None, "facebook": None},
    },
}


class FakeBackend:
    """Serves canned backend responses keyed by method and path."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, status=200, json=None, handler=None):
        self.routes[(method, path)] = handler or (status, json)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "no such route"})
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, json=body)

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def taco_place():
    return copy.deepcopy(TACO_PLACE)


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def backend(fake_backend):
    return BackendClient("http://backend.test", transport=httpx.MockTransport(fake_backend))


@pytest.fixture
def make_client(backend):
    clients = []

    def factory(settings=None):
        client = TestClient(create_app(backend=backend, settings=settings))
        client.__enter__()
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.__exit__(None, None, None)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def owner_backend(fake_backend):
    """Backend that knows a signed-in owner of taco-place."""
    fake_backend.add("GET", "/api/get-slug", json={"success": True, "slug": "taco-place"})
    fake_backend.add("GET", "/api/user", json={"email": "owner@tacoplace.in"})
    return fake_backend


@pytest.fixture
def owner_headers():
    return {"Authorization": "Bearer owner-token"}
