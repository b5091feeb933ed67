"""
Shared fixtures: a fake requests session standing in for the orders API,
and a Flask test client wired to it. No network access anywhere.
"""
import json
import os
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

import pytest
import requests

# must be set before config/logger are imported
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="orders-dashboard-logs-"))
os.environ.setdefault("ENV", "TEST")

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

API_BASE = "http://api.test"


def make_response(status=200, body=None, content_type="application/json"):
    resp = requests.Response()
    resp.status_code = status
    resp.encoding = "utf-8"
    resp.headers["Content-Type"] = content_type
    if body is None:
        resp._content = b""
    elif isinstance(body, str) and "json" not in content_type:
        resp._content = body.encode("utf-8")
    else:
        resp._content = json.dumps(body).encode("utf-8")
    return resp


@dataclass
class Call:
    method: str
    path: str
    params: dict = field(default_factory=dict)
    json: object = None
    headers: dict = field(default_factory=dict)


class FakeHTTP:
    """
    Routes (method, path) to a canned requests.Response, an exception to
    raise, or a callable(params, json) -> Response. Unrouted calls get 404.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def route(self, method, path, status=200, body=None, content_type="application/json"):
        self.routes[(method, path)] = make_response(status, body, content_type)

    def route_fn(self, method, path, fn):
        self.routes[(method, path)] = fn

    def fail(self, method, path, exc=None):
        self.routes[(method, path)] = exc or requests.ConnectionError("connection refused")

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        path = url[len(API_BASE):] if url.startswith(API_BASE) else url
        self.calls.append(Call(method, path, dict(params or {}), json, dict(headers or {})))
        handler = self.routes.get((method, path))
        if handler is None:
            return make_response(404, {"message": f"no route for {method} {path}"})
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return handler(dict(params or {}), json)
        return handler

    def calls_to(self, method, path):
        return [c for c in self.calls if c.method == method and c.path == path]


CATEGORIES = [
    {"_id": "c1", "name": "Tools", "slug": "tools", "createdAt": "2024-01-01T00:00:00Z"},
    {"_id": "c2", "name": "Garden", "slug": "garden"},
]

ORDERS = [
    {"_id": "o1", "orderId": "O1", "customer": "Alice", "category": "c1",
     "date": "2024-01-05", "source": "Web", "geo": "Pune", "amount": 5},
    {"_id": "o2", "orderId": "O2", "customer": "Bob", "category": {"_id": "c2", "name": "Garden"},
     "date": "2024-01-06T00:00:00.000Z", "source": "App", "geo": "Delhi", "amount": 7.5},
]

ADMIN_LOGIN = {"token": "tok-admin", "user": {"id": "u1", "email": "admin@example.com", "role": "admin"}}
USER_LOGIN = {"token": "tok-user", "user": {"id": "u2", "email": "user@example.com", "role": "user"}}


@pytest.fixture
def fake_http():
    return FakeHTTP()


@pytest.fixture
def gateway(fake_http):
    from api import Gateway
    token = {"value": "tok"}
    return Gateway(fake_http, token_provider=lambda: token["value"], base_url=API_BASE)


@pytest.fixture
def app(fake_http, monkeypatch):
    import admin
    monkeypatch.setattr(admin, "SESSION", fake_http)
    monkeypatch.setattr(admin, "views", admin.ViewRegistry())
    admin.app.config.update(TESTING=True, API_URL=API_BASE)
    return admin.app


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, fake_http, body=ADMIN_LOGIN):
    fake_http.route("POST", "/auth/login", body=body)
    return client.post("/login", data={"email": body["user"]["email"], "password": "pw"})


@pytest.fixture
def admin_client(client, fake_http):
    login(client, fake_http, ADMIN_LOGIN)
    return client


@pytest.fixture
def user_client(client, fake_http):
    login(client, fake_http, USER_LOGIN)
    return client
