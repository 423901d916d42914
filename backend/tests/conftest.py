"""
Shared test fixtures for the Admin Panel backend tests.

The remote backend is replaced by :class:`StubBackend`, an in-memory fake of
its REST API served through ``httpx.MockTransport``.
"""
import os
import sys
import json
import math
import pytest

# ── Python path setup ──────────────────────────────────────────────────────────
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

# Keep test logs out of the production log file
os.environ.setdefault("PANEL_LOG_FILE", os.path.join(os.environ.get("TMPDIR", "/tmp"), "admin-panel-test.log"))

import httpx  # noqa: E402

BACKEND_URL = "http://backend.test"
BACKEND_TOKEN = "backend-access-token"


def _envelope(data, message="OK", success=True, error=None):
    return {"success": success, "message": message, "data": data, "error": error}


class StubBackend:
    """In-memory stand-in for the remote employees/leaves/users backend."""

    def __init__(self, token: str = BACKEND_TOKEN):
        self.token = token
        self.collections = {"employees": {}, "leaves": {}, "users": {}}
        self.accounts = {"admin@example.com": "secret123"}
        self.requests: list[httpx.Request] = []
        # (method, path) -> (status, json body) for forced failures
        self.failures: dict[tuple[str, str], tuple[int, object]] = {}
        self._next_id = 1

    # ── Seeding ────────────────────────────────────────────────

    def add(self, path: str, **fields) -> dict:
        record = {"id": self._next_id, **fields}
        self._next_id += 1
        if path == "leaves" and "employeeId" in record:
            record["employee"] = self.collections["employees"].get(record.pop("employeeId"))
        self.collections[path][record["id"]] = record
        return record

    def add_employees(self, count: int) -> list[dict]:
        return [
            self.add(
                "employees",
                firstName=f"First{i:02d}", lastName=f"Last{i:02d}",
                email=f"user{i:02d}@example.com", phoneNumber="5551212",
                address=f"{i} Main St", gender="MALE" if i % 2 else "FEMALE",
            )
            for i in range(1, count + 1)
        ]

    # ── Transport ──────────────────────────────────────────────

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport)

    def calls(self, method: str = None) -> list[httpx.Request]:
        return [r for r in self.requests if method is None or r.method == method]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        parts = [p for p in path.split("/") if p]

        forced = self.failures.get((request.method, path))
        if forced is not None:
            status, body = forced
            if isinstance(body, (dict, list)):
                return httpx.Response(status, json=body)
            return httpx.Response(status, text=str(body))

        if parts[:1] == ["auth"]:
            return self._auth(request, parts)

        if request.headers.get("Authorization") != f"Bearer {self.token}":
            return httpx.Response(401, json=_envelope(None, "Unauthorized", False, "Unauthorized"))

        if not parts or parts[0] not in self.collections:
            return httpx.Response(404, json=_envelope(None, "Cannot find route", False))
        collection = self.collections[parts[0]]

        if len(parts) == 1:
            if request.method == "GET":
                return httpx.Response(200, json=_envelope(self._page(collection, request.url.params)))
            if request.method == "POST":
                body = json.loads(request.content)
                record = self.add(parts[0], **body)
                return httpx.Response(201, json=_envelope(record, "Created"))
            return httpx.Response(405, json=_envelope(None, "Method not allowed", False))

        record_id = int(parts[1])
        record = collection.get(record_id)
        if record is None:
            return httpx.Response(
                404, json=_envelope(None, f"Record {record_id} not found", False, "Not Found")
            )
        if request.method == "GET":
            return httpx.Response(200, json=_envelope(record))
        if request.method == "PATCH":
            record.update(json.loads(request.content))
            return httpx.Response(200, json=_envelope(record, "Updated"))
        if request.method == "DELETE":
            del collection[record_id]
            return httpx.Response(200, json=_envelope(None, "Deleted"))
        return httpx.Response(405, json=_envelope(None, "Method not allowed", False))

    def _page(self, collection: dict, params) -> dict:
        page = int(params.get("page", 1))
        limit = int(params.get("limit", 10))
        rows = list(collection.values())
        search = params.get("search")
        if search:
            needle = search.lower()
            rows = [r for r in rows if any(needle in str(v).lower() for v in r.values() if isinstance(v, str))]
        field = params.get("orderBy[name]")
        if field:
            reverse = params.get("orderBy[direction]") == "desc"
            rows.sort(key=lambda r: str(r.get(field, "")), reverse=reverse)
        total = len(rows)
        start = (page - 1) * limit
        chunk = rows[start:start + limit]
        return {
            "meta": {
                "first": start + 1 if chunk else 0,
                "last": start + len(chunk),
                "currentPage": page,
                "maxPages": max(1, math.ceil(total / limit)),
                "limit": limit,
                "count": len(chunk),
                "total": total,
            },
            "data": chunk,
        }

    def _auth(self, request: httpx.Request, parts: list[str]) -> httpx.Response:
        if parts == ["auth", "login"] and request.method == "POST":
            body = json.loads(request.content)
            if self.accounts.get(body.get("email")) != body.get("password"):
                return httpx.Response(
                    400, json=_envelope(None, "Invalid email or password", False, "Bad Request")
                )
            token = {"accessToken": self.token, "refreshToken": "backend-refresh-token"}
            return httpx.Response(200, json=_envelope({"email": body["email"], "token": token}))
        if parts == ["auth", "session"] and request.method == "GET":
            if request.headers.get("Authorization") != f"Bearer {self.token}":
                return httpx.Response(401, json=_envelope(None, "Unauthorized", False))
            return httpx.Response(200, json=_envelope({
                "id": 1, "email": "admin@example.com", "firstName": "Ada", "lastName": "Admin",
                "birthDate": "1990-01-01", "gender": "FEMALE",
            }))
        return httpx.Response(404, json=_envelope(None, "Cannot find route", False))


@pytest.fixture
def backend():
    """Function-scoped fresh stub backend."""
    return StubBackend()


# ── API fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture(scope="session")
def app():
    """Return the FastAPI app."""
    from api.main import app as _app
    return _app


@pytest.fixture(autouse=True)
def _reset_limiter():
    from api.dependencies import limiter
    limiter.reset()
    yield


@pytest.fixture
def client(app, backend):
    """TestClient whose backend calls go to the stub backend. Not signed in."""
    from starlette.testclient import TestClient
    from api.main import get_transport
    prev = dict(app.dependency_overrides)
    app.dependency_overrides[get_transport] = lambda: backend.transport
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c
    app.dependency_overrides.clear()
    app.dependency_overrides.update(prev)


@pytest.fixture
def authed_client(client):
    """Signed-in TestClient: a proxy session holding the stub's access token."""
    from api.main import _sessions
    token = "test-session-token"
    _sessions[token] = {
        "email": "admin@example.com",
        "name": "Ada",
        "user": {"id": 1},
        "access_token": BACKEND_TOKEN,
        "refresh_token": None,
        "expires_at": None,
    }
    client.headers["X-Auth-Token"] = token
    yield client
    _sessions.pop(token, None)
