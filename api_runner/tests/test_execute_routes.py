"""
API tests for request execution, the request store and history replay.

Remote servers are simulated by overriding the transport dependency with
an httpx.MockTransport.
"""

import json
from contextlib import contextmanager

import httpx
from hypothesis import given, strategies as st, settings, HealthCheck
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from api_runner.main import app
from api_runner.config import Settings, get_settings
from api_runner.database import Base, get_db
from api_runner.models.history import History
from api_runner.routers.execute import get_transport


# Test database setup
TEST_DATABASE_URL = "sqlite:///./test_execute_routes.db"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False}
)


@event.listens_for(test_engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints for SQLite connections."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

TEST_SETTINGS = Settings(retry_backoff=0)


def override_get_db():
    """Override database dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


class RecordingServer:
    """Stands in for a remote server and remembers what it received."""

    def __init__(self, handler=None):
        self.requests: list[httpx.Request] = []
        self.handler = handler or (lambda request: httpx.Response(200, json={"ok": True}))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@contextmanager
def get_test_client(server: RecordingServer | None = None):
    """Context manager to create a test client with fresh database and a fake remote server."""
    server = server or RecordingServer()
    Base.metadata.create_all(bind=test_engine)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: TEST_SETTINGS
    app.dependency_overrides[get_transport] = server.transport

    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        Base.metadata.drop_all(bind=test_engine)
        app.dependency_overrides.clear()


def history_rows() -> list[History]:
    db = TestSessionLocal()
    try:
        return db.query(History).order_by(History.id).all()
    finally:
        db.close()


def refuse(request: httpx.Request):
    raise httpx.ConnectError("[Errno 111] Connection refused", request=request)


SAVED_REQUEST = {
    "name": "Create widget",
    "method": "POST",
    "url": "https://api.example.com/widgets?source=test",
    "headers": [
        {"key": "Accept", "value": "application/json", "is_active": True},
        {"key": "X-Debug", "value": "1", "is_active": False},
    ],
    "params": [
        {"key": "dry_run", "value": "true", "is_active": True},
        {"key": "verbose", "value": "yes", "is_active": False},
    ],
    "body": {"type": "json", "content": "{\"name\": \"widget\"}"},
}


class TestExecuteAdHoc:
    """POST /api/execute"""

    def test_success(self):
        server = RecordingServer(lambda request: httpx.Response(200, text='{"message":"Success"}'))
        with get_test_client(server) as client:
            response = client.post("/api/execute", json={
                "method": "GET",
                "url": "https://api.example.com/test",
                "headers": [{"key": "Accept", "value": "application/json", "is_active": True}],
            })

            assert response.status_code == 200
            data = response.json()
            assert data["success"] is True
            assert data["status_code"] == 200
            assert data["body"] == '{"message":"Success"}'
            assert data["elapsed_ms"] > 0

            rows = history_rows()
            assert len(rows) == 1
            assert rows[0].status_code == 200
            assert rows[0].request_id is None

    def test_remote_error_status_is_returned_as_success(self):
        server = RecordingServer(lambda request: httpx.Response(404, text="not here"))
        with get_test_client(server) as client:
            response = client.post("/api/execute", json={"method": "GET", "url": "https://api.example.com/missing"})

            assert response.status_code == 200
            data = response.json()
            assert data["success"] is True
            assert data["status_code"] == 404
            assert "error" not in data
            assert history_rows()[0].status_code == 404

    def test_transport_failure(self):
        server = RecordingServer(refuse)
        with get_test_client(server) as client:
            response = client.post("/api/execute", json={"method": "GET", "url": "http://localhost:9/"})

            assert response.status_code == 502
            data = response.json()
            assert data["success"] is False
            assert data["error_type"] == "connection"
            assert data["suggestions"]
            assert data["attempts"] == 3
            assert len(server.requests) == 3

            rows = history_rows()
            assert len(rows) == 1
            assert rows[0].status_code is None
            assert rows[0].elapsed_ms > 0
            assert rows[0].response_data["error"] == data["error"]

    def test_timeout_maps_to_gateway_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with get_test_client(RecordingServer(handler)) as client:
            response = client.post("/api/execute", json={"method": "GET", "url": "https://slow.example.com/"})

            assert response.status_code == 504
            assert "timed out" in response.json()["error"]

    def test_invalid_method_is_rejected_without_history(self):
        with get_test_client() as client:
            response = client.post("/api/execute", json={"method": "FETCH", "url": "https://api.example.com"})

            assert response.status_code == 422
            assert response.json()["error_code"] == "VALIDATION_ERROR"
            assert history_rows() == []

    def test_relative_url_is_rejected_without_history(self):
        server = RecordingServer()
        with get_test_client(server) as client:
            response = client.post("/api/execute", json={"method": "GET", "url": "/just/a/path"})

            assert response.status_code == 422
            assert "url" in response.json()["detail"].lower()
            assert history_rows() == []
            assert server.requests == []


class TestProperty7InactiveEntries:
    """
    Property: headers and params marked inactive are never sent but stay
    in the stored descriptor.
    """

    @given(
        header_flags=st.lists(st.booleans(), min_size=1, max_size=5),
        param_flags=st.lists(st.booleans(), min_size=1, max_size=5),
    )
    @settings(max_examples=20, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_inactive_entries_not_sent(self, header_flags: list[bool], param_flags: list[bool]):
        headers = [
            {"key": f"X-Header-{i}", "value": f"h{i}", "is_active": active}
            for i, active in enumerate(header_flags)
        ]
        params = [
            {"key": f"p{i}", "value": f"v{i}", "is_active": active}
            for i, active in enumerate(param_flags)
        ]
        server = RecordingServer()
        with get_test_client(server) as client:
            response = client.post("/api/execute", json={
                "method": "GET",
                "url": "https://api.example.com/items",
                "headers": headers,
                "params": params,
            })
            assert response.status_code == 200

            sent = server.requests[0]
            for header in headers:
                assert (header["key"] in sent.headers) == header["is_active"]
            for param in params:
                assert (param["key"] in sent.url.params) == param["is_active"]

            recorded = history_rows()[0].request_data
            assert recorded["headers"] == headers
            assert recorded["params"] == params


class TestSavedRequests:
    """Request store endpoints and executing by reference."""

    def test_create_and_get_keep_inactive_entries(self):
        with get_test_client() as client:
            created = client.post("/api/requests", json=SAVED_REQUEST)
            assert created.status_code == 201
            request_id = created.json()["id"]

            fetched = client.get(f"/api/requests/{request_id}")
            assert fetched.status_code == 200
            data = fetched.json()
            assert data["headers"] == SAVED_REQUEST["headers"]
            assert data["params"] == SAVED_REQUEST["params"]
            assert data["body"] == SAVED_REQUEST["body"]

    def test_entries_without_key_are_dropped_on_save(self):
        with get_test_client() as client:
            payload = dict(SAVED_REQUEST, headers=[{"key": "", "value": "x"}, {"key": "A", "value": "1"}])
            data = client.post("/api/requests", json=payload).json()
            assert data["headers"] == [{"key": "A", "value": "1", "is_active": True}]

    def test_duplicate(self):
        with get_test_client() as client:
            request_id = client.post("/api/requests", json=SAVED_REQUEST).json()["id"]

            response = client.post(f"/api/requests/{request_id}/duplicate")
            assert response.status_code == 201
            copy = response.json()
            assert copy["id"] != request_id
            assert copy["name"] == "Create widget (Copy)"
            assert copy["headers"] == SAVED_REQUEST["headers"]
            assert copy["params"] == SAVED_REQUEST["params"]
            assert copy["body"] == SAVED_REQUEST["body"]

    def test_missing_request_returns_404(self):
        with get_test_client() as client:
            for response in (
                client.get("/api/requests/99999"),
                client.post("/api/requests/99999/duplicate"),
                client.post("/api/execute/99999"),
            ):
                assert response.status_code == 404
                assert "99999" in response.json()["detail"]
            assert history_rows() == []

    def test_execute_saved_request_sends_active_entries_only(self):
        server = RecordingServer(lambda request: httpx.Response(201, json={"id": 7}))
        with get_test_client(server) as client:
            request_id = client.post("/api/requests", json=SAVED_REQUEST).json()["id"]

            response = client.post(f"/api/execute/{request_id}")
            assert response.status_code == 200
            assert response.json()["status_code"] == 201

            sent = server.requests[0]
            assert sent.method == "POST"
            assert sent.headers["Accept"] == "application/json"
            assert "X-Debug" not in sent.headers
            assert sent.url.params["source"] == "test"
            assert sent.url.params["dry_run"] == "true"
            assert "verbose" not in sent.url.params
            assert json.loads(sent.content) == {"name": "widget"}

            rows = history_rows()
            assert len(rows) == 1
            assert rows[0].request_id == request_id

    def test_execute_saved_request_failure_is_recorded(self):
        with get_test_client(RecordingServer(refuse)) as client:
            request_id = client.post("/api/requests", json=SAVED_REQUEST).json()["id"]

            response = client.post(f"/api/execute/{request_id}", json={"verify_tls": False})
            assert response.status_code == 502

            rows = history_rows()
            assert len(rows) == 1
            assert rows[0].request_id == request_id
            assert rows[0].status_code is None


class TestProperty8ReplayRoundTrip:
    """
    Property: executing a saved request and replaying it from history
    yields the saved method, url, headers, params and body.
    """

    def test_replay_matches_saved_request(self):
        with get_test_client() as client:
            request_id = client.post("/api/requests", json=SAVED_REQUEST).json()["id"]
            client.post(f"/api/execute/{request_id}")

            history_id = client.get("/api/history").json()["items"][0]["id"]
            replayed = client.get(f"/api/history/{history_id}/replay")
            assert replayed.status_code == 200
            descriptor = replayed.json()

            for field in ("method", "url", "headers", "params", "body"):
                assert descriptor[field] == SAVED_REQUEST[field]

    def test_replayed_descriptor_executes_identically(self):
        server = RecordingServer()
        with get_test_client(server) as client:
            original = {
                "method": "PUT",
                "url": "https://api.example.com/items/1",
                "headers": [{"key": "X-Trace", "value": "abc", "is_active": True}],
                "params": [{"key": "v", "value": "2", "is_active": True}],
                "body": {"type": "raw", "content": "payload"},
            }
            client.post("/api/execute", json=original)
            history_id = client.get("/api/history").json()["items"][0]["id"]

            replayed = client.get(f"/api/history/{history_id}/replay").json()
            assert replayed == original

            client.post("/api/execute", json=replayed)
            first, second = server.requests
            assert first.url == second.url
            assert first.content == second.content
            assert first.headers["X-Trace"] == second.headers["X-Trace"]
            assert len(history_rows()) == 2


class TestServiceEndpoints:
    """Root and health endpoints."""

    def test_root_lists_entry_points(self):
        with get_test_client() as client:
            data = client.get("/").json()
            assert data["name"] == "API Runner"
            assert "/api/execute" in data["endpoints"]

    def test_health(self):
        with get_test_client() as client:
            assert client.get("/health").json() == {"status": "healthy"}
