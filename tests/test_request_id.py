"""Tests for RequestIDMiddleware."""

import structlog
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from reqlog.context import get_request_id
from reqlog.ids import MonotonicULIDProvider
from reqlog.middleware.request_id import RequestIDMiddleware


class TestRequestIDMiddleware:
    """Tests for RequestIDMiddleware behavior via headers."""

    def _make_app(self, **kwargs) -> Starlette:
        async def homepage(request):
            return JSONResponse(
                {
                    "request_id": request.state.request_id,
                    "context_id": get_request_id(request),
                    "bound": structlog.contextvars.get_contextvars().get("req_id"),
                }
            )

        app = Starlette(routes=[Route("/", homepage)])
        app.add_middleware(RequestIDMiddleware, **kwargs)
        return app

    def test_generates_request_id(self):
        """Middleware generates a ULID if none provided."""
        client = TestClient(self._make_app())

        response = client.get("/")
        assert response.status_code == 200
        assert "X-Request-ID" in response.headers
        body = response.json()
        assert body["request_id"] == response.headers["X-Request-ID"]
        assert len(body["request_id"]) == 26

    def test_preserves_incoming_request_id(self):
        """Middleware uses the client-provided X-Request-ID."""
        client = TestClient(self._make_app())

        response = client.get("/", headers={"X-Request-ID": "my-custom-id"})
        assert response.headers["X-Request-ID"] == "my-custom-id"
        assert response.json()["request_id"] == "my-custom-id"

    def test_id_in_request_context_and_contextvars(self):
        client = TestClient(self._make_app())

        body = client.get("/", headers={"X-Request-ID": "ctx-1"}).json()
        assert body["context_id"] == "ctx-1"
        assert body["bound"] == "ctx-1"

    def test_custom_header_and_provider(self):
        provider = MonotonicULIDProvider()
        client = TestClient(self._make_app(id_provider=provider, header_name="X-Trace"))

        first = client.get("/").headers["X-Trace"]
        second = client.get("/").headers["X-Trace"]
        assert first < second
        assert client.get("/", headers={"X-Trace": "t-9"}).headers["X-Trace"] == "t-9"
