from fastapi import FastAPI
from fastapi.testclient import TestClient

from pixelbatch.core.middleware import (
    REQUEST_ID_HEADER,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
)


def _app(calls: int) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RateLimitMiddleware, calls=calls, period=60)

    @app.post("/api/v1/batches")
    async def submit():
        return {"ok": True}

    @app.get("/api/v1/health")
    async def health():
        return {"ok": True}

    return app


def test_rate_limit_applies_to_batch_submissions_only():
    client = TestClient(_app(calls=2))
    assert client.post("/api/v1/batches").status_code == 200
    assert client.post("/api/v1/batches").status_code == 200
    blocked = client.post("/api/v1/batches")
    assert blocked.status_code == 429
    assert blocked.json()["detail"]["error"] == "Rate limit exceeded"

    for _ in range(5):
        assert client.get("/api/v1/health").status_code == 200


def test_request_id_is_echoed_or_generated():
    client = TestClient(_app(calls=10))
    resp = client.get("/api/v1/health", headers={REQUEST_ID_HEADER: "abc123"})
    assert resp.headers[REQUEST_ID_HEADER] == "abc123"
    assert client.get("/api/v1/health").headers[REQUEST_ID_HEADER]
