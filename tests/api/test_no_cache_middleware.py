import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from gmhs.backend.api.utilities.no_cache import NoCacheMiddleware, matches_prefix


@pytest.fixture
def echo_client():
    """A bare app that reports the request headers it received."""
    echo_app = FastAPI()
    echo_app.add_middleware(NoCacheMiddleware)

    @echo_app.get("/{path:path}")
    async def echo(path: str, request: Request):
        return {"cacheControl": request.headers.get("cache-control"), "pragma": request.headers.get("pragma")}

    return TestClient(echo_app)


@pytest.mark.parametrize("path, expected", [
    ("/api", True),
    ("/api/students", True),
    ("/dashboard/teacher", True),
    ("/apiary", False),
    ("/", False),
    ("/icons/icon-72x72.png", False),
])
def test_matches_prefix(path, expected):
    assert matches_prefix(path, ("/api", "/dashboard")) is expected


def test_api_response_gets_no_cache_headers(echo_client):
    response = echo_client.get("/api/anything")

    assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert response.headers["pragma"] == "no-cache"
    assert response.headers["expires"] == "0"
    assert response.headers["vary"] == "Cache-Control"
    assert response.headers["last-modified"].endswith("GMT")


def test_api_request_headers_are_rewritten(echo_client):
    """Scenario: the client asks for max-age. Expected: the app sees no-cache instead."""
    response = echo_client.get("/dashboard/admin", headers={"Cache-Control": "max-age=600"})
    assert response.json() == {"cacheControl": "no-cache, no-store, must-revalidate", "pragma": "no-cache"}


def test_other_paths_pass_through(echo_client):
    response = echo_client.get("/apiary", headers={"Cache-Control": "max-age=600"})
    assert "pragma" not in response.headers
    assert "last-modified" not in response.headers
    assert response.json()["cacheControl"] == "max-age=600"


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "message": "GMHS API is running."}
    assert "pragma" not in response.headers
