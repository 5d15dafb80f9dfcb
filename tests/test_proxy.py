import json

import httpx
import pytest
from starlette.testclient import TestClient

from booking_api.main import app
from booking_api.routes.newsletter_proxy import get_http_client

PUBLIC = "/api/public/newsletter"

@pytest.fixture
def backend():
    """Replace the outgoing HTTP client with a scripted backend"""
    calls = []
    state = {"handler": None}

    def dispatch(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return state["handler"](request)

    async def override():
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(dispatch), base_url="http://backend.test"
        ) as client:
            yield client

    app.dependency_overrides[get_http_client] = override
    yield state, calls
    app.dependency_overrides.pop(get_http_client, None)

def test_unsubscribe_is_forwarded_and_reshaped(backend):
    state, calls = backend
    state["handler"] = lambda request: httpx.Response(200, json={
        "success": True,
        "message": "Successfully unsubscribed from newsletter",
        "data": {"resubscribeToken": "secret"},
    })

    response = TestClient(app).post(
        f"{PUBLIC}/unsubscribe", json={"email": "reader@example.com", "reason": "too many"}
    )

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Successfully unsubscribed from newsletter",
    }
    (forwarded,) = calls
    assert forwarded.url.path == "/api/v1/newsletter/unsubscribe"
    assert json.loads(forwarded.content) == {"email": "reader@example.com", "reason": "too many"}

def test_company_is_forwarded_as_query_parameter(backend):
    state, calls = backend
    state["handler"] = lambda request: httpx.Response(200, json={"message": "done"})

    TestClient(app).post(
        f"{PUBLIC}/unsubscribe",
        json={"email": "reader@example.com", "company": "11111111-1111-4111-8111-111111111111"},
    )

    (forwarded,) = calls
    assert forwarded.url.params["company"] == "11111111-1111-4111-8111-111111111111"
    assert json.loads(forwarded.content) == {"email": "reader@example.com"}

def test_backend_error_status_is_preserved(backend):
    state, _ = backend
    state["handler"] = lambda request: httpx.Response(404, json={
        "success": False, "message": "Subscriber not found"
    })

    response = TestClient(app).post(f"{PUBLIC}/unsubscribe", json={"email": "ghost@example.com"})

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Subscriber not found"}

def test_resubscribe_falls_back_to_generic_message(backend):
    state, calls = backend
    state["handler"] = lambda request: httpx.Response(500, text="upstream exploded")

    response = TestClient(app).post(
        f"{PUBLIC}/resubscribe", json={"email": "reader@example.com", "token": "t" * 64}
    )

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Failed to resubscribe"}
    assert calls[0].url.path == "/api/v1/newsletter/resubscribe"

def test_string_detail_is_used_as_message(backend):
    state, _ = backend
    state["handler"] = lambda request: httpx.Response(200, json={"detail": "ok then"})

    response = TestClient(app).post(
        f"{PUBLIC}/resubscribe", json={"email": "reader@example.com", "token": "t"}
    )

    assert response.json() == {"success": True, "message": "ok then"}

def test_unreachable_backend_is_a_bad_gateway(backend):
    state, _ = backend

    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    state["handler"] = refuse

    response = TestClient(app).post(f"{PUBLIC}/unsubscribe", json={"email": "reader@example.com"})

    assert response.status_code == 502
    assert response.json() == {"success": False, "message": "Newsletter service is unavailable"}

def test_public_forms_validate_email(backend):
    response = TestClient(app).post(f"{PUBLIC}/unsubscribe", json={"email": "nope"})
    assert response.status_code == 422
