import pytest
from exam_booking.utils.request_id import (
    accept_request_id,
    generate_request_id,
    get_request_id,
    request_id_middleware,
    set_request_id,
)
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient


def test_request_id_set_and_get() -> None:
    set_request_id("req-abc")
    assert get_request_id() == "req-abc"
    set_request_id(None)
    assert get_request_id() is None


def test_generate_request_id_is_not_empty() -> None:
    value = generate_request_id()
    assert isinstance(value, str)
    assert len(value) > 0


@pytest.mark.parametrize("incoming", [None, "", "has space", "x" * 129, "semi;colon"])
def test_accept_request_id_replaces_unusable_values(incoming: str | None) -> None:
    value = accept_request_id(incoming)
    assert value != incoming
    assert len(value) == 32


def test_accept_request_id_keeps_sane_value() -> None:
    assert accept_request_id("req-custom_1.2") == "req-custom_1.2"


def _app() -> FastAPI:
    app = FastAPI()

    @app.get("/check")
    async def check() -> dict[str, str]:
        return {"rid": get_request_id() or ""}

    app.middleware("http")(request_id_middleware)
    return app


@pytest.mark.asyncio
async def test_request_id_middleware_generates_and_sets_header() -> None:
    transport = ASGITransport(app=_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/check")
    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.json()["rid"] == resp.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_middleware_uses_incoming_header() -> None:
    incoming = "req-custom-123"
    transport = ASGITransport(app=_app())
    async with AsyncClient(transport=transport, base_url="http://test", headers={"X-Request-ID": incoming}) as client:
        resp = await client.get("/check")
    assert resp.status_code == 200
    assert resp.headers["X-Request-ID"] == incoming
    assert resp.json()["rid"] == incoming
