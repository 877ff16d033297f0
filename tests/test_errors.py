import pytest
from fastapi import FastAPI, APIRouter
from httpx import AsyncClient, ASGITransport
from jose import JWTError
from sqlalchemy.exc import IntegrityError

from app.core import errors
from app.core.errors import normalize_error, register_exception_handlers, render_error
from app.core.exceptions import (
    AppError, DuplicateResource, InvalidIdentifier, InternalError, NotFound, QueryCastError, ValidationFailed,
    InvalidToken,
)


class FakeDriverError(Exception):
    pass


def test_app_error_status():
    assert NotFound().status == "fail"
    assert AppError("boom", 500).status == "error"
    assert NotFound().to_dict() == {"status": "fail", "message": "No document found with that ID"}


def test_normalize_cast_error():
    error = normalize_error(QueryCastError("sid", "abc"))

    assert isinstance(error, InvalidIdentifier)
    assert error.message == "Invalid sid: abc."
    assert error.status_code == 400


def test_normalize_postgres_duplicate():
    orig = FakeDriverError('duplicate key value violates unique constraint "ix_user_email"\n'
                           'DETAIL:  Key (email)=(test@example.com) already exists.')
    error = normalize_error(IntegrityError("INSERT", {}, orig))

    assert isinstance(error, DuplicateResource)
    assert error.message == 'Duplicate field value: "test@example.com". Please use another value!'


def test_normalize_sqlite_duplicate():
    orig = FakeDriverError("UNIQUE constraint failed: tour.name")
    error = normalize_error(IntegrityError("INSERT", {}, orig))

    assert error.message == 'Duplicate field value: "tour.name". Please use another value!'


def test_normalize_other_integrity_error():
    orig = FakeDriverError("FOREIGN KEY constraint failed")

    assert isinstance(normalize_error(IntegrityError("INSERT", {}, orig)), ValidationFailed)


def test_normalize_jwt_error():
    assert isinstance(normalize_error(JWTError("bad")), InvalidToken)


def test_normalize_unknown_error():
    error = normalize_error(RuntimeError("kaboom"))

    assert isinstance(error, InternalError)
    assert error.is_operational is False
    assert error.status_code == 500


def build_app():
    """Small app with the same error wiring as the real one"""
    app = FastAPI()
    register_exception_handlers(app)

    @app.middleware("http")
    async def catch_all(request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            return render_error(request, e)

    router = APIRouter()

    @router.get("/api/operational")
    async def operational():
        raise NotFound("There is no tour with that name.")

    @router.get("/api/crash")
    async def crash():
        raise RuntimeError("secret internals")

    @router.get("/page/crash")
    async def page_crash():
        raise RuntimeError("secret internals")

    app.include_router(router)
    return app


@pytest.fixture
async def error_client():
    async with AsyncClient(transport=ASGITransport(app=build_app()), base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_development_envelope(error_client, monkeypatch):
    monkeypatch.setattr(errors.settings, "ENVIRONMENT", "development")

    response = await error_client.get("/api/operational")

    assert response.status_code == 404
    body = response.json()
    assert body["status"] == "fail"
    assert body["message"] == "There is no tour with that name."
    assert body["error"]["kind"] == "NotFound"
    assert "stack" in body


@pytest.mark.asyncio
async def test_development_envelope_for_crash(error_client, monkeypatch):
    monkeypatch.setattr(errors.settings, "ENVIRONMENT", "development")

    response = await error_client.get("/api/crash")

    assert response.status_code == 500
    body = response.json()
    assert body["status"] == "error"
    assert body["message"] == "secret internals"
    assert body["error"]["is_operational"] is False


@pytest.mark.asyncio
async def test_production_envelopes(error_client, monkeypatch):
    monkeypatch.setattr(errors.settings, "ENVIRONMENT", "production")

    operational = await error_client.get("/api/operational")
    assert operational.json() == {"status": "fail", "message": "There is no tour with that name."}

    crash = await error_client.get("/api/crash")
    assert crash.status_code == 500
    assert crash.json() == {"status": "error", "message": "Something went very wrong!"}


@pytest.mark.asyncio
async def test_production_page_hides_details(error_client, monkeypatch):
    monkeypatch.setattr(errors.settings, "ENVIRONMENT", "production")

    response = await error_client.get("/page/crash")

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("text/html")
    assert "Please try again later." in response.text
    assert "secret internals" not in response.text
