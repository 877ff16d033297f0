import pytest
from datetime import datetime, timedelta, timezone
from starlette.requests import Request

from app.core.dependencies import protect, is_logged_in, restrict_to, rate_limit_dependency
from app.core.exceptions import Forbidden, Unauthenticated, InvalidToken, TooManyRequests
from app.core.security import create_access_token
from app.models.users import UserRole


def make_request():
    return Request({"type": "http", "method": "GET", "path": "/", "headers": [], "client": ("10.0.0.1", 1234)})


@pytest.mark.asyncio
async def test_protect_prefers_bearer_token(db_session, test_user, make_user):
    """Test that the Authorization header wins over the cookie"""
    other = await make_user()
    request = make_request()

    user = await protect(
        request,
        db_session,
        bearer_token=create_access_token(test_user.sid),
        cookie_token=create_access_token(other.sid),
    )

    assert user.sid == test_user.sid
    assert request.state.user.sid == test_user.sid


@pytest.mark.asyncio
async def test_protect_uses_cookie(db_session, test_user):
    user = await protect(make_request(), db_session, bearer_token=None, cookie_token=create_access_token(test_user.sid))

    assert user.sid == test_user.sid


@pytest.mark.asyncio
async def test_protect_without_token(db_session):
    with pytest.raises(Unauthenticated):
        await protect(make_request(), db_session, bearer_token=None, cookie_token=None)


@pytest.mark.asyncio
async def test_protect_invalid_token(db_session):
    with pytest.raises(InvalidToken) as excinfo:
        await protect(make_request(), db_session, bearer_token="invalid.token.string", cookie_token=None)

    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_protect_rejects_token_issued_before_password_change(db_session, test_user):
    """Test that changing the password invalidates older tokens, even within the same second"""
    now = datetime.now(timezone.utc)
    token = create_access_token(test_user.sid, issued_at=now - timedelta(milliseconds=300))
    test_user.password_changed_at = now - timedelta(milliseconds=100)
    await db_session.commit()

    with pytest.raises(Unauthenticated) as excinfo:
        await protect(make_request(), db_session, bearer_token=token, cookie_token=None)

    assert excinfo.value.message == "User recently changed password! Please log in again."


@pytest.mark.asyncio
async def test_is_logged_in_is_anonymous_on_failure(db_session):
    assert await is_logged_in(make_request(), db_session, cookie_token=None) is None
    assert await is_logged_in(make_request(), db_session, cookie_token="loggedout") is None


@pytest.mark.asyncio
async def test_is_logged_in_with_cookie(db_session, test_user):
    request = make_request()

    user = await is_logged_in(request, db_session, cookie_token=create_access_token(test_user.sid))

    assert user.sid == test_user.sid
    assert request.state.user is user


@pytest.mark.asyncio
async def test_restrict_to_allows_listed_roles(test_user, admin_user):
    gate = restrict_to("admin", "lead-guide")

    assert gate.allowed_roles == frozenset({UserRole.ADMIN, UserRole.LEAD_GUIDE})
    assert await gate(current_user=admin_user) is admin_user

    with pytest.raises(Forbidden) as excinfo:
        await gate(current_user=test_user)
    assert excinfo.value.status_code == 403


def test_restrict_to_unknown_role():
    with pytest.raises(ValueError):
        restrict_to("superuser")


@pytest.mark.asyncio
async def test_rate_limit_within_limit(mock_redis):
    """Test the first request of a window starts the TTL"""
    rate_limit = rate_limit_dependency(requests_limit=2, time_window=60)
    mock_redis.incr.return_value = 1

    await rate_limit(make_request(), mock_redis)

    mock_redis.incr.assert_awaited_once_with("rate_limit:10.0.0.1")
    mock_redis.expire.assert_awaited_once_with("rate_limit:10.0.0.1", 60)


@pytest.mark.asyncio
async def test_rate_limit_exceeded(mock_redis):
    rate_limit = rate_limit_dependency(requests_limit=2, time_window=60)
    mock_redis.incr.return_value = 3

    with pytest.raises(TooManyRequests) as excinfo:
        await rate_limit(make_request(), mock_redis)

    assert excinfo.value.status_code == 429
    assert excinfo.value.message == "Too many requests from this IP, please try again in an hour!"
    mock_redis.expire.assert_not_awaited()


@pytest.mark.asyncio
async def test_rate_limit_disabled_without_redis():
    rate_limit = rate_limit_dependency(requests_limit=1, time_window=60)

    assert await rate_limit(make_request(), None) is None


@pytest.mark.asyncio
async def test_rate_limited_api_returns_429(client, mock_redis):
    mock_redis.incr.return_value = 101

    response = await client.get("/api/v1/tours")

    assert response.status_code == 429
    assert response.json()["status"] == "fail"
