import pytest
from io import BytesIO
from PIL import Image
from sqlalchemy import select

from app.core.config import settings
from app.models.users import User, UserRole

USERS = f"{settings.API_V1_STR}/users"
PASSWORD = "password123"


def png_bytes(size=(800, 600)):
    buffer = BytesIO()
    Image.new("RGB", size, (40, 180, 120)).save(buffer, format="PNG")
    return buffer.getvalue()


async def fetch_user(session_factory, sid):
    async with session_factory() as session:
        result = await session.execute(select(User).where(User.sid == sid))
        return result.scalar_one()


@pytest.mark.asyncio
async def test_get_me(client, test_user, auth_headers):
    response = await client.get(f"{USERS}/me", headers=auth_headers(test_user))

    assert response.status_code == 200
    data = response.json()["data"]["data"]
    assert data["email"] == "test@example.com"
    assert data["photo"] == "default.jpg"


@pytest.mark.asyncio
async def test_update_me_json(client, test_user, auth_headers):
    response = await client.patch(
        f"{USERS}/updateMe",
        headers=auth_headers(test_user),
        json={"name": "Renamed User", "role": "admin", "active": False},
    )

    assert response.status_code == 200
    user = response.json()["data"]["user"]
    assert user["name"] == "Renamed User"
    assert user["role"] == "user"


@pytest.mark.asyncio
async def test_update_me_rejects_password(client, test_user, auth_headers):
    response = await client.patch(
        f"{USERS}/updateMe",
        headers=auth_headers(test_user),
        json={"password": "newpassword1", "password_confirm": "newpassword1"},
    )

    assert response.status_code == 400
    assert "not for password updates" in response.json()["message"]


@pytest.mark.asyncio
async def test_update_me_with_photo(client, test_user, auth_headers, images_dir):
    response = await client.patch(
        f"{USERS}/updateMe",
        headers=auth_headers(test_user),
        data={"name": "Photo User"},
        files={"photo": ("me.png", png_bytes(), "image/png")},
    )

    assert response.status_code == 200
    user = response.json()["data"]["user"]
    assert user["name"] == "Photo User"
    assert user["photo"].startswith(f"user-{test_user.sid}-")
    assert user["photo"].endswith(".jpeg")

    stored = images_dir / "users" / user["photo"]
    with Image.open(stored) as img:
        assert img.size == (500, 500)
        assert img.format == "JPEG"


@pytest.mark.asyncio
async def test_update_me_rejects_non_image(client, test_user, auth_headers, images_dir):
    response = await client.patch(
        f"{USERS}/updateMe",
        headers=auth_headers(test_user),
        files={"photo": ("notes.txt", b"hello", "text/plain")},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Not an image! Please upload only images."


@pytest.mark.asyncio
async def test_update_me_failure_removes_photo(client, test_user, admin_user, auth_headers, images_dir):
    response = await client.patch(
        f"{USERS}/updateMe",
        headers=auth_headers(test_user),
        data={"email": "admin@example.com"},
        files={"photo": ("me.png", png_bytes(), "image/png")},
    )

    assert response.status_code == 400
    assert "Duplicate field value" in response.json()["message"]
    assert list((images_dir / "users").glob("*")) == []


@pytest.mark.asyncio
async def test_delete_me_deactivates(client, test_user, auth_headers, session_factory):
    response = await client.delete(f"{USERS}/deleteMe", headers=auth_headers(test_user))

    assert response.status_code == 204
    user = await fetch_user(session_factory, test_user.sid)
    assert user.active is False

    login = await client.post(f"{USERS}/login", json={"email": "test@example.com", "password": PASSWORD})
    assert login.status_code == 401


@pytest.mark.asyncio
async def test_user_admin_routes_forbidden(client, test_user, auth_headers):
    response = await client.get(USERS, headers=auth_headers(test_user))

    assert response.status_code == 403
    assert response.json()["message"] == "You do not have permission to perform this action"


@pytest.mark.asyncio
async def test_admin_lists_active_users(client, admin_user, make_user, auth_headers):
    await make_user(name="Alice Active")
    await make_user(name="Gone Away", active=False)

    response = await client.get(USERS, headers=auth_headers(admin_user))

    assert response.status_code == 200
    body = response.json()
    names = [u["name"] for u in body["data"]["data"]]
    assert body["results"] == 2
    assert names == ["Admin User", "Alice Active"]


@pytest.mark.asyncio
async def test_admin_filters_users_by_role(client, admin_user, make_user, auth_headers):
    await make_user(role=UserRole.GUIDE, name="Guide One")

    response = await client.get(USERS, params={"role": "guide"}, headers=auth_headers(admin_user))

    assert response.status_code == 200
    assert [u["name"] for u in response.json()["data"]["data"]] == ["Guide One"]


@pytest.mark.asyncio
async def test_admin_create_user_not_defined(client, admin_user, auth_headers):
    response = await client.post(USERS, headers=auth_headers(admin_user), json={})

    assert response.status_code == 500
    assert response.json()["message"] == "This route is not defined! Please use /signup instead"


@pytest.mark.asyncio
async def test_admin_get_update_delete_user(client, admin_user, test_user, auth_headers, session_factory):
    headers = auth_headers(admin_user)

    response = await client.get(f"{USERS}/{test_user.sid}", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["data"]["email"] == "test@example.com"

    response = await client.patch(f"{USERS}/{test_user.sid}", headers=headers, json={"role": "guide"})
    assert response.status_code == 200
    assert response.json()["data"]["data"]["role"] == "guide"

    response = await client.delete(f"{USERS}/{test_user.sid}", headers=headers)
    assert response.status_code == 204

    async with session_factory() as session:
        result = await session.execute(select(User).where(User.sid == test_user.sid))
        assert result.scalar_one_or_none() is None


@pytest.mark.asyncio
async def test_admin_get_unknown_user(client, admin_user, auth_headers):
    response = await client.get(f"{USERS}/{'x' * 22}", headers=auth_headers(admin_user))

    assert response.status_code == 404
    assert response.json()["message"] == "No document found with that ID"


@pytest.mark.asyncio
async def test_admin_get_malformed_id(client, admin_user, auth_headers):
    response = await client.get(f"{USERS}/not-an-id", headers=auth_headers(admin_user))

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid sid: not-an-id."
