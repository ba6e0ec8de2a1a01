import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from jose import jwt

from storefront.common import StorefrontSettings
from storefront.shop_service.app.main import create_app
from storefront.shop_service.app.security import hash_password, verify_password


def _run(coro):
    return asyncio.run(coro)


def _settings(tmp_path) -> StorefrontSettings:
    return StorefrontSettings(
        app_name="Auth Test",
        enable_metrics=False,
        enable_tracing=False,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'auth.db'}",
        blob_storage_dir=str(tmp_path / "blobs"),
        session_cookie_secure=False,
        jwt_secret="auth-test-secret",
    )


def _registration(**overrides: str) -> dict[str, str]:
    payload = {
        "email": "Ada@Example.com",
        "password": "secret123",
        "fullName": "Ada Lovelace",
        "phone": "+44 20 0000 0000",
    }
    payload.update(overrides)
    return payload


def test_register_login_and_me(tmp_path) -> None:
    app = create_app(_settings(tmp_path))

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                registered = await client.post("/auth/register", json=_registration())
                assert registered.status_code == 201
                user = registered.json()["user"]
                assert user["email"] == "ada@example.com"
                assert user["fullName"] == "Ada Lovelace"
                assert user["role"] == "customer"
                assert "password" not in user

                login = await client.post(
                    "/auth/login", json={"email": "ada@example.com", "password": "secret123"}
                )
                assert login.status_code == 200
                token = login.json()["token"]
                claims = jwt.decode(token, "auth-test-secret", algorithms=["HS256"])
                assert claims["sub"] == str(user["id"])
                assert claims["email"] == "ada@example.com"
                assert claims["role"] == "customer"
                assert claims["exp"] - claims["iat"] == 7 * 24 * 60 * 60

                me = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
                assert me.status_code == 200
                assert me.json()["id"] == user["id"]

                logout = await client.post("/auth/logout")
                assert logout.json() == {"message": "Logged out successfully"}

    _run(body())


def test_register_rejects_duplicates_and_invalid_payloads(tmp_path) -> None:
    app = create_app(_settings(tmp_path))

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                assert (await client.post("/auth/register", json=_registration())).status_code == 201

                duplicate = await client.post("/auth/register", json=_registration(email="ada@example.com"))
                assert duplicate.status_code == 409
                assert duplicate.json()["reason"] == "email_taken"

                short_password = await client.post(
                    "/auth/register", json=_registration(email="new@example.com", password="123")
                )
                assert short_password.status_code == 400
                body = short_password.json()
                assert body["reason"] == "validation_failed"
                assert any(field["field"] == "password" for field in body["details"]["fields"])

                bad_email = await client.post("/auth/register", json=_registration(email="not-an-email"))
                assert bad_email.status_code == 400

    _run(body())


def test_login_and_me_failures(tmp_path) -> None:
    app = create_app(_settings(tmp_path))

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                await client.post("/auth/register", json=_registration())

                wrong = await client.post("/auth/login", json={"email": "ada@example.com", "password": "nope123"})
                assert wrong.status_code == 401
                assert wrong.json()["reason"] == "invalid_credentials"

                unknown = await client.post("/auth/login", json={"email": "who@example.com", "password": "x"})
                assert unknown.status_code == 401

                anonymous = await client.get("/auth/me")
                assert anonymous.status_code == 401
                assert anonymous.json()["reason"] == "unauthenticated"

                forged = jwt.encode({"sub": "1", "email": "ada@example.com", "role": "admin"}, "wrong-secret")
                rejected = await client.get("/auth/me", headers={"Authorization": f"Bearer {forged}"})
                assert rejected.status_code == 401

    _run(body())


def test_password_hashing_round_trip() -> None:
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("secret124", hashed)
    assert not verify_password("secret123", "not-a-bcrypt-hash")


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with app.router.lifespan_context(app):
        yield
