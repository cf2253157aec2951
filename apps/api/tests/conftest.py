from __future__ import annotations

import base64
import json
import os
from typing import Any
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

# Ensure CI can import app settings without a local .env file.
_ENV_DEFAULTS = {
    "APP_ENV": "test",
    "FRONTEND_URL": "http://localhost:5173",
    "SUPABASE_URL": "https://example.supabase.co",
    "SUPABASE_ANON_KEY": "test-anon-key",
    "SUPABASE_SERVICE_ROLE_KEY": "test-service-role-key",
    "ACCOUNT_CRON_TOKEN": "test-cron-token",
}
for _key, _value in _ENV_DEFAULTS.items():
    os.environ.setdefault(_key, _value)

import prenatal_hub.core.idempotency as idempotency
import prenatal_hub.core.rate_limit as rate_limit
from prenatal_hub.core.security import AuthContext, verify_token
from prenatal_hub.main import app
from prenatal_hub.services.supabase_rest import SupabaseRest
from tests.helpers import TEST_EMAIL, TEST_USER_ID


def _base64url_json(value: dict[str, Any]) -> str:
    encoded = json.dumps(value, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(encoded).decode("utf-8").rstrip("=")


def build_fake_jwt(*, user_id: str = TEST_USER_ID, email: str = TEST_EMAIL) -> str:
    header = _base64url_json({"alg": "HS256", "typ": "JWT"})
    payload = _base64url_json(
        {
            "sub": user_id,
            "email": email,
            "role": "authenticated",
            "aud": "authenticated",
        }
    )
    return f"{header}.{payload}.signature-for-tests"


@pytest.fixture(autouse=True)
def reset_test_state() -> None:
    app.dependency_overrides.clear()
    rate_limit.reset()
    idempotency.reset()


@pytest.fixture(autouse=True)
def silence_system_error_writes(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    mock = AsyncMock(return_value=None)
    monkeypatch.setattr("prenatal_hub.main.log_system_error", mock)
    monkeypatch.setattr("prenatal_hub.routes.journal.log_system_error", mock)
    monkeypatch.setattr("prenatal_hub.services.account_deletion.log_system_error", mock)
    # Error paths look up the caller; keep that off the network.
    monkeypatch.setattr(
        "prenatal_hub.main._try_get_user_id_from_request",
        AsyncMock(return_value=TEST_USER_ID),
    )
    return mock


@pytest.fixture
def client() -> TestClient:
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def fake_jwt_token() -> str:
    return build_fake_jwt()


@pytest.fixture
def auth_headers(fake_jwt_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {fake_jwt_token}"}


@pytest.fixture
def fake_auth_context(fake_jwt_token: str) -> AuthContext:
    return AuthContext(
        user_id=TEST_USER_ID,
        email=TEST_EMAIL,
        is_anonymous=False,
        access_token=fake_jwt_token,
    )


@pytest.fixture
def authenticated_client(client: TestClient, fake_auth_context: AuthContext) -> TestClient:
    async def _override_verify_token() -> AuthContext:
        return fake_auth_context

    app.dependency_overrides[verify_token] = _override_verify_token
    return client


@pytest.fixture
def supabase_mock(monkeypatch: pytest.MonkeyPatch) -> dict[str, AsyncMock]:
    mocks = {
        "select": AsyncMock(return_value=[]),
        "select_with_count": AsyncMock(return_value=([], 0)),
        "upsert_one": AsyncMock(return_value={}),
        "insert_one": AsyncMock(return_value={}),
        "patch": AsyncMock(return_value=[]),
        "delete": AsyncMock(return_value=[]),
    }

    async def _select(
        self: SupabaseRest, table: str, *, bearer_token: str, params: dict[str, Any]
    ) -> list[dict[str, Any]]:
        return await mocks["select"](table=table, bearer_token=bearer_token, params=params)

    async def _select_with_count(
        self: SupabaseRest, table: str, *, bearer_token: str, params: dict[str, Any]
    ) -> tuple[list[dict[str, Any]], int]:
        return await mocks["select_with_count"](
            table=table, bearer_token=bearer_token, params=params
        )

    async def _upsert_one(
        self: SupabaseRest,
        table: str,
        *,
        bearer_token: str,
        row: dict[str, Any],
        on_conflict: str,
    ) -> dict[str, Any]:
        return await mocks["upsert_one"](
            table=table,
            bearer_token=bearer_token,
            row=row,
            on_conflict=on_conflict,
        )

    async def _insert_one(
        self: SupabaseRest,
        table: str,
        *,
        bearer_token: str,
        row: dict[str, Any],
    ) -> dict[str, Any]:
        return await mocks["insert_one"](table=table, bearer_token=bearer_token, row=row)

    async def _patch(
        self: SupabaseRest,
        table: str,
        *,
        bearer_token: str,
        params: dict[str, Any],
        row: dict[str, Any],
    ) -> list[dict[str, Any]]:
        return await mocks["patch"](
            table=table, bearer_token=bearer_token, params=params, row=row
        )

    async def _delete(
        self: SupabaseRest, table: str, *, bearer_token: str, params: dict[str, Any]
    ) -> list[dict[str, Any]]:
        return await mocks["delete"](table=table, bearer_token=bearer_token, params=params)

    monkeypatch.setattr(SupabaseRest, "select", _select)
    monkeypatch.setattr(SupabaseRest, "select_with_count", _select_with_count)
    monkeypatch.setattr(SupabaseRest, "upsert_one", _upsert_one)
    monkeypatch.setattr(SupabaseRest, "insert_one", _insert_one)
    monkeypatch.setattr(SupabaseRest, "patch", _patch)
    monkeypatch.setattr(SupabaseRest, "delete", _delete)
    return mocks
