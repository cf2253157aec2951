from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

import prenatal_hub.routes.account as account_route
from prenatal_hub.core.config import settings
from prenatal_hub.core.security import CRON_TOKEN_HEADER
from prenatal_hub.schemas.account import MigratedItems
from prenatal_hub.services.account_deletion import PurgeResult
from tests.helpers import TEST_EMAIL, TEST_USER_ID


def _profile(**overrides) -> dict:
    row = {
        "id": TEST_USER_ID,
        "email": TEST_EMAIL,
        "name": "Sam",
        "due_date": "2026-09-01",
        "deletion_requested_at": None,
    }
    row.update(overrides)
    return row


def _days_ago(days: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


def test_get_account_returns_profile(
    authenticated_client: TestClient, supabase_mock
) -> None:
    supabase_mock["select"].return_value = [_profile()]

    response = authenticated_client.get("/api/account")

    assert response.status_code == 200
    user = response.json()["user"]
    assert user["id"] == TEST_USER_ID
    assert user["name"] == "Sam"
    assert user["permanent_deletion_at"] is None


def test_get_account_reports_pending_deletion(
    authenticated_client: TestClient, supabase_mock
) -> None:
    supabase_mock["select"].return_value = [
        _profile(deletion_requested_at="2099-01-01T00:00:00+00:00")
    ]

    response = authenticated_client.get("/api/account")

    assert response.status_code == 200
    assert response.json()["user"]["permanent_deletion_at"].startswith("2099-01-31")


def test_get_account_after_grace_period_is_unauthorized(
    authenticated_client: TestClient, supabase_mock
) -> None:
    supabase_mock["select"].return_value = [_profile(deletion_requested_at=_days_ago(31))]

    response = authenticated_client.get("/api/account")

    assert response.status_code == 401
    assert response.json()["detail"] == "Account no longer exists"


def test_update_account_upserts_changes(
    authenticated_client: TestClient, supabase_mock
) -> None:
    supabase_mock["select"].return_value = [_profile()]
    supabase_mock["upsert_one"].side_effect = lambda **kw: kw["row"]

    response = authenticated_client.put(
        "/api/account", json={"name": "  Alex  ", "due_date": None}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Account updated successfully"
    assert body["user"]["name"] == "Alex"
    assert body["user"]["due_date"] is None
    row = supabase_mock["upsert_one"].await_args.kwargs["row"]
    assert row["due_date"] is None
    assert supabase_mock["upsert_one"].await_args.kwargs["on_conflict"] == "id"


def test_update_account_without_changes_is_rejected(
    authenticated_client: TestClient, supabase_mock
) -> None:
    supabase_mock["select"].return_value = [_profile()]

    response = authenticated_client.put("/api/account", json={})

    assert response.status_code == 400
    assert response.json()["detail"] == "Nothing to update"


def test_request_deletion_schedules_grace_period(
    authenticated_client: TestClient, supabase_mock
) -> None:
    supabase_mock["select"].return_value = [_profile()]

    response = authenticated_client.delete("/api/account")

    assert response.status_code == 200
    body = response.json()
    requested = datetime.fromisoformat(body["deletion_requested_at"])
    permanent = datetime.fromisoformat(body["permanent_deletion_at"])
    assert permanent - requested == timedelta(days=30)
    assert "30 days" in body["message"]
    row = supabase_mock["upsert_one"].await_args.kwargs["row"]
    assert datetime.fromisoformat(row["deletion_requested_at"]) == requested


def test_request_deletion_twice_is_rejected(
    authenticated_client: TestClient, supabase_mock
) -> None:
    supabase_mock["select"].return_value = [_profile(deletion_requested_at=_days_ago(2))]

    response = authenticated_client.delete("/api/account")

    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "Account deletion already requested"
    supabase_mock["upsert_one"].assert_not_awaited()


def test_recover_account_clears_pending_deletion(
    authenticated_client: TestClient, supabase_mock
) -> None:
    supabase_mock["select"].return_value = [_profile(deletion_requested_at=_days_ago(3))]
    supabase_mock["patch"].return_value = [_profile()]

    response = authenticated_client.post("/api/account/recover")

    assert response.status_code == 200
    assert response.json()["user"]["deletion_requested_at"] is None
    assert supabase_mock["patch"].await_args.kwargs["row"]["deletion_requested_at"] is None


@pytest.mark.parametrize(
    ("requested_at", "status_code"),
    [(None, 400), (_days_ago(45), 410)],
)
def test_recover_account_rejects_invalid_states(
    authenticated_client: TestClient,
    supabase_mock,
    requested_at: str | None,
    status_code: int,
) -> None:
    supabase_mock["select"].return_value = [_profile(deletion_requested_at=requested_at)]

    response = authenticated_client.post("/api/account/recover")

    assert response.status_code == status_code
    supabase_mock["patch"].assert_not_awaited()


def _migrate_payload() -> dict:
    return {"data": {"completed_stories": [1, 2], "kick_data": [{"timestamp": 1}]}}


def test_migrate_runs_once_per_idempotency_key(
    authenticated_client: TestClient, supabase_mock, monkeypatch: pytest.MonkeyPatch
) -> None:
    migrate_mock = AsyncMock(return_value=MigratedItems(progress=2, kicks=1))
    monkeypatch.setattr(account_route, "migrate_guest_data", migrate_mock)
    headers = {"Idempotency-Key": "guest-migrate-0001"}

    first = authenticated_client.post(
        "/api/account/migrate", json=_migrate_payload(), headers=headers
    )
    second = authenticated_client.post(
        "/api/account/migrate", json=_migrate_payload(), headers=headers
    )

    assert first.status_code == 200
    assert first.json()["migrated_items"]["progress"] == 2
    assert first.json()["replayed"] is False
    assert second.status_code == 200
    assert second.json()["replayed"] is True
    assert second.json()["migrated_items"]["progress"] == 0
    assert migrate_mock.await_count == 1


def test_migrate_fingerprints_payload_without_header(
    authenticated_client: TestClient, supabase_mock, monkeypatch: pytest.MonkeyPatch
) -> None:
    migrate_mock = AsyncMock(return_value=MigratedItems())
    monkeypatch.setattr(account_route, "migrate_guest_data", migrate_mock)

    authenticated_client.post("/api/account/migrate", json=_migrate_payload())
    replay = authenticated_client.post("/api/account/migrate", json=_migrate_payload())
    other = authenticated_client.post(
        "/api/account/migrate", json={"data": {"completed_stories": [3]}}
    )

    assert replay.json()["replayed"] is True
    assert other.json()["replayed"] is False
    assert migrate_mock.await_count == 2


def test_migrate_failure_releases_idempotency_key(
    authenticated_client: TestClient, supabase_mock, monkeypatch: pytest.MonkeyPatch
) -> None:
    migrate_mock = AsyncMock(
        side_effect=[RuntimeError("boom"), MigratedItems(progress=1)]
    )
    monkeypatch.setattr(account_route, "migrate_guest_data", migrate_mock)
    headers = {"Idempotency-Key": "guest-migrate-0002"}

    with pytest.raises(RuntimeError):
        authenticated_client.post(
            "/api/account/migrate", json=_migrate_payload(), headers=headers
        )
    retry = authenticated_client.post(
        "/api/account/migrate", json=_migrate_payload(), headers=headers
    )

    assert retry.status_code == 200
    assert retry.json()["migrated_items"]["progress"] == 1


def test_migrate_is_rate_limited(
    authenticated_client: TestClient, supabase_mock, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(
        account_route, "migrate_guest_data", AsyncMock(return_value=MigratedItems())
    )

    statuses = [
        authenticated_client.post(
            "/api/account/migrate",
            json={"data": {"completed_stories": [i]}},
        ).status_code
        for i in range(1, 5)
    ]

    assert statuses == [200, 200, 200, 429]


def test_migrate_rejects_unknown_guest_fields(
    authenticated_client: TestClient, supabase_mock
) -> None:
    response = authenticated_client.post(
        "/api/account/migrate", json={"data": {"voice_notes": []}}
    )

    assert response.status_code == 422


def test_purge_requires_cron_token(client: TestClient) -> None:
    missing = client.post("/api/account/cron/purge-expired")
    wrong = client.post(
        "/api/account/cron/purge-expired", headers={CRON_TOKEN_HEADER: "nope"}
    )

    assert missing.status_code == 401
    assert wrong.status_code == 401


def test_purge_returns_batch_summary(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    purge_mock = AsyncMock(return_value=PurgeResult(scanned=3, deleted=2, failed=1))
    monkeypatch.setattr(account_route, "purge_expired_accounts", purge_mock)

    response = client.post(
        "/api/account/cron/purge-expired",
        headers={CRON_TOKEN_HEADER: settings.account_cron_token},
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True, "scanned": 3, "deleted": 2, "failed": 1}
