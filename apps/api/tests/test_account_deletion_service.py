from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

import prenatal_hub.services.account_deletion as account_deletion
from prenatal_hub.services.supabase_rest import SupabaseRestError
from tests.helpers import calls_for

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_is_grace_expired_boundaries() -> None:
    requested = NOW - timedelta(days=30)

    assert account_deletion.is_grace_expired(requested, now=NOW, grace_days=30) is True
    assert (
        account_deletion.is_grace_expired(
            requested + timedelta(seconds=1), now=NOW, grace_days=30
        )
        is False
    )
    assert account_deletion.is_grace_expired(None, now=NOW, grace_days=30) is False


def test_deletion_requested_at_parses_profile_value() -> None:
    assert account_deletion.deletion_requested_at(None) is None
    assert account_deletion.deletion_requested_at({"deletion_requested_at": None}) is None
    assert account_deletion.deletion_requested_at(
        {"deletion_requested_at": "2026-05-01T00:00:00Z"}
    ) == datetime(2026, 5, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_purge_deletes_data_profile_and_auth_user(
    supabase_mock, monkeypatch: pytest.MonkeyPatch
) -> None:
    supabase_mock["select"].return_value = [{"id": "user-a"}, {"id": "user-b"}]
    auth_delete = AsyncMock(return_value=True)
    monkeypatch.setattr(account_deletion, "delete_auth_user", auth_delete)

    result = await account_deletion.purge_expired_accounts(now=NOW)

    assert result == account_deletion.PurgeResult(scanned=2, deleted=2, failed=0)
    params = supabase_mock["select"].await_args.kwargs["params"]
    assert params["deletion_requested_at"] == "lte.2026-05-02T12:00:00+00:00"
    deleted_tables = {c.kwargs["table"] for c in supabase_mock["delete"].await_args_list}
    assert deleted_tables == {*account_deletion.USER_DATA_TABLES, "profiles"}
    assert [c.args[0] for c in auth_delete.await_args_list] == ["user-a", "user-b"]


@pytest.mark.asyncio
async def test_purge_continues_after_a_failed_account(
    supabase_mock,
    monkeypatch: pytest.MonkeyPatch,
    silence_system_error_writes: AsyncMock,
) -> None:
    supabase_mock["select"].return_value = [{"id": "user-a"}, {"id": "user-b"}]

    async def _delete(*, table, bearer_token, params):
        if params.get("user_id") == "eq.user-a" and table == "kick_events":
            raise SupabaseRestError(status_code=400, message="bad request")
        return []

    supabase_mock["delete"].side_effect = _delete
    monkeypatch.setattr(account_deletion, "delete_auth_user", AsyncMock(return_value=True))

    result = await account_deletion.purge_expired_accounts(now=NOW)

    assert result.deleted == 1
    assert result.failed == 1
    assert silence_system_error_writes.await_args.kwargs["user_id"] == "user-a"


@pytest.mark.asyncio
async def test_delete_user_data_retries_server_errors_and_ignores_missing_tables(
    supabase_mock,
) -> None:
    attempts: dict[str, int] = {}

    async def _delete(*, table, bearer_token, params):
        attempts[table] = attempts.get(table, 0) + 1
        if table == "streaks" and attempts[table] == 1:
            raise SupabaseRestError(status_code=503, message="try again")
        if table == "topic_progress":
            raise SupabaseRestError(
                status_code=404, message='relation "topic_progress" does not exist'
            )
        return []

    supabase_mock["delete"].side_effect = _delete
    sb = account_deletion.SupabaseRest("https://example.supabase.co", "anon")

    await account_deletion.delete_user_data(sb, user_id="u1", bearer_token="token")

    assert attempts["streaks"] == 2
    assert attempts["topic_progress"] == 1
    assert len(calls_for(supabase_mock["delete"], "journal_entries")) == 1
