from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

TEST_USER_ID = "00000000-0000-4000-8000-000000000001"
TEST_EMAIL = "pytest-parent@prenatal.test"
ENTRY_ID = "11111111-1111-4111-8111-111111111111"


def calls_for(mock: AsyncMock, table: str) -> list[Any]:
    return [c for c in mock.await_args_list if c.kwargs.get("table") == table]
