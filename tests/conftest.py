"""Root conftest for test suite.

Auto-skips integration tests unless a database is available.
Run explicitly with: TICKETING_TEST_DATABASE_URL=postgresql://... pytest tests/integration
"""

import os
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from ticketing.domain_actions.models import DomainAction, utcnow
from ticketing.domain_actions.types import DomainActionStatus, DomainActionType

# Settings() requires DATABASE_URL; unit tests never connect.
os.environ.setdefault("DATABASE_URL", "postgresql://localhost/ticketing_test")


def pytest_collection_modifyitems(config, items):
    """Skip integration tests when no real database was configured."""
    if os.environ.get("TICKETING_TEST_DATABASE_URL"):
        return

    skip_integration = pytest.mark.skip(
        reason="integration tests need TICKETING_TEST_DATABASE_URL"
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


def make_action(
    action_type: DomainActionType = DomainActionType.RELEASE_HOLD_INVENTORY,
    **overrides,
) -> DomainAction:
    """Build an in-memory action that is due now."""
    now = utcnow()
    fields = {
        "id": uuid4(),
        "domain_action_type": action_type,
        "payload": {},
        "scheduled_at": now - timedelta(minutes=1),
        "expires_at": now + timedelta(days=7),
        "blocked_until": now - timedelta(minutes=1),
        "status": DomainActionStatus.PENDING,
    }
    fields.update(overrides)
    return DomainAction(**fields)


def action_row(action: DomainAction, **overrides) -> dict:
    """Database row shape for an action, as asyncpg would return it."""
    row = {
        "id": action.id,
        "domain_action_type": action.domain_action_type.value,
        "payload": action.payload,
        "scheduled_at": action.scheduled_at,
        "expires_at": action.expires_at,
        "blocked_until": action.blocked_until,
        "status": action.status.value,
        "domain_event_id": action.domain_event_id,
        "communication_channel_type": (
            action.communication_channel_type.value
            if action.communication_channel_type
            else None
        ),
        "main_table": action.main_table.value if action.main_table else None,
        "main_table_id": action.main_table_id,
        "attempt_count": action.attempt_count,
        "max_attempt_count": action.max_attempt_count,
        "last_attempted_at": action.last_attempted_at,
        "last_failure_reason": action.last_failure_reason,
        "created_at": action.created_at,
        "updated_at": action.updated_at,
    }
    row.update(overrides)
    return row


@pytest.fixture
def mock_conn():
    """Connection wrapper whose raw asyncpg connection is an AsyncMock."""
    raw = AsyncMock()
    conn = MagicMock()
    conn.get.return_value = raw
    conn.in_transaction = True
    conn.begin_transaction = AsyncMock()
    conn.commit_transaction = AsyncMock()
    conn.rollback_transaction = AsyncMock()
    conn.release = AsyncMock()
    return conn


@pytest.fixture
def action_factory():
    return make_action


@pytest.fixture
def row_factory():
    return action_row
