"""DDL for the domain action engine's own tables."""

from ticketing.domain_actions.types import (
    CommunicationChannelType,
    DomainActionStatus,
    DomainActionType,
    DomainEventType,
    Tables,
)


def _in_list(enum_cls) -> str:
    return ", ".join(f"'{member.value}'" for member in enum_cls)


DOMAIN_ACTIONS_DDL = f"""
CREATE TABLE IF NOT EXISTS domain_actions (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    domain_event_id UUID,
    domain_action_type TEXT NOT NULL
        CHECK (domain_action_type IN ({_in_list(DomainActionType)})),
    communication_channel_type TEXT
        CHECK (communication_channel_type IN ({_in_list(CommunicationChannelType)})),
    payload JSONB NOT NULL DEFAULT '{{}}',
    main_table TEXT CHECK (main_table IN ({_in_list(Tables)})),
    main_table_id UUID,
    scheduled_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    expires_at TIMESTAMPTZ NOT NULL,
    last_attempted_at TIMESTAMPTZ,
    attempt_count INTEGER NOT NULL DEFAULT 0,
    max_attempt_count INTEGER NOT NULL DEFAULT 3 CHECK (max_attempt_count >= 1),
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ({_in_list(DomainActionStatus)})),
    last_failure_reason TEXT,
    blocked_until TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT domain_actions_schedule_before_expiry CHECK (scheduled_at <= expires_at)
);

CREATE INDEX IF NOT EXISTS idx_domain_actions_due
    ON domain_actions(scheduled_at)
    WHERE status IN ('pending', 'errored');
CREATE INDEX IF NOT EXISTS idx_domain_actions_main_table
    ON domain_actions(main_table, main_table_id, domain_action_type);
CREATE INDEX IF NOT EXISTS idx_domain_actions_type_status
    ON domain_actions(domain_action_type, status);
"""

DOMAIN_EVENTS_DDL = f"""
CREATE TABLE IF NOT EXISTS domain_events (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    event_type TEXT NOT NULL CHECK (event_type IN ({_in_list(DomainEventType)})),
    display_text TEXT NOT NULL,
    event_data JSONB,
    main_table TEXT NOT NULL CHECK (main_table IN ({_in_list(Tables)})),
    main_id UUID,
    user_id UUID,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_domain_events_main
    ON domain_events(main_table, main_id, created_at);
"""

MIGRATION = DOMAIN_EVENTS_DDL + DOMAIN_ACTIONS_DDL


async def apply(conn) -> None:
    """Create the tables and indexes if they do not exist."""
    await conn.execute(MIGRATION)
