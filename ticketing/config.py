"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service Configuration
    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development", description="Deployment environment"
    )
    log_level: str = Field(default="INFO", description="Logging level")
    api_base_url: str = Field(
        default="http://localhost:8088", description="Public API base URL (sitemap host)"
    )
    front_end_url: str = Field(
        default="http://localhost:3000", description="Public web front end URL"
    )
    block_external_comms: bool = Field(
        default=False,
        description="Suppress all outbound communications and pings (non-production)",
    )

    # Database
    database_url: str = Field(..., description="PostgreSQL connection URL")
    db_pool_min_size: int = Field(default=2, description="Minimum connection pool size")
    db_pool_max_size: int = Field(default=20, description="Maximum connection pool size")

    # Domain action monitor
    domain_action_poll_interval_s: float = Field(
        default=1.0, description="Seconds to sleep when no actions are due"
    )
    domain_action_busy_timeout_s: int = Field(
        default=60, description="Checkout lease pushed onto blocked_until when claiming"
    )
    domain_action_timeout_s: Optional[float] = Field(
        default=55.0,
        description="Monitor-level timeout per action (null disables)",
    )
    domain_action_stuck_threshold_minutes: int = Field(
        default=30, description="Age past blocked_until at which an action counts as stuck"
    )

    # Recurring actions
    finalize_settlements_interval_hours: int = Field(
        default=24, description="Hours between finalize-settlements runs"
    )
    settlement_report_interval_days: int = Field(
        default=7, description="Days between per-organization settlement processing"
    )
    retarget_abandoned_orders_interval_hours: int = Field(
        default=1, description="Hours between abandoned cart retargeting runs"
    )
    abandoned_cart_min_age_hours: int = Field(
        default=2, description="Carts idle for at least this long are retargeted"
    )
    abandoned_cart_max_age_hours: int = Field(
        default=48, description="Carts idle for longer than this are ignored"
    )
    transfer_drip_interval_hours: int = Field(
        default=24, description="Hours between transfer drip checks per event"
    )
    automatic_report_timezone: str = Field(
        default="America/Los_Angeles", description="Timezone for daily report emails"
    )
    automatic_report_hour: int = Field(
        default=4, ge=0, le=23, description="Local hour daily report emails go out"
    )

    # Communication templates
    custom_broadcast_template_id: Optional[str] = Field(
        default=None, description="Push template for custom broadcasts"
    )
    purchase_completed_template_id: Optional[str] = Field(
        default=None, description="Email template for completed purchases"
    )
    abandoned_cart_template_id: Optional[str] = Field(
        default=None, description="Email template for abandoned cart retargeting"
    )
    ticket_count_report_template_id: Optional[str] = Field(
        default=None, description="Email template for ticket count reports"
    )
    transfer_drip_template_id: Optional[str] = Field(
        default=None, description="Email template for transfer drip reminders"
    )
    communication_default_source_email: str = Field(
        default="noreply@localhost", description="From address for queued email"
    )
    communication_webhook_timeout_s: float = Field(
        default=10.0, description="Timeout for webhook communication delivery"
    )

    # Payment provider (Globee)
    globee_api_key: Optional[str] = Field(default=None, description="Globee API key")
    globee_base_url: str = Field(
        default="https://globee.com/payment-api/v1/", description="Globee API base URL"
    )
    ipn_base_url: str = Field(
        default="test", description="IPN callback base URL; 'test' skips IPN verification"
    )

    # Marketing contacts
    sendgrid_api_base_url: str = Field(
        default="https://api.sendgrid.com/v3", description="SendGrid API base URL"
    )
    fan_list_import_delay_hours: int = Field(
        default=12, description="Hours between bulk fan list imports while on sale"
    )

    # Sentry Observability
    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking",
    )
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment tag (development, staging, production)",
    )

    @property
    def monitor_batch_size(self) -> int:
        """Actions claimed per poll: half the pool, at least one."""
        return max(1, self.db_pool_max_size // 2)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
