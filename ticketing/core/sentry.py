"""Sentry initialization for the domain action worker."""

import os

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration

from ticketing import __version__
from ticketing.config import Settings

logger = structlog.get_logger(__name__)


def init_sentry(settings: Settings) -> bool:
    """
    Initialize Sentry if DSN is configured.

    Returns True if Sentry was initialized, False otherwise.
    """
    if not settings.sentry_dsn:
        return False

    # Only send ERROR-level logs as Sentry events
    sentry_logging = LoggingIntegration(
        level=None,  # Keep normal log levels
        event_level="ERROR",  # Only ERROR+ become Sentry events
    )

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.sentry_environment,
        release=os.environ.get("GIT_SHA", f"ticketing@{__version__}"),
        integrations=[sentry_logging],
        send_default_pii=False,
        attach_stacktrace=True,
    )

    sentry_sdk.set_tag("service", "domain-actions")

    logger.info("sentry_initialized", environment=settings.sentry_environment)

    return True
