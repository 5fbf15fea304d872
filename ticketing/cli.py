#!/usr/bin/env python
"""
CLI for the domain action worker.

Usage:
    ticketing-actions run [--types TYPE ...]
    ticketing-actions run-until-empty [--types TYPE ...]
    ticketing-actions stuck [--threshold-minutes N]
    ticketing-actions check-routes
    ticketing-actions migrate

Examples:
    # Long-running worker
    ticketing-actions run

    # Drain only the communication queue once
    ticketing-actions run-until-empty --types communication

    # List actions that should have run more than an hour ago
    ticketing-actions stuck --threshold-minutes 60
"""

import argparse
import asyncio
import signal
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
import structlog

from ticketing.config import Settings, get_settings
from ticketing.core.logging import configure_logging
from ticketing.core.sentry import init_sentry
from ticketing.db import schema
from ticketing.db.connection import Database
from ticketing.domain_actions.collaborators import Collaborators
from ticketing.domain_actions.monitor import DomainActionMonitor
from ticketing.domain_actions.router import DomainActionRouter
from ticketing.domain_actions.types import CommunicationChannelType, DomainActionType
from ticketing.errors import DomainActionError
from ticketing.integrations.globee import GlobeeClient
from ticketing.integrations.sendgrid import SendGridContactsClient
from ticketing.integrations.webhooks import WebhookSender
from ticketing.repositories.domain_actions import DomainActionRepository

logger = structlog.get_logger(__name__)


def build_collaborators(settings: Settings, http_client: httpx.AsyncClient) -> Collaborators:
    """Collaborators backed by the shared HTTP client.

    Only webhook delivery ships with this package; mail, SMS and push
    senders are registered by the deployment.
    """
    payment_provider = None
    if settings.globee_api_key:
        payment_provider = GlobeeClient(
            http_client, settings.globee_api_key, settings.globee_base_url
        )
    return Collaborators(
        http_client=http_client,
        senders={
            CommunicationChannelType.WEBHOOK: WebhookSender(
                http_client, timeout=settings.communication_webhook_timeout_s
            ),
        },
        payment_provider=payment_provider,
        marketing_contacts=SendGridContactsClient(
            http_client, settings.sendgrid_api_base_url
        ),
    )


def parse_action_types(values: Optional[list[str]]) -> Optional[list[DomainActionType]]:
    if not values:
        return None
    return [DomainActionType(v) for v in values]


@asynccontextmanager
async def worker_context(settings: Settings) -> AsyncIterator[tuple[Database, DomainActionRouter]]:
    database = await Database.connect(settings)
    http_client = httpx.AsyncClient(timeout=settings.communication_webhook_timeout_s)
    try:
        router = DomainActionRouter.build(settings, build_collaborators(settings, http_client))
        yield database, router
    finally:
        await http_client.aclose()
        await database.close()


async def cmd_run(args: argparse.Namespace) -> int:
    """Run the monitor until SIGINT/SIGTERM."""
    settings = get_settings()
    async with worker_context(settings) as (database, router):
        monitor = DomainActionMonitor(
            database, router, settings, action_types=parse_action_types(args.types)
        )
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, monitor.stop)
        await monitor.run()
    return 0


async def cmd_run_until_empty(args: argparse.Namespace) -> int:
    settings = get_settings()
    async with worker_context(settings) as (database, router):
        monitor = DomainActionMonitor(
            database, router, settings, action_types=parse_action_types(args.types)
        )
        processed = await monitor.run_until_empty()
    print(f"Processed {processed} domain actions")
    return 0


async def cmd_stuck(args: argparse.Namespace) -> int:
    settings = get_settings()
    threshold = args.threshold_minutes or settings.domain_action_stuck_threshold_minutes
    database = await Database.connect(settings)
    try:
        conn = await database.get_connection()
        try:
            stuck = await DomainActionRepository(conn.get()).find_stuck(threshold)
        finally:
            await conn.release()
    finally:
        await database.close()

    for action in stuck:
        print(
            f"{action.id}  {action.domain_action_type.value:<48} "
            f"{action.status.value:<9} attempts={action.attempt_count}/"
            f"{action.max_attempt_count} blocked_until={action.blocked_until.isoformat()}"
        )
    print(f"{len(stuck)} stuck domain actions (threshold {threshold} minutes)")
    return 1 if stuck else 0


async def cmd_check_routes(args: argparse.Namespace) -> int:
    """Build the router without touching the database."""
    settings = get_settings()
    async with httpx.AsyncClient() as http_client:
        try:
            router = DomainActionRouter.build(
                settings, build_collaborators(settings, http_client)
            )
        except DomainActionError as e:
            logger.error("domain_action_routes_incomplete", error=str(e))
            return 1
    for action_type in DomainActionType:
        executor = router.get_executor_for(action_type)
        print(f"{action_type.value:<48} {type(executor).__name__}")
    return 0


async def cmd_migrate(args: argparse.Namespace) -> int:
    settings = get_settings()
    database = await Database.connect(settings)
    try:
        conn = await database.get_connection()
        try:
            await schema.apply(conn.get())
        finally:
            await conn.release()
    finally:
        await database.close()
    logger.info("domain_action_schema_applied")
    return 0


COMMANDS = {
    "run": cmd_run,
    "run-until-empty": cmd_run_until_empty,
    "stuck": cmd_stuck,
    "check-routes": cmd_check_routes,
    "migrate": cmd_migrate,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ticketing-actions",
        description="Domain action worker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines instead of console output",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    type_choices = [t.value for t in DomainActionType]
    for name, help_text in (
        ("run", "Poll and execute due actions until stopped"),
        ("run-until-empty", "Execute due actions until none are left"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--types",
            nargs="+",
            choices=type_choices,
            metavar="TYPE",
            help="Only execute these action types (default: all)",
        )

    stuck_parser = subparsers.add_parser("stuck", help="List stuck actions")
    stuck_parser.add_argument(
        "--threshold-minutes",
        "-t",
        type=int,
        default=None,
        help="Minutes past blocked_until (default: from settings)",
    )

    subparsers.add_parser("check-routes", help="Verify every action type has an executor")
    subparsers.add_parser("migrate", help="Create the domain action tables")
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)

    settings = get_settings()
    configure_logging(settings.log_level, json=args.json_logs)
    init_sentry(settings)

    sys.exit(asyncio.run(command(args)))


if __name__ == "__main__":
    main()
