"""Tests for executors that call outside services."""

from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import httpx
import pytest

from ticketing.domain_actions.executors import (
    BulkEventFanListImportExecutor,
    CreateEventListExecutor,
    ProcessPaymentIPNExecutor,
    SubmitSitemapToSearchEnginesExecutor,
    UpdateGenresExecutor,
)
from ticketing.domain_actions.executors.marketing_contacts.bulk_event_fan_list_import import (
    fan_contact,
)
from ticketing.domain_actions.executors.marketing_contacts.create_event_list import (
    event_list_name,
)
from ticketing.domain_actions.executors.process_payment_ipn import (
    payment_status_for,
    received_amount_cents,
)
from ticketing.domain_actions.executors.submit_sitemap_to_search_engines import (
    search_engine_urls,
)
from ticketing.domain_actions.models import DomainAction
from ticketing.domain_actions.types import DomainActionType, Tables
from ticketing.errors import ApplicationError, TransportError
from ticketing.repositories.events import Event, EventStatus, Fan
from ticketing.repositories.payments import PaymentStatus

ACTION_INSERT = "ticketing.repositories.domain_actions.DomainActionRepository.insert"
MARKETING = "ticketing.domain_actions.executors.marketing_contacts"
IPN = "ticketing.domain_actions.executors.process_payment_ipn"


def stored(new_action):
    """What the repository returns once a NewDomainAction is inserted."""
    return DomainAction(id=uuid4(), blocked_until=new_action.scheduled_at, **asdict(new_action))


def capture_inserts():
    return AsyncMock(side_effect=stored)


class TestSubmitSitemapExecutor:
    def test_search_engine_urls(self):
        urls = search_engine_urls("https://api.example.com")
        assert urls == [
            "http://www.google.com/webmasters/sitemaps/ping?sitemap=https://api.example.com/sitemap.xml",
            "http://www.bing.com/ping?sitemap=https://api.example.com/sitemap.xml",
        ]

    @pytest.mark.asyncio
    async def test_blocked_comms_make_no_requests(self, mock_conn, action_factory):
        client = AsyncMock()
        executor = SubmitSitemapToSearchEnginesExecutor(
            "https://api.example.com", block_external_comms=True, http_client=client
        )

        await executor.perform_job(
            action_factory(DomainActionType.SUBMIT_SITEMAP_TO_SEARCH_ENGINES), mock_conn
        )

        client.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_pings_each_engine(self, mock_conn, action_factory):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            executor = SubmitSitemapToSearchEnginesExecutor(
                "https://api.example.com", http_client=client
            )
            await executor.perform_job(
                action_factory(DomainActionType.SUBMIT_SITEMAP_TO_SEARCH_ENGINES), mock_conn
            )

        assert len(requested) == 2

    @pytest.mark.asyncio
    async def test_http_error_becomes_transport_error(self, mock_conn, action_factory):
        def handler(request):
            return httpx.Response(503)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            executor = SubmitSitemapToSearchEnginesExecutor(
                "https://api.example.com", http_client=client
            )
            with pytest.raises(TransportError):
                await executor.perform_job(
                    action_factory(DomainActionType.SUBMIT_SITEMAP_TO_SEARCH_ENGINES),
                    mock_conn,
                )


class TestUpdateGenresExecutor:
    @pytest.mark.asyncio
    async def test_unsupported_table_fails(self, mock_conn, action_factory):
        action = action_factory(
            DomainActionType.UPDATE_GENRES, main_table=Tables.ORDERS, main_table_id=uuid4()
        )
        with pytest.raises(ApplicationError, match="Table not supported"):
            await UpdateGenresExecutor().perform_job(action, mock_conn)

    @pytest.mark.asyncio
    async def test_artist_updates_each_event(self, mock_conn, action_factory):
        module = "ticketing.domain_actions.executors.update_genres"
        artist = MagicMock(id=uuid4())
        event_ids = [uuid4(), uuid4()]
        action = action_factory(
            DomainActionType.UPDATE_GENRES, main_table=Tables.ARTISTS, main_table_id=artist.id
        )

        with patch(f"{module}.ArtistRepository") as artists_cls, patch(
            f"{module}.EventRepository"
        ) as events_cls, patch(
            "ticketing.repositories.domain_events.DomainEventRepository.insert",
            new=AsyncMock(),
        ) as events_insert:
            artists_cls.return_value.find = AsyncMock(return_value=artist)
            artists_cls.return_value.events = AsyncMock(return_value=event_ids)
            events_cls.return_value.update_genres = AsyncMock(return_value=["jazz"])

            await UpdateGenresExecutor().perform_job(action, mock_conn)

        assert events_cls.return_value.update_genres.await_count == 2
        assert [c.args[0].main_id for c in events_insert.await_args_list] == event_ids


class TestPaymentIPN:
    @pytest.mark.parametrize(
        "ipn_status,expected",
        [
            ("paid", PaymentStatus.PENDING_CONFIRMATION),
            ("CONFIRMED", PaymentStatus.COMPLETED),
            ("completed", PaymentStatus.COMPLETED),
            ("refunded", PaymentStatus.REFUNDED),
            ("something_new", PaymentStatus.UNKNOWN),
            (None, PaymentStatus.UNKNOWN),
        ],
    )
    def test_status_mapping(self, ipn_status, expected):
        assert payment_status_for(ipn_status) == expected

    def test_received_amount_in_cents(self):
        assert received_amount_cents({"payment_details": {"received_amount": "12.345"}}) == 1234
        assert received_amount_cents({}) == 0

    @pytest.mark.asyncio
    async def test_ipn_without_custom_payment_id_is_noop(self, mock_conn, action_factory):
        provider = AsyncMock()
        action = action_factory(DomainActionType.PAYMENT_PROVIDER_IPN, payload={"id": "pr-1"})

        with patch(f"{IPN}.OrderRepository") as orders_cls:
            await ProcessPaymentIPNExecutor(provider).perform_job(action, mock_conn)

        provider.get_payment_request.assert_not_called()
        orders_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_verified_completed_payment(self, mock_conn, action_factory):
        order_id = uuid4()
        ipn = {
            "id": "pr-1",
            "custom_payment_id": str(order_id),
            "status": "confirmed",
            "payment_details": {"received_amount": "25.00"},
        }
        provider = AsyncMock()
        provider.get_payment_request = AsyncMock(return_value=ipn)
        order = MagicMock(id=order_id)
        payment = MagicMock()
        action = action_factory(
            DomainActionType.PAYMENT_PROVIDER_IPN,
            payload={"id": "pr-1", "custom_payment_id": str(order_id), "status": "paid"},
        )

        with patch(f"{IPN}.OrderRepository") as orders_cls, patch(
            f"{IPN}.PaymentRepository"
        ) as payments_cls:
            orders_cls.return_value.find = AsyncMock(return_value=order)
            payments = payments_cls.return_value
            payments.find_by_order = AsyncMock(return_value=payment)
            payments.mark_complete = AsyncMock()
            payments.record_ipn = AsyncMock()

            await ProcessPaymentIPNExecutor(provider, verify_ipn=True).perform_job(
                action, mock_conn
            )

        provider.get_payment_request.assert_awaited_once_with("pr-1")
        payments.find_by_order.assert_awaited_once_with(order_id, "globee-pr-1")
        payments.mark_complete.assert_awaited_once_with(payment, 2500, ipn)
        payments.record_ipn.assert_not_called()

    @pytest.mark.asyncio
    async def test_unverified_ipn_creates_payment(self, mock_conn, action_factory):
        order_id = uuid4()
        payload = {"id": "pr-2", "custom_payment_id": str(order_id), "status": "paid"}
        action = action_factory(DomainActionType.PAYMENT_PROVIDER_IPN, payload=payload)
        payment = MagicMock()

        with patch(f"{IPN}.OrderRepository") as orders_cls, patch(
            f"{IPN}.PaymentRepository"
        ) as payments_cls:
            orders_cls.return_value.find = AsyncMock(return_value=MagicMock(id=order_id))
            payments = payments_cls.return_value
            payments.find_by_order = AsyncMock(return_value=None)
            payments.create_provider_payment = AsyncMock(return_value=payment)
            payments.record_ipn = AsyncMock()

            await ProcessPaymentIPNExecutor(verify_ipn=False).perform_job(action, mock_conn)

        payments.create_provider_payment.assert_awaited_once()
        payments.record_ipn.assert_awaited_once_with(
            payment, PaymentStatus.PENDING_CONFIRMATION, payload
        )

    @pytest.mark.asyncio
    async def test_verification_without_provider_fails(self, mock_conn, action_factory):
        action = action_factory(
            DomainActionType.PAYMENT_PROVIDER_IPN,
            payload={"id": "pr-3", "custom_payment_id": str(uuid4())},
        )
        with pytest.raises(ApplicationError):
            await ProcessPaymentIPNExecutor(None, verify_ipn=True).perform_job(
                action, mock_conn
            )


def make_event(**overrides):
    fields = {
        "id": uuid4(),
        "name": "Night Market",
        "organization_id": uuid4(),
        "status": EventStatus.PUBLISHED,
        "event_start": datetime(2024, 7, 4, 19, 0, tzinfo=timezone.utc),
        "sendgrid_list_id": 42,
    }
    fields.update(overrides)
    return Event(**fields)


class TestMarketingContacts:
    def test_event_list_name(self):
        assert event_list_name(make_event()) == "Night Market (Jul 4, 2024)"

    def test_event_list_name_requires_start(self):
        with pytest.raises(ApplicationError):
            event_list_name(make_event(event_start=None))

    def test_fan_contact_omits_missing_names(self):
        fan = Fan(user_id=uuid4(), email="fan@example.com", first_name="Ari")
        assert fan_contact(fan) == {"email": "fan@example.com", "first_name": "Ari"}

    @pytest.mark.asyncio
    async def test_create_list_queues_import_once(self, mock_conn, action_factory):
        event = make_event(sendgrid_list_id=None)
        organization = MagicMock(id=event.organization_id, sendgrid_api_key="sg-key")
        contacts = AsyncMock()
        contacts.create_or_return_list = AsyncMock(return_value={"id": 7})
        action = action_factory(
            DomainActionType.MARKETING_CONTACTS_CREATE_EVENT_LIST,
            payload={"event_id": str(event.id)},
        )

        module = f"{MARKETING}.create_event_list"
        with patch(f"{module}.EventRepository") as events_cls, patch(
            f"{module}.OrganizationRepository"
        ) as orgs_cls, patch(f"{module}.DomainActionRepository") as actions_cls, patch(
            ACTION_INSERT, new=capture_inserts()
        ) as insert:
            events_cls.return_value.find = AsyncMock(return_value=event)
            events_cls.return_value.set_sendgrid_list_id = AsyncMock()
            orgs_cls.return_value.find = AsyncMock(return_value=organization)
            actions_cls.return_value.has_pending_action = AsyncMock(return_value=False)

            await CreateEventListExecutor(contacts).perform_job(action, mock_conn)

        events_cls.return_value.set_sendgrid_list_id.assert_awaited_once_with(event.id, 7)
        queued = insert.await_args.args[0]
        assert (
            queued.domain_action_type
            == DomainActionType.MARKETING_CONTACTS_BULK_EVENT_FAN_LIST_IMPORT
        )
        assert queued.payload == {"event_id": str(event.id), "execution_count": 0}

    @pytest.mark.asyncio
    async def test_organization_without_key_is_noop(self, mock_conn, action_factory):
        event = make_event()
        contacts = AsyncMock()
        action = action_factory(
            DomainActionType.MARKETING_CONTACTS_CREATE_EVENT_LIST,
            payload={"event_id": str(event.id)},
        )

        module = f"{MARKETING}.create_event_list"
        with patch(f"{module}.EventRepository") as events_cls, patch(
            f"{module}.OrganizationRepository"
        ) as orgs_cls:
            events_cls.return_value.find = AsyncMock(return_value=event)
            orgs_cls.return_value.find = AsyncMock(
                return_value=MagicMock(sendgrid_api_key=None)
            )

            await CreateEventListExecutor(contacts).perform_job(action, mock_conn)

        contacts.create_or_return_list.assert_not_called()

    @pytest.mark.asyncio
    async def test_bulk_import_adds_recipients_and_repeats(self, mock_conn, action_factory):
        event = make_event(event_end=datetime.now(timezone.utc) + timedelta(days=30))
        organization = MagicMock(id=event.organization_id, sendgrid_api_key="sg-key")
        contacts = AsyncMock()
        contacts.create_contacts = AsyncMock(
            return_value={"persisted_recipients": ["r1"], "new_count": 1, "error_count": 0}
        )
        contacts.get_list = AsyncMock(return_value={"id": 42})
        contacts.add_recipients = AsyncMock()
        action = action_factory(
            DomainActionType.MARKETING_CONTACTS_BULK_EVENT_FAN_LIST_IMPORT,
            payload={"event_id": str(event.id), "execution_count": 2},
        )

        module = f"{MARKETING}.bulk_event_fan_list_import"
        with patch(f"{module}.EventRepository") as events_cls, patch(
            f"{module}.OrganizationRepository"
        ) as orgs_cls, patch(
            ACTION_INSERT, new=capture_inserts()
        ) as insert:
            events_cls.return_value.find = AsyncMock(return_value=event)
            events_cls.return_value.search_fans = AsyncMock(
                return_value=[
                    Fan(user_id=uuid4(), email="fan@example.com"),
                    Fan(user_id=uuid4()),
                ]
            )
            orgs_cls.return_value.find = AsyncMock(return_value=organization)

            await BulkEventFanListImportExecutor(contacts).perform_job(action, mock_conn)

        contacts.create_contacts.assert_awaited_once_with(
            "sg-key", [{"email": "fan@example.com"}]
        )
        contacts.add_recipients.assert_awaited_once_with("sg-key", 42, ["r1"])
        next_action = insert.await_args.args[0]
        assert next_action.payload["execution_count"] == 3
        assert next_action.main_table_id == event.id
