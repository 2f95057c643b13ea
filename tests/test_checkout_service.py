"""Tests for the checkout flow: sessions, quotes and order placement."""

from __future__ import annotations

import pytest

from src.domain.entities import Coordinate, ShippingDetails
from src.domain.enums import DeliveryFailure, SubmissionStatus
from src.infrastructure.locks import LockHeld, PlacementLock
from src.infrastructure.repositories import OrderSubmissionRepository
from src.infrastructure.sessions import CheckoutSessionStore
from src.infrastructure.storefront_client import UpstreamError
from src.services.checkout import (
    CheckoutService,
    PlacementInProgress,
    QuoteRequired,
    SessionNotFound,
    build_order_payload,
)
from tests.factories import USER_LAT, USER_LON, make_item

SHIPPING = ShippingDetails(
    full_name="Asha Rao",
    phone="9876543210",
    address_line1="12 MG Road",
    address_line2="Flat 4B",
    city="Bangalore",
    postal_code="560001",
)

CART = [
    make_item("Milk", "Koramangala", qty=2, offer_price=45.0),
    make_item("Bread", "Koramangala", original_price=40.0),
]


@pytest.fixture
def service(storefront, fake_redis) -> CheckoutService:
    return CheckoutService(storefront, CheckoutSessionStore(fake_redis), fake_redis)


async def _quoted_session(service, items=CART):
    session = await service.open_session()
    outcome = await service.quote(
        session.id, items, latitude=USER_LAT, longitude=USER_LON
    )
    assert outcome.outcome.ok
    return session


class TestSessions:
    @pytest.mark.asyncio
    async def test_open_pins_settings(self, service, storefront):
        session = await service.open_session(token="tok")

        loaded = await service.get_session(session.id)
        assert loaded.settings == storefront.settings
        assert storefront.tokens == ["tok"]

    @pytest.mark.asyncio
    async def test_unknown_session(self, service):
        with pytest.raises(SessionNotFound):
            await service.get_session("missing")

    @pytest.mark.asyncio
    async def test_settings_fetch_failure_propagates(self, service, storefront):
        storefront.fail_with = UpstreamError("down", status_code=503)
        with pytest.raises(UpstreamError):
            await service.open_session()


class TestQuote:
    @pytest.mark.asyncio
    async def test_quote_with_coordinates(self, service, fake_redis):
        session = await service.open_session()

        quoted = await service.quote(
            session.id, CART, latitude=USER_LAT, longitude=USER_LON
        )

        assert quoted.outcome.result.stores == ("Koramangala",)
        assert quoted.coordinate == Coordinate(USER_LAT, USER_LON)
        assert quoted.items_total == 130.0
        saved = await service.get_session(session.id)
        assert saved.quote.result == quoted.outcome.result
        assert saved.quote.items == tuple(CART)

    @pytest.mark.asyncio
    async def test_quote_geocodes_typed_address(self, service, storefront):
        storefront.geocodes["12 MG Road"] = Coordinate(USER_LAT, USER_LON)
        session = await service.open_session()

        quoted = await service.quote(session.id, CART, address="12 MG Road")

        assert quoted.outcome.ok
        assert quoted.coordinate == Coordinate(USER_LAT, USER_LON)

    @pytest.mark.asyncio
    async def test_geocoding_failure_propagates(self, service):
        session = await service.open_session()
        with pytest.raises(UpstreamError):
            await service.quote(session.id, CART, address="unknown place")

    @pytest.mark.asyncio
    async def test_no_location_at_all(self, service):
        session = await service.open_session()
        quoted = await service.quote(session.id, CART)
        assert quoted.outcome.failure == DeliveryFailure.MISSING_COORDINATES
        assert quoted.coordinate is None

    @pytest.mark.asyncio
    async def test_failed_quote_discards_previous(self, service):
        session = await _quoted_session(service)

        honey = [make_item("Honey", "Indiranagar")]
        quoted = await service.quote(
            session.id, honey, latitude=USER_LAT, longitude=USER_LON
        )

        assert quoted.outcome.failure == DeliveryFailure.UNCONFIRMED_MULTI_STORE
        assert quoted.outcome.proposal.stores == ("Koramangala", "Indiranagar")
        assert (await service.get_session(session.id)).quote is None

    @pytest.mark.asyncio
    async def test_confirmed_multi_store_quote(self, service):
        session = await service.open_session()
        quoted = await service.quote(
            session.id,
            [make_item("Honey", "Indiranagar")],
            latitude=USER_LAT,
            longitude=USER_LON,
            allow_multi_store=True,
        )
        assert quoted.outcome.result.stores == ("Koramangala", "Indiranagar")

    @pytest.mark.asyncio
    async def test_clear_quote(self, service):
        session = await _quoted_session(service)
        await service.clear_quote(session.id)
        assert (await service.get_session(session.id)).quote is None


class TestPlaceOrder:
    @pytest.mark.asyncio
    async def test_places_order(self, service, storefront, db_session):
        session = await _quoted_session(service)
        repo = OrderSubmissionRepository(db_session)

        submission = await service.place_order(
            session.id, SHIPPING, repo, idempotency_key="k1", token="tok"
        )

        assert submission.status == SubmissionStatus.PLACED
        assert submission.order_id == "order-1"
        assert len(storefront.orders) == 1
        assert storefront.tokens[-1] == "tok"
        # quote is consumed
        assert (await service.get_session(session.id)).quote is None

    @pytest.mark.asyncio
    async def test_requires_quote(self, service, db_session):
        session = await service.open_session()
        with pytest.raises(QuoteRequired):
            await service.place_order(
                session.id, SHIPPING, OrderSubmissionRepository(db_session)
            )

    @pytest.mark.asyncio
    async def test_same_key_returns_placed_submission(
        self, service, storefront, db_session
    ):
        session = await _quoted_session(service)
        repo = OrderSubmissionRepository(db_session)

        first = await service.place_order(
            session.id, SHIPPING, repo, idempotency_key="k1"
        )
        second = await service.place_order(
            session.id, SHIPPING, repo, idempotency_key="k1"
        )

        assert second.id == first.id
        assert len(storefront.orders) == 1

    @pytest.mark.asyncio
    async def test_pending_key_is_rejected(self, service, db_session):
        session = await _quoted_session(service)
        repo = OrderSubmissionRepository(db_session)
        quote = (await service.get_session(session.id)).quote
        await repo.create(
            session_id=session.id,
            result=quote.result,
            total_price=0.0,
            idempotency_key="k1",
        )

        with pytest.raises(PlacementInProgress):
            await service.place_order(session.id, SHIPPING, repo, idempotency_key="k1")

    @pytest.mark.asyncio
    async def test_concurrent_placement_blocked_by_lock(
        self, service, fake_redis, db_session
    ):
        session = await _quoted_session(service)
        held = PlacementLock(fake_redis, session.id)
        await held.acquire()

        with pytest.raises(LockHeld):
            await service.place_order(
                session.id, SHIPPING, OrderSubmissionRepository(db_session)
            )

    @pytest.mark.asyncio
    async def test_failure_is_recorded_then_retried(
        self, service, storefront, db_session
    ):
        session = await _quoted_session(service)
        repo = OrderSubmissionRepository(db_session)
        storefront.fail_with = UpstreamError("POST /user/checkout failed with 500", 500)

        with pytest.raises(UpstreamError):
            await service.place_order(session.id, SHIPPING, repo, idempotency_key="k1")

        failed = await repo.get_by_idempotency_key(session.id, "k1")
        assert failed.status == SubmissionStatus.FAILED
        assert "500" in failed.error
        # quote survives the failure
        assert (await service.get_session(session.id)).quote is not None

        storefront.fail_with = None
        placed = await service.place_order(
            session.id, SHIPPING, repo, idempotency_key="k1"
        )
        assert placed.id == failed.id
        assert placed.status == SubmissionStatus.PLACED
        assert placed.error is None

    @pytest.mark.asyncio
    async def test_key_is_scoped_to_its_session(
        self, service, storefront, db_session
    ):
        repo = OrderSubmissionRepository(db_session)
        first = await _quoted_session(service)
        storefront.fail_with = UpstreamError("POST /user/checkout failed with 500", 500)
        with pytest.raises(UpstreamError):
            await service.place_order(first.id, SHIPPING, repo, idempotency_key="k")
        storefront.fail_with = None

        # Another session reusing the key places its own order
        second = await _quoted_session(service)
        placed = await service.place_order(
            second.id, SHIPPING, repo, idempotency_key="k"
        )
        assert placed.session_id == second.id
        assert placed.status == SubmissionStatus.PLACED
        earlier = await repo.get_by_idempotency_key(first.id, "k")
        assert earlier.status == SubmissionStatus.FAILED
        assert earlier.id != placed.id

        # A PLACED row in another session is not replayed here
        third = await _quoted_session(service)
        other = await service.place_order(
            third.id, SHIPPING, repo, idempotency_key="k"
        )
        assert other.id != placed.id
        assert other.session_id == third.id
        assert len(storefront.orders) == 2
        assert (await service.get_session(third.id)).quote is None

    @pytest.mark.asyncio
    async def test_ledger_and_quote_read_under_lock(
        self, service, fake_redis, db_session
    ):
        session = await _quoted_session(service)
        repo = OrderSubmissionRepository(db_session)
        lock_key = f"checkout:lock:{session.id}"
        held_during = []

        lookup = repo.get_by_idempotency_key
        get_session = service.get_session

        async def lookup_spy(session_id, key):
            held_during.append(("ledger", lock_key in fake_redis.data))
            return await lookup(session_id, key)

        async def get_session_spy(session_id):
            held_during.append(("session", lock_key in fake_redis.data))
            return await get_session(session_id)

        repo.get_by_idempotency_key = lookup_spy
        service.get_session = get_session_spy

        await service.place_order(session.id, SHIPPING, repo, idempotency_key="k1")

        assert held_during == [("ledger", True), ("session", True)]
        assert lock_key not in fake_redis.data

    @pytest.mark.asyncio
    async def test_replay_after_quote_consumed(self, service, storefront, db_session):
        session = await _quoted_session(service)
        repo = OrderSubmissionRepository(db_session)
        placed = await service.place_order(
            session.id, SHIPPING, repo, idempotency_key="k1"
        )
        assert (await service.get_session(session.id)).quote is None

        again = await service.place_order(
            session.id, SHIPPING, repo, idempotency_key="k1"
        )

        assert again.id == placed.id
        assert len(storefront.orders) == 1


class TestOrderPayload:
    @pytest.mark.asyncio
    async def test_payload_shape(self, service):
        session = await _quoted_session(service)
        quote = (await service.get_session(session.id)).quote

        payload = build_order_payload(quote, SHIPPING)

        assert payload["orderItems"][0] == {
            "product": "prod-milk",
            "name": "Milk",
            "image": "https://img.example.com/milk.jpg",
            "qty": 2,
            "price": 45.0,
        }
        address = payload["shippingAddress"]
        assert address["address"] == "12 MG Road, Flat 4B"
        assert address["country"] == "India"
        assert address["latitude"] == USER_LAT
        assert payload["paymentMethod"] == "Cash On Delivery"
        assert payload["nearestStore"] == "Koramangala"
        assert payload["shippingPrice"] == quote.result.charge
        assert payload["distance"] == quote.result.total_km
        assert payload["totalPrice"] == pytest.approx(130.0 + quote.result.charge)
