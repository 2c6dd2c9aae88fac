"""
Tests for the acquisition gate.

Covers:
- Free modpacks need no credential
- Password modpacks (bcrypt-hashed) deny wrong passwords as a result, not an error
- Twitch-gated modpacks, including anonymous callers and lapsed subscriptions
- Paid modpacks start a payment instead of granting
- Idempotence, suspension and revocation
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func
from sqlmodel import select

from app.core.auth import hash_password
from app.core.errors import ConflictError, TwitchUnavailableError
from app.models.modpack_acquisition import ModpackAcquisition
from app.services import acquisitions as acquisition_service
from modstore_shared.schemas.common import (
    AccessReason,
    AcquisitionMethod,
    AcquisitionStatus,
    PaymentStatus,
)


@pytest.fixture
async def publisher(seed):
    owner = await seed.user("owner")
    return await seed.publisher(owner)


@pytest.fixture
async def player(seed):
    return await seed.user("player")


async def _count(session, user, modpack) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(ModpackAcquisition)
        .where(ModpackAcquisition.user_id == user.id, ModpackAcquisition.modpack_id == modpack.id)
    )
    return result.scalar_one()


async def _acquire(session, user, modpack, twitch, payments, password=None):
    return await acquisition_service.acquire(
        session, user, modpack, password=password, twitch=twitch, payments=payments
    )


class TestFree:
    @pytest.mark.asyncio
    async def test_anyone_can_access_free_modpack(self, session, seed, publisher, player, twitch):
        modpack = await seed.modpack(publisher)
        for user in (None, player):
            decision = await acquisition_service.check_access(session, user, modpack, twitch)
            assert decision.can_access
            assert decision.reason == AccessReason.FREE

    @pytest.mark.asyncio
    async def test_unset_method_is_free(self, session, seed, publisher, twitch):
        modpack = await seed.modpack(publisher)
        modpack.acquisition_method = None
        decision = await acquisition_service.check_access(session, None, modpack, twitch)
        assert decision.reason == AccessReason.FREE

    @pytest.mark.asyncio
    async def test_acquire_twice_creates_one_row(self, session, seed, publisher, player, twitch, payments):
        modpack = await seed.modpack(publisher)
        first = await _acquire(session, player, modpack, twitch, payments)
        second = await _acquire(session, player, modpack, twitch, payments)

        assert first.granted and second.granted
        assert first.acquisition.id == second.acquisition.id
        assert first.acquisition.method == AcquisitionMethod.FREE.value
        assert await _count(session, player, modpack) == 1

    @pytest.mark.asyncio
    async def test_anonymous_acquire_requires_auth(self, session, seed, publisher, twitch, payments):
        modpack = await seed.modpack(publisher)
        outcome = await _acquire(session, None, modpack, twitch, payments)
        assert not outcome.granted
        assert outcome.reason == AccessReason.AUTH_REQUIRED


class TestPassword:
    @pytest.fixture
    async def modpack(self, seed, publisher):
        return await seed.modpack(
            publisher,
            method=AcquisitionMethod.PASSWORD,
            password_hash=hash_password("open-sesame"),
        )

    @pytest.mark.asyncio
    async def test_correct_password_grants(self, session, modpack, player, twitch, payments):
        outcome = await _acquire(session, player, modpack, twitch, payments, password="open-sesame")
        assert outcome.granted
        assert outcome.reason == AccessReason.ACQUIRED

        decision = await acquisition_service.check_access(session, player, modpack, twitch)
        assert decision.can_access
        assert decision.reason == AccessReason.ACQUIRED

    @pytest.mark.asyncio
    async def test_wrong_password_is_denial(self, session, modpack, player, twitch, payments):
        outcome = await _acquire(session, player, modpack, twitch, payments, password="guess")
        assert not outcome.granted
        assert outcome.reason == AccessReason.INVALID_PASSWORD
        assert await _count(session, player, modpack) == 0

    @pytest.mark.asyncio
    async def test_missing_password(self, session, modpack, player, twitch, payments):
        outcome = await _acquire(session, player, modpack, twitch, payments)
        assert outcome.reason == AccessReason.PASSWORD_REQUIRED

    @pytest.mark.asyncio
    async def test_check_access_before_acquire(self, session, modpack, player, twitch):
        decision = await acquisition_service.check_access(session, player, modpack, twitch)
        assert not decision.can_access
        assert decision.reason == AccessReason.PASSWORD_REQUIRED

    @pytest.mark.asyncio
    async def test_repeat_acquire_with_wrong_password_keeps_access(
        self, session, modpack, player, twitch, payments
    ):
        await _acquire(session, player, modpack, twitch, payments, password="open-sesame")
        outcome = await _acquire(session, player, modpack, twitch, payments, password="wrong")
        assert outcome.granted
        assert await _count(session, player, modpack) == 1


class TestTwitch:
    @pytest.fixture
    async def modpack(self, seed, publisher):
        return await seed.modpack(
            publisher,
            method=AcquisitionMethod.TWITCH_SUB,
            twitch_creator_ids=["1001", "1002"],
        )

    @pytest.fixture
    async def streamer_fan(self, seed):
        return await seed.user("fan", twitch_id="555", twitch_access_token="tok")

    @pytest.mark.asyncio
    async def test_anonymous_never_contacts_twitch(self, session, modpack, twitch):
        decision = await acquisition_service.check_access(session, None, modpack, twitch)
        assert not decision.can_access
        assert decision.reason == AccessReason.AUTH_REQUIRED
        assert decision.required_channels == ["1001", "1002"]
        twitch.can_user_access_modpack.assert_not_called()

    @pytest.mark.asyncio
    async def test_unlinked_account(self, session, modpack, player, twitch, payments):
        outcome = await _acquire(session, player, modpack, twitch, payments)
        assert outcome.reason == AccessReason.TWITCH_NOT_LINKED
        twitch.can_user_access_modpack.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_subscribed(self, session, modpack, streamer_fan, twitch, payments):
        outcome = await _acquire(session, streamer_fan, modpack, twitch, payments)
        assert not outcome.granted
        assert outcome.reason == AccessReason.TWITCH_SUBSCRIPTION_REQUIRED
        assert outcome.required_channels == ["1001", "1002"]

    @pytest.mark.asyncio
    async def test_subscribed_grants(self, session, modpack, streamer_fan, twitch, payments):
        twitch.can_user_access_modpack.return_value = True
        outcome = await _acquire(session, streamer_fan, modpack, twitch, payments)
        assert outcome.granted
        assert outcome.acquisition.method == AcquisitionMethod.TWITCH_SUB.value
        twitch.can_user_access_modpack.assert_awaited_once_with(streamer_fan, ["1001", "1002"])

    @pytest.mark.asyncio
    async def test_lapsed_subscription_suspends(self, session, modpack, streamer_fan, twitch, payments):
        twitch.can_user_access_modpack.return_value = True
        outcome = await _acquire(session, streamer_fan, modpack, twitch, payments)

        twitch.can_user_access_modpack.return_value = False
        decision = await acquisition_service.check_access(session, streamer_fan, modpack, twitch)
        assert not decision.can_access
        assert decision.reason == AccessReason.TWITCH_SUBSCRIPTION_REQUIRED
        assert outcome.acquisition.status == AcquisitionStatus.SUSPENDED.value

        # Resubscribing reactivates the same row
        twitch.can_user_access_modpack.return_value = True
        again = await _acquire(session, streamer_fan, modpack, twitch, payments)
        assert again.granted
        assert again.acquisition.id == outcome.acquisition.id
        assert again.acquisition.status == AcquisitionStatus.ACTIVE.value

    @pytest.mark.asyncio
    async def test_twitch_outage_is_not_a_denial(self, session, modpack, streamer_fan, twitch, payments):
        twitch.can_user_access_modpack.side_effect = TwitchUnavailableError()
        with pytest.raises(TwitchUnavailableError):
            await _acquire(session, streamer_fan, modpack, twitch, payments)


class TestPaid:
    @pytest.fixture
    async def modpack(self, seed, publisher):
        return await seed.modpack(
            publisher,
            method=AcquisitionMethod.PAID,
            price=Decimal("9.99"),
            currency="EUR",
        )

    @pytest.mark.asyncio
    async def test_acquire_starts_payment(self, session, modpack, player, twitch, payments, gateway):
        outcome = await _acquire(session, player, modpack, twitch, payments)
        assert not outcome.granted
        assert outcome.reason == AccessReason.PAYMENT_REQUIRED
        assert outcome.payment.status == PaymentStatus.PENDING.value
        assert outcome.payment.amount == Decimal("9.99")
        assert outcome.payment.currency == "EUR"
        assert gateway.calls[0]["custom"] == {"modpackId": str(modpack.id), "userId": str(player.id)}
        assert await _count(session, player, modpack) == 0

    @pytest.mark.asyncio
    async def test_repeated_acquire_reuses_pending_payment(
        self, session, modpack, player, twitch, payments, gateway
    ):
        first = await _acquire(session, player, modpack, twitch, payments)
        second = await _acquire(session, player, modpack, twitch, payments)
        assert second.payment.id == first.payment.id
        assert len(gateway.calls) == 1

    @pytest.mark.asyncio
    async def test_price_change_starts_new_payment(
        self, session, modpack, player, twitch, payments, gateway
    ):
        first = await _acquire(session, player, modpack, twitch, payments)
        modpack.price = Decimal("12.50")
        second = await _acquire(session, player, modpack, twitch, payments)
        assert second.payment.id != first.payment.id
        assert second.payment.amount == Decimal("12.50")
        assert len(gateway.calls) == 2

    @pytest.mark.asyncio
    async def test_check_access_requires_purchase(self, session, modpack, player, twitch):
        decision = await acquisition_service.check_access(session, player, modpack, twitch)
        assert decision.reason == AccessReason.PURCHASE_REQUIRED

    @pytest.mark.asyncio
    async def test_existing_purchase_is_noop(self, session, modpack, player, twitch, payments, gateway):
        await acquisition_service.record_acquisition(
            session, player.id, modpack, AcquisitionMethod.PAID, transaction_id="SALE-1"
        )
        outcome = await _acquire(session, player, modpack, twitch, payments)
        assert outcome.granted
        assert gateway.calls == []


class TestModeration:
    @pytest.mark.asyncio
    async def test_revoked_stays_revoked(self, session, seed, publisher, player, twitch, payments):
        modpack = await seed.modpack(publisher)
        outcome = await _acquire(session, player, modpack, twitch, payments)
        await acquisition_service.set_acquisition_status(
            session, outcome.acquisition, AcquisitionStatus.REVOKED
        )

        again = await _acquire(session, player, modpack, twitch, payments)
        assert not again.granted
        assert again.reason == AccessReason.ACCESS_REVOKED

        recorded = await acquisition_service.record_acquisition(
            session, player.id, modpack, AcquisitionMethod.PAID
        )
        assert recorded.status == AcquisitionStatus.REVOKED.value

    @pytest.mark.asyncio
    async def test_revoked_paid_modpack_denies_access(self, session, seed, publisher, player, twitch):
        modpack = await seed.modpack(publisher, method=AcquisitionMethod.PAID, price=Decimal("1.00"))
        acquisition = await acquisition_service.record_acquisition(
            session, player.id, modpack, AcquisitionMethod.PAID
        )
        await acquisition_service.set_acquisition_status(session, acquisition, AcquisitionStatus.REVOKED)
        decision = await acquisition_service.check_access(session, player, modpack, twitch)
        assert decision.reason == AccessReason.ACCESS_REVOKED

    @pytest.mark.asyncio
    async def test_suspended_free_modpack_reactivates(self, session, seed, publisher, player, twitch, payments):
        modpack = await seed.modpack(publisher)
        outcome = await _acquire(session, player, modpack, twitch, payments)
        await acquisition_service.set_acquisition_status(
            session, outcome.acquisition, AcquisitionStatus.SUSPENDED
        )
        again = await _acquire(session, player, modpack, twitch, payments)
        assert again.granted
        assert again.acquisition.status == AcquisitionStatus.ACTIVE.value

    @pytest.mark.asyncio
    async def test_invalid_transition_conflicts(self, session, seed, publisher, player, twitch, payments):
        modpack = await seed.modpack(publisher)
        outcome = await _acquire(session, player, modpack, twitch, payments)
        with pytest.raises(ConflictError) as exc_info:
            await acquisition_service.set_acquisition_status(
                session, outcome.acquisition, AcquisitionStatus.ACTIVE
            )
        assert exc_info.value.code == "INVALID_ACQUISITION_TRANSITION"

    @pytest.mark.asyncio
    async def test_list_user_acquisitions_filters_by_status(self, session, seed, publisher, player, twitch, payments):
        packs = [await seed.modpack(publisher) for _ in range(3)]
        outcomes = [await _acquire(session, player, m, twitch, payments) for m in packs]
        await acquisition_service.set_acquisition_status(
            session, outcomes[0].acquisition, AcquisitionStatus.SUSPENDED
        )

        items, pagination = await acquisition_service.list_user_acquisitions(session, player.id, 1, 2)
        assert len(items) == 2
        assert pagination.total == 3
        assert pagination.total_pages == 2

        items, pagination = await acquisition_service.list_user_acquisitions(
            session, player.id, status=AcquisitionStatus.SUSPENDED
        )
        assert [a.id for a in items] == [outcomes[0].acquisition.id]


class TestAcquisitionInfo:
    @pytest.mark.asyncio
    async def test_paid_info(self, seed, publisher):
        modpack = await seed.modpack(
            publisher, method=AcquisitionMethod.PAID, price=Decimal("4.50"), currency="USD"
        )
        info = acquisition_service.acquisition_info(modpack)
        assert info["acquisition_method"] == AcquisitionMethod.PAID
        assert info["requires_auth"] is True
        assert info["requires_password"] is False
        assert info["price"] == Decimal("4.50")

    @pytest.mark.asyncio
    async def test_free_info(self, seed, publisher):
        modpack = await seed.modpack(publisher)
        info = acquisition_service.acquisition_info(modpack)
        assert info["requires_auth"] is False
        assert info["required_channels"] == []
