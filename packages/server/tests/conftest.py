"""
Shared fixtures: in-memory SQLite database, seeded users/publishers and an
HTTP client wired to the real app with external services replaced.
"""

from __future__ import annotations

import os

# Must be set before any app module reads settings
os.environ.setdefault("MODSTORE_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("MODSTORE_SECRET_KEY", "test-secret-key-with-at-least-32-bytes!")
os.environ.setdefault("MODSTORE_LOG_FORMAT", "console")
os.environ.setdefault("MODSTORE_LOG_LEVEL", "warning")

import uuid
from decimal import Decimal
from typing import Optional
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401  (populate metadata)
from app.core.auth import create_jwt
from app.core.clients import get_payment_service, get_twitch_client
from app.core.config import get_settings
from app.core.database import get_session
from app.models.modpack import Modpack
from app.models.publisher import Publisher
from app.models.publisher_member import PublisherMember
from app.models.scope import Scope
from app.models.user import User
from app.services.payments import GatewayPayment, PaymentService

from modstore_shared.schemas.common import (
    AcquisitionMethod,
    ModpackStatus,
    Permission,
    PublisherMemberRole,
)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------

class Seed:
    """Small factory for rows the tests need."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def user(self, username: str = "player", **kwargs) -> User:
        user = User(
            username=username,
            email=kwargs.pop("email", f"{username}-{uuid.uuid4().hex[:6]}@example.com"),
            **kwargs,
        )
        self.session.add(user)
        await self.session.flush()
        return user

    async def publisher(self, owner: User, slug: Optional[str] = None) -> Publisher:
        publisher = Publisher(name="Blockworks", slug=slug or f"pub-{uuid.uuid4().hex[:8]}")
        self.session.add(publisher)
        await self.session.flush()
        await self.member(publisher, owner, PublisherMemberRole.OWNER)
        return publisher

    async def member(
        self,
        publisher: Publisher,
        user: User,
        role: PublisherMemberRole = PublisherMemberRole.MEMBER,
    ) -> PublisherMember:
        member = PublisherMember(publisher_id=publisher.id, user_id=user.id, role=role.value)
        self.session.add(member)
        await self.session.flush()
        return member

    async def modpack(
        self,
        publisher: Publisher,
        creator: Optional[User] = None,
        *,
        method: AcquisitionMethod = AcquisitionMethod.FREE,
        status: ModpackStatus = ModpackStatus.PUBLISHED,
        **kwargs,
    ) -> Modpack:
        modpack = Modpack(
            publisher_id=publisher.id,
            creator_user_id=creator.id if creator else None,
            name=kwargs.pop("name", "Skyfactory"),
            slug=kwargs.pop("slug", f"pack-{uuid.uuid4().hex[:8]}"),
            status=status.value,
            acquisition_method=method.value,
            **kwargs,
        )
        self.session.add(modpack)
        await self.session.flush()
        return modpack

    async def scope(
        self,
        member: PublisherMember,
        *,
        publisher: Optional[Publisher] = None,
        modpack: Optional[Modpack] = None,
        flags: tuple[Permission, ...] = (),
    ) -> Scope:
        scope = Scope(
            publisher_member_id=member.id,
            publisher_id=publisher.id if publisher else None,
            modpack_id=modpack.id if modpack else None,
            **{flag.value: True for flag in flags},
        )
        self.session.add(scope)
        await self.session.flush()
        return scope


@pytest.fixture
def seed(session) -> Seed:
    return Seed(session)


# ---------------------------------------------------------------------------
# External services
# ---------------------------------------------------------------------------

class FakeGateway:
    """Payment gateway that hands out sequential PAY- ids."""

    name = "paypal"

    def __init__(self):
        self.calls: list[dict] = []
        self.verified = True
        self.verifications: list[dict] = []

    async def create_payment(self, *, amount: Decimal, currency: str, description: str, custom: dict):
        self.calls.append({"amount": amount, "currency": currency, "custom": custom})
        external_id = f"PAY-{len(self.calls):04d}"
        return GatewayPayment(
            external_id=external_id,
            approval_url=f"https://paypal.test/approve/{external_id}",
        )

    async def verify_webhook(self, headers, event: dict) -> bool:
        self.verifications.append(event)
        return self.verified


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def payments(gateway) -> PaymentService:
    return PaymentService(gateway, get_settings())


@pytest.fixture
def twitch():
    client = AsyncMock()
    client.can_user_access_modpack.return_value = False
    return client


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

def auth_headers(user: User) -> dict:
    token, _jti = create_jwt(user_id=user.id, role=user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(session, twitch, payments, monkeypatch):
    from app.main import app

    async def _session_override():
        yield session

    monkeypatch.setattr("app.core.auth.is_jwt_revoked", AsyncMock(return_value=False))
    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_twitch_client] = lambda: twitch
    app.dependency_overrides[get_payment_service] = lambda: payments

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    """headers(user) -> Authorization header for that user."""
    return auth_headers
