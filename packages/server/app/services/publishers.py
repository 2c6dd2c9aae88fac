"""
Publisher service: publisher CRUD and team (role) management.

Role changes follow the hierarchy owner > admin > member: an actor may only
assign, change or remove roles strictly below their own, and the owner
membership itself is never changed through this path.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import ConflictError, ForbiddenError, NotFoundError
from app.models.publisher import Publisher
from app.models.publisher_member import PublisherMember
from app.models.user import User
from app.services.permissions import evaluator_for
from app.services.scopes import delete_member_scopes

from modstore_shared.schemas.common import PublisherMemberRole
from modstore_shared.schemas.publishers import PublisherCreateRequest

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Publishers
# ---------------------------------------------------------------------------

async def create_publisher(
    req: PublisherCreateRequest,
    creator_id: uuid.UUID,
    session: AsyncSession,
) -> Publisher:
    """Create a publisher and make the creator its owner."""
    existing = await session.execute(
        select(Publisher).where(Publisher.slug == req.slug)
    )
    if existing.scalar_one_or_none():
        raise ConflictError("Publisher slug already taken", code="PUBLISHER_SLUG_TAKEN")

    publisher = Publisher(name=req.name, slug=req.slug, description=req.description)
    session.add(publisher)
    await session.flush()

    owner = PublisherMember(
        publisher_id=publisher.id,
        user_id=creator_id,
        role=PublisherMemberRole.OWNER.value,
    )
    session.add(owner)
    await session.flush()

    log.info("publisher.created", publisher_id=str(publisher.id), slug=req.slug, owner=str(creator_id))
    return publisher


async def list_user_publishers(
    user_id: uuid.UUID, session: AsyncSession
) -> list[dict]:
    """List all publishers a user belongs to, with their role."""
    result = await session.execute(
        select(Publisher, PublisherMember.role)
        .join(PublisherMember, PublisherMember.publisher_id == Publisher.id)
        .where(PublisherMember.user_id == user_id)
        .order_by(Publisher.name)
    )
    return [
        {"id": publisher.id, "name": publisher.name, "slug": publisher.slug, "role": role}
        for publisher, role in result.all()
    ]


async def get_publisher(publisher_id: uuid.UUID, session: AsyncSession) -> Publisher:
    result = await session.execute(
        select(Publisher).where(Publisher.id == publisher_id)
    )
    publisher = result.scalar_one_or_none()
    if not publisher:
        raise NotFoundError("Publisher not found", code="PUBLISHER_NOT_FOUND")
    return publisher


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

async def list_members(
    publisher_id: uuid.UUID, session: AsyncSession
) -> list[PublisherMember]:
    result = await session.execute(
        select(PublisherMember)
        .where(PublisherMember.publisher_id == publisher_id)
        .order_by(PublisherMember.created_at)
    )
    return list(result.scalars().all())


async def get_member(
    publisher_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> PublisherMember:
    """Get a membership; raises 404 if the user is not in the publisher."""
    member = await evaluator_for(session).store.get_member(user_id, publisher_id)
    if not member:
        raise NotFoundError("Member not found", code="MEMBER_NOT_FOUND")
    return member


async def require_member(
    publisher_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> PublisherMember:
    """Like get_member, but a missing membership is a 403 for the caller."""
    member = await evaluator_for(session).store.get_member(user_id, publisher_id)
    if not member:
        raise ForbiddenError("Not a member of this publisher", code="NOT_PUBLISHER_MEMBER")
    return member


async def require_manageable(
    publisher_id: uuid.UUID,
    actor_id: uuid.UUID,
    role: PublisherMemberRole,
    session: AsyncSession,
    code: str,
) -> None:
    if not await evaluator_for(session).can_manage_role(actor_id, publisher_id, role):
        log.info(
            "member.role_management_denied",
            publisher_id=str(publisher_id),
            actor=str(actor_id),
            role=role.value,
        )
        raise ForbiddenError(f"Insufficient role to manage '{role.value}' members", code=code)


async def require_role_manager(
    publisher_id: uuid.UUID, actor_id: uuid.UUID, session: AsyncSession, code: str
) -> None:
    """The actor must be in the publisher and outrank at least a plain Member.

    Runs before any lookup of the target member.
    """
    await require_member(publisher_id, actor_id, session)
    await require_manageable(publisher_id, actor_id, PublisherMemberRole.MEMBER, session, code)


async def add_member(
    publisher_id: uuid.UUID,
    actor_id: uuid.UUID,
    user_id: uuid.UUID,
    role: PublisherMemberRole,
    session: AsyncSession,
) -> PublisherMember:
    """Add a user to the publisher with a role the actor is allowed to assign."""
    await require_manageable(
        publisher_id, actor_id, role, session, "INSUFFICIENT_ROLE_FOR_MEMBER_MANAGEMENT"
    )

    result = await session.execute(select(User).where(User.id == user_id))
    if not result.scalar_one_or_none():
        raise NotFoundError("User not found", code="USER_NOT_FOUND")

    if await evaluator_for(session).store.get_member(user_id, publisher_id):
        raise ConflictError("User is already a member", code="MEMBER_ALREADY_EXISTS")

    member = PublisherMember(publisher_id=publisher_id, user_id=user_id, role=role.value)
    session.add(member)
    await session.flush()

    log.info(
        "member.added",
        publisher_id=str(publisher_id),
        user_id=str(user_id),
        role=role.value,
        actor=str(actor_id),
    )
    return member


async def update_member_role(
    publisher_id: uuid.UUID,
    actor_id: uuid.UUID,
    target_user_id: uuid.UUID,
    new_role: PublisherMemberRole,
    session: AsyncSession,
) -> PublisherMember:
    """Change a member's role. Owners are immutable."""
    await require_role_manager(
        publisher_id, actor_id, session, "INSUFFICIENT_ROLE_FOR_ROLE_MANAGEMENT"
    )
    member = await get_member(publisher_id, target_user_id, session)
    current = PublisherMemberRole(member.role)
    if current == PublisherMemberRole.OWNER:
        raise ConflictError("The publisher owner cannot be modified", code="OWNER_IMMUTABLE")

    # Both the current and the requested role must be below the actor's
    for role in (current, new_role):
        await require_manageable(
            publisher_id, actor_id, role, session, "INSUFFICIENT_ROLE_FOR_ROLE_MANAGEMENT"
        )

    if current == new_role:
        return member

    member.role = new_role.value
    session.add(member)
    await session.flush()

    log.info(
        "member.role_changed",
        publisher_id=str(publisher_id),
        user_id=str(target_user_id),
        old_role=current.value,
        new_role=new_role.value,
        actor=str(actor_id),
    )
    return member


async def remove_member(
    publisher_id: uuid.UUID,
    actor_id: uuid.UUID,
    target_user_id: uuid.UUID,
    session: AsyncSession,
) -> None:
    """Remove a member and every scope granted to them."""
    await require_role_manager(
        publisher_id, actor_id, session, "INSUFFICIENT_ROLE_FOR_MEMBER_MANAGEMENT"
    )
    member = await get_member(publisher_id, target_user_id, session)
    role = PublisherMemberRole(member.role)
    if role == PublisherMemberRole.OWNER:
        raise ConflictError("The publisher owner cannot be removed", code="OWNER_IMMUTABLE")

    await require_manageable(
        publisher_id, actor_id, role, session, "INSUFFICIENT_ROLE_FOR_MEMBER_MANAGEMENT"
    )

    await delete_member_scopes(session, member.id)
    await session.delete(member)
    await session.flush()

    log.info(
        "member.removed",
        publisher_id=str(publisher_id),
        user_id=str(target_user_id),
        actor=str(actor_id),
    )
