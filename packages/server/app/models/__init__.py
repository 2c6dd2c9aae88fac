# SQLModel definitions, imported here to ensure metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .publisher import Publisher  # noqa: F401
from .publisher_member import PublisherMember  # noqa: F401
from .modpack import Modpack  # noqa: F401
from .scope import Scope  # noqa: F401
from .modpack_acquisition import ModpackAcquisition  # noqa: F401
from .payment import Payment  # noqa: F401
