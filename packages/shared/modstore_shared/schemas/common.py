from enum import Enum

from pydantic import BaseModel

class PublisherMemberRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"

# Higher rank manages strictly lower ranks
ROLE_RANK: dict["PublisherMemberRole", int] = {
    PublisherMemberRole.OWNER: 3,
    PublisherMemberRole.ADMIN: 2,
    PublisherMemberRole.MEMBER: 1,
}

class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"
    SYSTEM = "system"

SITE_ADMIN_ROLES = {UserRole.ADMIN, UserRole.SUPERADMIN}

class Permission(str, Enum):
    """Scope flags. Values are the column names on the scopes table."""

    MODPACK_VIEW = "modpack_view"
    MODPACK_MODIFY = "modpack_modify"
    MODPACK_MANAGE_VERSIONS = "modpack_manage_versions"
    MODPACK_PUBLISH = "modpack_publish"
    MODPACK_DELETE = "modpack_delete"
    MODPACK_MANAGE_ACCESS = "modpack_manage_access"
    PUBLISHER_MANAGE_CATEGORIES_TAGS = "publisher_manage_categories_tags"
    PUBLISHER_VIEW_STATS = "publisher_view_stats"

    # Legacy flags
    CAN_CREATE_MODPACKS = "can_create_modpacks"
    CAN_EDIT_MODPACKS = "can_edit_modpacks"
    CAN_DELETE_MODPACKS = "can_delete_modpacks"
    CAN_PUBLISH_VERSIONS = "can_publish_versions"
    CAN_MANAGE_MEMBERS = "can_manage_members"
    CAN_MANAGE_SETTINGS = "can_manage_settings"

    @property
    def error_code(self) -> str:
        return f"MISSING_PERMISSION_{self.name}"

# Legacy flags that have a granular replacement
LEGACY_PERMISSION_ALIASES: dict["Permission", "Permission"] = {
    Permission.CAN_EDIT_MODPACKS: Permission.MODPACK_MODIFY,
    Permission.CAN_DELETE_MODPACKS: Permission.MODPACK_DELETE,
    Permission.CAN_PUBLISH_VERSIONS: Permission.MODPACK_PUBLISH,
}

def canonical_permission(permission: "Permission") -> "Permission":
    return LEGACY_PERMISSION_ALIASES.get(permission, permission)

class AcquisitionMethod(str, Enum):
    FREE = "free"
    PAID = "paid"
    PASSWORD = "password"
    TWITCH_SUB = "twitch_sub"

class AcquisitionStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    REVOKED = "revoked"

class AccessReason(str, Enum):
    """Machine-readable outcome of an access check or acquisition attempt."""

    FREE = "FREE"
    ACQUIRED = "ACQUIRED"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    PASSWORD_REQUIRED = "PASSWORD_REQUIRED"
    INVALID_PASSWORD = "INVALID_PASSWORD"
    PURCHASE_REQUIRED = "PURCHASE_REQUIRED"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
    TWITCH_NOT_LINKED = "TWITCH_NOT_LINKED"
    TWITCH_SUBSCRIPTION_REQUIRED = "TWITCH_SUBSCRIPTION_REQUIRED"
    ACCESS_REVOKED = "ACCESS_REVOKED"

class ModpackStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"
    DELETED = "deleted"

class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

class Pagination(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int
