"""
API v1 Router

Publisher-scoped endpoints are prefixed with /publishers/{publisher_id}.
"""

from fastapi import APIRouter
from . import access, admin, modpacks, publishers

router = APIRouter()

# Publishers, members and scopes
router.include_router(publishers.router, prefix="/publishers", tags=["Publishers"])

# Creator-side modpack management
router.include_router(
    modpacks.router, prefix="/publishers/{publisher_id}/modpacks", tags=["Modpacks"]
)

# Public access gate and the caller's library
router.include_router(access.router, tags=["Access"])

# Site administration
router.include_router(admin.router, prefix="/admin", tags=["Admin"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/publishers",
            "/publishers/{publisher_id}/members",
            "/publishers/{publisher_id}/modpacks",
            "/modpacks/{modpack_id}/access",
            "/modpacks/{modpack_id}/acquire",
            "/me/acquisitions",
            "/admin/acquisitions",
        ],
    }
