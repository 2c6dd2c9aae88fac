"""
Twitch Helix client used by the acquisition gate for subscription checks.

Subscription lookups use the user's own access token against
GET /subscriptions/user. A 404 from Helix means "not subscribed"; any
other non-success answer is an infrastructure failure and raises, so a
Twitch outage is never reported to the user as a missing subscription.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Optional

import httpx
import structlog

from app.core.config import Settings
from app.core.errors import TwitchTokenExpiredError, TwitchUnavailableError
from app.models.user import User

log = structlog.get_logger()


class TwitchClient:
    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.aclose()

    # -----------------------------------------------------------------------
    # Raw API calls
    # -----------------------------------------------------------------------

    async def check_user_subscription(
        self, twitch_user_id: str, access_token: str, channel_id: str
    ) -> bool:
        """True if the user is subscribed to the broadcaster channel_id."""
        try:
            response = await self.http.get(
                f"{self.settings.twitch_api_base}/subscriptions/user",
                params={"broadcaster_id": channel_id, "user_id": twitch_user_id},
                headers={
                    "Client-Id": self.settings.twitch_client_id,
                    "Authorization": f"Bearer {access_token}",
                },
            )
        except httpx.HTTPError as exc:
            log.warning("twitch.request_failed", channel_id=channel_id, error=str(exc))
            raise TwitchUnavailableError() from exc

        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        if response.status_code == 401:
            raise TwitchTokenExpiredError()

        log.warning(
            "twitch.unexpected_status",
            channel_id=channel_id,
            status=response.status_code,
        )
        raise TwitchUnavailableError()

    async def refresh_token(self, refresh_token: str) -> tuple[str, str]:
        """Exchange a refresh token. Returns (access_token, refresh_token)."""
        try:
            response = await self.http.post(
                f"{self.settings.twitch_oauth_base}/token",
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": self.settings.twitch_client_id,
                    "client_secret": self.settings.twitch_client_secret,
                },
            )
        except httpx.HTTPError as exc:
            raise TwitchUnavailableError() from exc

        if response.status_code in (400, 401):
            # Refresh token revoked or expired; the user must re-link
            raise TwitchTokenExpiredError()
        if response.status_code != 200:
            raise TwitchUnavailableError()

        body = response.json()
        return body["access_token"], body.get("refresh_token", refresh_token)

    # -----------------------------------------------------------------------
    # Gate-facing helpers
    # -----------------------------------------------------------------------

    async def _subscribed_to_any(self, user: User, channel_ids: list[str]) -> bool:
        for channel_id in channel_ids:
            if await self.check_user_subscription(user.twitch_id, user.twitch_access_token, channel_id):
                return True
        return False

    async def can_user_access_modpack(self, user: User, channel_ids: Iterable[str]) -> bool:
        """True if the user's linked account is subscribed to any of channel_ids.

        An expired access token is refreshed once; new tokens are written onto
        the user object and persisted with the request's session.
        """
        channels = [c for c in channel_ids if c]
        if not user.twitch_linked or not channels:
            return False

        try:
            return await self._subscribed_to_any(user, channels)
        except TwitchTokenExpiredError:
            if not user.twitch_refresh_token:
                raise
            access, refresh = await self.refresh_token(user.twitch_refresh_token)
            user.twitch_access_token = access
            user.twitch_refresh_token = refresh
            log.info("twitch.token_refreshed", user_id=str(user.id))
            return await self._subscribed_to_any(user, channels)
