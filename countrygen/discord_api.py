"""
countrygen/discord_api.py

Thin REST client for the one-shot administrative calls made at startup:

  - PUT   /applications/{id}/commands  register slash commands
  - PATCH /applications/@me            set interactions_endpoint_url
  - GET   /applications/@me            read verify_key (when PUBLIC_KEY is unset)

None of this is on the request path.
"""

import logging
from typing import Iterable

import requests

from .commands import Command

logger = logging.getLogger(__name__)


class DiscordAPIError(RuntimeError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"Discord API error {status_code}: {body[:200]}")
        self.status_code = status_code
        self.body = body


class DiscordClient:
    def __init__(self, bot_token: str, api_url: str = "https://discord.com/api/v10", timeout: float = 10.0):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Authorization": f"Bot {bot_token}"})

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        response = self.session.request(
            method,
            f"{self.api_url}{path}",
            timeout=self.timeout,
            **kwargs,
        )
        if not response.ok:
            raise DiscordAPIError(response.status_code, response.text)
        return response

    def set_commands(self, application_id: str, commands: Iterable[Command]) -> None:
        payload = [cmd.registration_payload() for cmd in commands]
        self._request("PUT", f"/applications/{application_id}/commands", json=payload)
        logger.info("registered %d command(s) for application %s", len(payload), application_id)

    def set_interactions_endpoint_url(self, url: str) -> None:
        self._request("PATCH", "/applications/@me", json={"interactions_endpoint_url": url})
        logger.info("interactions endpoint set to %s", url)

    def fetch_verify_key(self) -> str:
        """Return the application's hex verifying key."""
        data = self._request("GET", "/applications/@me").json()
        key = data.get("verify_key") if isinstance(data, dict) else None
        if not isinstance(key, str) or not key:
            raise DiscordAPIError(200, "application metadata has no verify_key")
        return key

    def close(self) -> None:
        self.session.close()
