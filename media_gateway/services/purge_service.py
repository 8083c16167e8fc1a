"""
Cache Purge Service - evicts CDN-cached copies of a URL through the
Cloudflare zone purge API.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

import httpx

from media_gateway.config import Settings
from media_gateway.exceptions import PurgeError

logger = logging.getLogger(__name__)


class CachePurger(ABC):

    @abstractmethod
    async def purge(self, url: str) -> Dict[str, Any]:
        """Purge ``url`` from the CDN and return the upstream response body."""
        ...


class CloudflarePurger(CachePurger):
    """
    Purge by URL via ``POST /zones/{zone_id}/purge_cache``.
    Single attempt; any failure is raised as ``PurgeError``.
    """

    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self.client = client
        self.api_token = settings.CF_API_TOKEN
        self.zone_id = settings.ZONE_ID
        self.base_url = settings.CF_API_BASE_URL.rstrip("/")

    async def purge(self, url: str) -> Dict[str, Any]:
        endpoint = f"{self.base_url}/zones/{self.zone_id}/purge_cache"
        headers = {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

        try:
            response = await self.client.post(endpoint, headers=headers, json={"files": [url]})
        except httpx.HTTPError as e:
            logger.error(f"Purge request failed: {e}")
            raise PurgeError("Purge request failed", {"errors": [str(e)]}) from e

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Purge API returned non-JSON response ({response.status_code})")
            raise PurgeError(
                "Purge API returned an invalid response",
                {"errors": [f"HTTP {response.status_code}"]},
            ) from e

        if not response.is_success or not isinstance(data, dict) or not data.get("success"):
            errors = data.get("errors") if isinstance(data, dict) else data
            logger.error("Purge error", extra={"errors": errors, "status_code": response.status_code})
            raise PurgeError("Purge rejected by upstream", {"errors": errors})

        logger.info("Purged URL from cache", extra={"url": url})
        return data
