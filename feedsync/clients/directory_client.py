"""
Directory Service client — profile records of authenticated users.

Endpoints:
  GET  /profiles/{user_id}   → 200 profile | 404 no profile yet
  POST /profiles             → 201 created | 409 profile already exists

Every transport or server error is raised as ServiceFailure; the identity
resolver decides how to degrade.
"""
import logging
from typing import Optional

import httpx

from feedsync.config import settings
from feedsync.exceptions import ProfileConflict, ServiceFailure
from feedsync.schemas import Identity

logger = logging.getLogger(__name__)


class DirectoryClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url or settings.directory_service_url
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.http_timeout,
            transport=self._transport,
        )

    async def stop(self) -> None:
        if self._http:
            await self._http.aclose()

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("Directory client not started, call start() first")
        return self._http

    async def get_profile(self, user_id: str) -> Optional[Identity]:
        try:
            resp = await self._client().get(f"/profiles/{user_id}")
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            return Identity.model_validate(resp.json())
        except (httpx.HTTPError, ValueError) as exc:
            raise ServiceFailure("get_profile", str(exc)) from exc

    async def create_profile(self, profile: Identity) -> Identity:
        try:
            resp = await self._client().post("/profiles", json=profile.model_dump())
            if resp.status_code == 409:
                raise ProfileConflict("create_profile", f"profile {profile.id} already exists")
            resp.raise_for_status()
            created = Identity.model_validate(resp.json())
        except (httpx.HTTPError, ValueError) as exc:
            raise ServiceFailure("create_profile", str(exc)) from exc

        logger.debug("Directory created profile %s", created.id)
        return created


# Singleton — started/stopped in app lifespan (main.py)
directory_client = DirectoryClient()
