"""HTTP client factory for the Supabase Auth and PostgREST APIs."""

import logging
from typing import Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)


class SupabaseClient:
    """Pooled HTTP client bound to one Supabase API key."""

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the client configuration.

        Args:
            url: Supabase project URL. Defaults to ``SUPABASE_URL``.
            key: API key sent as ``apikey`` and bearer token. Defaults to the anon key.
            transport: Optional httpx transport, used by tests.

        Raises:
            ValueError: If the URL or key is missing
        """
        self._url = (url if url is not None else settings.supabase_url).rstrip("/")
        self._key = key if key is not None else settings.supabase_anon_key
        if not self._url:
            raise ValueError("Missing configuration: SUPABASE_URL")
        if not self._key:
            raise ValueError("Missing configuration: Supabase API key")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def anon(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "SupabaseClient":
        """Client for public endpoints (signup, login)."""
        return cls(settings.supabase_url, settings.supabase_anon_key, transport)

    @classmethod
    def service_role(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "SupabaseClient":
        """Client for admin endpoints and the profile table."""
        if not settings.supabase_service_role_key:
            raise ValueError("Missing configuration: SUPABASE_SERVICE_ROLE_KEY")
        return cls(settings.supabase_url, settings.supabase_service_role_key, transport)

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the pooled ``httpx.AsyncClient``."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._url,
                headers={
                    "apikey": self._key,
                    "Authorization": f"Bearer {self._key}",
                },
                timeout=httpx.Timeout(settings.http_read_timeout, connect=settings.http_connect_timeout),
                transport=self._transport
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info(f"Closed Supabase HTTP client for {self._url}")
