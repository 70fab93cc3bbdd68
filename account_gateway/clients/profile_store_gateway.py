"""
Profile store gateway: persists ``auth_info`` rows behind the identity record.

A freshly created identity account is not immediately visible to the rest of
the platform, and the ``auth_info.id`` foreign key can lag behind that
visibility on the store's side. ``upsert`` therefore runs two phases, each
with its own bounded, linearly growing retry budget:

1. WAIT_VISIBLE polls the admin user endpoint until the account resolves.
2. UPSERT writes the row with merge-on-conflict semantics, retrying only on
   the foreign-key violation and on network failures.

Phases run once each, in order. Writes are idempotent, so repeating one for
the same id is always safe.
"""

import asyncio
import logging
from typing import Optional

import httpx

from account_gateway.clients.supabase_client import SupabaseClient
from account_gateway.models.internal_models import ApiError, ErrorKind, ProfileRecord
from account_gateway.observability import record_upstream_retry
from account_gateway.services.error_translator import UpstreamError, translate_profile_error
from account_gateway.utils.retry import Sleep, pause

logger = logging.getLogger(__name__)

PROFILE_TABLE = "auth_info"
ADMIN_USER_PATH = "/auth/v1/admin/users/{user_id}"
UPSERT_PATH = f"/rest/v1/{PROFILE_TABLE}"
UPSERT_HEADERS = {"Prefer": "resolution=merge-duplicates,return=minimal"}

# Calibrated budgets; the two phases are tuned independently.
VISIBILITY_MAX_CHECKS = 10
VISIBILITY_BASE_DELAY = 0.12
UPSERT_MAX_ATTEMPTS = 5
UPSERT_BASE_DELAY = 0.15


class ProfileStoreGateway:
    """Writes profile records with the service-role key."""

    def __init__(
        self,
        supabase_client: SupabaseClient,
        max_visibility_checks: int = VISIBILITY_MAX_CHECKS,
        visibility_base_delay: float = VISIBILITY_BASE_DELAY,
        max_upsert_attempts: int = UPSERT_MAX_ATTEMPTS,
        upsert_base_delay: float = UPSERT_BASE_DELAY,
        sleep: Sleep = asyncio.sleep,
        cancel_event: Optional[asyncio.Event] = None
    ):
        if max_visibility_checks < 1 or max_upsert_attempts < 1:
            raise ValueError("Retry budgets must allow at least one attempt")
        self.http = supabase_client
        self.max_visibility_checks = max_visibility_checks
        self.visibility_base_delay = visibility_base_delay
        self.max_upsert_attempts = max_upsert_attempts
        self.upsert_base_delay = upsert_base_delay
        self._sleep = sleep
        self._cancel_event = cancel_event

    @property
    def worst_case_wait(self) -> float:
        """Upper bound, in seconds, of the time ``upsert`` spends waiting between attempts."""
        visibility = sum(i * self.visibility_base_delay for i in range(1, self.max_visibility_checks + 1))
        upsert = sum(i * self.upsert_base_delay for i in range(1, self.max_upsert_attempts + 1))
        return visibility + upsert

    async def upsert(self, record: ProfileRecord) -> None:
        """
        Persist ``record`` once its identity account is visible.

        Raises:
            UpstreamError: ``STILL_CONVERGING`` when the account never became
                visible or the foreign key kept failing, ``NETWORK_FAILURE``
                when connectivity was lost, or the translated store error
        """
        await self.wait_until_visible(record.id)
        await self._write(record)
        logger.info(f"Persisted profile record for user {record.id}")

    async def wait_until_visible(self, user_id: str) -> None:
        if not user_id:
            return

        path = ADMIN_USER_PATH.format(user_id=user_id)
        for attempt in range(1, self.max_visibility_checks + 1):
            try:
                response = await self.http.client.get(path)
            except httpx.TransportError as e:
                if attempt < self.max_visibility_checks:
                    logger.warning(
                        f"Network failure checking user {user_id} "
                        f"(check {attempt}/{self.max_visibility_checks}), retrying: {e}"
                    )
                    await self._backoff("visibility", attempt * self.visibility_base_delay)
                    continue
                logger.error(f"Network failure confirming user {user_id} after {attempt} checks: {e}")
                raise UpstreamError(ApiError(
                    502,
                    "Network failure while confirming the account in the identity service.",
                    ErrorKind.NETWORK_FAILURE
                )) from e

            if response.status_code != 404:
                if response.is_error:
                    # Not a visibility problem; the write below reports anything real.
                    logger.warning(f"Admin lookup for user {user_id} returned {response.status_code}, proceeding")
                return

            if attempt < self.max_visibility_checks:
                logger.info(f"User {user_id} not visible yet (check {attempt}/{self.max_visibility_checks})")
                await self._backoff("visibility", attempt * self.visibility_base_delay)
                continue

            logger.error(f"User {user_id} still not visible after {attempt} checks")
            raise UpstreamError(ApiError(
                502,
                "Account not yet available in the identity service. Try again in a few seconds.",
                ErrorKind.STILL_CONVERGING
            ))

    async def _write(self, record: ProfileRecord) -> None:
        payload = record.to_payload()
        for attempt in range(1, self.max_upsert_attempts + 1):
            try:
                response = await self.http.client.post(
                    UPSERT_PATH,
                    params={"on_conflict": "id"},
                    headers=UPSERT_HEADERS,
                    json=payload
                )
            except httpx.TransportError as e:
                if attempt < self.max_upsert_attempts:
                    logger.warning(
                        f"Network failure writing profile for {record.id} "
                        f"(attempt {attempt}/{self.max_upsert_attempts}), retrying: {e}"
                    )
                    await self._backoff("upsert", attempt * self.upsert_base_delay)
                    continue
                logger.error(f"Network failure writing profile for {record.id} after {attempt} attempts: {e}")
                raise UpstreamError(ApiError(
                    502, "Network failure while persisting the profile record.", ErrorKind.NETWORK_FAILURE
                )) from e

            if not response.is_error:
                return

            error = translate_profile_error(response.status_code, response.text)
            if error.kind is ErrorKind.STILL_CONVERGING and attempt < self.max_upsert_attempts:
                logger.info(
                    f"Foreign key for {record.id} not satisfied yet "
                    f"(attempt {attempt}/{self.max_upsert_attempts})"
                )
                await self._backoff("upsert", attempt * self.upsert_base_delay)
                continue

            logger.warning(f"Profile write for {record.id} failed with {response.status_code}: {error.message}")
            raise UpstreamError(error)

    async def _backoff(self, stage: str, delay: float) -> None:
        record_upstream_retry(stage)
        await pause(delay, sleep=self._sleep, cancel_event=self._cancel_event)
