"""Supabase Auth gateway: signup and password login."""

import asyncio
import logging
import random
from typing import Any, Dict, Optional

import httpx

from account_gateway.clients.supabase_client import SupabaseClient
from account_gateway.models.internal_models import (
    ApiError,
    ErrorKind,
    IdentityAccount,
    LegalVersions,
    NormalizedRegistration,
)
from account_gateway.observability import record_upstream_retry
from account_gateway.services.error_translator import UpstreamError, translate_identity_error
from account_gateway.utils.retry import Sleep, with_backoff

logger = logging.getLogger(__name__)

SIGNUP_PATH = "/auth/v1/signup"
LOGIN_PATH = "/auth/v1/token"

LOGIN_MAX_ATTEMPTS = 3
LOGIN_INITIAL_DELAY = 0.2


class IdentityGateway:
    """Calls to the identity service made with the anon key."""

    def __init__(
        self,
        supabase_client: SupabaseClient,
        legal_versions: LegalVersions,
        sleep: Sleep = asyncio.sleep,
        rng: Optional[random.Random] = None
    ):
        self.http = supabase_client
        self.legal_versions = legal_versions
        self._sleep = sleep
        self._rng = rng

    async def signup(self, registration: NormalizedRegistration) -> IdentityAccount:
        """
        Create the identity account.

        Profile fields travel as user metadata for auditing only; the
        ``auth_info`` table is the system of record for them. Signup is not
        retried because a replay after a lost response would report the
        account as already registered.

        Returns:
            IdentityAccount with the extracted id (``None`` if absent) and raw body

        Raises:
            UpstreamError: On HTTP, network or response-shape failures
        """
        payload = {
            "email": registration.email,
            "password": registration.password,
            "data": self._build_metadata(registration),
        }

        async def _request() -> httpx.Response:
            response = await self.http.client.post(SIGNUP_PATH, json=payload)
            response.raise_for_status()
            return response

        body = await self._call(_request, "signup")
        user_id = self.extract_user_id(body)
        logger.info(f"Identity signup accepted for {registration.email} (user id: {user_id})")
        return IdentityAccount(id=user_id, body=body)

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Exchange credentials for the identity service's token bundle."""
        payload = {"email": email, "password": password}

        async def _request() -> httpx.Response:
            response = await self.http.client.post(
                LOGIN_PATH,
                params={"grant_type": "password"},
                json=payload
            )
            response.raise_for_status()
            return response

        return await self._call(
            lambda: with_backoff(
                _request,
                LOGIN_MAX_ATTEMPTS,
                LOGIN_INITIAL_DELAY,
                rng=self._rng,
                sleep=self._sleep,
                on_retry=lambda attempt, error: record_upstream_retry("login")
            ),
            "login"
        )

    @staticmethod
    def extract_user_id(body: Dict[str, Any]) -> Optional[str]:
        """
        Find the account id in a signup response.

        With e-mail confirmation enabled the user object is returned at the top
        level; otherwise it is nested under ``user`` next to the session.
        """
        user = body.get("user")
        if isinstance(user, dict) and user.get("id") is not None:
            return str(user["id"])
        direct_id = body.get("id")
        return None if direct_id is None else str(direct_id)

    def _build_metadata(self, registration: NormalizedRegistration) -> Dict[str, Any]:
        return {
            "full_name": registration.full_name,
            "cpf": registration.cpf or None,
            "phone_number": registration.phone_number or None,
            "birth_date": registration.birth_date.isoformat() if registration.birth_date else None,
            "accepted_terms": registration.accepted_terms,
            "accepted_terms_version": self.legal_versions.terms_version,
            "accepted_privacy_policy": registration.accepted_privacy_policy,
            "privacy_policy_version": self.legal_versions.privacy_version,
        }

    async def _call(self, request, operation: str) -> Dict[str, Any]:
        try:
            response = await request()
        except httpx.HTTPStatusError as e:
            error = translate_identity_error(e.response.status_code, e.response.text)
            logger.warning(f"Identity {operation} rejected with {e.response.status_code}: {error.message}")
            raise UpstreamError(error) from e
        except httpx.TransportError as e:
            logger.error(f"Network failure calling identity {operation}: {e}")
            raise UpstreamError(ApiError(
                502, f"Network failure calling the identity service ({operation}).", ErrorKind.NETWORK_FAILURE
            )) from e

        return self._parse_body(response, operation)

    @staticmethod
    def _parse_body(response: httpx.Response, operation: str) -> Dict[str, Any]:
        empty = ApiError(502, f"Identity service returned an empty {operation} response.", ErrorKind.UPSTREAM_PROTOCOL)
        if not response.content or not response.content.strip():
            raise UpstreamError(empty)
        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError(ApiError(
                502, f"Identity service returned an unreadable {operation} response.", ErrorKind.UPSTREAM_PROTOCOL
            )) from e
        if body is None:
            raise UpstreamError(empty)
        if not isinstance(body, dict):
            raise UpstreamError(ApiError(
                502, f"Identity service returned an unexpected {operation} response.", ErrorKind.UPSTREAM_PROTOCOL
            ))
        return body
