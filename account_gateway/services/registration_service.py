"""
Registration service coordinating the identity service and the profile store.

The identity account and the profile record live in different systems with
no shared transaction. Registration creates the account first and then
persists the profile; once the account exists, a profile write that is still
waiting on replication is reported as pending rather than as a failure, since
the caller can already log in.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from account_gateway.clients.identity_gateway import IdentityGateway
from account_gateway.clients.profile_store_gateway import ProfileStoreGateway
from account_gateway.clients.supabase_client import SupabaseClient
from account_gateway.config import settings
from account_gateway.models.api_models import RegisterRequest
from account_gateway.models.internal_models import (
    ApiError,
    DegradedSuccess,
    ErrorKind,
    Failure,
    LegalVersions,
    NormalizedRegistration,
    Outcome,
    ProfileRecord,
    Success,
)
from account_gateway.services.error_translator import UpstreamError
from account_gateway.utils.validators import normalize_email, only_digits

logger = logging.getLogger(__name__)

PENDING_MESSAGE = "Account created. Profile completion is still being processed."
MISSING_USER_ID_MESSAGE = "Could not obtain the user id from the identity service."


def normalize_registration(request: RegisterRequest) -> NormalizedRegistration:
    """Canonicalize raw registration input."""
    return NormalizedRegistration(
        email=normalize_email(request.email),
        password=request.password,
        full_name=(request.fullName or "").strip(),
        cpf=only_digits(request.cpf),
        phone_number=only_digits(request.phoneNumber),
        birth_date=request.birthDate,
        accepted_terms=request.acceptedTerms,
        accepted_privacy_policy=request.acceptedPrivacyPolicy,
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RegistrationService:
    """Sequences identity signup and profile persistence."""

    def __init__(
        self,
        identity: IdentityGateway,
        profile_store: ProfileStoreGateway,
        legal_versions: LegalVersions,
        clock: Callable[[], datetime] = _utcnow
    ):
        self.identity = identity
        self.profile_store = profile_store
        self.legal_versions = legal_versions
        self._clock = clock

    async def register(self, registration: NormalizedRegistration) -> Outcome:
        """
        Register a user across both services.

        Args:
            registration: Normalized registration input

        Returns:
            ``Success`` with the signup body, ``DegradedSuccess`` when the
            account exists but the profile is still converging, or ``Failure``
        """
        try:
            account = await self.identity.signup(registration)
        except UpstreamError as e:
            logger.warning(f"Signup failed for {registration.email}: {e.status} {e.error.message}")
            return Failure(e.error)

        if not account.id:
            logger.error(f"Signup response for {registration.email} carried no user id")
            return Failure(ApiError(502, MISSING_USER_ID_MESSAGE, ErrorKind.UPSTREAM_PROTOCOL))

        record = ProfileRecord.from_registration(account.id, registration, self.legal_versions, self._clock())

        try:
            await self.profile_store.upsert(record)
        except UpstreamError as e:
            if e.kind is ErrorKind.STILL_CONVERGING:
                logger.warning(f"Profile for user {account.id} left pending: {e.error.message}")
                return DegradedSuccess(account.body, PENDING_MESSAGE)
            logger.error(f"Profile persistence failed for user {account.id}: {e.status} {e.error.message}")
            return Failure(e.error)

        return Success(account.body)

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Password login pass-through; raises ``UpstreamError`` on failure."""
        return await self.identity.login(normalize_email(email), password)


# Global service instance
_registration_service: Optional[RegistrationService] = None
_clients = []


def get_registration_service() -> RegistrationService:
    """Get or create the global registration service instance."""
    global _registration_service
    if _registration_service is None:
        anon = SupabaseClient.anon()
        admin = SupabaseClient.service_role()
        _clients.extend([anon, admin])

        legal_versions = LegalVersions(settings.legal_terms_version, settings.legal_privacy_version)
        _registration_service = RegistrationService(
            identity=IdentityGateway(anon, legal_versions),
            profile_store=ProfileStoreGateway(admin),
            legal_versions=legal_versions
        )
        logger.info("Registration service initialized")
    return _registration_service


async def close_registration_service() -> None:
    """Release pooled HTTP connections."""
    global _registration_service
    while _clients:
        await _clients.pop().aclose()
    _registration_service = None
