"""Internal data models for the account gateway."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Union


class ErrorKind(str, Enum):
    """Closed set of failure classes surfaced by the gateways."""

    INVALID_INPUT = "invalid_input"
    CONFLICT = "conflict"
    STILL_CONVERGING = "still_converging"
    NETWORK_FAILURE = "network_failure"
    UPSTREAM_PROTOCOL = "upstream_protocol"
    UNAUTHORIZED = "unauthorized"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class ApiError:
    """The only error shape that crosses the gateway boundary."""

    status: int
    message: str
    kind: ErrorKind = ErrorKind.UNCLASSIFIED

    def to_dict(self) -> Dict[str, Any]:
        return {"error": True, "status": self.status, "message": self.message}


@dataclass(frozen=True)
class LegalVersions:
    """Versions of the legal documents a user consents to."""

    terms_version: str
    privacy_version: str


@dataclass(frozen=True)
class NormalizedRegistration:
    """Canonical registration input."""

    email: str
    password: str
    full_name: str
    cpf: str  # digits only, empty when not informed
    phone_number: str  # digits only, empty when not informed
    birth_date: Optional[date]
    accepted_terms: bool
    accepted_privacy_policy: bool

    @property
    def profile_completed(self) -> bool:
        return bool(self.full_name and self.cpf and self.phone_number and self.birth_date is not None)


@dataclass(frozen=True)
class IdentityAccount:
    """Account created by the identity service."""

    id: Optional[str]
    body: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProfileRecord:
    """Row persisted to the ``auth_info`` table, keyed by the identity id."""

    id: str
    full_name: str
    cpf: Optional[str]
    phone_number: Optional[str]
    birth_date: Optional[date]
    accepted_terms: bool
    accepted_terms_at: Optional[datetime]
    accepted_terms_version: Optional[str]
    accepted_privacy_policy: bool
    accepted_privacy_policy_at: Optional[datetime]
    privacy_policy_version: Optional[str]

    @classmethod
    def from_registration(
        cls,
        user_id: str,
        registration: NormalizedRegistration,
        legal_versions: LegalVersions,
        now: datetime
    ) -> "ProfileRecord":
        """Build the record; consent timestamp and version exist only for accepted documents."""
        terms = registration.accepted_terms
        privacy = registration.accepted_privacy_policy
        return cls(
            id=user_id,
            full_name=registration.full_name,
            cpf=registration.cpf or None,
            phone_number=registration.phone_number or None,
            birth_date=registration.birth_date,
            accepted_terms=terms,
            accepted_terms_at=now if terms else None,
            accepted_terms_version=legal_versions.terms_version if terms else None,
            accepted_privacy_policy=privacy,
            accepted_privacy_policy_at=now if privacy else None,
            privacy_policy_version=legal_versions.privacy_version if privacy else None,
        )

    @property
    def profile_completed(self) -> bool:
        return bool(self.full_name and self.cpf and self.phone_number and self.birth_date is not None)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the JSON body expected by the profile store."""
        return {
            "id": self.id,
            "full_name": self.full_name,
            "cpf": self.cpf,
            "phone_number": self.phone_number,
            "birth_date": self.birth_date.isoformat() if self.birth_date else None,
            "accepted_terms": self.accepted_terms,
            "accepted_terms_at": self.accepted_terms_at.isoformat() if self.accepted_terms_at else None,
            "accepted_terms_version": self.accepted_terms_version,
            "accepted_privacy_policy": self.accepted_privacy_policy,
            "accepted_privacy_policy_at": (
                self.accepted_privacy_policy_at.isoformat() if self.accepted_privacy_policy_at else None
            ),
            "privacy_policy_version": self.privacy_policy_version,
            "profile_completed": self.profile_completed,
        }


@dataclass(frozen=True)
class Success:
    """Identity account and profile record both persisted."""

    body: Dict[str, Any]


@dataclass(frozen=True)
class DegradedSuccess:
    """Identity account exists; profile persistence is still pending."""

    body: Dict[str, Any]
    pending_message: str

    def to_body(self) -> Dict[str, Any]:
        response = dict(self.body)
        response["auth_info_status"] = "pending"
        response["auth_info_message"] = self.pending_message
        return response


@dataclass(frozen=True)
class Failure:
    """Registration failed with a translated error."""

    error: ApiError


Outcome = Union[Success, DegradedSuccess, Failure]
