"""Data models for the account gateway."""

from .api_models import (
    RegisterRequest,
    LoginRequest,
    FrontendMetricRequest,
    HealthResponse,
    ErrorResponse
)
from .internal_models import (
    ApiError,
    DegradedSuccess,
    ErrorKind,
    Failure,
    IdentityAccount,
    LegalVersions,
    NormalizedRegistration,
    Outcome,
    ProfileRecord,
    Success
)

__all__ = [
    "RegisterRequest",
    "LoginRequest",
    "FrontendMetricRequest",
    "HealthResponse",
    "ErrorResponse",
    "ApiError",
    "DegradedSuccess",
    "ErrorKind",
    "Failure",
    "IdentityAccount",
    "LegalVersions",
    "NormalizedRegistration",
    "Outcome",
    "ProfileRecord",
    "Success"
]
