"""
Registration and login endpoints.
"""

import time
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from account_gateway.models.api_models import ErrorResponse, LoginRequest, RegisterRequest
from account_gateway.models.internal_models import DegradedSuccess, Failure, Success
from account_gateway.observability import (
    trace_function,
    record_login_metrics,
    record_registration_metrics
)
from account_gateway.services.error_translator import UpstreamError
from account_gateway.services.registration_service import (
    RegistrationService,
    get_registration_service,
    normalize_registration
)

logger = structlog.get_logger()
router = APIRouter(prefix="/api/auth", tags=["authentication"])


@router.post(
    "/register",
    status_code=201,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 502: {"model": ErrorResponse}}
)
@trace_function("register_endpoint")
async def register(
    request: RegisterRequest,
    service: RegistrationService = Depends(get_registration_service)
):
    """
    Register a new account.

    Creates the identity account, then persists the profile record. When the
    account is created but the profile is still replicating, the response is
    still 201 and carries ``auth_info_status: "pending"``.
    """
    start_time = time.time()
    registration = normalize_registration(request)

    logger.info("Registration request received", email=registration.email)

    outcome = await service.register(registration)
    processing_time = time.time() - start_time

    if isinstance(outcome, Success):
        record_registration_metrics("success", processing_time)
        logger.info("Registration completed", email=registration.email)
        return JSONResponse(status_code=201, content=outcome.body)

    if isinstance(outcome, DegradedSuccess):
        record_registration_metrics("pending", processing_time)
        logger.warning("Registration completed with pending profile", email=registration.email)
        return JSONResponse(status_code=201, content=outcome.to_body())

    assert isinstance(outcome, Failure)
    record_registration_metrics("failure", processing_time)
    logger.warning(
        "Registration failed",
        email=registration.email,
        status=outcome.error.status,
        error=outcome.error.message,
        kind=outcome.error.kind.value
    )
    return JSONResponse(status_code=outcome.error.status, content=outcome.error.to_dict())


@router.post("/login", responses={401: {"model": ErrorResponse}, 502: {"model": ErrorResponse}})
@trace_function("login_endpoint")
async def login(
    request: LoginRequest,
    service: RegistrationService = Depends(get_registration_service)
) -> Dict[str, Any]:
    """Exchange e-mail and password for the identity service's token bundle."""
    try:
        tokens = await service.login(request.email, request.password)
    except UpstreamError:
        record_login_metrics(False)
        raise

    record_login_metrics(True)
    return tokens
