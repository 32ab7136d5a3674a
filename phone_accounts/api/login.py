"""
Login API endpoints.

Login over HTTP is split in two requests: the first sends a verification
code (unless the session window is still open), the second submits the
code. The attempt budget applies across submissions to the same pending
challenge.
"""

import time

import structlog
from fastapi import APIRouter, Depends, Request

from phone_accounts.api.responses import (
    correlation_id_for,
    create_error_response,
    persistence_error
)
from phone_accounts.models.api_models import LoginRequest, LoginResponse, VerifyCodeRequest
from phone_accounts.models.internal_models import LoginOutcome
from phone_accounts.observability import trace_function, record_account_metrics
from phone_accounts.services.account_service import AccountService, get_account_service
from phone_accounts.utils.validators import mask_phone_number

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/login", tags=["login"])

# Outcomes reported as errors: status code, error type, message
_ERROR_OUTCOMES = {
    LoginOutcome.NOT_FOUND: (404, "NotFoundError", "Account not found. Log in failed"),
    LoginOutcome.DELIVERY_FAILED: (502, "DeliveryFailure", "The verification code could not be sent"),
    LoginOutcome.NO_PENDING_CHALLENGE: (404, "NoPendingChallenge", "No verification code is pending. Start the login again"),
    LoginOutcome.VERIFIED_FAILURE: (403, "VerificationFailure", "Wrong code. Log in failed"),
}


@router.post("", response_model=LoginResponse)
@trace_function("login_endpoint")
async def start_login(
    request: LoginRequest,
    http_request: Request,
    service: AccountService = Depends(get_account_service)
):
    """Start a login: report an open session or send a verification code."""
    correlation_id = correlation_id_for(http_request)
    start_time = time.time()

    step = await service.start_login(request.phoneNumber)
    record_account_metrics("login", step.outcome.value, time.time() - start_time)

    logger.info("Login started", phone=mask_phone_number(request.phoneNumber), outcome=step.outcome.value)

    if step.outcome is LoginOutcome.STILL_IN_SESSION:
        return LoginResponse(status=step.outcome.value, message="Still in session, no need to log in.")
    if step.outcome is LoginOutcome.CODE_SENT:
        return LoginResponse(
            status=step.outcome.value,
            message="Your session has timed out. Enter the verification code that was sent.",
            attemptsRemaining=step.attempts_remaining
        )
    if step.outcome is LoginOutcome.PERSISTENCE_FAILED:
        return persistence_error(correlation_id)

    status_code, error_type, message = _ERROR_OUTCOMES[step.outcome]
    return create_error_response(error_type, message, correlation_id, status_code=status_code)


@router.post("/verify", response_model=LoginResponse)
@trace_function("login_verify_endpoint")
async def verify_code(
    request: VerifyCodeRequest,
    http_request: Request,
    service: AccountService = Depends(get_account_service)
):
    """Submit a verification code for the pending login."""
    correlation_id = correlation_id_for(http_request)
    start_time = time.time()

    step = await service.submit_code(request.phoneNumber, request.code)
    record_account_metrics("login_verify", step.outcome.value, time.time() - start_time)

    logger.info("Verification code submitted", phone=mask_phone_number(request.phoneNumber), outcome=step.outcome.value)

    if step.outcome is LoginOutcome.VERIFIED_SUCCESS:
        return LoginResponse(status=step.outcome.value, message="Account found, log in successful")
    if step.outcome is LoginOutcome.RETRY:
        return create_error_response(
            "WrongCode",
            f"Wrong code. {step.attempts_remaining} attempts left",
            correlation_id,
            status_code=401
        )
    if step.outcome is LoginOutcome.PERSISTENCE_FAILED:
        return persistence_error(correlation_id)

    status_code, error_type, message = _ERROR_OUTCOMES[step.outcome]
    return create_error_response(error_type, message, correlation_id, status_code=status_code)
