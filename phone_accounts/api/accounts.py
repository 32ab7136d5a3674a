"""
Account API endpoints for creation, profile view and deletion.
"""

import time

import structlog
from fastapi import APIRouter, Depends, Request, status

from phone_accounts.api.responses import (
    correlation_id_for,
    create_error_response,
    persistence_error
)
from phone_accounts.models.api_models import (
    CreateAccountRequest,
    CreateAccountResponse,
    DeleteAccountRequest,
    DeleteAccountResponse,
    ProfileResponse
)
from phone_accounts.models.internal_models import CreateOutcome, DeleteOutcome
from phone_accounts.observability import trace_function, record_account_metrics
from phone_accounts.services.account_service import AccountService, get_account_service
from phone_accounts.services.exceptions import PersistenceFailure
from phone_accounts.utils.validators import FieldValidationError, mask_phone_number, validate_phone_number

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/accounts", tags=["accounts"])


def _phone_or_error(phone_number: str, correlation_id: str):
    try:
        return validate_phone_number(phone_number), None
    except FieldValidationError as e:
        return None, create_error_response("ValidationError", str(e), correlation_id, status_code=422)


@router.post(
    "",
    response_model=CreateAccountResponse,
    status_code=status.HTTP_201_CREATED
)
@trace_function("create_account_endpoint")
async def create_account(
    request: CreateAccountRequest,
    http_request: Request,
    service: AccountService = Depends(get_account_service)
):
    """
    Create an account for a phone number.

    A phone number that already has an account is not an error for the
    user; the response tells them to log in instead.
    """
    correlation_id = correlation_id_for(http_request)
    start_time = time.time()

    outcome = await service.create_account(
        name=request.name,
        date_of_birth=request.dateOfBirth,
        phone_number=request.phoneNumber,
        gender=request.gender
    )
    record_account_metrics("create", outcome.value, time.time() - start_time)

    logger.info(
        "Create account finished",
        phone=mask_phone_number(request.phoneNumber),
        outcome=outcome.value
    )

    if outcome is CreateOutcome.ALREADY_EXISTS:
        return create_error_response(
            "AlreadyExists",
            "You already have an account. Log in instead.",
            correlation_id,
            status_code=409
        )
    if outcome is CreateOutcome.PERSISTENCE_FAILED:
        return persistence_error(correlation_id)

    return CreateAccountResponse(
        status=outcome.value,
        message="Account created successfully. Log in to your account."
    )


@router.get("/{phone_number}", response_model=ProfileResponse)
@trace_function("view_profile_endpoint")
async def view_profile(
    phone_number: str,
    http_request: Request,
    service: AccountService = Depends(get_account_service)
):
    """Show the profile for an account, with age computed for today."""
    correlation_id = correlation_id_for(http_request)
    phone, error = _phone_or_error(phone_number, correlation_id)
    if error is not None:
        return error

    try:
        profile = await service.view_profile(phone)
    except PersistenceFailure:
        return persistence_error(correlation_id)

    if profile is None:
        return create_error_response("NotFoundError", "Account not found", correlation_id, status_code=404)

    return ProfileResponse(
        name=profile.name,
        phoneNumber=profile.phone_number,
        dateOfBirth=profile.date_of_birth,
        age=profile.age,
        gender=profile.gender,
        registeredAt=profile.registered_at,
        registered=profile.registered_display
    )


@router.post("/{phone_number}/delete", response_model=DeleteAccountResponse)
@trace_function("delete_account_endpoint")
async def delete_account(
    phone_number: str,
    request: DeleteAccountRequest,
    http_request: Request,
    service: AccountService = Depends(get_account_service)
):
    """
    Delete an account. This cannot be undone.

    The confirmation must be yes or no; anything else is rejected so the
    client can ask the user again.
    """
    correlation_id = correlation_id_for(http_request)
    phone, error = _phone_or_error(phone_number, correlation_id)
    if error is not None:
        return error

    start_time = time.time()
    outcome = await service.delete_account(phone, request.confirmation)
    record_account_metrics("delete", outcome.value, time.time() - start_time)

    logger.info("Delete account finished", phone=mask_phone_number(phone), outcome=outcome.value)

    if outcome is DeleteOutcome.NOT_FOUND:
        return create_error_response("NotFoundError", "Account not found. Delete failed", correlation_id, status_code=404)
    if outcome is DeleteOutcome.CONFIRMATION_REQUIRED:
        return create_error_response(
            "ConfirmationRequired",
            "Your account cannot be recovered after deletion. Answer yes or no.",
            correlation_id,
            status_code=422
        )
    if outcome is DeleteOutcome.PERSISTENCE_FAILED:
        return persistence_error(correlation_id)

    if outcome is DeleteOutcome.NOT_CONFIRMED:
        return DeleteAccountResponse(status=outcome.value, message="Account not deleted")
    return DeleteAccountResponse(status=outcome.value, message="Account deleted successfully")
