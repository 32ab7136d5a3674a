"""Data models for the phone account service."""

from .api_models import (
    CreateAccountRequest,
    CreateAccountResponse,
    LoginRequest,
    VerifyCodeRequest,
    LoginResponse,
    DeleteAccountRequest,
    DeleteAccountResponse,
    ProfileResponse,
    HealthResponse,
    ErrorResponse
)
from .internal_models import (
    Account,
    ProfileView,
    StoreResult,
    CreateOutcome,
    LoginOutcome,
    DeleteOutcome,
    ConfirmationAnswer,
    LoginStep,
    parse_confirmation
)

__all__ = [
    "CreateAccountRequest",
    "CreateAccountResponse",
    "LoginRequest",
    "VerifyCodeRequest",
    "LoginResponse",
    "DeleteAccountRequest",
    "DeleteAccountResponse",
    "ProfileResponse",
    "HealthResponse",
    "ErrorResponse",
    "Account",
    "ProfileView",
    "StoreResult",
    "CreateOutcome",
    "LoginOutcome",
    "DeleteOutcome",
    "ConfirmationAnswer",
    "LoginStep",
    "parse_confirmation"
]
