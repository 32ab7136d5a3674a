"""Pydantic models for API requests and responses."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from phone_accounts.utils.validators import (
    validate_date_of_birth,
    validate_gender,
    validate_name,
    validate_phone_number,
)


class CreateAccountRequest(BaseModel):
    """Request model for account creation endpoint."""

    name: str = Field(..., description="Display name")
    dateOfBirth: date = Field(..., description="Date of birth (YYYY-MM-DD)")
    phoneNumber: str = Field(..., description="User's phone number (unique identifier)")
    gender: str = Field(..., description="Gender identity (free-form)")

    @field_validator('name')
    @classmethod
    def check_name(cls, v):
        return validate_name(v)

    @field_validator('dateOfBirth', mode='before')
    @classmethod
    def check_date_of_birth(cls, v):
        return validate_date_of_birth(v)

    @field_validator('phoneNumber')
    @classmethod
    def check_phone_number(cls, v):
        return validate_phone_number(v)

    @field_validator('gender')
    @classmethod
    def check_gender(cls, v):
        return validate_gender(v)


class CreateAccountResponse(BaseModel):
    """Response model for account creation endpoint."""

    status: str = Field(..., description="Creation outcome")
    message: str = Field(..., description="Human-readable result message")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "status": "created",
            "message": "Account created successfully. Log in to your account."
        }
    })


class LoginRequest(BaseModel):
    """Request model for the first login step."""

    phoneNumber: str = Field(..., description="Phone number of the account to log in")

    @field_validator('phoneNumber')
    @classmethod
    def check_phone_number(cls, v):
        return validate_phone_number(v)


class VerifyCodeRequest(BaseModel):
    """Request model for submitting a verification code."""

    phoneNumber: str = Field(..., description="Phone number the code was sent to")
    code: str = Field(..., max_length=64, description="Verification code as received by SMS")

    @field_validator('phoneNumber')
    @classmethod
    def check_phone_number(cls, v):
        return validate_phone_number(v)


class LoginResponse(BaseModel):
    """Response model for both login steps."""

    status: str = Field(..., description="Login outcome")
    message: str = Field(..., description="Human-readable login result message")
    attemptsRemaining: Optional[int] = Field(None, ge=0, description="Code attempts left for the pending challenge")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "status": "code_sent",
            "message": "Your session has timed out. A verification code was sent.",
            "attemptsRemaining": 5
        }
    })


class DeleteAccountRequest(BaseModel):
    """Request model for account deletion endpoint."""

    confirmation: str = Field(..., max_length=16, description="Explicit confirmation, 'yes' or 'no'")


class DeleteAccountResponse(BaseModel):
    """Response model for account deletion endpoint."""

    status: str = Field(..., description="Deletion outcome")
    message: str = Field(..., description="Human-readable result message")


class ProfileResponse(BaseModel):
    """Response model for profile view endpoint."""

    name: str
    phoneNumber: str
    dateOfBirth: date
    age: int = Field(..., ge=0)
    gender: str
    registeredAt: datetime
    registered: str = Field(..., description="Registration time formatted for display")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "Ada",
            "phoneNumber": "5551234567",
            "dateOfBirth": "1990-01-01",
            "age": 34,
            "gender": "F",
            "registeredAt": "2024-03-05T16:07:00Z",
            "registered": "Mar 05, 2024 at 4:07 PM"
        }
    })


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Service version")


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    correlation_id: str = Field(..., description="Request correlation ID for tracing")
    timestamp: datetime = Field(..., description="Error timestamp")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "error": "NotFoundError",
            "message": "Account not found",
            "correlation_id": "req_123456789",
            "timestamp": "2024-01-01T12:00:00Z"
        }
    })
