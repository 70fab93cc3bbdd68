"""Pydantic models for API requests and responses."""

from datetime import date, datetime
from typing import Dict, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from account_gateway.utils.validators import is_valid_cpf, is_valid_phone


class RegisterRequest(BaseModel):
    """Request model for the registration endpoint."""

    email: EmailStr = Field(..., description="Login e-mail")
    password: str = Field(..., min_length=8, description="Password with at least 8 characters")
    fullName: str = Field(..., min_length=3, description="Full name")
    cpf: Optional[str] = Field(None, description="Brazilian CPF, punctuation allowed")
    phoneNumber: Optional[str] = Field(None, description="Phone number with 10 to 15 digits")
    birthDate: Optional[date] = Field(None, description="Birth date (ISO-8601)")
    acceptedTerms: bool = Field(..., description="Terms of use acceptance")
    acceptedPrivacyPolicy: bool = Field(..., description="Privacy policy acceptance")

    @field_validator('fullName')
    @classmethod
    def validate_full_name(cls, v):
        if not v.strip():
            raise ValueError('Full name must not be blank')
        return v

    @field_validator('cpf')
    @classmethod
    def validate_cpf(cls, v):
        if v is not None and not is_valid_cpf(v):
            raise ValueError('Invalid CPF')
        return v

    @field_validator('phoneNumber')
    @classmethod
    def validate_phone(cls, v):
        if v is not None and not is_valid_phone(v):
            raise ValueError('Invalid phone number. Use 10 to 15 digits')
        return v

    @field_validator('birthDate')
    @classmethod
    def validate_birth_date(cls, v):
        if v is not None and v >= date.today():
            raise ValueError('Birth date must be in the past')
        return v

    @field_validator('acceptedTerms')
    @classmethod
    def validate_accepted_terms(cls, v):
        if not v:
            raise ValueError('The terms of use must be accepted')
        return v

    @field_validator('acceptedPrivacyPolicy')
    @classmethod
    def validate_accepted_privacy(cls, v):
        if not v:
            raise ValueError('The privacy policy must be accepted')
        return v


class LoginRequest(BaseModel):
    """Request model for the login endpoint."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class FrontendMetricRequest(BaseModel):
    """Metric sample reported by the web frontend."""

    metric: str = Field(..., min_length=1)
    value: Optional[float] = None
    tags: Optional[Dict[str, Optional[str]]] = None

    @field_validator('metric')
    @classmethod
    def validate_metric(cls, v):
        if not v.strip():
            raise ValueError('Metric name must not be blank')
        return v


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Service version")


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: bool = Field(True, description="Always true for error payloads")
    status: int = Field(..., description="HTTP status code")
    message: str = Field(..., description="Human-readable error message")
    fields: Optional[Dict[str, str]] = Field(None, description="Per-field validation messages")

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": True,
                "status": 409,
                "message": "CPF already registered."
            }
        }
    }
