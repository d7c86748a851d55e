"""Pydantic request/response models for the credential-issuance HTTP server."""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class CreateSchemaRequest(BaseModel):
    """Request body for POST /schemas."""

    name: str
    type: str
    properties: dict[str, dict[str, Any]]
    required_fields: list[str] = Field(default_factory=list, alias="requiredFields")

    model_config = {"populate_by_name": True}


class CreateOfferingRequest(BaseModel):
    """Request body for POST /offerings."""

    type: str
    credential_subject: dict[str, Any] = Field(alias="credentialSubject")
    recipient_did: Optional[str] = Field(default=None, alias="recipientDid")
    check_schema: bool = Field(default=True, alias="checkSchema")

    model_config = {"populate_by_name": True}


class ValidatorOfferingRequest(BaseModel):
    """Request body for POST /validator/create."""

    validator_address: str = Field(alias="validatorAddress")
    validator_name: Optional[str] = Field(default=None, alias="validatorName")
    network_id: str = Field(default="mainnet", alias="networkId")

    model_config = {"populate_by_name": True}


class OfferingResponse(BaseModel):
    """Response body describing a created offering."""

    offering_id: str
    offering_url: Optional[str] = None
    credential_type: str
    credential_subject: dict[str, Any] = Field(default_factory=dict)
    recipient_did: Optional[str] = None


class InitiateAuthRequest(BaseModel):
    """Request body for POST /auth/initiate."""

    did: str


class VerifyAuthRequest(BaseModel):
    """Request body for POST /auth/verify."""

    did: str
    challenge: str
    signed_challenge: str = Field(alias="signedChallenge")

    model_config = {"populate_by_name": True}


class TokenRequest(BaseModel):
    """Request body for POST /auth/token."""

    authorization_code: str = Field(alias="authorizationCode")

    model_config = {"populate_by_name": True}


class ValidateCredentialRequest(BaseModel):
    """Request body for POST /verify."""

    credential: dict[str, Any]


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: str = "ok"
    service: str = "credential-issuance"
    version: str = "0.1.0"
    backend: str = ""


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str = ""
    step: Optional[str] = None


__all__ = [
    "CreateOfferingRequest",
    "CreateSchemaRequest",
    "ErrorResponse",
    "HealthResponse",
    "InitiateAuthRequest",
    "OfferingResponse",
    "TokenRequest",
    "ValidateCredentialRequest",
    "ValidatorOfferingRequest",
    "VerifyAuthRequest",
]
