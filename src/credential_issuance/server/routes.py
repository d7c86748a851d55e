"""Route handler functions for the credential-issuance HTTP server.

Each function accepts parsed request data and returns a tuple of
(status_code, response_dict). The HTTP handler in app.py calls these
functions and serializes the results to JSON.

Failures raised by the orchestrator are rendered with the error's HTTP
status and a body naming the flow step that failed.
"""
from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError

from credential_issuance import __version__
from credential_issuance.auth.authenticator import DIDAuthenticator
from credential_issuance.errors import IssuanceError
from credential_issuance.issuance.orchestrator import IssuanceOrchestrator
from credential_issuance.offerings.builder import Offering
from credential_issuance.server.models import (
    CreateOfferingRequest,
    CreateSchemaRequest,
    ErrorResponse,
    HealthResponse,
    InitiateAuthRequest,
    OfferingResponse,
    TokenRequest,
    ValidateCredentialRequest,
    ValidatorOfferingRequest,
    VerifyAuthRequest,
)

Response = tuple[int, dict[str, object]]

# Module-level shared state
_orchestrator: IssuanceOrchestrator | None = None


def configure(orchestrator: IssuanceOrchestrator) -> None:
    """Install the orchestrator every route delegates to."""
    global _orchestrator
    _orchestrator = orchestrator


def reset_state() -> None:
    """Drop the configured orchestrator (tests and clean restarts)."""
    global _orchestrator
    _orchestrator = None


def _require() -> IssuanceOrchestrator:
    if _orchestrator is None:
        raise RuntimeError("No orchestrator configured; call routes.configure() first.")
    return _orchestrator


def _error(exc: IssuanceError) -> Response:
    return exc.http_status, exc.to_dict()


def _invalid(exc: Exception) -> Response:
    return 422, ErrorResponse(error="Validation error", detail=str(exc)).model_dump()


def _offering_response(offering: Offering) -> dict[str, object]:
    return OfferingResponse(
        offering_id=offering.id,
        offering_url=offering.url,
        credential_type=offering.credential_type,
        credential_subject=offering.credential_subject,
        recipient_did=offering.recipient_did,
    ).model_dump()


# ------------------------------------------------------------------
# Health
# ------------------------------------------------------------------


def handle_health() -> Response:
    """Handle GET /health."""
    backend = _orchestrator.client.config.base_url if _orchestrator is not None else ""
    status = "ok" if _orchestrator is not None else "unconfigured"
    return 200, HealthResponse(status=status, version=__version__, backend=backend).model_dump()


# ------------------------------------------------------------------
# Schemas
# ------------------------------------------------------------------


def handle_list_schemas() -> Response:
    """Handle GET /schemas."""
    try:
        schemas = _require().schemas.get_all()
    except IssuanceError as exc:
        return _error(exc)
    return 200, {"schemas": [schema.to_wire() for schema in schemas]}


def handle_get_schema(schema_id: str) -> Response:
    """Handle GET /schemas/{id}."""
    try:
        schema = _require().schemas.get_by_id(schema_id)
    except IssuanceError as exc:
        return _error(exc)
    return 200, schema.to_wire()


def handle_latest_schema(schema_type: str) -> Response:
    """Handle GET /schemas/latest/{type}.

    An unknown type is a 404 with ``step`` ``schema_resolution``.
    """
    try:
        schema = _require().schemas.resolve_latest(schema_type)
    except IssuanceError as exc:
        return _error(exc)
    if schema is None:
        return 404, ErrorResponse(
            error="NotFound",
            detail=f"No schema of type {schema_type!r} exists.",
            step="schema_resolution",
        ).model_dump()
    return 200, schema.to_wire()


def handle_create_schema(body: dict[str, object]) -> Response:
    """Handle POST /schemas."""
    try:
        request = CreateSchemaRequest.model_validate(body)
    except PydanticValidationError as exc:
        return _invalid(exc)

    try:
        schema = _require().schemas.create(
            name=request.name,
            type=request.type,
            properties=request.properties,
            required_fields=request.required_fields,
        )
    except IssuanceError as exc:
        return _error(exc)
    return 201, schema.to_wire()


def handle_delete_schema(schema_id: str) -> Response:
    """Handle DELETE /schemas/{id}."""
    try:
        _require().schemas.delete(schema_id)
    except IssuanceError as exc:
        return _error(exc)
    return 200, {"deleted": schema_id}


# ------------------------------------------------------------------
# Offerings
# ------------------------------------------------------------------


def handle_create_offering(body: dict[str, object]) -> Response:
    """Handle POST /offerings; the offering is targeted when ``recipientDid`` is set."""
    try:
        request = CreateOfferingRequest.model_validate(body)
    except PydanticValidationError as exc:
        return _invalid(exc)

    try:
        offering = _require().create_offering(
            request.type,
            request.credential_subject,
            request.recipient_did,
            check_schema=request.check_schema,
        )
    except IssuanceError as exc:
        return _error(exc)
    return 201, _offering_response(offering)


def handle_create_validator(body: dict[str, object]) -> Response:
    """Handle POST /validator/create."""
    try:
        request = ValidatorOfferingRequest.model_validate(body)
    except PydanticValidationError as exc:
        return _invalid(exc)

    try:
        offering = _require().create_validator_offering(
            request.validator_address,
            validator_name=request.validator_name,
            network_id=request.network_id,
        )
    except IssuanceError as exc:
        return _error(exc)
    return 201, _offering_response(offering)


# ------------------------------------------------------------------
# Handshake and issuance
# ------------------------------------------------------------------


def handle_auth_initiate(body: dict[str, object]) -> Response:
    """Handle POST /auth/initiate."""
    try:
        request = InitiateAuthRequest.model_validate(body)
    except PydanticValidationError as exc:
        return _invalid(exc)

    try:
        challenge = _require().authenticator().initiate(request.did)
    except IssuanceError as exc:
        return _error(exc)
    return 200, {"did": challenge.did, "challenge": challenge.challenge}


def handle_auth_verify(body: dict[str, object]) -> Response:
    """Handle POST /auth/verify."""
    try:
        request = VerifyAuthRequest.model_validate(body)
    except PydanticValidationError as exc:
        return _invalid(exc)

    try:
        authenticator = DIDAuthenticator.resume(
            _require().client, request.did, request.challenge
        )
        code = authenticator.verify(request.challenge, request.signed_challenge)
    except IssuanceError as exc:
        return _error(exc)
    return 200, {"did": code.did, "authorizationCode": code.code}


def handle_token(body: dict[str, object]) -> Response:
    """Handle POST /auth/token."""
    try:
        request = TokenRequest.model_validate(body)
    except PydanticValidationError as exc:
        return _invalid(exc)

    try:
        token = _require().issuer.exchange_token(request.authorization_code)
    except IssuanceError as exc:
        return _error(exc)
    return 200, {
        "access_token": token.access_token,
        "token_type": token.token_type,
        "expires_in": token.expires_in,
    }


def handle_issue(offering_id: str, authorization: str | None) -> Response:
    """Handle POST /credentials/{offeringId} with ``Authorization: Bearer``."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return 401, ErrorResponse(
            error="Unauthorized",
            detail="A bearer access token is required.",
            step="credential_issuance",
        ).model_dump()

    try:
        credential = _require().issuer.issue(offering_id, token.strip())
    except IssuanceError as exc:
        return _error(exc)
    return 201, credential.to_dict()


def handle_validate_credential(body: dict[str, object]) -> Response:
    """Handle POST /verify.

    An invalid credential is still a 200; the verdict is in ``valid``.
    """
    try:
        request = ValidateCredentialRequest.model_validate(body)
    except PydanticValidationError as exc:
        return _invalid(exc)

    try:
        result = _require().validate_credential(request.credential)
    except IssuanceError as exc:
        return _error(exc)
    return 200, result.to_dict()


__all__ = [
    "configure",
    "handle_auth_initiate",
    "handle_auth_verify",
    "handle_create_offering",
    "handle_create_schema",
    "handle_create_validator",
    "handle_delete_schema",
    "handle_get_schema",
    "handle_health",
    "handle_issue",
    "handle_latest_schema",
    "handle_list_schemas",
    "handle_token",
    "handle_validate_credential",
    "reset_state",
]
