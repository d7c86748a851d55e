"""Error taxonomy for credential issuance.

Every failure raised by this package is an :class:`IssuanceError`. Each
error is labelled with the :class:`FlowStep` in which it occurred so that a
caller can decide whether to retry, re-authenticate, or abandon the flow:

- ``ValidationError``    — malformed input, caught before any network call
- ``RemoteError``        — transport failure, backend 5xx, malformed response
- ``NotFound``           — id-based lookup miss
- ``InvalidSignature``   — the backend rejected the signed challenge
- ``ChallengeExpired``   — the challenge is stale or was superseded
- ``ChallengeConsumed``  — the challenge was already verified
- ``InvalidCode``        — the authorization code was rejected
- ``CodeExpired``        — the authorization code is stale
- ``Unauthorized``       — bad or expired access token / client secret
- ``Forbidden``          — token identity does not match the offering recipient
- ``AlreadyClaimed``     — the offering was redeemed before
- ``SigningError``       — the caller-supplied signing function failed
"""
from __future__ import annotations

from enum import Enum


class FlowStep(str, Enum):
    """The labelled stages of the issuance flow."""

    SCHEMA_MANAGEMENT = "schema_management"
    SCHEMA_RESOLUTION = "schema_resolution"
    OFFERING_CREATION = "offering_creation"
    CHALLENGE_ISSUANCE = "challenge_issuance"
    SIGNING = "signing"
    VERIFICATION = "verification"
    TOKEN_EXCHANGE = "token_exchange"
    CREDENTIAL_ISSUANCE = "credential_issuance"
    CREDENTIAL_VALIDATION = "credential_validation"


class IssuanceError(Exception):
    """Base class for all credential-issuance failures.

    Parameters
    ----------
    message:
        Human-readable description of the failure.
    step:
        The flow step that failed. The orchestrator relabels errors with
        the step of the flow it was running.
    status_code:
        HTTP status returned by the backend, when there was one.
    details:
        Backend-supplied details, passed through unchanged.
    """

    #: HTTP status used when the error is rendered by the HTTP controller.
    http_status: int = 500

    def __init__(
        self,
        message: str,
        step: FlowStep | None = None,
        status_code: int | None = None,
        details: object = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.step = step
        self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict[str, object]:
        """Serialize to the error body used by the HTTP controller."""
        return {
            "error": type(self).__name__,
            "detail": self.message,
            "step": self.step.value if self.step is not None else None,
        }

    def __str__(self) -> str:
        if self.step is None:
            return self.message
        return f"[{self.step.value}] {self.message}"


class ValidationError(IssuanceError):
    """Raised for malformed input detected before any network call."""

    http_status = 422


class HandshakeInProgress(ValidationError):
    """Raised when a second handshake is started for a DID already in flight."""

    http_status = 409


class RemoteError(IssuanceError):
    """Raised on transport failure, backend 5xx, or a malformed response."""

    http_status = 502


class NotFound(IssuanceError):
    """Raised when an id-based lookup misses."""

    http_status = 404


class InvalidSignature(IssuanceError):
    """Raised when the backend rejects the signed challenge."""

    http_status = 401


class ChallengeExpired(IssuanceError):
    """Raised when a challenge is stale or has been superseded."""

    http_status = 410


class ChallengeConsumed(IssuanceError):
    """Raised when a challenge has already been verified."""

    http_status = 409


class InvalidCode(IssuanceError):
    """Raised when an authorization code is rejected."""

    http_status = 400


class CodeExpired(IssuanceError):
    """Raised when an authorization code is stale."""

    http_status = 410


class Unauthorized(IssuanceError):
    """Raised for a bad or expired access token or client secret."""

    http_status = 401


class Forbidden(IssuanceError):
    """Raised when the token's identity may not claim the offering."""

    http_status = 403


class AlreadyClaimed(IssuanceError):
    """Raised when an offering has already been redeemed."""

    http_status = 409


class SigningError(IssuanceError):
    """Raised when the caller-supplied signing function fails."""

    http_status = 500


__all__ = [
    "AlreadyClaimed",
    "ChallengeConsumed",
    "ChallengeExpired",
    "CodeExpired",
    "FlowStep",
    "Forbidden",
    "HandshakeInProgress",
    "InvalidCode",
    "InvalidSignature",
    "IssuanceError",
    "NotFound",
    "RemoteError",
    "SigningError",
    "Unauthorized",
    "ValidationError",
]
