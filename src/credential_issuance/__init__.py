"""credential-issuance — drive an external verifiable-credential issuance backend.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Quick start
-----------
::

    from credential_issuance import (
        BackendClient, DIDKeySigner, IssuanceOrchestrator, load_config,
    )

    signer = DIDKeySigner.generate()
    with BackendClient(load_config()) as backend:
        orchestrator = IssuanceOrchestrator(backend)
        orchestrator.schemas.create(
            "Event Ticket", "EventTicket", {"seat": {"type": "string"}}, ["seat"]
        )
        credential = orchestrator.issue_to_recipient(
            "EventTicket", {"seat": "A12"}, signer.did, signer.sign_challenge
        )
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ------------------------------------------------------------------
# Configuration and transport
# ------------------------------------------------------------------
from credential_issuance.config import IssuerApiConfig, load_config
from credential_issuance.transport.client import BackendClient

# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------
from credential_issuance.errors import (
    AlreadyClaimed,
    ChallengeConsumed,
    ChallengeExpired,
    CodeExpired,
    FlowStep,
    Forbidden,
    HandshakeInProgress,
    InvalidCode,
    InvalidSignature,
    IssuanceError,
    NotFound,
    RemoteError,
    SigningError,
    Unauthorized,
    ValidationError,
)

# ------------------------------------------------------------------
# Schemas and offerings
# ------------------------------------------------------------------
from credential_issuance.schemas import (
    Schema,
    SchemaProperty,
    SchemaRegistryClient,
    SchemaTemplate,
)
from credential_issuance.offerings import (
    Offering,
    OfferingBuilder,
    OfferingClient,
    OfferingRequest,
)

# ------------------------------------------------------------------
# Authentication and issuance
# ------------------------------------------------------------------
from credential_issuance.auth import (
    AccessToken,
    AuthChallenge,
    AuthorizationCode,
    AuthState,
    DIDAuthenticator,
)
from credential_issuance.issuance import (
    CredentialIssuer,
    IssuanceOrchestrator,
    IssuedCredential,
    SignFn,
)
from credential_issuance.verification import CredentialVerifier, VerificationResult
from credential_issuance.did import DIDKeySigner, verify_challenge_signature
from credential_issuance.audit import AuditEvent, IssuanceAuditLogger

__all__ = [
    "__version__",
    # Configuration and transport
    "BackendClient",
    "IssuerApiConfig",
    "load_config",
    # Errors
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
    # Schemas and offerings
    "Offering",
    "OfferingBuilder",
    "OfferingClient",
    "OfferingRequest",
    "Schema",
    "SchemaProperty",
    "SchemaRegistryClient",
    "SchemaTemplate",
    # Authentication and issuance
    "AccessToken",
    "AuditEvent",
    "AuthChallenge",
    "AuthState",
    "AuthorizationCode",
    "CredentialIssuer",
    "CredentialVerifier",
    "DIDAuthenticator",
    "DIDKeySigner",
    "IssuanceAuditLogger",
    "IssuanceOrchestrator",
    "IssuedCredential",
    "SignFn",
    "VerificationResult",
    "verify_challenge_signature",
]
