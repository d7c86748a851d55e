"""Credential issuance: token exchange, redemption, and the full flow."""
from __future__ import annotations

from credential_issuance.issuance.issuer import CredentialIssuer, IssuedCredential
from credential_issuance.issuance.orchestrator import IssuanceOrchestrator, SignFn

__all__ = ["CredentialIssuer", "IssuanceOrchestrator", "IssuedCredential", "SignFn"]
