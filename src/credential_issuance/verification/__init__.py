"""Validation of presented credentials."""
from __future__ import annotations

from credential_issuance.verification.verifier import CredentialVerifier, VerificationResult

__all__ = ["CredentialVerifier", "VerificationResult"]
