"""CredentialVerifier — ask the backend to validate a presented credential.

The backend owns the verification rules (signature, issuer, status). This
client only submits the credential and reports the verdict it gets back.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from credential_issuance.errors import FlowStep, RemoteError, ValidationError
from credential_issuance.transport.client import BackendClient

logger = logging.getLogger(__name__)

_STEP = FlowStep.CREDENTIAL_VALIDATION

# Verdict fields seen in backend responses, in lookup order.
_VERDICT_FIELDS = ("valid", "verified", "isValid")


@dataclass(frozen=True)
class VerificationResult:
    """The backend's answer to a validation request.

    ``valid`` is ``None`` when the response carries no boolean verdict;
    ``document`` keeps the full response.
    """

    valid: bool | None
    document: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "result": self.document}


class CredentialVerifier:
    """Validate credentials against the issuance backend."""

    def __init__(self, client: BackendClient) -> None:
        self._client = client

    def validate_credential(self, credential: Mapping[str, Any]) -> VerificationResult:
        """Submit *credential* to POST ``verify`` with the client secret.

        Raises
        ------
        ValidationError
            If *credential* is empty or not a JSON object, or the backend
            rejects it as malformed.
        RemoteError
            On transport failure or a response that is not a JSON object.
        """
        if not isinstance(credential, Mapping) or not credential:
            raise ValidationError("Credential is required.", step=_STEP)

        data = self._client.request(
            "POST", "verify", step=_STEP, json={"credential": dict(credential)}
        )
        if not isinstance(data, dict):
            raise RemoteError("Validation response is not a JSON object.", step=_STEP)

        valid = next(
            (data[name] for name in _VERDICT_FIELDS if isinstance(data.get(name), bool)),
            None,
        )
        logger.info("Credential validation finished (valid=%s)", valid)
        return VerificationResult(valid=valid, document=data)


__all__ = ["CredentialVerifier", "VerificationResult"]
