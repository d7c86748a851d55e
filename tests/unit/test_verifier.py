"""Tests for credential_issuance.verification — CredentialVerifier."""
from __future__ import annotations

import json

import httpx
import pytest

from conftest import FakeIssuanceBackend

from credential_issuance.config import IssuerApiConfig
from credential_issuance.errors import FlowStep, RemoteError, Unauthorized, ValidationError
from credential_issuance.transport.client import BackendClient
from credential_issuance.verification import CredentialVerifier, VerificationResult

_CREDENTIAL = {
    "@context": ["https://www.w3.org/2018/credentials/v1"],
    "type": ["VerifiableCredential", "EventTicket"],
    "issuer": "did:web:issuer.test",
    "credentialSubject": {"id": "did:example:holder", "seat": "A12"},
}


@pytest.fixture()
def verifier(client: BackendClient) -> CredentialVerifier:
    return CredentialVerifier(client)


class TestValidateCredential:
    def test_issued_credential_is_valid(
        self, verifier: CredentialVerifier, backend: FakeIssuanceBackend
    ) -> None:
        backend.issued.append(dict(_CREDENTIAL))
        result = verifier.validate_credential(_CREDENTIAL)
        assert isinstance(result, VerificationResult)
        assert result.valid is True
        assert result.document == {"valid": True}

    def test_unknown_credential_is_invalid(self, verifier: CredentialVerifier) -> None:
        result = verifier.validate_credential(_CREDENTIAL)
        assert result.valid is False

    def test_wire_body_and_secret(
        self, verifier: CredentialVerifier, backend: FakeIssuanceBackend
    ) -> None:
        verifier.validate_credential(_CREDENTIAL)
        (sent,) = backend.requests_to("POST", "verify")
        assert json.loads(sent.content) == {"credential": _CREDENTIAL}
        assert sent.headers["x-client-secret"] == "test-secret"

    @pytest.mark.parametrize("field", ["verified", "isValid"])
    def test_alternate_verdict_fields(
        self, verifier: CredentialVerifier, backend: FakeIssuanceBackend, field: str
    ) -> None:
        backend.queue("POST", "verify", httpx.Response(200, json={field: True}))
        assert verifier.validate_credential(_CREDENTIAL).valid is True

    def test_missing_verdict_is_none(
        self, verifier: CredentialVerifier, backend: FakeIssuanceBackend
    ) -> None:
        backend.queue("POST", "verify", httpx.Response(200, json={"checks": []}))
        result = verifier.validate_credential(_CREDENTIAL)
        assert result.valid is None
        assert result.to_dict() == {"valid": None, "result": {"checks": []}}

    @pytest.mark.parametrize("credential", [{}, None, "a credential", ["x"]])
    def test_empty_or_non_object_rejected_locally(
        self, verifier: CredentialVerifier, backend: FakeIssuanceBackend, credential: object
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            verifier.validate_credential(credential)  # type: ignore[arg-type]
        assert exc_info.value.step is FlowStep.CREDENTIAL_VALIDATION
        assert backend.requests == []

    def test_non_object_response_is_remote_error(
        self, verifier: CredentialVerifier, backend: FakeIssuanceBackend
    ) -> None:
        backend.queue("POST", "verify", httpx.Response(200, json=[True]))
        with pytest.raises(RemoteError) as exc_info:
            verifier.validate_credential(_CREDENTIAL)
        assert exc_info.value.step is FlowStep.CREDENTIAL_VALIDATION

    def test_wrong_secret_is_unauthorized(self, backend: FakeIssuanceBackend) -> None:
        client = BackendClient(
            IssuerApiConfig(base_url="http://issuer.test/api/v1", client_secret="wrong"),
            http_client=backend.http_client(),
        )
        with pytest.raises(Unauthorized):
            CredentialVerifier(client).validate_credential(_CREDENTIAL)
