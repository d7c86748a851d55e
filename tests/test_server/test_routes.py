"""Tests for credential_issuance.server.routes."""
from __future__ import annotations

import httpx
import pytest

from conftest import FakeIssuanceBackend

from credential_issuance.did import DIDKeySigner
from credential_issuance.issuance import IssuanceOrchestrator
from credential_issuance.server import routes


@pytest.fixture(autouse=True)
def reset_server_state() -> None:
    """Reset module-level state before each test."""
    routes.reset_state()


@pytest.fixture()
def configured(orchestrator: IssuanceOrchestrator) -> IssuanceOrchestrator:
    routes.configure(orchestrator)
    return orchestrator


class TestHandleHealth:
    def test_unconfigured(self) -> None:
        status, data = routes.handle_health()
        assert status == 200
        assert data["status"] == "unconfigured"
        assert data["service"] == "credential-issuance"

    def test_configured_reports_backend(self, configured: IssuanceOrchestrator) -> None:
        status, data = routes.handle_health()
        assert data["status"] == "ok"
        assert data["backend"] == "http://issuer.test/api/v1"

    def test_handlers_require_configuration(self) -> None:
        with pytest.raises(RuntimeError):
            routes.handle_list_schemas()


class TestSchemaRoutes:
    def test_create_and_list(self, configured: IssuanceOrchestrator) -> None:
        status, data = routes.handle_create_schema(
            {
                "name": "Event Ticket",
                "type": "EventTicket",
                "properties": {"seat": {"type": "string"}},
                "requiredFields": ["seat"],
            }
        )
        assert status == 201
        assert data["version"] == 1

        status, data = routes.handle_list_schemas()
        assert status == 200
        assert [s["type"] for s in data["schemas"]] == ["EventTicket"]

    def test_create_missing_fields_is_422(self, configured: IssuanceOrchestrator) -> None:
        status, data = routes.handle_create_schema({"name": "x"})
        assert status == 422
        assert "error" in data

    def test_create_undeclared_required_is_422(self, configured: IssuanceOrchestrator) -> None:
        status, data = routes.handle_create_schema(
            {"name": "x", "type": "T", "properties": {}, "requiredFields": ["a"]}
        )
        assert status == 422
        assert data["error"] == "ValidationError"
        assert data["step"] == "schema_management"

    def test_get_and_delete(self, configured: IssuanceOrchestrator, event_ticket: dict) -> None:
        status, data = routes.handle_get_schema("ticket-v1")
        assert status == 200
        assert data["credentialSubject"]["required"] == ["seat"]

        status, data = routes.handle_delete_schema("ticket-v1")
        assert (status, data) == (200, {"deleted": "ticket-v1"})

        status, data = routes.handle_get_schema("ticket-v1")
        assert status == 404
        assert data["error"] == "NotFound"

    def test_latest(self, configured: IssuanceOrchestrator, backend: FakeIssuanceBackend) -> None:
        backend.seed_schema("EventTicket", 1, schema_id="v1")
        backend.seed_schema("EventTicket", 2, schema_id="v2")
        status, data = routes.handle_latest_schema("EventTicket")
        assert status == 200
        assert data["id"] == "v2"

    def test_latest_absent_is_404(self, configured: IssuanceOrchestrator) -> None:
        status, data = routes.handle_latest_schema("Nothing")
        assert status == 404
        assert data["step"] == "schema_resolution"


class TestOfferingRoutes:
    def test_targeted(self, configured: IssuanceOrchestrator, event_ticket: dict) -> None:
        status, data = routes.handle_create_offering(
            {
                "type": "EventTicket",
                "credentialSubject": {"seat": "A1"},
                "recipientDid": "did:example:1",
            }
        )
        assert status == 201
        assert data["recipient_did"] == "did:example:1"
        assert data["offering_url"]

    def test_open(self, configured: IssuanceOrchestrator, event_ticket: dict) -> None:
        status, data = routes.handle_create_offering(
            {"type": "EventTicket", "credentialSubject": {"seat": "A1"}}
        )
        assert status == 201
        assert data["recipient_did"] is None

    def test_unknown_type(self, configured: IssuanceOrchestrator) -> None:
        status, data = routes.handle_create_offering({"type": "Nope", "credentialSubject": {}})
        assert status == 404
        assert data["step"] == "schema_resolution"

    def test_validator(self, configured: IssuanceOrchestrator, backend: FakeIssuanceBackend) -> None:
        backend.seed_schema("ValidatorCredential", 1)
        status, data = routes.handle_create_validator(
            {"validatorAddress": "0xabc", "networkId": "testnet"}
        )
        assert status == 201
        assert data["credential_type"] == "ValidatorCredential"
        assert data["credential_subject"] == {"validatorAddress": "0xabc", "networkId": "testnet"}

    def test_validator_requires_address(self, configured: IssuanceOrchestrator) -> None:
        status, _ = routes.handle_create_validator({"validatorName": "n"})
        assert status == 422


class TestHandshakeRoutes:
    def test_full_flow_over_routes(
        self, configured: IssuanceOrchestrator, event_ticket: dict
    ) -> None:
        signer = DIDKeySigner.generate()
        _, offering = routes.handle_create_offering(
            {"type": "EventTicket", "credentialSubject": {"seat": "A1"}, "recipientDid": signer.did}
        )

        status, data = routes.handle_auth_initiate({"did": signer.did})
        assert status == 200
        challenge = data["challenge"]

        status, data = routes.handle_auth_verify(
            {
                "did": signer.did,
                "challenge": challenge,
                "signedChallenge": signer.sign_challenge(challenge),
            }
        )
        assert status == 200
        code = data["authorizationCode"]

        status, data = routes.handle_token({"authorizationCode": code})
        assert status == 200
        token = data["access_token"]

        status, data = routes.handle_issue(offering["offering_id"], f"Bearer {token}")
        assert status == 201
        assert data["credential"]["credentialSubject"]["id"] == signer.did

        status, data = routes.handle_issue(offering["offering_id"], f"Bearer {token}")
        assert status == 409
        assert data["error"] == "AlreadyClaimed"

    def test_verify_bad_signature_is_401(self, configured: IssuanceOrchestrator) -> None:
        signer = DIDKeySigner.generate()
        _, data = routes.handle_auth_initiate({"did": signer.did})
        status, data = routes.handle_auth_verify(
            {"did": signer.did, "challenge": data["challenge"], "signedChallenge": "AAAA"}
        )
        assert status == 401
        assert data["error"] == "InvalidSignature"

    def test_token_bad_code_is_400(self, configured: IssuanceOrchestrator) -> None:
        status, data = routes.handle_token({"authorizationCode": "bogus"})
        assert status == 400
        assert data["step"] == "token_exchange"

    @pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer "])
    def test_issue_requires_bearer(self, configured: IssuanceOrchestrator, header: str | None) -> None:
        status, data = routes.handle_issue("offer-1", header)
        assert status == 401
        assert data["step"] == "credential_issuance"

    def test_issue_offering_id_cannot_reach_other_endpoints(
        self, configured: IssuanceOrchestrator, backend: FakeIssuanceBackend
    ) -> None:
        status, data = routes.handle_issue("../schema", "Bearer tok")
        assert status == 401
        assert data["step"] == "credential_issuance"
        assert backend.requests_to("POST", "schema") == []
        assert backend.requests[-1].url.raw_path == b"/api/v1/issue-credential/..%2Fschema"

    def test_delete_schema_id_cannot_reach_other_endpoints(
        self, configured: IssuanceOrchestrator, backend: FakeIssuanceBackend
    ) -> None:
        status, _ = routes.handle_delete_schema("../offering")
        assert status == 404
        assert all(r.url.raw_path.startswith(b"/api/v1/schema/") for r in backend.requests)


class TestMalformedBackendResponses:
    def test_schema_listing_with_bad_subject_is_502(
        self, configured: IssuanceOrchestrator, backend: FakeIssuanceBackend
    ) -> None:
        document = {"id": "x", "type": "T", "version": 1, "credentialSubject": "oops"}
        backend.queue("GET", "schema", httpx.Response(200, json=[document]))
        status, data = routes.handle_list_schemas()
        assert status == 502
        assert data["step"] == "schema_management"

    def test_offering_with_bad_subject_is_502(
        self, configured: IssuanceOrchestrator, backend: FakeIssuanceBackend
    ) -> None:
        backend.queue(
            "POST", "offering", httpx.Response(201, json={"id": "o-1", "credential_subject": "oops"})
        )
        status, data = routes.handle_create_offering(
            {"type": "T", "credentialSubject": {"a": 1}, "checkSchema": False}
        )
        assert status == 502
        assert data["step"] == "offering_creation"


class TestValidateRoute:
    def test_validates_issued_credential(
        self, configured: IssuanceOrchestrator, backend: FakeIssuanceBackend
    ) -> None:
        credential = {"issuer": "did:web:issuer.test", "credentialSubject": {"id": "did:example:1"}}
        backend.issued.append(credential)
        status, data = routes.handle_validate_credential({"credential": credential})
        assert status == 200
        assert data == {"valid": True, "result": {"valid": True}}

    def test_unknown_credential_is_still_200(self, configured: IssuanceOrchestrator) -> None:
        status, data = routes.handle_validate_credential({"credential": {"issuer": "x"}})
        assert status == 200
        assert data["valid"] is False

    def test_missing_credential_is_422(self, configured: IssuanceOrchestrator) -> None:
        status, _ = routes.handle_validate_credential({})
        assert status == 422

    def test_empty_credential_labelled(self, configured: IssuanceOrchestrator) -> None:
        status, data = routes.handle_validate_credential({"credential": {}})
        assert status == 422
        assert data["step"] == "credential_validation"
