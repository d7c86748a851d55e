"""Shared fixtures: an in-process fake issuance backend behind httpx.MockTransport."""
from __future__ import annotations

import itertools
import json
import urllib.parse
from typing import Any

import httpx
import pytest

from credential_issuance.config import IssuerApiConfig
from credential_issuance.did.did_key import DIDKeySigner, verify_challenge_signature
from credential_issuance.issuance.orchestrator import IssuanceOrchestrator
from credential_issuance.transport.client import BackendClient

BASE_URL = "http://issuer.test/api/v1"
CLIENT_SECRET = "test-secret"
API_PREFIX = "/api/v1/"


class FakeIssuanceBackend:
    """A stateful stand-in for the issuance backend.

    Implements the schema, offering, authorize, token and issue endpoints
    closely enough to drive complete flows. Every request is recorded in
    :attr:`requests`; :meth:`queue` injects a one-off response or exception
    for the next call to a given endpoint.
    """

    def __init__(self) -> None:
        self.schemas: dict[str, dict[str, Any]] = {}
        self.offerings: dict[str, dict[str, Any]] = {}
        self.challenges: dict[str, dict[str, Any]] = {}
        self.codes: dict[str, dict[str, Any]] = {}
        self.tokens: dict[str, str] = {}
        self.issued: list[dict[str, Any]] = []
        self.requests: list[httpx.Request] = []
        self._queued: dict[tuple[str, str], list[httpx.Response | Exception]] = {}
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Test controls
    # ------------------------------------------------------------------

    def http_client(self) -> httpx.Client:
        return httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(self))

    def queue(self, method: str, path: str, outcome: httpx.Response | Exception) -> None:
        """Return (or raise) *outcome* on the next ``method path`` call."""
        self._queued.setdefault((method, path), []).append(outcome)

    def seed_schema(
        self,
        type: str,
        version: int,
        *,
        schema_id: str | None = None,
        name: str | None = None,
        properties: dict[str, Any] | None = None,
        required: list[str] | None = None,
    ) -> dict[str, Any]:
        schema_id = schema_id or f"schema-{next(self._ids)}"
        doc = {
            "id": schema_id,
            "name": name or type,
            "type": type,
            "version": version,
            "credentialSubject": {
                "type": "object",
                "properties": properties or {},
                "required": required or [],
            },
        }
        self.schemas[schema_id] = doc
        return doc

    def requests_to(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and _route(r) == path]

    # ------------------------------------------------------------------
    # Transport handler
    # ------------------------------------------------------------------

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = _route(request)

        queued = self._queued.get((request.method, route))
        if queued:
            outcome = queued.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        body = json.loads(request.content) if request.content else {}
        parts = [urllib.parse.unquote(part) for part in route.split("/")]

        if parts[0] == "schema":
            return self._schema(request, parts, body)
        if route == "offering" and request.method == "POST":
            return self._create_offering(request, body)
        if route == "authorize" and request.method == "POST":
            return self._authorize(request, body)
        if route == "authorize/verify" and request.method == "POST":
            return self._verify(request, body)
        if route == "connect/token" and request.method == "POST":
            return self._token(body)
        if parts[0] == "issue-credential" and len(parts) == 2 and request.method == "POST":
            return self._issue(request, parts[1])
        if route == "verify" and request.method == "POST":
            return self._validate(request, body)
        return httpx.Response(404, json={"message": f"No route {request.method} {route}"})

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def _schema(self, request: httpx.Request, parts: list[str], body: dict[str, Any]) -> httpx.Response:
        if request.method == "GET" and len(parts) == 1:
            return httpx.Response(200, json=list(self.schemas.values()))
        if request.method == "POST" and len(parts) == 1:
            if not _has_secret(request):
                return _unauthorized()
            if not body.get("name") or not body.get("type"):
                return httpx.Response(400, json={"message": "name and type are required"})
            versions = [s["version"] for s in self.schemas.values() if s["type"] == body["type"]]
            doc = self.seed_schema(
                body["type"],
                max(versions, default=0) + 1,
                name=body["name"],
                properties=body["credentialSubject"]["properties"],
                required=body["credentialSubject"]["required"],
            )
            return httpx.Response(201, json=doc)

        if len(parts) != 2:
            return httpx.Response(404, json={"message": f"No route {request.method} {parts}"})
        schema_id = parts[1]
        if schema_id not in self.schemas:
            return httpx.Response(404, json={"message": f"Schema {schema_id} not found"})
        if request.method == "GET":
            return httpx.Response(200, json=self.schemas[schema_id])
        if request.method == "DELETE":
            if not _has_secret(request):
                return _unauthorized()
            del self.schemas[schema_id]
            return httpx.Response(204)
        return httpx.Response(405)

    def _create_offering(self, request: httpx.Request, body: dict[str, Any]) -> httpx.Response:
        if not _has_secret(request):
            return _unauthorized()
        credential_type = body.get("credential_type")
        matching = [s for s in self.schemas.values() if s["type"] == credential_type]
        if not matching:
            return httpx.Response(
                422, json={"message": f"Unknown credential type {credential_type}"}
            )
        offering_id = f"offer-{next(self._ids)}"
        offering = {
            "id": offering_id,
            "credential_type": credential_type,
            "credential_subject": body.get("credential_subject", {}),
            "recipient": body.get("recipient"),
            "url": f"openid-credential-offer://?offering={offering_id}",
            "claimed": False,
        }
        self.offerings[offering_id] = offering
        return httpx.Response(201, json={k: v for k, v in offering.items() if k != "claimed"})

    def _authorize(self, request: httpx.Request, body: dict[str, Any]) -> httpx.Response:
        if not _has_secret(request):
            return _unauthorized()
        if not body.get("did"):
            return httpx.Response(400, json={"message": "did is required"})
        challenge = f"challenge-{next(self._ids)}"
        self.challenges[challenge] = {"did": body["did"], "used": False}
        return httpx.Response(200, json={"challenge": challenge})

    def _verify(self, request: httpx.Request, body: dict[str, Any]) -> httpx.Response:
        if not _has_secret(request):
            return _unauthorized()
        entry = self.challenges.get(body.get("challenge", ""))
        if entry is None:
            return httpx.Response(410, json={"message": "Unknown or expired challenge"})
        if entry["used"]:
            return httpx.Response(409, json={"message": "Challenge already used"})
        if not verify_challenge_signature(
            entry["did"], body["challenge"], body.get("signedChallenge", "")
        ):
            return httpx.Response(401, json={"message": "Signature verification failed"})
        entry["used"] = True
        code = f"code-{next(self._ids)}"
        self.codes[code] = {"did": entry["did"], "used": False}
        return httpx.Response(200, json={"code": code})

    def _token(self, body: dict[str, Any]) -> httpx.Response:
        entry = self.codes.get(body.get("authorization_code", ""))
        if entry is None or entry["used"]:
            return httpx.Response(400, json={"error": "invalid_grant"})
        entry["used"] = True
        token = f"token-{next(self._ids)}"
        self.tokens[token] = entry["did"]
        return httpx.Response(
            200, json={"access_token": token, "token_type": "Bearer", "expires_in": 300}
        )

    def _issue(self, request: httpx.Request, offering_id: str) -> httpx.Response:
        scheme, _, token = request.headers.get("authorization", "").partition(" ")
        did = self.tokens.get(token) if scheme == "Bearer" else None
        if did is None:
            return httpx.Response(401, json={"message": "Invalid access token"})
        offering = self.offerings.get(offering_id)
        if offering is None:
            return httpx.Response(404, json={"message": "Offering not found"})
        if offering["claimed"]:
            return httpx.Response(409, json={"message": "Offering already claimed"})
        if offering["recipient"] is not None and offering["recipient"] != did:
            return httpx.Response(403, json={"message": "Offering is for another recipient"})
        offering["claimed"] = True
        credential = {
            "@context": ["https://www.w3.org/2018/credentials/v1"],
            "type": ["VerifiableCredential", offering["credential_type"]],
            "issuer": "did:web:issuer.test",
            "credentialSubject": {"id": did, **offering["credential_subject"]},
        }
        self.issued.append(credential)
        return httpx.Response(200, json=credential)

    def _validate(self, request: httpx.Request, body: dict[str, Any]) -> httpx.Response:
        if not _has_secret(request):
            return _unauthorized()
        credential = body.get("credential")
        if not isinstance(credential, dict) or not credential:
            return httpx.Response(400, json={"message": "Credential is required"})
        # Valid only if this backend issued exactly this document.
        return httpx.Response(200, json={"valid": credential in self.issued})


def _route(request: httpx.Request) -> str:
    # Raw path, so percent-encoded ids stay single segments.
    path = request.url.raw_path.decode("ascii").partition("?")[0]
    return path[len(API_PREFIX):] if path.startswith(API_PREFIX) else path.lstrip("/")


def _has_secret(request: httpx.Request) -> bool:
    return request.headers.get("x-client-secret") == CLIENT_SECRET


def _unauthorized() -> httpx.Response:
    return httpx.Response(401, json={"error": "unauthorized", "message": "Bad client secret"})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def backend() -> FakeIssuanceBackend:
    return FakeIssuanceBackend()


@pytest.fixture()
def config() -> IssuerApiConfig:
    return IssuerApiConfig(base_url=BASE_URL, client_secret=CLIENT_SECRET)


@pytest.fixture()
def client(backend: FakeIssuanceBackend, config: IssuerApiConfig) -> BackendClient:
    return BackendClient(config, http_client=backend.http_client())


@pytest.fixture()
def orchestrator(client: BackendClient) -> IssuanceOrchestrator:
    return IssuanceOrchestrator(client)


@pytest.fixture()
def signer() -> DIDKeySigner:
    return DIDKeySigner.generate()


@pytest.fixture()
def event_ticket(backend: FakeIssuanceBackend) -> dict[str, Any]:
    """An ``EventTicket`` schema (version 1) requiring a seat."""
    return backend.seed_schema(
        "EventTicket",
        1,
        schema_id="ticket-v1",
        name="Event Ticket",
        properties={
            "seat": {"type": "string", "title": "Seat"},
            "section": {"type": "string", "title": "Section"},
        },
        required=["seat"],
    )
