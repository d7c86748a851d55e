"""IssuanceOrchestrator — the offer -> authenticate -> issue flow end to end.

:meth:`IssuanceOrchestrator.issue_to_recipient` runs these steps strictly in
order, each depending on the previous one:

1. ``schema_resolution``   — confirm the credential type exists (optional)
2. ``offering_creation``   — build and create a targeted offering
3. ``challenge_issuance``  — ``initiate(recipient_did)``
4. ``signing``             — apply the caller's ``sign_fn`` to the challenge
5. ``verification``        — ``verify`` the signed challenge
6. ``token_exchange``      — redeem the authorization code
7. ``credential_issuance`` — redeem the offering with the access token

:meth:`IssuanceOrchestrator.validate_credential` is a separate, single-step
operation (``credential_validation``) for credentials presented later.

The first failure aborts the flow and is re-raised labelled with its step.
No compensating action is taken: an offering created before a later failure
stays behind unclaimed, which has no effect until someone redeems it.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from credential_issuance.audit import IssuanceAuditLogger
from credential_issuance.auth.authenticator import DIDAuthenticator
from credential_issuance.errors import (
    FlowStep,
    HandshakeInProgress,
    IssuanceError,
    NotFound,
    SigningError,
    ValidationError,
)
from credential_issuance.issuance.issuer import CredentialIssuer, IssuedCredential
from credential_issuance.offerings.builder import Offering, OfferingBuilder, OfferingRequest
from credential_issuance.offerings.client import OfferingClient
from credential_issuance.schemas.models import VALIDATOR_CREDENTIAL_TYPE, VALIDATOR_TEMPLATE
from credential_issuance.schemas.registry import SchemaRegistryClient, missing_required
from credential_issuance.transport.client import BackendClient
from credential_issuance.verification.verifier import CredentialVerifier, VerificationResult

logger = logging.getLogger(__name__)

#: Signs a challenge on behalf of the recipient and returns the signature.
SignFn = Callable[[str], str]


class IssuanceOrchestrator:
    """Compose the issuance components behind one synchronous contract.

    This is the surface external callers (the HTTP controller, the CLI, an
    agent tool layer) invoke.

    Parameters
    ----------
    client:
        The shared backend transport.
    audit:
        Optional audit logger; every completed step and every failure is
        recorded when given.

    Example
    -------
    ::

        with BackendClient(load_config()) as backend:
            orchestrator = IssuanceOrchestrator(backend)
            credential = orchestrator.issue_to_recipient(
                "EventTicket", {"seat": "A12"}, signer.did, signer.sign_challenge
            )
    """

    def __init__(
        self,
        client: BackendClient,
        audit: IssuanceAuditLogger | None = None,
    ) -> None:
        self._client = client
        self._audit = audit
        self.schemas = SchemaRegistryClient(client)
        self.builder = OfferingBuilder()
        self.offerings = OfferingClient(client)
        self.issuer = CredentialIssuer(client)
        self.verifier = CredentialVerifier(client)
        self._inflight: set[str] = set()
        self._inflight_lock = threading.Lock()

    @property
    def client(self) -> BackendClient:
        return self._client

    def authenticator(self) -> DIDAuthenticator:
        """Return a fresh authenticator for one handshake attempt."""
        return DIDAuthenticator(self._client)

    # ------------------------------------------------------------------
    # Offerings
    # ------------------------------------------------------------------

    def create_offering(
        self,
        type: str,
        credential_subject: Mapping[str, Any],
        recipient_did: str | None = None,
        *,
        check_schema: bool = True,
    ) -> Offering:
        """Create a targeted (with *recipient_did*) or open offering.

        Raises
        ------
        NotFound
            If *check_schema* is set and no schema has *type*.
        """
        request = self.builder.build(type, credential_subject, recipient_did)
        return self._create(request, check_schema=check_schema)

    def create_targeted_offering(
        self,
        type: str,
        credential_subject: Mapping[str, Any],
        recipient_did: str,
        *,
        check_schema: bool = True,
    ) -> Offering:
        """Create an offering claimable only by *recipient_did*."""
        request = self.builder.targeted(type, credential_subject, recipient_did)
        return self._create(request, check_schema=check_schema)

    def create_open_offering(
        self,
        type: str,
        credential_subject: Mapping[str, Any],
        *,
        check_schema: bool = True,
    ) -> Offering:
        """Create an offering claimable by any authenticated party."""
        request = self.builder.open(type, credential_subject)
        return self._create(request, check_schema=check_schema)

    def create_validator_offering(
        self,
        validator_address: str,
        validator_name: str | None = None,
        network_id: str = "mainnet",
        *,
        ensure_schema: bool = False,
    ) -> Offering:
        """Create an open ``ValidatorCredential`` offering.

        The returned offering's ``url`` is what a QR front end renders.

        Parameters
        ----------
        validator_address:
            Blockchain address of the validator. Required.
        validator_name:
            Optional display name of the validator node.
        network_id:
            Network the validator runs on.
        ensure_schema:
            Register the configured ``validator`` template first if no
            ``ValidatorCredential`` schema exists yet.
        """
        if not validator_address:
            raise ValidationError(
                "Validator address is required.", step=FlowStep.OFFERING_CREATION
            )
        if ensure_schema:
            template = self._client.config.schema_templates.get("validator", VALIDATOR_TEMPLATE)
            with self._step(FlowStep.SCHEMA_RESOLUTION, template.type):
                self.schemas.ensure_template(template)

        subject: dict[str, Any] = {
            "validatorAddress": validator_address,
            "networkId": network_id,
        }
        if validator_name:
            subject["validatorName"] = validator_name
        request = self.builder.open(VALIDATOR_CREDENTIAL_TYPE, subject)
        return self._create(request, check_schema=False)

    def _create(self, request: OfferingRequest, *, check_schema: bool) -> Offering:
        if check_schema:
            self._check_schema(request.credential_type, request.credential_subject, strict=False)
        with self._step(FlowStep.OFFERING_CREATION, request.credential_type):
            offering = self.offerings.create(request)
        self._record(FlowStep.OFFERING_CREATION, offering.id, targeted=offering.is_targeted)
        return offering

    # ------------------------------------------------------------------
    # Full flow
    # ------------------------------------------------------------------

    def issue_to_recipient(
        self,
        type: str,
        credential_subject: Mapping[str, Any],
        recipient_did: str,
        sign_fn: SignFn,
        *,
        check_schema: bool = True,
        strict: bool = False,
    ) -> IssuedCredential:
        """Offer, authenticate, and issue a credential to *recipient_did*.

        Parameters
        ----------
        type:
            Credential type; must match an existing schema type.
        credential_subject:
            Data for the credential.
        recipient_did:
            The DID the credential is issued to.
        sign_fn:
            Signs a challenge on behalf of the recipient. Key custody is the
            caller's concern.
        check_schema:
            Confirm the type exists before creating the offering.
        strict:
            Also check the subject against the required fields of the
            latest schema of *type*. Implies *check_schema*.

        Returns
        -------
        IssuedCredential
            The minted credential.

        Raises
        ------
        HandshakeInProgress
            If another flow for *recipient_did* is running on this orchestrator.
        IssuanceError
            The first failing step's error, labelled with that step.
        """
        with self._claim(recipient_did):
            request = self.builder.targeted(type, credential_subject, recipient_did)
            if check_schema or strict:
                self._check_schema(type, request.credential_subject, strict=strict)

            with self._step(FlowStep.OFFERING_CREATION, recipient_did):
                offering = self.offerings.create(request)
            self._record(FlowStep.OFFERING_CREATION, recipient_did, offering_id=offering.id)

            authenticator = self.authenticator()
            with self._step(FlowStep.CHALLENGE_ISSUANCE, recipient_did):
                challenge = authenticator.initiate(recipient_did)
            self._record(FlowStep.CHALLENGE_ISSUANCE, recipient_did)

            with self._step(FlowStep.SIGNING, recipient_did):
                signature = _apply_sign_fn(sign_fn, challenge.challenge)

            with self._step(FlowStep.VERIFICATION, recipient_did):
                code = authenticator.verify(challenge.challenge, signature)
            self._record(FlowStep.VERIFICATION, recipient_did)

            with self._step(FlowStep.TOKEN_EXCHANGE, recipient_did):
                token = self.issuer.exchange_token(code)
            self._record(FlowStep.TOKEN_EXCHANGE, recipient_did)

            with self._step(FlowStep.CREDENTIAL_ISSUANCE, recipient_did):
                credential = self.issuer.issue(offering.id, token)
            self._record(FlowStep.CREDENTIAL_ISSUANCE, recipient_did, offering_id=offering.id)

            logger.info("Issued %s credential to %s (offering %s)", type, recipient_did, offering.id)
            return credential

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_credential(
        self, credential: Mapping[str, Any] | IssuedCredential
    ) -> VerificationResult:
        """Have the backend validate a presented credential.

        An :class:`IssuedCredential` is unwrapped to its document. A
        credential the backend judges invalid is a normal result
        (``valid=False``), not an error.
        """
        document = credential.document if isinstance(credential, IssuedCredential) else credential
        holder = _holder(document)
        with self._step(FlowStep.CREDENTIAL_VALIDATION, holder):
            result = self.verifier.validate_credential(document)
        self._record(FlowStep.CREDENTIAL_VALIDATION, holder, valid=result.valid)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_schema(self, type: str, subject: Mapping[str, Any], *, strict: bool) -> None:
        step = FlowStep.SCHEMA_RESOLUTION
        with self._step(step, type):
            if strict:
                schema = self.schemas.resolve_latest(type)
                if schema is None:
                    raise NotFound(f"No schema of type {type!r} exists.", step=step)
                missing = missing_required(schema, subject)
                if missing:
                    raise ValidationError(
                        f"credentialSubject lacks required fields {missing} of schema "
                        f"{schema.id} (version {schema.version}).",
                        step=step,
                    )
            elif not self.schemas.exists_by_type(type):
                raise NotFound(f"No schema of type {type!r} exists.", step=step)

    @contextmanager
    def _step(self, step: FlowStep, subject: str) -> Iterator[None]:
        try:
            yield
        except IssuanceError as exc:
            exc.step = step
            logger.warning("Issuance step %s failed for %s: %s", step.value, subject, exc.message)
            if self._audit is not None:
                self._audit.log_failure(exc, subject)
            raise

    @contextmanager
    def _claim(self, did: str) -> Iterator[None]:
        with self._inflight_lock:
            if did in self._inflight:
                raise HandshakeInProgress(
                    f"A handshake for {did} is already in progress.",
                    step=FlowStep.CHALLENGE_ISSUANCE,
                )
            self._inflight.add(did)
        try:
            yield
        finally:
            with self._inflight_lock:
                self._inflight.discard(did)

    def _record(self, step: FlowStep, subject: str, **details: object) -> None:
        if self._audit is not None:
            self._audit.log_step(step, subject, **details)


def _apply_sign_fn(sign_fn: SignFn, challenge: str) -> str:
    try:
        signature = sign_fn(challenge)
    except IssuanceError:
        raise
    except Exception as exc:
        raise SigningError(f"Signing the challenge failed: {exc}", step=FlowStep.SIGNING) from exc
    if not isinstance(signature, str) or not signature:
        raise SigningError("Signing function returned no signature.", step=FlowStep.SIGNING)
    return signature


def _holder(credential: object) -> str:
    # credentialSubject.id names the holder; fall back to a fixed label.
    if isinstance(credential, Mapping):
        subject = credential.get("credentialSubject")
        if isinstance(subject, Mapping) and isinstance(subject.get("id"), str):
            return subject["id"]
    return "credential"


__all__ = ["IssuanceOrchestrator", "SignFn"]
