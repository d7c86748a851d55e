"""DIDAuthenticator — challenge/response proof of DID control.

The handshake is a linear state machine::

    START --initiate(did)--> CHALLENGE_ISSUED --verify(...)--> VERIFIED

Any failure returns the machine to ``START``; the caller must initiate
again. Challenges are single-use, and a fresh :meth:`DIDAuthenticator.initiate`
supersedes an outstanding one, so one instance should drive exactly one
DID's handshake for one attempt. Do not share an instance between callers.

Challenge expiry is enforced by the backend and surfaces at verify time.
"""
from __future__ import annotations

import logging
import threading
from enum import Enum

from credential_issuance.auth.models import AuthChallenge, AuthorizationCode, first_string
from credential_issuance.errors import (
    ChallengeConsumed,
    ChallengeExpired,
    FlowStep,
    InvalidSignature,
    IssuanceError,
    RemoteError,
    ValidationError,
)
from credential_issuance.transport.client import BackendClient

logger = logging.getLogger(__name__)

_VERIFY_STATUS_ERRORS = {
    400: InvalidSignature,
    401: InvalidSignature,
    409: ChallengeConsumed,
    410: ChallengeExpired,
}


class AuthState(str, Enum):
    """States of the DID authentication handshake."""

    START = "start"
    CHALLENGE_ISSUED = "challenge_issued"
    VERIFIED = "verified"


class DIDAuthenticator:
    """Drive one DID authentication handshake against the backend.

    Thread-safe: transitions on one instance are serialised by a lock.

    Parameters
    ----------
    client:
        The shared backend transport.

    Example
    -------
    ::

        auth = DIDAuthenticator(backend)
        challenge = auth.initiate("did:key:z6Mk...")
        code = auth.verify(challenge.challenge, sign(challenge.challenge))
    """

    def __init__(self, client: BackendClient) -> None:
        self._client = client
        self._lock = threading.Lock()
        self._state = AuthState.START
        self._did: str | None = None
        self._challenge: str | None = None

    @classmethod
    def resume(cls, client: BackendClient, did: str, challenge: str) -> "DIDAuthenticator":
        """Rebuild an authenticator for a challenge issued earlier.

        Used when initiate and verify happen in different requests or
        processes (the HTTP controller and the CLI).
        """
        if not did or not challenge:
            raise ValidationError(
                "A DID and a challenge are required to resume a handshake.",
                step=FlowStep.VERIFICATION,
            )
        authenticator = cls(client)
        authenticator._did = did
        authenticator._challenge = challenge
        authenticator._state = AuthState.CHALLENGE_ISSUED
        return authenticator

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def did(self) -> str | None:
        return self._did

    @property
    def challenge(self) -> str | None:
        """The outstanding challenge, or None outside ``CHALLENGE_ISSUED``."""
        return self._challenge if self._state is AuthState.CHALLENGE_ISSUED else None

    def reset(self) -> None:
        """Discard any outstanding challenge and return to ``START``."""
        with self._lock:
            self._reset()

    def _reset(self) -> None:
        self._state = AuthState.START
        self._did = None
        self._challenge = None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def initiate(self, did: str) -> AuthChallenge:
        """Request a challenge for *did* (``START -> CHALLENGE_ISSUED``).

        Any challenge this instance held before is discarded.

        Raises
        ------
        ValidationError
            If *did* is empty.
        RemoteError
            On transport or backend failure, or a response without a
            challenge.
        """
        step = FlowStep.CHALLENGE_ISSUANCE
        if not did:
            raise ValidationError("Recipient DID is required.", step=step)

        with self._lock:
            self._reset()
            data = self._client.request("POST", "authorize", step=step, json={"did": did})
            nonce = first_string(data, "challenge") if isinstance(data, dict) else None
            if nonce is None:
                raise RemoteError("Authorization response carries no challenge.", step=step)

            self._did = did
            self._challenge = nonce
            self._state = AuthState.CHALLENGE_ISSUED
            logger.info("Challenge issued for %s", did)
            return AuthChallenge(did=did, challenge=nonce, raw=data)

    def verify(self, challenge: str, signed_challenge: str) -> AuthorizationCode:
        """Submit the signed challenge (``CHALLENGE_ISSUED -> VERIFIED``).

        On any failure the machine resets to ``START``.

        Raises
        ------
        ValidationError
            If an argument is empty or no challenge is outstanding.
        ChallengeConsumed
            If this handshake was already verified, or the backend reports
            the challenge as used.
        ChallengeExpired
            If *challenge* is not the outstanding one, or the backend reports
            it as stale.
        InvalidSignature
            If the backend rejects the proof.
        """
        step = FlowStep.VERIFICATION
        if not challenge or not signed_challenge:
            raise ValidationError("Challenge and signedChallenge are required.", step=step)

        with self._lock:
            try:
                self._check_outstanding(challenge)
                data = self._client.request(
                    "POST",
                    "authorize/verify",
                    step=step,
                    json={"challenge": challenge, "signedChallenge": signed_challenge},
                    status_errors=_VERIFY_STATUS_ERRORS,
                )
                code = (
                    first_string(data, "code", "authorization_code", "authorizationCode")
                    if isinstance(data, dict)
                    else None
                )
                if code is None:
                    raise RemoteError("Verification response carries no authorization code.", step=step)
            except IssuanceError:
                if self._state is AuthState.CHALLENGE_ISSUED:
                    logger.info("Verification failed for %s; handshake reset", self._did)
                self._reset()
                raise

            did = self._did or ""
            self._state = AuthState.VERIFIED
            self._challenge = None
            logger.info("Challenge verified for %s", did)
            return AuthorizationCode(did=did, code=code, raw=data)

    def _check_outstanding(self, challenge: str) -> None:
        step = FlowStep.VERIFICATION
        if self._state is AuthState.VERIFIED:
            raise ChallengeConsumed("This handshake has already been verified.", step=step)
        if self._state is AuthState.START:
            raise ValidationError(
                "No challenge is outstanding; call initiate() first.", step=step
            )
        if challenge != self._challenge:
            raise ChallengeExpired(
                "Challenge does not match the outstanding challenge; it was superseded.",
                step=step,
            )


__all__ = ["AuthState", "DIDAuthenticator"]
