"""DID authentication: the challenge/response handshake."""
from __future__ import annotations

from credential_issuance.auth.authenticator import AuthState, DIDAuthenticator
from credential_issuance.auth.models import AccessToken, AuthChallenge, AuthorizationCode

__all__ = [
    "AccessToken",
    "AuthChallenge",
    "AuthState",
    "AuthorizationCode",
    "DIDAuthenticator",
]
