"""Handshake artifacts: challenges, authorization codes, and access tokens.

All three are short-lived and single-use. Their secret parts are excluded
from ``repr`` so they do not leak into logs.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class AuthChallenge:
    """A nonce issued by the backend for one DID.

    Parameters
    ----------
    did:
        The DID the challenge was issued for.
    challenge:
        The opaque nonce the recipient must sign.
    raw:
        The full backend response.
    """

    did: str
    challenge: str
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class AuthorizationCode:
    """Proof that a signed challenge was accepted; redeemable once for a token."""

    did: str
    code: str = field(repr=False)
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class AccessToken:
    """Bearer credential required to redeem an offering."""

    access_token: str = field(repr=False)
    token_type: str = "Bearer"
    expires_in: int | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def __str__(self) -> str:
        return self.access_token


def first_string(data: dict[str, Any], *keys: str) -> str | None:
    """Return the first non-empty string value among *keys* in *data*."""
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


__all__ = ["AccessToken", "AuthChallenge", "AuthorizationCode", "first_string"]
