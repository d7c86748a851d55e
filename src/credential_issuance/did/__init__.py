"""did:key identities for the recipient side of the DID handshake."""
from __future__ import annotations

from credential_issuance.did.did_key import (
    DIDKeySigner,
    did_from_public_key,
    public_key_from_did,
    verify_challenge_signature,
)

__all__ = [
    "DIDKeySigner",
    "did_from_public_key",
    "public_key_from_did",
    "verify_challenge_signature",
]
