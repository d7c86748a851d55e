"""did:key signer — recipient-side proof of control for the DID handshake.

A ``did:key`` DID encodes an Ed25519 public key directly:

1. Take the 32 raw public-key bytes.
2. Prepend the Ed25519 multicodec prefix ``0xed 0x01``.
3. Encode with base58btc and prefix ``z`` (multibase).
4. Assemble ``did:key:z<encoded>``.

:class:`DIDKeySigner` holds one private key and produces the
``signedChallenge`` value expected by the backend: the Ed25519 signature
over the UTF-8 challenge, base64url-encoded without padding. Its
:meth:`DIDKeySigner.sign_challenge` method is a ready-made ``sign_fn`` for
:meth:`IssuanceOrchestrator.issue_to_recipient`.
"""
from __future__ import annotations

import base64

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

DID_KEY_PREFIX = "did:key:z"

_ED25519_MULTICODEC: bytes = b"\xed\x01"
_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_BASE58_INDEX = {char: index for index, char in enumerate(_BASE58_ALPHABET)}


# ---------------------------------------------------------------------------
# base58btc
# ---------------------------------------------------------------------------


def base58btc_encode(data: bytes) -> str:
    """Encode bytes as base58btc; leading zero bytes become ``1``."""
    zeros = len(data) - len(data.lstrip(b"\x00"))
    number = int.from_bytes(data, "big")
    digits: list[str] = []
    while number:
        number, remainder = divmod(number, 58)
        digits.append(_BASE58_ALPHABET[remainder])
    return "1" * zeros + "".join(reversed(digits))


def base58btc_decode(encoded: str) -> bytes:
    """Decode a base58btc string.

    Raises
    ------
    ValueError
        On a character outside the base58btc alphabet.
    """
    number = 0
    for char in encoded:
        try:
            number = number * 58 + _BASE58_INDEX[char]
        except KeyError:
            raise ValueError(f"Invalid base58btc character {char!r}.") from None
    zeros = len(encoded) - len(encoded.lstrip("1"))
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    return b"\x00" * zeros + body


# ---------------------------------------------------------------------------
# DID <-> public key
# ---------------------------------------------------------------------------


def did_from_public_key(public_key: bytes) -> str:
    """Return the ``did:key`` for a 32-byte raw Ed25519 public key."""
    if len(public_key) != 32:
        raise ValueError(f"Ed25519 public keys are 32 bytes, got {len(public_key)}.")
    return DID_KEY_PREFIX + base58btc_encode(_ED25519_MULTICODEC + public_key)


def public_key_from_did(did: str) -> bytes:
    """Recover the raw Ed25519 public key encoded in a ``did:key``.

    Raises
    ------
    ValueError
        If *did* is not a ``did:key`` or does not encode an Ed25519 key.
    """
    if not did.startswith(DID_KEY_PREFIX) or len(did) == len(DID_KEY_PREFIX):
        raise ValueError(f"Not a did:key identifier: {did!r}.")
    decoded = base58btc_decode(did[len(DID_KEY_PREFIX):])
    if not decoded.startswith(_ED25519_MULTICODEC):
        raise ValueError(f"{did!r} does not encode an Ed25519 key.")
    public_key = decoded[len(_ED25519_MULTICODEC):]
    if len(public_key) != 32:
        raise ValueError(f"{did!r} encodes a key of {len(public_key)} bytes.")
    return public_key


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------


def encode_signature(signature: bytes) -> str:
    return base64.urlsafe_b64encode(signature).rstrip(b"=").decode("ascii")


def decode_signature(encoded: str) -> bytes:
    padding = "=" * (-len(encoded) % 4)
    return base64.urlsafe_b64decode(encoded + padding)


def verify_challenge_signature(did: str, challenge: str, signed_challenge: str) -> bool:
    """Check that *signed_challenge* is *did*'s signature over *challenge*.

    Returns False for any malformed input rather than raising.
    """
    try:
        public_key = Ed25519PublicKey.from_public_bytes(public_key_from_did(did))
        public_key.verify(decode_signature(signed_challenge), challenge.encode("utf-8"))
    except (InvalidSignature, ValueError):
        return False
    return True


class DIDKeySigner:
    """An Ed25519 key pair and its ``did:key`` identity.

    Parameters
    ----------
    private_key:
        The 32-byte raw Ed25519 private key (seed).

    Example
    -------
    ::

        signer = DIDKeySigner.generate()
        signature = signer.sign_challenge("nonce-from-backend")
        assert verify_challenge_signature(signer.did, "nonce-from-backend", signature)
    """

    def __init__(self, private_key: bytes) -> None:
        if len(private_key) != 32:
            raise ValueError(f"Ed25519 private keys are 32 bytes, got {len(private_key)}.")
        self._key = Ed25519PrivateKey.from_private_bytes(private_key)
        public_key = self._key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        self._did = did_from_public_key(public_key)

    @classmethod
    def generate(cls) -> "DIDKeySigner":
        """Create a signer with a fresh random key."""
        private_key = Ed25519PrivateKey.generate().private_bytes(
            Encoding.Raw, PrivateFormat.Raw, NoEncryption()
        )
        return cls(private_key)

    @classmethod
    def from_hex(cls, private_key_hex: str) -> "DIDKeySigner":
        """Create a signer from a hex-encoded private key."""
        return cls(bytes.fromhex(private_key_hex.strip()))

    @property
    def did(self) -> str:
        return self._did

    @property
    def private_key_hex(self) -> str:
        return self._key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption()).hex()

    def sign_challenge(self, challenge: str) -> str:
        """Return the base64url Ed25519 signature over the UTF-8 *challenge*."""
        return encode_signature(self._key.sign(challenge.encode("utf-8")))

    def __repr__(self) -> str:
        return f"DIDKeySigner(did={self._did!r})"


__all__ = [
    "DIDKeySigner",
    "DID_KEY_PREFIX",
    "base58btc_decode",
    "base58btc_encode",
    "decode_signature",
    "did_from_public_key",
    "encode_signature",
    "public_key_from_did",
    "verify_challenge_signature",
]
