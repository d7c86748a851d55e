"""HTTP transport to the issuance backend."""
from __future__ import annotations

from credential_issuance.transport.client import CLIENT_SECRET_HEADER, BackendClient

__all__ = ["BackendClient", "CLIENT_SECRET_HEADER"]
