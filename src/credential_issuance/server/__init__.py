"""HTTP server mode for credential-issuance.

Exposes the issuance orchestrator over a lightweight stdlib-based HTTP API
without requiring any additional web framework dependencies.
"""
from __future__ import annotations

from credential_issuance.server.app import IssuanceRequestHandler, create_server, run_server

__all__ = ["IssuanceRequestHandler", "create_server", "run_server"]
