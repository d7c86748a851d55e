"""HTTP server for credential-issuance using stdlib http.server.

Routes:
    GET    /health                     — health check
    GET    /schemas                    — list schemas
    POST   /schemas                    — create a schema
    GET    /schemas/latest/{type}      — latest schema version of a type
    GET    /schemas/{id}               — fetch a schema
    DELETE /schemas/{id}               — delete a schema
    POST   /offerings                  — create a targeted or open offering
    POST   /validator/create           — create an open validator offering
    POST   /auth/initiate              — request a DID challenge
    POST   /auth/verify                — submit the signed challenge
    POST   /auth/token                 — exchange an authorization code
    POST   /credentials/{offeringId}   — redeem an offering (Bearer token)
    POST   /verify                     — validate a presented credential

Usage:
    python -m credential_issuance.server.app --port 8080
    python -m credential_issuance.server.app --base-url https://issuer/api/v1
"""
from __future__ import annotations

import argparse
import json
import logging
import re
import urllib.parse
from http.server import BaseHTTPRequestHandler, HTTPServer

from credential_issuance.config import load_config
from credential_issuance.issuance.orchestrator import IssuanceOrchestrator
from credential_issuance.server import routes
from credential_issuance.transport.client import BackendClient

logger = logging.getLogger(__name__)

_SCHEMA_LATEST_PATTERN = re.compile(r"^/schemas/latest/([^/]+)$")
# "latest" is reserved for /schemas/latest/{type}.
_SCHEMA_ID_PATTERN = re.compile(r"^/schemas/(?!latest$)([^/]+)$")
_CREDENTIAL_PATTERN = re.compile(r"^/credentials/([^/]+)$")


class IssuanceRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the credential-issuance server.

    All request bodies and responses use JSON.
    """

    def log_message(self, format: str, *args: object) -> None:
        """Route access logs through the Python logging system."""
        logger.debug(format, *args)

    # ── GET ───────────────────────────────────────────────────────────────────

    def do_GET(self) -> None:
        path = self._path()

        if path == "/health":
            self._send_json(*routes.handle_health())
        elif path == "/schemas":
            self._send_json(*routes.handle_list_schemas())
        elif match := _SCHEMA_LATEST_PATTERN.match(path):
            self._send_json(*routes.handle_latest_schema(_unquote(match.group(1))))
        elif match := _SCHEMA_ID_PATTERN.match(path):
            self._send_json(*routes.handle_get_schema(_unquote(match.group(1))))
        else:
            self._not_found("GET", path)

    # ── POST ──────────────────────────────────────────────────────────────────

    def do_POST(self) -> None:
        path = self._path()

        body = self._read_json_body()
        if body is None:
            return

        if path == "/schemas":
            self._send_json(*routes.handle_create_schema(body))
        elif path == "/offerings":
            self._send_json(*routes.handle_create_offering(body))
        elif path == "/validator/create":
            self._send_json(*routes.handle_create_validator(body))
        elif path == "/auth/initiate":
            self._send_json(*routes.handle_auth_initiate(body))
        elif path == "/auth/verify":
            self._send_json(*routes.handle_auth_verify(body))
        elif path == "/auth/token":
            self._send_json(*routes.handle_token(body))
        elif path == "/verify":
            self._send_json(*routes.handle_validate_credential(body))
        elif match := _CREDENTIAL_PATTERN.match(path):
            self._send_json(
                *routes.handle_issue(
                    _unquote(match.group(1)), self.headers.get("Authorization")
                )
            )
        else:
            self._not_found("POST", path)

    # ── DELETE ────────────────────────────────────────────────────────────────

    def do_DELETE(self) -> None:
        path = self._path()

        if match := _SCHEMA_ID_PATTERN.match(path):
            self._send_json(*routes.handle_delete_schema(_unquote(match.group(1))))
        else:
            self._not_found("DELETE", path)

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _path(self) -> str:
        return urllib.parse.urlparse(self.path).path.rstrip("/")

    def _not_found(self, method: str, path: str) -> None:
        self._send_json(404, {"error": "Not found", "detail": f"No route for {method} {path}"})

    def _send_json(self, status: int, data: dict[str, object]) -> None:
        """Serialize *data* to JSON and send an HTTP response with *status*."""
        body = json.dumps(data, default=str).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _read_json_body(self) -> dict[str, object] | None:
        """Read and parse the JSON request body.

        Returns None (and sends a 400 error response) if parsing fails.
        """
        content_length = int(self.headers.get("Content-Length", 0))
        if content_length == 0:
            return {}

        raw = self.rfile.read(content_length)
        try:
            parsed = json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            self._send_json(400, {"error": "Invalid JSON", "detail": str(exc)})
            return None
        if not isinstance(parsed, dict):
            self._send_json(400, {"error": "Invalid JSON", "detail": "Body must be an object."})
            return None
        return parsed


def _unquote(segment: str) -> str:
    return urllib.parse.unquote(segment)


def create_server(
    orchestrator: IssuanceOrchestrator,
    host: str = "0.0.0.0",
    port: int = 8080,
) -> HTTPServer:
    """Create (but do not start) the credential-issuance HTTP server.

    Parameters
    ----------
    orchestrator:
        The orchestrator every route delegates to.
    host:
        Bind address (default ``"0.0.0.0"``, all interfaces).
    port:
        TCP port to listen on (default 8080).
    """
    routes.configure(orchestrator)
    server = HTTPServer((host, port), IssuanceRequestHandler)
    logger.info("credential-issuance server created at http://%s:%d", host, port)
    return server


def run_server(
    orchestrator: IssuanceOrchestrator,
    host: str = "0.0.0.0",
    port: int = 8080,
) -> None:
    """Create and run the server (blocking)."""
    server = create_server(orchestrator, host=host, port=port)
    logger.info(
        "Serving credential-issuance on http://%s:%d, backend %s",
        host,
        port,
        orchestrator.client.config.base_url,
    )
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down credential-issuance server.")
    finally:
        server.server_close()


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="credential-issuance HTTP server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    parser.add_argument("--port", type=int, default=8080, help="TCP port")
    parser.add_argument("--config", default=None, help="JSON configuration file")
    parser.add_argument("--base-url", default=None, help="Issuance backend base URL")
    parser.add_argument("--client-secret", default=None, help="Backend client secret")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser


if __name__ == "__main__":
    args = _build_arg_parser().parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level))
    config = load_config(
        args.config, base_url=args.base_url, client_secret=args.client_secret
    )
    with BackendClient(config) as backend:
        run_server(IssuanceOrchestrator(backend), host=args.host, port=args.port)
