"""BackendClient — the single HTTP transport to the issuance backend.

All components share one :class:`BackendClient`. It owns the
:class:`httpx.Client`, adds the authentication header each call needs, and
turns every non-success outcome into an
:class:`~credential_issuance.errors.IssuanceError` subclass.

Error mapping
-------------
The first matching rule wins:

1. Transport failure (connection error, timeout) -> ``RemoteError``.
2. A machine-readable code in the response body (``code`` or ``error``
   field), e.g. ``"challenge_expired"`` -> the matching error class.
3. The per-call ``status_errors`` table.
4. The default status table (400/422, 401, 403, 404).
5. Any other non-2xx status -> ``RemoteError``.

A 2xx response whose body is not JSON is also a ``RemoteError``.
"""
from __future__ import annotations

import logging
import urllib.parse
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx

from credential_issuance.errors import (
    AlreadyClaimed,
    ChallengeConsumed,
    ChallengeExpired,
    CodeExpired,
    FlowStep,
    Forbidden,
    InvalidCode,
    InvalidSignature,
    IssuanceError,
    NotFound,
    RemoteError,
    Unauthorized,
    ValidationError,
)

if TYPE_CHECKING:
    from credential_issuance.config import IssuerApiConfig

logger = logging.getLogger(__name__)

CLIENT_SECRET_HEADER = "x-client-secret"

StatusErrors = Mapping[int, type[IssuanceError]]

_ERROR_CODES: dict[str, type[IssuanceError]] = {
    "validation_error": ValidationError,
    "not_found": NotFound,
    "invalid_signature": InvalidSignature,
    "challenge_expired": ChallengeExpired,
    "challenge_consumed": ChallengeConsumed,
    "invalid_code": InvalidCode,
    "invalid_grant": InvalidCode,
    "code_expired": CodeExpired,
    "unauthorized": Unauthorized,
    "forbidden": Forbidden,
    "already_claimed": AlreadyClaimed,
}

_DEFAULT_STATUS_ERRORS: dict[int, type[IssuanceError]] = {
    400: ValidationError,
    401: Unauthorized,
    403: Forbidden,
    404: NotFound,
    422: ValidationError,
}


class BackendClient:
    """Synchronous JSON client for the issuance backend.

    Parameters
    ----------
    config:
        Connection settings (base URL, client secret, timeout, retries).
    http_client:
        Optional pre-built :class:`httpx.Client`. When given, it is used
        as-is (its ``base_url`` must already point at the backend) and is
        not closed by :meth:`close`. Tests pass one backed by
        :class:`httpx.MockTransport`.

    Example
    -------
    ::

        with BackendClient(IssuerApiConfig(base_url="https://issuer/api/v1")) as client:
            schemas = client.request("GET", "schema", step=FlowStep.SCHEMA_MANAGEMENT,
                                     authenticated=False)
    """

    def __init__(
        self,
        config: IssuerApiConfig,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._config = config
        self._owns_client = http_client is None
        self._http: httpx.Client = http_client or httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout,
            headers={"Content-Type": "application/json"},
        )

    @property
    def config(self) -> IssuerApiConfig:
        return self._config

    def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "BackendClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request(
        self,
        method: str,
        path: str,
        *,
        step: FlowStep,
        authenticated: bool = True,
        bearer: str | None = None,
        json: Any = None,
        status_errors: StatusErrors | None = None,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Parameters
        ----------
        method:
            HTTP method.
        path:
            Endpoint path relative to the configured base URL.
        step:
            Flow step used to label any error raised.
        authenticated:
            Send the ``x-client-secret`` header.
        bearer:
            Send ``Authorization: Bearer <bearer>``. Takes the place of the
            client secret.
        json:
            Request body.
        status_errors:
            Per-call overrides mapping HTTP status to an error class.

        Returns
        -------
        Any
            The decoded JSON body, or ``None`` for an empty body.

        Raises
        ------
        IssuanceError
            A subclass chosen by the rules in the module docstring.
        """
        headers: dict[str, str] = {}
        if bearer is not None:
            headers["Authorization"] = f"Bearer {bearer}"
        elif authenticated:
            headers[CLIENT_SECRET_HEADER] = self._config.client_secret.get_secret_value()

        method = method.upper()
        attempts = 1 + (self._config.read_retries if method == "GET" else 0)
        for attempt in range(1, attempts + 1):
            logger.debug("%s %s (attempt %d/%d)", method, path, attempt, attempts)
            try:
                response = self._http.request(method, path, json=json, headers=headers)
                break
            except httpx.TransportError as exc:
                if attempt < attempts:
                    logger.warning(
                        "Transport failure on %s %s, retrying: %s", method, path, exc
                    )
                    continue
                raise RemoteError(
                    f"{method} {path} failed: {exc.__class__.__name__}: {exc}",
                    step=step,
                ) from exc

        return _decode(response, method, path, step, status_errors or {})


# ---------------------------------------------------------------------------
# Response decoding
# ---------------------------------------------------------------------------


def _decode(
    response: httpx.Response,
    method: str,
    path: str,
    step: FlowStep,
    status_errors: StatusErrors,
) -> Any:
    body = _json_or_none(response)

    if response.is_success:
        if not response.content:
            return None
        if body is None:
            raise RemoteError(
                f"{method} {path} returned a non-JSON body.",
                step=step,
                status_code=response.status_code,
            )
        return body

    message, code, details = _error_fields(body, response)
    error_cls = (
        _ERROR_CODES.get(code or "")
        or status_errors.get(response.status_code)
        or _DEFAULT_STATUS_ERRORS.get(response.status_code)
        or RemoteError
    )
    logger.debug(
        "%s %s -> HTTP %d (%s)", method, path, response.status_code, error_cls.__name__
    )
    raise error_cls(message, step=step, status_code=response.status_code, details=details)


def _json_or_none(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def path_segment(value: str, *, step: FlowStep) -> str:
    """Percent-encode *value* for use as one segment of an endpoint path.

    Every reserved character is encoded, so an id can never reach another
    endpoint or add a query string. The dot segments ``.`` and ``..`` are
    rejected because URL normalisation would collapse them.
    """
    if value in (".", ".."):
        raise ValidationError(f"Invalid path segment {value!r}.", step=step)
    return urllib.parse.quote(value, safe="")


def _error_fields(body: Any, response: httpx.Response) -> tuple[str, str | None, object]:
    """Extract ``(message, code, details)`` from an error response."""
    fallback = f"HTTP {response.status_code} {response.reason_phrase}".strip()
    if not isinstance(body, dict):
        return fallback, None, None

    code = body.get("code")
    error = body.get("error")
    message = body.get("message") or body.get("detail")
    if isinstance(error, str):
        if error.lower() in _ERROR_CODES and code is None:
            code = error
        elif message is None:
            message = error
    normalised = code.lower() if isinstance(code, str) else None
    return str(message or error or fallback), normalised, body.get("details")


__all__ = ["BackendClient", "CLIENT_SECRET_HEADER", "path_segment"]
