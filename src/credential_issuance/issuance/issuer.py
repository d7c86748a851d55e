"""CredentialIssuer — token exchange and credential redemption.

Token exchange carries no client secret: it is the public code-exchange
step of the protocol. Redemption authenticates with the bearer access
token only. Neither call is ever retried, because codes and tokens are
single-use and a blind retry after an ambiguous failure would report a
spurious ``InvalidCode`` or ``AlreadyClaimed``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from credential_issuance.auth.models import AccessToken, AuthorizationCode, first_string
from credential_issuance.errors import (
    AlreadyClaimed,
    CodeExpired,
    FlowStep,
    Forbidden,
    InvalidCode,
    NotFound,
    RemoteError,
    Unauthorized,
    ValidationError,
)
from credential_issuance.transport.client import BackendClient, path_segment

logger = logging.getLogger(__name__)

_TOKEN_STATUS_ERRORS = {
    400: InvalidCode,
    401: InvalidCode,
    410: CodeExpired,
}

_ISSUE_STATUS_ERRORS = {
    401: Unauthorized,
    403: Forbidden,
    404: NotFound,
    409: AlreadyClaimed,
}


@dataclass(frozen=True)
class IssuedCredential:
    """The credential minted by the backend.

    The document's structure is backend-defined and kept as-is.
    """

    offering_id: str
    document: Any = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        return {"offering_id": self.offering_id, "credential": self.document}


class CredentialIssuer:
    """Exchange authorization codes for tokens and redeem offerings.

    Parameters
    ----------
    client:
        The shared backend transport.
    """

    def __init__(self, client: BackendClient) -> None:
        self._client = client

    def exchange_token(self, authorization_code: AuthorizationCode | str) -> AccessToken:
        """Redeem an authorization code for an access token.

        Raises
        ------
        InvalidCode
            If the backend rejects the code.
        CodeExpired
            If the code is stale.
        """
        step = FlowStep.TOKEN_EXCHANGE
        code = (
            authorization_code.code
            if isinstance(authorization_code, AuthorizationCode)
            else authorization_code
        )
        if not code:
            raise ValidationError("Authorization code is required.", step=step)

        data = self._client.request(
            "POST",
            "connect/token",
            step=step,
            authenticated=False,
            json={"authorization_code": code},
            status_errors=_TOKEN_STATUS_ERRORS,
        )
        token = first_string(data, "access_token", "accessToken") if isinstance(data, dict) else None
        if token is None:
            raise RemoteError("Token response carries no access token.", step=step)

        logger.info("Authorization code exchanged for access token")
        return AccessToken(
            access_token=token,
            token_type=first_string(data, "token_type") or "Bearer",
            expires_in=_int_or_none(data.get("expires_in")),
            raw=data,
        )

    def issue(self, offering_id: str, access_token: AccessToken | str) -> IssuedCredential:
        """Redeem *offering_id* and return the minted credential.

        Raises
        ------
        Unauthorized
            Bad or expired token.
        Forbidden
            The token's identity is not the recipient of a targeted offering.
        AlreadyClaimed
            The offering was redeemed before.
        NotFound
            Unknown offering id.
        """
        step = FlowStep.CREDENTIAL_ISSUANCE
        token = access_token.access_token if isinstance(access_token, AccessToken) else access_token
        if not offering_id or not token:
            raise ValidationError("Offering ID and access token are required.", step=step)

        data = self._client.request(
            "POST",
            f"issue-credential/{path_segment(offering_id, step=step)}",
            step=step,
            bearer=token,
            status_errors=_ISSUE_STATUS_ERRORS,
        )
        if data is None:
            raise RemoteError("Issuance response carries no credential.", step=step)
        logger.info("Credential issued for offering %s", offering_id)
        return IssuedCredential(offering_id=offering_id, document=data)


def _int_or_none(value: object) -> int | None:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


__all__ = ["CredentialIssuer", "IssuedCredential"]
