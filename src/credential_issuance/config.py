"""IssuerApiConfig — connection settings for the issuance backend.

The configuration is a plain value that is passed explicitly into
:class:`~credential_issuance.transport.client.BackendClient`; nothing in
this package reads it from a global.

Sources, lowest to highest precedence:

1. Field defaults.
2. A JSON configuration file (:meth:`IssuerApiConfig.from_file`).
3. Environment variables:

   ============================  =====================
   Variable                      Field
   ============================  =====================
   ``ISSUER_API_BASE_URL``       ``base_url``
   ``ISSUER_API_CLIENT_SECRET``  ``client_secret``
   ``ISSUER_API_TIMEOUT``        ``timeout``
   ``ISSUER_API_READ_RETRIES``   ``read_retries``
   ============================  =====================

4. Explicit keyword overrides passed to :func:`load_config`.

Example configuration file::

    {
        "base_url": "https://issuer.example.com/api/v1",
        "client_secret": "s3cret",
        "timeout": 5,
        "schema_templates": {
            "validator": {
                "name": "Validator Credential",
                "type": "ValidatorCredential",
                "properties": {"validatorAddress": {"title": "Validator Address"}},
                "requiredFields": ["validatorAddress"]
            }
        }
    }
"""
from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator

from credential_issuance.schemas.models import VALIDATOR_TEMPLATE, SchemaTemplate

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8080/api/v1"
DEFAULT_TIMEOUT = 10.0

_ENV_FIELDS: dict[str, str] = {
    "ISSUER_API_BASE_URL": "base_url",
    "ISSUER_API_CLIENT_SECRET": "client_secret",
    "ISSUER_API_TIMEOUT": "timeout",
    "ISSUER_API_READ_RETRIES": "read_retries",
}


def _default_templates() -> dict[str, SchemaTemplate]:
    return {"validator": VALIDATOR_TEMPLATE.model_copy(deep=True)}


class IssuerApiConfig(BaseModel):
    """Settings for talking to the issuance backend.

    Parameters
    ----------
    base_url:
        Root URL of the backend API; every endpoint path is relative to it.
    client_secret:
        Shared secret sent as ``x-client-secret`` on authenticated calls.
    timeout:
        Per-request timeout in seconds.
    read_retries:
        How many times an idempotent GET is retried after a transport
        failure. Writes are never retried.
    schema_templates:
        Named schema templates available to
        :meth:`SchemaRegistryClient.ensure_template`.
    """

    base_url: str = DEFAULT_BASE_URL
    client_secret: SecretStr = SecretStr("")
    timeout: float = DEFAULT_TIMEOUT
    read_retries: int = 0
    schema_templates: dict[str, SchemaTemplate] = Field(default_factory=_default_templates)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {value!r}.")
        return value.rstrip("/")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be positive.")
        return value

    @field_validator("read_retries")
    @classmethod
    def validate_read_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("read_retries must not be negative.")
        return value

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_file(cls, path: Path | str) -> "IssuerApiConfig":
        """Load configuration from a JSON file."""
        return cls.model_validate(_read_json(Path(path)))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "IssuerApiConfig":
        """Load configuration from environment variables only."""
        return cls.model_validate(_env_values(environ))

    def template(self, key: str) -> SchemaTemplate:
        """Return the schema template registered under *key*.

        Raises
        ------
        KeyError
            If no template has that key.
        """
        try:
            return self.schema_templates[key]
        except KeyError:
            raise KeyError(
                f"No schema template named {key!r}. "
                f"Known templates: {sorted(self.schema_templates)}"
            ) from None


def load_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> IssuerApiConfig:
    """Build an :class:`IssuerApiConfig` from file, environment, and overrides.

    ``None`` overrides are ignored so that unset CLI options do not mask
    file or environment values.
    """
    values: dict[str, Any] = {}
    if path is not None:
        values.update(_read_json(Path(path)))
        logger.debug("Loaded issuer configuration from %s", path)
    values.update(_env_values(environ))
    values.update({k: v for k, v in overrides.items() if v is not None})
    return IssuerApiConfig.model_validate(values)


def _read_json(path: Path) -> dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a JSON object.")
    return data


def _env_values(environ: Mapping[str, str] | None) -> dict[str, str]:
    source = os.environ if environ is None else environ
    return {field: source[var] for var, field in _ENV_FIELDS.items() if source.get(var)}


__all__ = ["DEFAULT_BASE_URL", "DEFAULT_TIMEOUT", "IssuerApiConfig", "load_config"]
