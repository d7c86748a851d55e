"""Tests for credential_issuance.config — IssuerApiConfig and load_config."""
from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from credential_issuance.config import DEFAULT_BASE_URL, IssuerApiConfig, load_config
from credential_issuance.schemas.models import VALIDATOR_CREDENTIAL_TYPE


# ---------------------------------------------------------------------------
# IssuerApiConfig
# ---------------------------------------------------------------------------


class TestIssuerApiConfig:
    def test_defaults(self) -> None:
        config = IssuerApiConfig()
        assert config.base_url == DEFAULT_BASE_URL
        assert config.client_secret.get_secret_value() == ""
        assert config.timeout == 10.0
        assert config.read_retries == 0

    def test_strips_trailing_slash(self) -> None:
        config = IssuerApiConfig(base_url="https://issuer.example.com/api/v1/")
        assert config.base_url == "https://issuer.example.com/api/v1"

    def test_rejects_non_http_url(self) -> None:
        with pytest.raises(PydanticValidationError):
            IssuerApiConfig(base_url="ftp://issuer.example.com")

    def test_rejects_non_positive_timeout(self) -> None:
        with pytest.raises(PydanticValidationError):
            IssuerApiConfig(timeout=0)

    def test_rejects_negative_retries(self) -> None:
        with pytest.raises(PydanticValidationError):
            IssuerApiConfig(read_retries=-1)

    def test_secret_hidden_in_repr(self) -> None:
        config = IssuerApiConfig(client_secret="hunter2")
        assert "hunter2" not in repr(config)

    def test_validator_template_by_default(self) -> None:
        template = IssuerApiConfig().template("validator")
        assert template.type == VALIDATOR_CREDENTIAL_TYPE
        assert template.required_fields == ["validatorAddress", "networkId"]

    def test_unknown_template_raises_key_error(self) -> None:
        with pytest.raises(KeyError):
            IssuerApiConfig().template("missing")

    def test_templates_are_not_shared_between_instances(self) -> None:
        first = IssuerApiConfig()
        first.schema_templates["validator"].required_fields.append("validatorName")
        assert "validatorName" not in IssuerApiConfig().template("validator").required_fields


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "issuer.json"
        path.write_text(
            json.dumps(
                {
                    "base_url": "https://file.example.com/api",
                    "client_secret": "from-file",
                    "schema_templates": {
                        "membership": {
                            "name": "Membership",
                            "type": "Membership",
                            "properties": {"memberId": {"title": "Member ID"}},
                            "requiredFields": ["memberId"],
                        }
                    },
                }
            ),
            encoding="utf-8",
        )
        config = IssuerApiConfig.from_file(path)
        assert config.base_url == "https://file.example.com/api"
        assert config.template("membership").required_fields == ["memberId"]

    def test_file_template_with_undeclared_required_field_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "issuer.json"
        path.write_text(
            json.dumps(
                {
                    "schema_templates": {
                        "broken": {
                            "name": "Broken",
                            "type": "Broken",
                            "properties": {},
                            "requiredFields": ["ghost"],
                        }
                    }
                }
            ),
            encoding="utf-8",
        )
        with pytest.raises(PydanticValidationError):
            IssuerApiConfig.from_file(path)

    def test_file_must_hold_object(self, tmp_path: Path) -> None:
        path = tmp_path / "issuer.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(path, environ={})

    def test_from_env(self) -> None:
        config = IssuerApiConfig.from_env(
            {
                "ISSUER_API_BASE_URL": "https://env.example.com",
                "ISSUER_API_CLIENT_SECRET": "from-env",
                "ISSUER_API_TIMEOUT": "2.5",
                "ISSUER_API_READ_RETRIES": "3",
            }
        )
        assert config.base_url == "https://env.example.com"
        assert config.client_secret.get_secret_value() == "from-env"
        assert config.timeout == 2.5
        assert config.read_retries == 3

    def test_precedence_file_env_override(self, tmp_path: Path) -> None:
        path = tmp_path / "issuer.json"
        path.write_text(
            json.dumps({"base_url": "https://file.example.com", "client_secret": "file", "timeout": 4}),
            encoding="utf-8",
        )
        config = load_config(
            path,
            environ={"ISSUER_API_CLIENT_SECRET": "env", "ISSUER_API_TIMEOUT": "6"},
            timeout=8,
        )
        assert config.base_url == "https://file.example.com"
        assert config.client_secret.get_secret_value() == "env"
        assert config.timeout == 8

    def test_none_overrides_are_ignored(self) -> None:
        config = load_config(
            environ={"ISSUER_API_BASE_URL": "https://env.example.com"}, base_url=None
        )
        assert config.base_url == "https://env.example.com"

    def test_empty_env_values_are_ignored(self) -> None:
        config = load_config(environ={"ISSUER_API_BASE_URL": ""})
        assert config.base_url == DEFAULT_BASE_URL
