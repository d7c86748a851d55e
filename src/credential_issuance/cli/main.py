"""CLI entry point for credential-issuance.

Invoked as::

    credential-issuance [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m credential_issuance.cli.main

Commands
--------
schema list|get|create|delete|latest|ensure-template
                    Manage credential schemas
offering create     Create a targeted or open offering
offering validator  Create an open validator offering
auth initiate       Request a challenge for a DID
auth verify         Submit a signed challenge
token exchange      Exchange an authorization code for an access token
credential issue    Redeem an offering with an access token
credential validate Have the backend validate a presented credential
keys generate       Generate a did:key signing key
keys sign           Sign a challenge with a did:key private key
issue               Run the full offer -> authenticate -> issue flow
"""
from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from credential_issuance import __version__
from credential_issuance.audit import IssuanceAuditLogger
from credential_issuance.auth.authenticator import DIDAuthenticator
from credential_issuance.config import load_config
from credential_issuance.did.did_key import DIDKeySigner
from credential_issuance.errors import IssuanceError
from credential_issuance.issuance.orchestrator import IssuanceOrchestrator
from credential_issuance.offerings.builder import Offering
from credential_issuance.transport.client import BackendClient

console = Console()


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="credential-issuance")
@click.option("--base-url", default=None, help="Issuance backend base URL.")
@click.option("--client-secret", default=None, help="Backend client secret.")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to a JSON configuration file.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
@click.pass_context
def cli(
    ctx: click.Context,
    base_url: str | None,
    client_secret: str | None,
    config_file: str | None,
    verbose: bool,
) -> None:
    """Create schemas and offerings and issue verifiable credentials."""
    ctx.ensure_object(dict)
    ctx.obj.update(
        {"base_url": base_url, "client_secret": client_secret, "config_file": config_file}
    )
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    console.print(f"[bold]credential-issuance[/bold] v{__version__}")


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _orchestrator(ctx: click.Context, audit_log: str | None = None) -> IssuanceOrchestrator:
    """Build an orchestrator whose backend client is closed with the context."""
    obj = ctx.find_object(dict) or {}
    try:
        config = load_config(
            obj.get("config_file"),
            base_url=obj.get("base_url"),
            client_secret=obj.get("client_secret"),
        )
    except (OSError, ValueError) as exc:
        console.print(f"[red]Error:[/red] invalid configuration: {escape(str(exc))}")
        sys.exit(1)

    backend = ctx.with_resource(BackendClient(config, http_client=obj.get("http_client")))
    audit = IssuanceAuditLogger(Path(audit_log)) if audit_log else None
    return IssuanceOrchestrator(backend, audit=audit)


@contextmanager
def _reporting_errors() -> Iterator[None]:
    try:
        yield
    except IssuanceError as exc:
        step = f" [{exc.step.value}]" if exc.step is not None else ""
        console.print(f"[red]Error{escape(step)}:[/red] {escape(exc.message)}")
        sys.exit(1)


def _parse_subject(subject: str) -> dict[str, Any]:
    try:
        parsed = json.loads(subject)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Error:[/red] --subject is not valid JSON: {escape(str(exc))}")
        sys.exit(1)
    if not isinstance(parsed, dict):
        console.print("[red]Error:[/red] --subject must be a JSON object.")
        sys.exit(1)
    return parsed


def _print_offering(offering: Offering) -> None:
    kind = "targeted" if offering.is_targeted else "open"
    console.print(f"[green]Created[/green] {kind} offering [bold]{offering.id}[/bold]")
    console.print(f"  Type:      {offering.credential_type}")
    if offering.recipient_did:
        console.print(f"  Recipient: {offering.recipient_did}")
    if offering.url:
        console.print(f"  URL:       {offering.url}")


# ------------------------------------------------------------------
# schema command group
# ------------------------------------------------------------------


@cli.group(name="schema")
def schema_group() -> None:
    """Manage credential schemas."""


@schema_group.command(name="list")
@click.pass_context
def schema_list_command(ctx: click.Context) -> None:
    """List every schema known to the backend."""
    orchestrator = _orchestrator(ctx)
    with _reporting_errors():
        schemas = orchestrator.schemas.get_all()

    if not schemas:
        console.print("[yellow]No schemas registered.[/yellow]")
        return

    table = Table(title="Schemas", show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Version", justify="right")
    table.add_column("Name")
    table.add_column("Required")
    for schema in sorted(schemas, key=lambda s: (s.type, s.version)):
        table.add_row(
            schema.id,
            schema.type,
            str(schema.version),
            schema.name,
            ", ".join(schema.required_fields) or "-",
        )
    console.print(table)


@schema_group.command(name="get")
@click.argument("schema_id")
@click.pass_context
def schema_get_command(ctx: click.Context, schema_id: str) -> None:
    """Show the schema with SCHEMA_ID."""
    orchestrator = _orchestrator(ctx)
    with _reporting_errors():
        schema = orchestrator.schemas.get_by_id(schema_id)
    console.print_json(data=schema.to_wire())


@schema_group.command(name="create")
@click.argument("name")
@click.argument("schema_type")
@click.option(
    "--property",
    "-p",
    "properties",
    multiple=True,
    required=True,
    help="Property as NAME or NAME:TYPE (repeatable, e.g. -p seat -p row:integer).",
)
@click.option(
    "--required",
    "-r",
    multiple=True,
    help="Required property name (repeatable).",
)
@click.pass_context
def schema_create_command(
    ctx: click.Context,
    name: str,
    schema_type: str,
    properties: tuple[str, ...],
    required: tuple[str, ...],
) -> None:
    """Create a schema NAME describing credentials of SCHEMA_TYPE."""
    descriptors: dict[str, dict[str, Any]] = {}
    for item in properties:
        prop_name, _, prop_type = item.partition(":")
        descriptors[prop_name] = {"type": prop_type or "string", "title": prop_name}

    orchestrator = _orchestrator(ctx)
    with _reporting_errors():
        schema = orchestrator.schemas.create(name, schema_type, descriptors, list(required))

    console.print(f"[green]Created[/green] schema [bold]{schema.id}[/bold]")
    console.print(f"  Type:     {schema.type}")
    console.print(f"  Version:  {schema.version}")
    console.print(f"  Required: {', '.join(schema.required_fields) or '(none)'}")


@schema_group.command(name="delete")
@click.argument("schema_id")
@click.pass_context
def schema_delete_command(ctx: click.Context, schema_id: str) -> None:
    """Delete the schema with SCHEMA_ID."""
    orchestrator = _orchestrator(ctx)
    with _reporting_errors():
        orchestrator.schemas.delete(schema_id)
    console.print(f"[green]Deleted[/green] schema {schema_id}")


@schema_group.command(name="latest")
@click.argument("schema_type")
@click.pass_context
def schema_latest_command(ctx: click.Context, schema_type: str) -> None:
    """Show the latest version of the schemas of SCHEMA_TYPE."""
    orchestrator = _orchestrator(ctx)
    with _reporting_errors():
        schema = orchestrator.schemas.resolve_latest(schema_type)

    if schema is None:
        console.print(f"[red]Error:[/red] no schema of type {schema_type!r} exists.")
        sys.exit(1)
    console.print_json(data=schema.to_wire())


@schema_group.command(name="ensure-template")
@click.argument("template_key", default="validator")
@click.pass_context
def schema_ensure_template_command(ctx: click.Context, template_key: str) -> None:
    """Register the configured template TEMPLATE_KEY unless its type exists."""
    orchestrator = _orchestrator(ctx)
    try:
        template = orchestrator.client.config.template(template_key)
    except KeyError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc.args[0]))}")
        sys.exit(1)

    with _reporting_errors():
        schema = orchestrator.schemas.ensure_template(template)
    console.print(
        f"Schema [bold]{schema.id}[/bold] (type {schema.type}, version {schema.version}) is available."
    )


# ------------------------------------------------------------------
# offering command group
# ------------------------------------------------------------------


@cli.group(name="offering")
def offering_group() -> None:
    """Create credential offerings."""


@offering_group.command(name="create")
@click.argument("credential_type")
@click.option("--subject", "-s", required=True, help="credentialSubject as a JSON object.")
@click.option("--recipient", default=None, help="Recipient DID; omit for an open offering.")
@click.option(
    "--check-schema/--no-check-schema",
    default=True,
    show_default=True,
    help="Confirm the credential type exists before creating the offering.",
)
@click.pass_context
def offering_create_command(
    ctx: click.Context,
    credential_type: str,
    subject: str,
    recipient: str | None,
    check_schema: bool,
) -> None:
    """Create an offering of CREDENTIAL_TYPE."""
    parsed_subject = _parse_subject(subject)
    orchestrator = _orchestrator(ctx)
    with _reporting_errors():
        offering = orchestrator.create_offering(
            credential_type, parsed_subject, recipient, check_schema=check_schema
        )
    _print_offering(offering)


@offering_group.command(name="validator")
@click.argument("validator_address")
@click.option("--name", "validator_name", default=None, help="Validator node name.")
@click.option("--network", "network_id", default="mainnet", show_default=True, help="Network ID.")
@click.option(
    "--ensure-schema",
    is_flag=True,
    default=False,
    help="Register the validator schema template first if it is missing.",
)
@click.pass_context
def offering_validator_command(
    ctx: click.Context,
    validator_address: str,
    validator_name: str | None,
    network_id: str,
    ensure_schema: bool,
) -> None:
    """Create an open validator credential offering for VALIDATOR_ADDRESS."""
    orchestrator = _orchestrator(ctx)
    with _reporting_errors():
        offering = orchestrator.create_validator_offering(
            validator_address,
            validator_name=validator_name,
            network_id=network_id,
            ensure_schema=ensure_schema,
        )
    _print_offering(offering)


# ------------------------------------------------------------------
# auth / token / credential command groups
# ------------------------------------------------------------------


@cli.group(name="auth")
def auth_group() -> None:
    """Prove control of a DID."""


@auth_group.command(name="initiate")
@click.argument("did")
@click.pass_context
def auth_initiate_command(ctx: click.Context, did: str) -> None:
    """Request a challenge for DID."""
    orchestrator = _orchestrator(ctx)
    with _reporting_errors():
        challenge = orchestrator.authenticator().initiate(did)
    console.print(f"Challenge for {did}:")
    click.echo(challenge.challenge)


@auth_group.command(name="verify")
@click.argument("did")
@click.argument("challenge")
@click.argument("signature")
@click.pass_context
def auth_verify_command(ctx: click.Context, did: str, challenge: str, signature: str) -> None:
    """Submit SIGNATURE over CHALLENGE issued for DID."""
    orchestrator = _orchestrator(ctx)
    with _reporting_errors():
        authenticator = DIDAuthenticator.resume(orchestrator.client, did, challenge)
        code = authenticator.verify(challenge, signature)
    console.print(f"[green]Verified[/green] {did}. Authorization code:")
    click.echo(code.code)


@cli.group(name="token")
def token_group() -> None:
    """Exchange authorization codes."""


@token_group.command(name="exchange")
@click.argument("code")
@click.pass_context
def token_exchange_command(ctx: click.Context, code: str) -> None:
    """Exchange the authorization CODE for an access token."""
    orchestrator = _orchestrator(ctx)
    with _reporting_errors():
        token = orchestrator.issuer.exchange_token(code)
    expiry = f" (expires in {token.expires_in}s)" if token.expires_in is not None else ""
    console.print(f"{token.token_type} access token{expiry}:")
    click.echo(token.access_token)


@cli.group(name="credential")
def credential_group() -> None:
    """Redeem offerings and validate credentials."""


@credential_group.command(name="issue")
@click.argument("offering_id")
@click.argument("access_token")
@click.pass_context
def credential_issue_command(ctx: click.Context, offering_id: str, access_token: str) -> None:
    """Redeem OFFERING_ID with ACCESS_TOKEN and print the credential."""
    orchestrator = _orchestrator(ctx)
    with _reporting_errors():
        credential = orchestrator.issuer.issue(offering_id, access_token)
    console.print_json(data=credential.to_dict())


@credential_group.command(name="validate")
@click.argument("credential_file", type=click.File("r"))
@click.pass_context
def credential_validate_command(ctx: click.Context, credential_file: Any) -> None:
    """Validate the credential in CREDENTIAL_FILE (use - for stdin).

    The file may hold the credential itself or the output of
    ``credential issue``. Exits 1 when the backend judges it invalid.
    """
    try:
        document = json.load(credential_file)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Error:[/red] credential is not valid JSON: {escape(str(exc))}")
        sys.exit(1)
    if isinstance(document, dict) and isinstance(document.get("credential"), dict):
        document = document["credential"]

    orchestrator = _orchestrator(ctx)
    with _reporting_errors():
        result = orchestrator.validate_credential(document)

    if result.valid is None:
        console.print("[yellow]Backend returned no verdict[/yellow]")
    elif result.valid:
        console.print("[green]Credential is valid[/green]")
    else:
        console.print("[red]Credential is not valid[/red]")
    console.print_json(data=result.document)
    if result.valid is False:
        sys.exit(1)


# ------------------------------------------------------------------
# keys command group
# ------------------------------------------------------------------


@cli.group(name="keys")
def keys_group() -> None:
    """Manage did:key signing keys."""


@keys_group.command(name="generate")
@click.option(
    "--output",
    type=click.Path(),
    default=None,
    help="Write the hex private key to this file path.",
)
def keys_generate_command(output: str | None) -> None:
    """Generate an Ed25519 key and print its did:key."""
    signer = DIDKeySigner.generate()
    console.print(f"  DID:         {signer.did}")
    if output:
        Path(output).write_text(signer.private_key_hex + "\n", encoding="utf-8")
        console.print(f"  Private key: [green]written to[/green] {output}")
    else:
        console.print(f"  Private key: {signer.private_key_hex}")


@keys_group.command(name="sign")
@click.argument("private_key_hex")
@click.argument("challenge")
def keys_sign_command(private_key_hex: str, challenge: str) -> None:
    """Sign CHALLENGE with PRIVATE_KEY_HEX and print the signature."""
    signer = _load_signer(private_key_hex)
    click.echo(signer.sign_challenge(challenge))


def _load_signer(private_key_hex: str) -> DIDKeySigner:
    try:
        return DIDKeySigner.from_hex(private_key_hex)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] invalid private key: {escape(str(exc))}")
        sys.exit(1)


# ------------------------------------------------------------------
# issue (full flow)
# ------------------------------------------------------------------


@cli.command(name="issue")
@click.option("--type", "credential_type", required=True, help="Credential type.")
@click.option("--subject", "-s", required=True, help="credentialSubject as a JSON object.")
@click.option(
    "--key",
    "private_key_hex",
    required=True,
    help="Hex Ed25519 private key of the recipient's did:key.",
)
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Check the subject against the latest schema's required fields.",
)
@click.option(
    "--audit-log",
    type=click.Path(),
    default=None,
    help="Append JSONL audit events to this file.",
)
@click.pass_context
def issue_command(
    ctx: click.Context,
    credential_type: str,
    subject: str,
    private_key_hex: str,
    strict: bool,
    audit_log: str | None,
) -> None:
    """Offer, authenticate, and issue a credential to the key's did:key."""
    parsed_subject = _parse_subject(subject)
    signer = _load_signer(private_key_hex)
    orchestrator = _orchestrator(ctx, audit_log=audit_log)

    with _reporting_errors():
        credential = orchestrator.issue_to_recipient(
            credential_type,
            parsed_subject,
            signer.did,
            signer.sign_challenge,
            strict=strict,
        )

    console.print(f"[green]Issued[/green] {credential_type} to {signer.did}")
    console.print_json(data=credential.to_dict())


if __name__ == "__main__":
    cli()
