#!/usr/bin/env python3
"""Example: Quickstart

Registers an EventTicket schema and issues a ticket to a freshly generated
did:key recipient, running the whole offer -> authenticate -> issue flow.

Usage:
    ISSUER_API_BASE_URL=https://issuer.example.com/api/v1 \\
    ISSUER_API_CLIENT_SECRET=... python examples/01_quickstart.py

Requirements:
    pip install credential-issuance
"""
from __future__ import annotations

import logging

import credential_issuance
from credential_issuance import (
    BackendClient,
    DIDKeySigner,
    IssuanceError,
    IssuanceOrchestrator,
    load_config,
)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    print(f"credential-issuance version: {credential_issuance.__version__}")

    # Step 1: The recipient's identity. In practice the holder's wallet owns the key.
    signer = DIDKeySigner.generate()
    print(f"Recipient DID: {signer.did}")

    with BackendClient(load_config()) as backend:
        orchestrator = IssuanceOrchestrator(backend)

        # Step 2: Make sure the credential type exists
        if orchestrator.schemas.resolve_latest("EventTicket") is None:
            schema = orchestrator.schemas.create(
                "Event Ticket",
                "EventTicket",
                {"seat": {"type": "string", "title": "Seat"}},
                ["seat"],
            )
            print(f"Registered schema {schema.id} (version {schema.version})")

        # Step 3: Offer, authenticate, and issue
        try:
            credential = orchestrator.issue_to_recipient(
                "EventTicket", {"seat": "A12"}, signer.did, signer.sign_challenge
            )
        except IssuanceError as exc:
            print(f"Issuance failed: {exc}")
            return

        print(f"Issued credential for offering {credential.offering_id}")
        print(credential.document)

        # Step 4: Ask the backend to validate what was issued
        result = orchestrator.validate_credential(credential)
        print(f"Backend verdict: valid={result.valid}")


if __name__ == "__main__":
    main()
