#!/usr/bin/env python3
"""Example: Validator Offering

Creates an open ValidatorCredential offering, registering the bundled
validator schema template first if the backend does not know the type yet.
The printed offering URL is what a wallet-facing page would render as a QR
code.

Usage:
    python examples/02_validator_offering.py 0xValidatorAddress [network]

Requirements:
    pip install credential-issuance
"""
from __future__ import annotations

import sys

from credential_issuance import BackendClient, IssuanceOrchestrator, load_config


def main() -> None:
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(2)
    address = sys.argv[1]
    network = sys.argv[2] if len(sys.argv) > 2 else "mainnet"

    with BackendClient(load_config()) as backend:
        orchestrator = IssuanceOrchestrator(backend)
        offering = orchestrator.create_validator_offering(
            address, network_id=network, ensure_schema=True
        )

    print(f"Offering ID:  {offering.id}")
    print(f"Offering URL: {offering.url}")


if __name__ == "__main__":
    main()
