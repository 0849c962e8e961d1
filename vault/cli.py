"""
Command-line entrypoint: count or delete Vault data.

  vault-data-tools --action COUNT --datatype ALL --vault-dns myvault.veevavault.com \
      --username me@example.com --password ...

  vault-data-tools --action DELETE --datatype OBJECTS --exclude SYSTEM,APPLICATION \
      --input objects.csv --session-id ...

Credentials not given on the command line are read from the Secrets Manager
secret named by --secret-id (or VAULT_SECRET_ID).
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional, Sequence

import requests

from vault.client.api import VaultApiError
from vault.client.session import get_vault_client
from vault.core.config import get_settings
from vault.core.logging import configure_logging, get_logger
from vault.core.options import Action, ConfigurationError, DataToolOptions
from vault.etl.cleanup_vault import DeleteVaultData, console_confirm
from vault.etl.count_vault import CountVaultData

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="vault-data-tools",
        description="Count or delete object records and documents in a sandbox Vault.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--action", help="COUNT or DELETE")
    parser.add_argument("--datatype", help="ALL, OBJECTS or DOCUMENTS")
    parser.add_argument(
        "--exclude",
        action="append",
        help="Object sources to skip: SYSTEM, STANDARD, CUSTOM, APPLICATION (comma-separated or repeated)",
    )
    parser.add_argument("--input", help="CSV manifest restricting which types/records are processed")
    parser.add_argument("--vault-dns", help="e.g. myvault.veevavault.com")
    parser.add_argument("--username")
    parser.add_argument("--password")
    parser.add_argument("--session-id")
    parser.add_argument("--secret-id", help="Secrets Manager SecretId holding Vault credentials")
    parser.add_argument("--output-dir", default=settings.output_dir)
    parser.add_argument("--log-level", default=settings.log_level)
    return parser


def run(args: argparse.Namespace, confirm=console_confirm) -> List:
    options = DataToolOptions.from_values(
        action=args.action,
        data_type=args.datatype,
        excludes=args.exclude,
        input_path=args.input,
    )
    if options.input_path is not None and not options.input_path.exists():
        raise ConfigurationError(f"File does not exist [{options.input_path}]")

    client = get_vault_client(
        vault_dns=args.vault_dns,
        username=args.username,
        password=args.password,
        session_id=args.session_id,
        secret_id=args.secret_id,
    )

    if options.action == Action.COUNT:
        return CountVaultData(client, options, output_dir=args.output_dir).run()

    output = DeleteVaultData(client, options, confirm=confirm, output_dir=args.output_dir).run()
    return [output] if output is not None else []


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level.upper(), get_settings().log_format)

    try:
        run(args)
    except ConfigurationError as e:
        logger.error("%s", e)
        return 1
    except (VaultApiError, requests.RequestException) as e:
        logger.error("Vault request failed: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
