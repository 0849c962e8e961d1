"""
Helpers for loading Vault credentials from AWS Secrets Manager.

Assumes a secret structure like:

  SecretId: dev/vault-data-tools
  SecretString: {
    "vault": "{ \"VAULT_DNS\": \"myvault.veevavault.com\", ... }"
  }

The "vault" value is itself a JSON string containing the Vault fields.
A secret without a "vault" key is read as the Vault dict directly.
"""

from __future__ import annotations

import json
from typing import Dict, Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from vault.core.config import get_settings
from vault.core.options import ConfigurationError


def _get_secretsmanager_client(region_name: Optional[str] = None):
    return boto3.client("secretsmanager", region_name=region_name or get_settings().aws_region)


def load_raw_secret(secret_id: str, region_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Fetch and parse the raw secret from AWS Secrets Manager.

    Returns the *outer* JSON dict.
    """
    sm = _get_secretsmanager_client(region_name)

    try:
        resp = sm.get_secret_value(SecretId=secret_id)
    except (ClientError, BotoCoreError) as e:
        raise ConfigurationError(f"Could not read secret {secret_id!r}: {e}") from e

    secret_string = resp.get("SecretString")
    if not secret_string:
        raise ConfigurationError(f"Secret {secret_id!r} does not contain a SecretString")

    try:
        outer = json.loads(secret_string)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Secret {secret_id!r} SecretString is not valid JSON") from e

    if not isinstance(outer, dict):
        raise ConfigurationError(f"Secret {secret_id!r} SecretString must decode to a JSON object")

    return outer


def load_vault_raw(secret_id: str, region_name: Optional[str] = None) -> Dict[str, Any]:
    outer = load_raw_secret(secret_id, region_name=region_name)

    if "vault" not in outer:
        return outer

    vault_raw = outer["vault"]
    if isinstance(vault_raw, str):
        try:
            return json.loads(vault_raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError("The 'vault' value is not valid JSON") from e
    if isinstance(vault_raw, dict):
        return vault_raw
    raise ConfigurationError("The 'vault' value must be a JSON string or object")


def get_vault_login_config(secret_id: str, region_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Normalize Vault credentials into a config dict with the keys:
      - vault_dns
      - username
      - password
      - session_id (optional, wins over username/password)
      - api_version (optional)
    """
    raw = load_vault_raw(secret_id, region_name=region_name)

    return {
        "vault_dns": raw.get("VAULT_DNS"),
        "username": raw.get("VAULT_USERNAME"),
        "password": raw.get("VAULT_PASSWORD"),
        "session_id": raw.get("VAULT_SESSION_ID"),
        "api_version": raw.get("VAULT_API_VERSION"),
    }
