"""
Session helpers for connecting to a Vault with CLI credentials, falling back
to Secrets Manager for anything not given on the command line.
"""

from __future__ import annotations

from typing import Optional, Dict, Any

import requests

from vault.client.api import VaultClient
from vault.client.secrets import get_vault_login_config
from vault.core.config import get_settings
from vault.core.logging import get_logger
from vault.core.options import ConfigurationError

logger = get_logger(__name__)

SANDBOX_DOMAIN = "SANDBOX"


def resolve_login_config(
    vault_dns: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    session_id: Optional[str] = None,
    secret_id: Optional[str] = None,
    region_name: Optional[str] = None,
) -> Dict[str, Any]:
    cfg: Dict[str, Any] = {
        "vault_dns": vault_dns,
        "username": username,
        "password": password,
        "session_id": session_id,
        "api_version": None,
    }

    has_credentials = bool(session_id) or bool(username and password)
    if vault_dns and has_credentials:
        return cfg

    secret_id = secret_id or get_settings().secret_id
    if not secret_id:
        return cfg

    logger.info("Loading Vault credentials from secret %s", secret_id)
    stored = get_vault_login_config(secret_id, region_name=region_name)
    for key, value in stored.items():
        if not cfg.get(key):
            cfg[key] = value
    return cfg


def get_vault_client(
    vault_dns: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    session_id: Optional[str] = None,
    secret_id: Optional[str] = None,
    region_name: Optional[str] = None,
    http: Optional[requests.Session] = None,
) -> VaultClient:
    """
    Build an authenticated VaultClient and make sure it points at a sandbox.

    Parameters
    ----------
    vault_dns : str, optional
        Vault host, e.g. myvault.veevavault.com.
    username, password : str, optional
        Basic credentials. Ignored when a session id is available.
    session_id : str, optional
        Existing Vault session id.
    secret_id : str, optional
        Secrets Manager SecretId to fill in missing values (defaults to VAULT_SECRET_ID).
    region_name : str, optional
        AWS region for Secrets Manager (defaults to AWS_REGION or us-east-1).

    Returns
    -------
    VaultClient
        Authenticated client.

    Raises
    ------
    ConfigurationError
        Missing DNS/credentials, or the Vault is not a sandbox.
    """
    cfg = resolve_login_config(
        vault_dns=vault_dns,
        username=username,
        password=password,
        session_id=session_id,
        secret_id=secret_id,
        region_name=region_name,
    )

    if not cfg.get("vault_dns"):
        raise ConfigurationError("Vault DNS is required")

    if cfg.get("session_id"):
        client = VaultClient(
            cfg["vault_dns"],
            cfg["session_id"],
            api_version=cfg.get("api_version"),
            session=http,
        )
    elif cfg.get("username") and cfg.get("password"):
        client = VaultClient.login(
            cfg["vault_dns"],
            cfg["username"],
            cfg["password"],
            api_version=cfg.get("api_version"),
            session=http,
        )
    else:
        raise ConfigurationError("Missing Vault credentials (session id, or username/password).")

    domain_type = client.retrieve_domain_type()
    if domain_type.upper() != SANDBOX_DOMAIN:
        raise ConfigurationError("This tool can only be run in a Sandbox domain.")

    logger.info("Connected to %s (%s)", client.vault_dns, domain_type)
    return client
