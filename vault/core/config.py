"""
Environment-driven settings for the Vault data tools.

Every value can be overridden with an environment variable; anything left
unset falls back to the defaults below.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_API_VERSION = "v23.2"
DEFAULT_CLIENT_ID = "vault-data-tools"
DEFAULT_HTTP_TIMEOUT = 60.0
DEFAULT_REGION = "us-east-1"


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_optional(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


@dataclass(frozen=True)
class Settings:
    api_version: str
    client_id: str
    http_timeout: float
    secret_id: Optional[str]
    aws_region: str
    output_dir: str
    log_level: str
    log_format: str


def get_settings() -> Settings:
    return Settings(
        api_version=os.getenv("VAULT_API_VERSION", DEFAULT_API_VERSION),
        client_id=os.getenv("VAULT_CLIENT_ID", DEFAULT_CLIENT_ID),
        http_timeout=_get_float("VAULT_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        secret_id=_get_optional("VAULT_SECRET_ID"),
        aws_region=os.getenv("AWS_REGION", DEFAULT_REGION),
        output_dir=os.getenv("VAULT_OUTPUT_DIR", "."),
        log_level=os.getenv("VAULT_LOG_LEVEL", "INFO").upper(),
        log_format=os.getenv("VAULT_LOG_FORMAT", "text").lower(),
    )
