"""Centralized configuration for the Assistant Relay service.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/assistant-relay/<VARIABLE_NAME>``.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))

_SSM_PREFIX = "/assistant-relay"


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.  Errors are logged at DEBUG so that the local-dev
    fallback still works.
    """
    try:
        import boto3  # noqa: PLC0415 - lazy import keeps boto3 out of the test path

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"{_SSM_PREFIX}/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _get_secret(name: str) -> str | None:
    """Return a secret from env-var or SSM, or ``None`` when unset."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        return _get_ssm_parameter(name)
    return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = _get_secret(name)
    if value:
        return value

    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store {_SSM_PREFIX}/{name} (AWS)."
    )


# ── Assistant API ───────────────────────────────────────────────────
OPENAI_API_KEY: str = _require_env("OPENAI_API_KEY")
OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
ASSISTANT_ID: str = _get_secret("OPENAI_ASSISTANT_ID") or ""

# Model used for document-grounded answers and answer analysis
COMPLETION_MODEL: str = os.getenv("COMPLETION_MODEL", "gpt-3.5-turbo")

# ── Run polling ─────────────────────────────────────────────────────
RUN_DEADLINE_SECONDS: float = float(os.getenv("RUN_DEADLINE_SECONDS", "8"))
POLL_INTERVAL_SECONDS: float = float(os.getenv("POLL_INTERVAL_SECONDS", "1"))

# ── Airtable (lead storage) ─────────────────────────────────────────
AIRTABLE_API_KEY: str = _get_secret("AIRTABLE_API_KEY") or ""
AIRTABLE_BASE_URL: str = "https://api.airtable.com/v0"
AIRTABLE_BASE_ID: str = os.getenv("AIRTABLE_BASE_ID", "appkLKXN9xGUlC7BA")
AIRTABLE_TABLE: str = os.getenv("AIRTABLE_TABLE", "Accelerator Leads")

# ── Documents ───────────────────────────────────────────────────────
DOCUMENTS_DIR: str = os.getenv("DOCUMENTS_DIR", "documents")

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "3000"))
CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
