"""
Shared environment-driven database configuration helpers.

Credentials are resolved either from a URL variable or from a secret
document (``DB_SECRET_FILE`` / ``DB_SECRET_JSON``) shaped like the JSON a
secrets manager hands out: ``{"username", "password", "host", "port",
"dbname"}``.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any
from urllib.parse import quote_plus

_SECRET_REQUIRED_KEYS = ("username", "password", "host")


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    project_root = Path(__file__).resolve().parents[1]
    for filename in (".env", ".env.local"):
        env_path = project_root / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


def normalize_postgres_url(url: str) -> str:
    """
    Normalize postgres URLs to SQLAlchemy's recommended psycopg driver form.
    """

    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def load_database_secret() -> dict[str, Any] | None:
    """
    Read the database secret document, if one is configured.

    ``DB_SECRET_FILE`` (path to a JSON file) takes precedence over
    ``DB_SECRET_JSON`` (inline JSON). Returns None when neither is set.
    """

    secret_file = os.getenv("DB_SECRET_FILE", "").strip()
    if secret_file:
        path = Path(secret_file)
        if not path.exists():
            raise RuntimeError(f"DB_SECRET_FILE points to a missing file: {secret_file}")
        raw = path.read_text(encoding="utf-8")
    else:
        raw = os.getenv("DB_SECRET_JSON", "").strip()
        if not raw:
            return None

    try:
        secret = json.loads(raw)
    except ValueError as exc:
        raise RuntimeError("Database secret is not valid JSON.") from exc
    if not isinstance(secret, dict):
        raise RuntimeError("Database secret must be a JSON object.")
    return secret


def database_url_from_secret(secret: dict[str, Any]) -> str:
    """
    Build a psycopg connection URL from a secret document.
    """

    missing = [key for key in _SECRET_REQUIRED_KEYS if not secret.get(key)]
    if missing:
        raise RuntimeError(f"Database secret is missing keys: {', '.join(missing)}.")

    username = quote_plus(str(secret["username"]))
    password = quote_plus(str(secret["password"]))
    host = str(secret["host"])
    port = int(secret.get("port") or 5432)
    dbname = str(secret.get("dbname") or os.getenv("DB_NAME", "postgres"))
    return f"postgresql+psycopg://{username}:{password}@{host}:{port}/{dbname}"


def resolve_database_url() -> str:
    """
    Resolve database URL using environment variables and optional .env files.

    Priority:
    1) DATABASE_URL
    2) DB_SECRET_FILE / DB_SECRET_JSON
    3) CLOUD_DATABASE_URL when ENVIRONMENT is cloud-like
    4) LOCAL_DATABASE_URL
    """

    load_env_files()

    direct_url = os.getenv("DATABASE_URL")
    if direct_url:
        return normalize_postgres_url(direct_url)

    secret = load_database_secret()
    if secret is not None:
        return database_url_from_secret(secret)

    environment = os.getenv("ENVIRONMENT", "local").strip().lower()
    cloud_like_envs = {"prod", "production", "staging", "cloud"}

    cloud_url = os.getenv("CLOUD_DATABASE_URL")
    if environment in cloud_like_envs and cloud_url:
        return normalize_postgres_url(cloud_url)

    local_url = os.getenv("LOCAL_DATABASE_URL")
    if local_url:
        return normalize_postgres_url(local_url)

    raise RuntimeError(
        "No database URL configured. Set DATABASE_URL, provide DB_SECRET_FILE / "
        "DB_SECRET_JSON, or configure LOCAL_DATABASE_URL / CLOUD_DATABASE_URL."
    )
