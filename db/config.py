"""
Environment-driven configuration for the irradiance store connection.

Values come from the process environment first, then from ``.env`` and
``.env.local`` at the project root.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_FILES: tuple[str, ...] = (".env", ".env.local")

_CLOUD_LIKE_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})
_DRIVER_PREFIXES: tuple[tuple[str, str], ...] = (
    ("postgres://", "postgresql+psycopg://"),
    ("postgresql://", "postgresql+psycopg://"),
)


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, value = line.split("=", 1)
    key = key.strip()
    if not key:
        return None
    return key, value.strip().strip('"').strip("'")


def load_env_files(root: Path = PROJECT_ROOT, filenames: Iterable[str] = ENV_FILES) -> list[str]:
    """
    Copy KEY=VALUE pairs from the env files into ``os.environ``.

    Keys already set in the process are left alone. Returns the keys that
    were added.
    """

    added: list[str] = []
    for filename in filenames:
        env_path = root / filename
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_env_line(raw_line)
            if parsed is None:
                continue
            key, value = parsed
            if key not in os.environ:
                os.environ[key] = value
                added.append(key)
    return added


def normalize_postgres_url(url: str) -> str:
    """
    Point plain postgres URLs at the psycopg (v3) driver.
    """

    for prefix, replacement in _DRIVER_PREFIXES:
        if url.startswith(prefix):
            return replacement + url[len(prefix) :]
    return url


def resolve_database_url() -> str:
    """
    Pick the irradiance store URL: DATABASE_URL, then CLOUD_DATABASE_URL
    when ENVIRONMENT is cloud-like, then LOCAL_DATABASE_URL.
    """

    load_env_files()

    environment = os.getenv("ENVIRONMENT", "local").strip().lower()
    candidates = [os.getenv("DATABASE_URL")]
    if environment in _CLOUD_LIKE_ENVIRONMENTS:
        candidates.append(os.getenv("CLOUD_DATABASE_URL"))
    candidates.append(os.getenv("LOCAL_DATABASE_URL"))

    for url in candidates:
        if url:
            return normalize_postgres_url(url)

    raise RuntimeError(
        "No database URL configured for the irradiance store. Set DATABASE_URL, "
        "or configure LOCAL_DATABASE_URL / CLOUD_DATABASE_URL."
    )
