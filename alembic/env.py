"""
Alembic environment for the irradiance store.

The target URL comes from, in order: ``-x db_url=...``,
``ALEMBIC_DATABASE_URL``, ``sqlalchemy.url`` in alembic.ini, then the
application's own resolution (DATABASE_URL / CLOUD_DATABASE_URL /
LOCAL_DATABASE_URL).
"""

from __future__ import annotations

import logging
import os
from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import engine_from_config, pool

import db.models  # noqa: F401 registers every irradiance table on Base.metadata
from db.base import Base
from db.config import load_env_files, normalize_postgres_url, resolve_database_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata

_CONFIGURE_OPTIONS: dict[str, Any] = {
    "target_metadata": target_metadata,
    "compare_type": True,
    "compare_server_default": True,
}


def _migration_url() -> str:
    load_env_files()

    override = context.get_x_argument(as_dictionary=True).get("db_url")
    candidates = (
        override,
        os.getenv("ALEMBIC_DATABASE_URL"),
        (config.get_main_option("sqlalchemy.url") or "").strip(),
    )
    url = next((normalize_postgres_url(item) for item in candidates if item), None) or resolve_database_url()

    if not url.startswith("postgresql"):
        raise RuntimeError("Irradiance migrations only target PostgreSQL.")
    return url


def run_migrations_offline() -> None:
    context.configure(
        url=_migration_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_CONFIGURE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = _migration_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, **_CONFIGURE_OPTIONS)
        with context.begin_transaction():
            logger.info("Running irradiance migrations")
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
