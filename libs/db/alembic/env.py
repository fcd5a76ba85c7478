# ruff: noqa: I001
"""Alembic environment for the movements schema.

The URL is resolved like the application does it (``DATABASE_URL``, after
loading the nearest ``.env``) and falls back to ``sqlalchemy.url`` in
``alembic.ini``. SQLite databases (local development, tests) migrate in batch
mode so ALTER-style operations work there too.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from dotenv import find_dotenv, load_dotenv

from db import metadata
from db.client import DATABASE_URL_ENV

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# usecwd: finds the workspace .env from the repo root or from libs/db
load_dotenv(find_dotenv(usecwd=True), override=False)

db_url = os.getenv(DATABASE_URL_ENV) or config.get_main_option("sqlalchemy.url")
if not db_url:
    raise RuntimeError(
        f"{DATABASE_URL_ENV} is not set; export it or set sqlalchemy.url in alembic.ini"
    )
config.set_main_option("sqlalchemy.url", db_url)

target_metadata = metadata


def _configure_kwargs(url: str) -> dict[str, object]:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "compare_server_default": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    context.configure(url=db_url, literal_binds=True, **_configure_kwargs(db_url))
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = dict(config.get_section(config.config_ini_section) or {})
    section["sqlalchemy.url"] = db_url
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(db_url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
