"""Alembic environment for the academy schema.

Migrations run through the same asyncpg driver as the service: the async
engine opens one connection and Alembic's synchronous runner executes on
it via ``run_sync``.  DATABASE_URL (academy.core.config) overrides the
URL in alembic.ini.

    DATABASE_URL=postgresql+asyncpg://... alembic upgrade head
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from academy.core.config import SETTINGS
from academy.db import tables
from alembic import context

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = tables.Base.metadata


def _database_url() -> str:
    return SETTINGS.database_url or config.get_main_option("sqlalchemy.url") or ""


def run_migrations_offline() -> None:
    """Render the migration SQL to stdout (``alembic upgrade head --sql``)."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def _run_on(connection: Connection) -> None:
    context.configure(
        connection=connection, target_metadata=target_metadata, compare_type=True
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = _database_url()
    connectable = async_engine_from_config(
        section, prefix="sqlalchemy.", poolclass=pool.NullPool
    )

    async with connectable.connect() as connection:
        await connection.run_sync(_run_on)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
