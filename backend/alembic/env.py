"""
Alembic environment configuration for the Incident Service.

Migrations run over the application's asyncpg driver, so no separate
synchronous driver is needed.
"""

import asyncio
import os
import sys
from logging.config import fileConfig

from alembic import context
from dotenv import find_dotenv, load_dotenv
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

# Make `incident_service` importable when alembic runs from backend/
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from incident_service.models import Base  # noqa: E402

config = context.config

load_dotenv(
    find_dotenv() or os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")
)

database_url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
if not database_url:
    raise ValueError(
        "DATABASE_URL environment variable or sqlalchemy.url in alembic.ini "
        "is required but not set"
    )

# Plain postgresql:// URLs are accepted and routed through asyncpg
if database_url.startswith("postgresql://"):
    database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
config.set_main_option("sqlalchemy.url", database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# Generated by the database from longitude/latitude, not mapped on the model
EXCLUDED_COLUMNS = {("incidents", "coordinates")}


def include_object(object, name, type_, reflected, compare_to):
    if type_ == "column" and (object.table.name, name) in EXCLUDED_COLUMNS:
        return False
    if type_ == "table" and name == "spatial_ref_sys":
        return False
    return True


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL to the script output."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = create_async_engine(
        config.get_main_option("sqlalchemy.url"),
        poolclass=pool.NullPool,
    )
    try:
        async with connectable.connect() as connection:
            await connection.run_sync(do_run_migrations)
    except Exception as e:
        raise RuntimeError(f"Migration failed: {str(e)}") from e
    finally:
        await connectable.dispose()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a live database."""
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
