"""Migration runner for the completion store.

The URL is the service's own DATABASE_URL with the asyncpg driver swapped
for psycopg2, since Alembic migrates synchronously.
"""

from __future__ import annotations

from logging.config import fileConfig

from sqlalchemy import create_engine, pool

import completion_service.db.tables  # noqa: F401  (populates Base.metadata)
from alembic import context
from completion_service.core.config import SETTINGS
from completion_service.db.engine import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _sync_url() -> str:
    url = SETTINGS.database_url or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("DATABASE_URL must be set to run migrations")
    return url.replace("postgresql+asyncpg://", "postgresql+psycopg2://")


def _configure(**kwargs) -> None:
    context.configure(target_metadata=target_metadata, compare_type=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    _configure(
        url=_sync_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
else:
    with create_engine(_sync_url(), poolclass=pool.NullPool).connect() as connection:
        _configure(connection=connection)
