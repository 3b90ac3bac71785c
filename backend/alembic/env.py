"""Alembic environment for the funneltrack schema.

WHAT: Runs migrations against DATABASE_URL with funneltrack.models as target metadata
WHY: Same URL resolution as the app (.env fallback, postgres:// rewrite)
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from funneltrack.database import DATABASE_URL
from funneltrack.models import Base

config = context.config
# configparser interpolation treats % specially (URL-encoded passwords)
config.set_main_option("sqlalchemy.url", DATABASE_URL.replace("%", "%%"))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL to stdout without a database connection."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
