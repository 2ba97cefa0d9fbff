"""
Alembic migration environment.
Supports both online (connected to DB) and offline (SQL script generation) modes.

The trainer no-overlap exclusion constraint is attached with DDL rather than
declared on the table, so autogenerate is told to leave it alone.
"""

from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context

from studio_booking.db.base import Base
import studio_booking.models  # noqa: F401 - Import models for autogenerate
from studio_booking.models.booking import NO_OVERLAP_CONSTRAINT
from studio_booking.core.config import get_settings

config = context.config
settings = get_settings()

# `alembic -x url=postgresql://... upgrade head` targets another database
url = context.get_x_argument(as_dictionary=True).get("url", settings.DATABASE_URL_SYNC)
config.set_main_option("sqlalchemy.url", url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def include_object(obj, name, type_, reflected, compare_to):
    return not (type_ == "constraint" and name == NO_OVERLAP_CONSTRAINT)


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        include_object=include_object,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Generate SQL script without connecting to the database."""
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live database connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
