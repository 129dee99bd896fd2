"""Alembic environment for the allocation schema.

The database URL comes from ``skualloc.config.Config`` unless a URL is
passed on the command line: ``alembic -x url=sqlite:///dev.db upgrade head``.
"""

from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context

from skualloc.config import Config
from skualloc.db.postgres import Base
from skualloc import models  # noqa: F401  registers the mappers

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

url = context.get_x_argument(as_dictionary=True).get("url") or Config.get_database_url()
config.set_main_option("sqlalchemy.url", url)

target_metadata = Base.metadata


def _configure(**kwargs):
    # SQLite cannot ALTER constraints in place
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL to stdout without a live connection."""
    _configure(url=url, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
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
