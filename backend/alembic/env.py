from logging.config import fileConfig
import os
import sys
from asyncio import run

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import async_engine_from_config

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from photoshelf.core.config import settings
from photoshelf.core.database import Base, _connect_args
from photoshelf.models import album, photo, profile, user  # noqa: F401

config = context.config
# an explicit sqlalchemy.url (alembic.ini, a programmatic Config) wins over DATABASE_URL
if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url")


def _configure(**options) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite cannot ALTER constraints in place
        render_as_batch=make_url(_database_url()).get_backend_name() == "sqlite",
        **options,
    )


def run_migrations_offline() -> None:
    _configure(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
        connect_args=_connect_args(_database_url()),
    )

    def migrate(sync_connection) -> None:
        _configure(connection=sync_connection)
        with context.begin_transaction():
            context.run_migrations()

    async def do_migrations() -> None:
        async with connectable.connect() as connection:
            await connection.run_sync(migrate)
        await connectable.dispose()

    run(do_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
