import os
from logging.config import fileConfig

from alembic import context

# Base plus every model module, so autogenerate sees the ledger tables
from corgi_buddy.db.base import Base
import corgi_buddy.models  # noqa: F401
from corgi_buddy.db.engine import build_engine

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def database_url() -> str:
    # same variable the app reads; alembic.ini only covers local sqlite
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("DATABASE_URL environment variable not set")
    return url


def configure_kwargs(url: str) -> dict:
    # sqlite cannot ALTER constraints in place; batch mode recreates tables
    return {
        "target_metadata": target_metadata,
        "render_as_batch": url.startswith("sqlite"),
        "compare_type": True,
    }


def run_migrations_offline() -> None:
    url = database_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **configure_kwargs(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = database_url()
    engine = build_engine(url)
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, **configure_kwargs(url))
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
