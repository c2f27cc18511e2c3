from __future__ import annotations

import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

# Make the dinner_planner package importable when alembic runs from the repo root
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
from dinner_planner.db import _normalize_url
from dinner_planner.models import Base

config = context.config

# DATABASE_URL wins over alembic.ini, same precedence as the app
db_url = os.getenv("DATABASE_URL")
if db_url:
    config.set_main_option("sqlalchemy.url", _normalize_url(db_url))

if config.config_file_name:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _is_sqlite(url: str | None) -> bool:
    return bool(url) and url.startswith("sqlite")


def run_migrations_offline():
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=_is_sqlite(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    section = config.get_section(config.config_ini_section) or {}
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
