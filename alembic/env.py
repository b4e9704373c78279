"""Alembic environment for the onboarding schema"""

import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine

# Project root for the app package, this directory for env_config
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from env_config import get_database_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from app.db.database import Base
from app.models import Subscription, User, UserPreferences, UserTrial  # noqa: F401

target_metadata = Base.metadata


def include_object(object, name, type_, reflected, compare_to):
    """Leave tables owned by other services alone."""
    return not (type_ == "table" and reflected and compare_to is None)


def context_options(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "include_object": include_object,
        "compare_type": True,
        # SQLite can only alter tables by copying them
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    url = get_database_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **context_options(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_database_url()
    engine = create_engine(url)

    with engine.connect() as connection:
        context.configure(connection=connection, **context_options(url))

        with context.begin_transaction():
            context.run_migrations()

    engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
