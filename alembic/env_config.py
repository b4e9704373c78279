"""
Database URL resolution for Alembic migrations.

Migrations run with the sync psycopg2 driver against the same DB_* variables
the application uses.
"""

import os

from dotenv import load_dotenv

env = os.getenv("ENV", "local")
dotenv_file = f".env.{env}"
load_dotenv(dotenv_file)


def get_database_url() -> str:
    """
    Sync database URL for the current ENV.

    MIGRATION_DATABASE_URL wins when set, e.g. for a one-off run against a
    restored snapshot.
    """
    override = os.getenv("MIGRATION_DATABASE_URL")
    if override:
        return override

    db_port = os.getenv("DB_PORT") or "5432"
    return (
        f"postgresql://{os.getenv('DB_USER')}:{os.getenv('DB_PASSWORD')}"
        f"@{os.getenv('DB_HOST')}:{db_port}/{os.getenv('DB_NAME')}"
    )
