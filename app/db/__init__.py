from app.db.database import (
    AsyncSessionLocal,
    Base,
    async_engine,
    build_database_url,
    get_db,
    get_db_session,
)

__all__ = [
    "AsyncSessionLocal",
    "Base",
    "async_engine",
    "build_database_url",
    "get_db",
    "get_db_session",
]
