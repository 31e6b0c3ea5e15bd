"""Database package."""

from app.database.connection import (
    AsyncSessionLocal,
    check_db,
    close_db,
    engine,
    get_db,
    init_db,
)

__all__ = ["AsyncSessionLocal", "check_db", "close_db", "engine", "get_db", "init_db"]
