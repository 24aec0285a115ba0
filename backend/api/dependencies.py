"""
Dependency injection for the API service.
Provides the database manager and the game read gateway to route handlers.
"""
from __future__ import annotations

from shared.utils.database import DatabaseManager

from tracker.persistence import PersistenceGateway

# Module-level singleton, initialized at startup
_db: DatabaseManager | None = None


def init_dependencies(db: DatabaseManager) -> None:
    """Initialize module-level singletons. Called once at startup."""
    global _db
    _db = db


def get_db() -> DatabaseManager:
    """FastAPI dependency: returns the shared DatabaseManager."""
    if _db is None:
        raise RuntimeError("DatabaseManager not initialized; call init_dependencies first")
    return _db


def get_games_gateway() -> PersistenceGateway:
    """FastAPI dependency: read access to stored games."""
    return PersistenceGateway(get_db())
