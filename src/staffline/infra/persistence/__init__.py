"""Staffline Infra Persistence -- SQLAlchemy async profile store."""

from staffline.infra.persistence.database import (
    DatabaseManager,
    DatabaseSettings,
    get_database_manager,
)
from staffline.infra.persistence.profile_store import SqlOrgUnitDirectory, SqlProfileStore

__all__ = [
    "DatabaseManager",
    "DatabaseSettings",
    "SqlOrgUnitDirectory",
    "SqlProfileStore",
    "get_database_manager",
]
