"""
Database module for the Eligibility Engine.

Exports engine and session factory helpers.
"""

from src.db.session import (
    check_db_connection,
    create_db_engine,
    create_session_factory,
    create_tables,
    session_scope,
)

__all__ = [
    "create_db_engine",
    "create_session_factory",
    "create_tables",
    "session_scope",
    "check_db_connection",
]
