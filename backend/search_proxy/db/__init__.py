"""Database configuration and session management"""
from search_proxy.db.base import Base
from search_proxy.db.session import DatabaseClient, get_database_client

__all__ = ["get_database_client", "DatabaseClient", "Base"]
