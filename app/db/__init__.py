"""Database package: engine, session factory and declarative base."""

from .session import AsyncSessionLocal, Base, close_db, engine, get_db, init_db, utcnow

__all__ = ["engine", "AsyncSessionLocal", "Base", "get_db", "init_db", "close_db", "utcnow"]
