"""Database connection utilities."""

from .postgres import Base, get_engine, get_session, get_db, init_db, transaction

__all__ = ['Base', 'get_engine', 'get_session', 'get_db', 'init_db', 'transaction']
