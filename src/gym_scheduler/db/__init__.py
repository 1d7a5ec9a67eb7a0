"""Database utilities exposed for external runtimes."""

from .repo import close_db, get_session, init_db, make_engine, transaction

__all__ = ["close_db", "get_session", "init_db", "make_engine", "transaction"]
