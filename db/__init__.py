"""Database package for the event attendee pipeline."""
from db.connection import configure, dispose_engine, get_db, get_engine, get_sessionmaker

__all__ = ["get_engine", "get_sessionmaker", "get_db", "configure", "dispose_engine"]
