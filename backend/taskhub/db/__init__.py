"""Database package."""

from taskhub.db.base import Base, SoftDeleteMixin
from taskhub.db.session import DBSession, get_db_session

__all__ = ["Base", "DBSession", "SoftDeleteMixin", "get_db_session"]
