"""Shared FastAPI dependencies."""

from .auth import get_current_user_id
from .database import get_db_session

__all__ = ["get_current_user_id", "get_db_session"]
