"""
Persistence backends.

    base.py   : Storage contract the engine depends on
    sql.py    : Flask-SQLAlchemy backend (default)
    memory.py : in-process backend for development and tests

The app factory picks one via STORAGE_BACKEND (sql | memory).
"""

from vulnscope.storage.base import Storage
from vulnscope.storage.memory import MemoryStorage
from vulnscope.storage.sql import SqlStorage

__all__ = ["Storage", "MemoryStorage", "SqlStorage"]
