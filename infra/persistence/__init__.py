"""
Persistence adapters for the learning path repository contracts.

- SqlStore / SqlPathRepository / SqlNodeRepository: relational store via SQLAlchemy.
- MemoryStore / InMemoryPathRepository / InMemoryNodeRepository: process-local, for tests.
"""

from infra.persistence.memory_store import InMemoryNodeRepository, InMemoryPathRepository, MemoryStore
from infra.persistence.models import Base, LearningPathRow, PathNodeRow
from infra.persistence.sql_node_repository import SqlNodeRepository
from infra.persistence.sql_path_repository import SqlPathRepository
from infra.persistence.sql_store import SqlStore

__all__ = [
    "Base",
    "LearningPathRow",
    "PathNodeRow",
    "SqlStore",
    "SqlPathRepository",
    "SqlNodeRepository",
    "MemoryStore",
    "InMemoryPathRepository",
    "InMemoryNodeRepository",
]
