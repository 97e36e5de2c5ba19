"""
SQLAlchemy implementation of PathRepository.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from infra.persistence.models import LearningPathRow
from infra.persistence.sql_store import SqlRepositoryBase
from learning_paths.context import OperationContext
from learning_paths.entities import LearningPath, PathStatus, utcnow
from learning_paths.errors import NotFound
from learning_paths.repositories import PathRepository


class SqlPathRepository(SqlRepositoryBase, PathRepository):
    def create(self, path: LearningPath, *, ctx: Optional[OperationContext] = None) -> None:
        with self._scope("path.create", ctx) as db:
            db.add(LearningPathRow.from_entity(path))
            db.flush()

    def get_by_id(self, path_id: str, *, ctx: Optional[OperationContext] = None) -> Optional[LearningPath]:
        with self._scope("path.get_by_id", ctx) as db:
            row = db.scalar(select(LearningPathRow).where(LearningPathRow.id == path_id))
            return row.to_entity() if row is not None else None

    def get_by_id_with_nodes(
        self, path_id: str, *, ctx: Optional[OperationContext] = None
    ) -> Optional[LearningPath]:
        with self._scope("path.get_by_id_with_nodes", ctx) as db:
            row = db.scalar(
                select(LearningPathRow)
                .options(selectinload(LearningPathRow.nodes))
                .where(LearningPathRow.id == path_id)
            )
            if row is None:
                return None
            path = row.to_entity(with_nodes=True)
            path.nodes.sort(key=lambda n: n.position)
            return path

    def get_by_user_id(self, user_id: str, *, ctx: Optional[OperationContext] = None) -> List[LearningPath]:
        with self._scope("path.get_by_user_id", ctx) as db:
            rows = db.scalars(
                select(LearningPathRow)
                .where(LearningPathRow.user_id == user_id)
                .order_by(LearningPathRow.created_at.desc(), LearningPathRow.id.desc())
            ).all()
            return [r.to_entity() for r in rows]

    def update_status(
        self, path_id: str, status: PathStatus, *, ctx: Optional[OperationContext] = None
    ) -> None:
        with self._scope("path.update_status", ctx) as db:
            result = db.execute(
                update(LearningPathRow)
                .where(LearningPathRow.id == path_id)
                .values(status=PathStatus(status).value, updated_at=utcnow())
            )
            if result.rowcount == 0:
                raise NotFound("path", path_id)
