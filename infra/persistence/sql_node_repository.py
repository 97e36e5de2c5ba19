"""
SQLAlchemy implementation of NodeRepository.

``unlock_next`` and guarded ``update_status`` are single conditional UPDATE
statements; the row count tells the caller whether its write applied.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from sqlalchemy import func, select, update

from infra.persistence.models import PathNodeRow
from infra.persistence.sql_store import SqlRepositoryBase
from learning_paths.context import OperationContext
from learning_paths.entities import NodeStatus, PathNode, utcnow
from learning_paths.errors import InvalidTransition, NotFound
from learning_paths.repositories import NodeRepository

logger = logging.getLogger(__name__)


class SqlNodeRepository(SqlRepositoryBase, NodeRepository):
    def create_batch(self, nodes: Sequence[PathNode], *, ctx: Optional[OperationContext] = None) -> None:
        if not nodes:
            return
        with self._scope("node.create_batch", ctx) as db:
            db.add_all([PathNodeRow.from_entity(n) for n in nodes])
            db.flush()

    def get_by_id(self, node_id: str, *, ctx: Optional[OperationContext] = None) -> Optional[PathNode]:
        with self._scope("node.get_by_id", ctx) as db:
            row = db.scalar(select(PathNodeRow).where(PathNodeRow.id == node_id))
            return row.to_entity() if row is not None else None

    def get_by_path_id(self, path_id: str, *, ctx: Optional[OperationContext] = None) -> List[PathNode]:
        with self._scope("node.get_by_path_id", ctx) as db:
            rows = db.scalars(
                select(PathNodeRow)
                .where(PathNodeRow.path_id == path_id)
                .order_by(PathNodeRow.position.asc())
            ).all()
            return [r.to_entity() for r in rows]

    def update_status(
        self,
        node_id: str,
        status: NodeStatus,
        *,
        expected: Optional[NodeStatus] = None,
        ctx: Optional[OperationContext] = None,
    ) -> None:
        with self._scope("node.update_status", ctx) as db:
            stmt = update(PathNodeRow).where(PathNodeRow.id == node_id)
            if expected is not None:
                stmt = stmt.where(PathNodeRow.status == NodeStatus(expected).value)
            result = db.execute(
                stmt.values(status=NodeStatus(status).value, updated_at=utcnow())
            )
            if result.rowcount == 1:
                return
            current = db.scalar(select(PathNodeRow.status).where(PathNodeRow.id == node_id))
            if current is None:
                raise NotFound("node", node_id)
            expected_label = NodeStatus(expected).value if expected is not None else "any status"
            raise InvalidTransition(f"node {node_id} is {current}, expected {expected_label}")

    def unlock_next(
        self, path_id: str, current_position: int, *, ctx: Optional[OperationContext] = None
    ) -> bool:
        next_position = current_position + 1
        with self._scope("node.unlock_next", ctx) as db:
            result = db.execute(
                update(PathNodeRow)
                .where(
                    PathNodeRow.path_id == path_id,
                    PathNodeRow.position == next_position,
                    PathNodeRow.status == NodeStatus.LOCKED.value,
                )
                .values(status=NodeStatus.UNLOCKED.value, updated_at=utcnow())
            )
            unlocked = result.rowcount == 1
        if unlocked:
            logger.debug("node unlocked path_id=%s position=%d", path_id, next_position)
        return unlocked

    def max_position(self, path_id: str, *, ctx: Optional[OperationContext] = None) -> int:
        with self._scope("node.max_position", ctx) as db:
            value = db.scalar(select(func.max(PathNodeRow.position)).where(PathNodeRow.path_id == path_id))
            return int(value or 0)
