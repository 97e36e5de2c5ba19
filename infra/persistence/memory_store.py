"""
In-memory implementation of the repository contracts.

Used by unit tests and for running the API without a database. All state lives
in one ``MemoryStore`` guarded by a single re-entrant lock, so every repository
call is atomic; ``transaction()`` holds the lock across several calls and
restores a snapshot if any of them fails.
"""

from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, Iterator, List, Optional, Sequence

from learning_paths.context import OperationContext, ensure_context
from learning_paths.entities import LearningPath, NodeStatus, PathNode, PathStatus, utcnow
from learning_paths.errors import Conflict, InvalidTransition, NotFound
from learning_paths.repositories import NodeRepository, PathRepository, Repositories


class MemoryStore:
    def __init__(self):
        self.lock = threading.RLock()
        self.paths: Dict[str, LearningPath] = {}
        self.nodes: Dict[str, PathNode] = {}

    @contextmanager
    def transaction(self, ctx: Optional[OperationContext] = None) -> Iterator[Repositories]:
        ctx = ensure_context(ctx)
        with self.lock:
            ctx.check("transaction")
            snapshot = (copy.deepcopy(self.paths), copy.deepcopy(self.nodes))
            try:
                yield self.repositories()
                ctx.check("transaction")
            except Exception:
                self.paths, self.nodes = snapshot
                raise

    def repositories(self) -> Repositories:
        return Repositories(paths=InMemoryPathRepository(self), nodes=InMemoryNodeRepository(self))


class _MemoryRepository:
    def __init__(self, store: MemoryStore):
        self.store = store

    @contextmanager
    def _scope(self, operation: str, ctx: Optional[OperationContext]) -> Iterator[MemoryStore]:
        ensure_context(ctx).check(operation)
        with self.store.lock:
            yield self.store


class InMemoryPathRepository(_MemoryRepository, PathRepository):
    def create(self, path: LearningPath, *, ctx: Optional[OperationContext] = None) -> None:
        with self._scope("path.create", ctx) as store:
            if path.id in store.paths:
                raise Conflict(f"path {path.id} already exists")
            store.paths[path.id] = replace(path, nodes=[])

    def get_by_id(self, path_id: str, *, ctx: Optional[OperationContext] = None) -> Optional[LearningPath]:
        with self._scope("path.get_by_id", ctx) as store:
            path = store.paths.get(path_id)
            return replace(path, nodes=[]) if path is not None else None

    def get_by_id_with_nodes(
        self, path_id: str, *, ctx: Optional[OperationContext] = None
    ) -> Optional[LearningPath]:
        with self._scope("path.get_by_id_with_nodes", ctx) as store:
            path = store.paths.get(path_id)
            if path is None:
                return None
            nodes = sorted((n for n in store.nodes.values() if n.path_id == path_id), key=lambda n: n.position)
            return replace(path, nodes=[replace(n) for n in nodes])

    def get_by_user_id(self, user_id: str, *, ctx: Optional[OperationContext] = None) -> List[LearningPath]:
        with self._scope("path.get_by_user_id", ctx) as store:
            paths = [p for p in store.paths.values() if p.user_id == user_id]
            paths.sort(key=lambda p: (p.created_at, p.id), reverse=True)
            return [replace(p, nodes=[]) for p in paths]

    def update_status(
        self, path_id: str, status: PathStatus, *, ctx: Optional[OperationContext] = None
    ) -> None:
        with self._scope("path.update_status", ctx) as store:
            path = store.paths.get(path_id)
            if path is None:
                raise NotFound("path", path_id)
            store.paths[path_id] = replace(path, status=PathStatus(status), updated_at=utcnow())


class InMemoryNodeRepository(_MemoryRepository, NodeRepository):
    def create_batch(self, nodes: Sequence[PathNode], *, ctx: Optional[OperationContext] = None) -> None:
        if not nodes:
            return
        with self._scope("node.create_batch", ctx) as store:
            taken = {(n.path_id, n.position) for n in store.nodes.values()}
            staged: Dict[str, PathNode] = {}
            for n in nodes:
                if n.id in store.nodes or n.id in staged:
                    raise Conflict(f"node {n.id} already exists")
                if (n.path_id, n.position) in taken:
                    raise Conflict(f"path {n.path_id} already has a node at position {n.position}")
                if n.path_id not in store.paths:
                    raise Conflict(f"path {n.path_id} does not exist")
                taken.add((n.path_id, n.position))
                staged[n.id] = replace(n)
            store.nodes.update(staged)

    def get_by_id(self, node_id: str, *, ctx: Optional[OperationContext] = None) -> Optional[PathNode]:
        with self._scope("node.get_by_id", ctx) as store:
            node = store.nodes.get(node_id)
            return replace(node) if node is not None else None

    def get_by_path_id(self, path_id: str, *, ctx: Optional[OperationContext] = None) -> List[PathNode]:
        with self._scope("node.get_by_path_id", ctx) as store:
            nodes = sorted((n for n in store.nodes.values() if n.path_id == path_id), key=lambda n: n.position)
            return [replace(n) for n in nodes]

    def update_status(
        self,
        node_id: str,
        status: NodeStatus,
        *,
        expected: Optional[NodeStatus] = None,
        ctx: Optional[OperationContext] = None,
    ) -> None:
        with self._scope("node.update_status", ctx) as store:
            node = store.nodes.get(node_id)
            if node is None:
                raise NotFound("node", node_id)
            if expected is not None and node.status != expected:
                raise InvalidTransition(f"node {node_id} is {node.status.value}, expected {expected.value}")
            store.nodes[node_id] = replace(node, status=NodeStatus(status), updated_at=utcnow())

    def unlock_next(
        self, path_id: str, current_position: int, *, ctx: Optional[OperationContext] = None
    ) -> bool:
        with self._scope("node.unlock_next", ctx) as store:
            for node_id, n in store.nodes.items():
                if n.path_id == path_id and n.position == current_position + 1:
                    if n.status != NodeStatus.LOCKED:
                        return False
                    store.nodes[node_id] = replace(n, status=NodeStatus.UNLOCKED, updated_at=utcnow())
                    return True
            return False

    def max_position(self, path_id: str, *, ctx: Optional[OperationContext] = None) -> int:
        with self._scope("node.max_position", ctx) as store:
            return max((n.position for n in store.nodes.values() if n.path_id == path_id), default=0)
