"""
Progression engine: sequential unlock rules on top of the repository contracts.

Completing node k unlocks node k+1; completing the last node completes the path.
With a transaction factory the steps of a completion commit together; without
one each step is its own atomic store call and a failure part-way leaves a
completed node whose successor is still locked, which ``resume_progression``
repairs.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence

from learning_paths.context import OperationContext
from learning_paths.entities import (
    LearningPath,
    NodeStatus,
    PathNode,
    PathStatus,
    validate_initial_layout,
)
from learning_paths.errors import InvalidTransition, NotFound
from learning_paths.repositories import (
    NodeRepository,
    PathRepository,
    Repositories,
    TransactionFactory,
)

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    node: PathNode
    unlocked_next: bool  # True only if this call moved the next node out of locked
    next_node_id: Optional[str]
    path_completed: bool


class ProgressionEngine:
    def __init__(
        self,
        paths: PathRepository,
        nodes: NodeRepository,
        transaction: Optional[TransactionFactory] = None,
    ):
        self.paths = paths
        self.nodes = nodes
        self.transaction = transaction

    @contextmanager
    def _unit(self, ctx: Optional[OperationContext]) -> Iterator[Repositories]:
        if self.transaction is None:
            yield Repositories(paths=self.paths, nodes=self.nodes)
            return
        with self.transaction(ctx) as repos:
            yield repos

    # ----- writes -----

    def create_path(
        self,
        path: LearningPath,
        nodes: Sequence[PathNode],
        *,
        ctx: Optional[OperationContext] = None,
    ) -> LearningPath:
        """Persist a generated path and its node set. Node 1 must already be unlocked, the rest locked."""
        ordered = sorted(nodes, key=lambda n: n.position)
        validate_initial_layout(path.id, ordered)
        with self._unit(ctx) as repos:
            repos.paths.create(path, ctx=ctx)
            repos.nodes.create_batch(ordered, ctx=ctx)
        logger.info("path created path_id=%s user_id=%s nodes=%d", path.id, path.user_id, len(ordered))
        path.nodes = list(ordered)
        return path

    def complete_node(
        self,
        path_id: str,
        node_id: str,
        position: Optional[int] = None,
        *,
        ctx: Optional[OperationContext] = None,
    ) -> CompletionResult:
        """
        Complete an unlocked node, unlock its successor, and complete the path
        when the node is the last one.

        Raises NotFound for an unknown path/node, InvalidTransition when the node
        is not unlocked or ``position`` does not match the stored node.
        """
        with self._unit(ctx) as repos:
            path = self._require_path(repos, path_id, ctx)
            node = self._require_node(repos, path_id, node_id, ctx)
            if position is not None and position != node.position:
                raise InvalidTransition(
                    f"node {node_id} is at position {node.position}, not {position}"
                )

            if not node.is_unlocked():
                raise InvalidTransition(f"node {node_id} is {node.status.value}, only unlocked nodes can be completed")
            node.complete()
            repos.nodes.update_status(node.id, NodeStatus.COMPLETED, expected=NodeStatus.UNLOCKED, ctx=ctx)

            unlocked, next_id, path_completed = self._cascade(repos, path, node, ctx)

        logger.info(
            "node completed path_id=%s node_id=%s position=%d unlocked_next=%s path_completed=%s",
            path_id, node_id, node.position, unlocked, path_completed,
        )
        return CompletionResult(
            node=node,
            unlocked_next=unlocked,
            next_node_id=next_id,
            path_completed=path_completed,
        )

    def resume_progression(
        self,
        path_id: str,
        node_id: str,
        *,
        ctx: Optional[OperationContext] = None,
    ) -> CompletionResult:
        """
        Re-issue the unlock/path-completion steps for an already completed node.

        Idempotent: safe to call any number of times after a completion whose
        later steps failed.
        """
        with self._unit(ctx) as repos:
            path = self._require_path(repos, path_id, ctx)
            node = self._require_node(repos, path_id, node_id, ctx)
            if not node.is_completed():
                raise InvalidTransition(f"node {node_id} is {node.status.value}, nothing to resume")
            unlocked, next_id, path_completed = self._cascade(repos, path, node, ctx)
        if unlocked or path_completed:
            logger.warning(
                "progression repaired path_id=%s node_id=%s unlocked_next=%s path_completed=%s",
                path_id, node_id, unlocked, path_completed,
            )
        return CompletionResult(
            node=node,
            unlocked_next=unlocked,
            next_node_id=next_id,
            path_completed=path_completed,
        )

    def _cascade(
        self,
        repos: Repositories,
        path: LearningPath,
        node: PathNode,
        ctx: Optional[OperationContext],
    ) -> tuple[bool, Optional[str], bool]:
        unlocked = repos.nodes.unlock_next(path.id, node.position, ctx=ctx)
        last = repos.nodes.max_position(path.id, ctx=ctx)
        next_id: Optional[str] = None
        if node.position < last:
            successor = [n for n in repos.nodes.get_by_path_id(path.id, ctx=ctx) if n.position == node.position + 1]
            next_id = successor[0].id if successor else None

        path_completed = False
        if node.position == last and path.is_active():
            path.mark_completed()
            repos.paths.update_status(path.id, PathStatus.COMPLETED, ctx=ctx)
            path_completed = True
        return unlocked, next_id, path_completed

    # ----- reads -----

    def get_path(
        self, path_id: str, *, with_nodes: bool = True, ctx: Optional[OperationContext] = None
    ) -> LearningPath:
        if with_nodes:
            path = self.paths.get_by_id_with_nodes(path_id, ctx=ctx)
        else:
            path = self.paths.get_by_id(path_id, ctx=ctx)
        if path is None:
            raise NotFound("path", path_id)
        return path

    def get_user_paths(self, user_id: str, *, ctx: Optional[OperationContext] = None) -> List[LearningPath]:
        return self.paths.get_by_user_id(user_id, ctx=ctx)

    def get_node(self, path_id: str, node_id: str, *, ctx: Optional[OperationContext] = None) -> PathNode:
        return self._require_node(Repositories(paths=self.paths, nodes=self.nodes), path_id, node_id, ctx)

    # ----- helpers -----

    @staticmethod
    def _require_path(repos: Repositories, path_id: str, ctx: Optional[OperationContext]) -> LearningPath:
        path = repos.paths.get_by_id(path_id, ctx=ctx)
        if path is None:
            raise NotFound("path", path_id)
        return path

    @staticmethod
    def _require_node(
        repos: Repositories, path_id: str, node_id: str, ctx: Optional[OperationContext]
    ) -> PathNode:
        node = repos.nodes.get_by_id(node_id, ctx=ctx)
        if node is None or node.path_id != path_id:
            raise NotFound("node", node_id)
        return node
