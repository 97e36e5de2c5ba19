from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from learning_paths.context import OperationContext
from learning_paths.entities import LearningPath, NodeStatus, PathNode, PathStatus


class PathRepository(ABC):
    """
    Persistence contract for LearningPath.

    Lookups return None for "not found"; only store failures and constraint
    violations are raised (StoreUnavailable / Conflict).
    """

    @abstractmethod
    def create(self, path: LearningPath, *, ctx: Optional[OperationContext] = None) -> None:
        """Insert one path row. Raises Conflict if the id already exists."""
        raise NotImplementedError

    @abstractmethod
    def get_by_id(self, path_id: str, *, ctx: Optional[OperationContext] = None) -> Optional[LearningPath]:
        """Path without nodes."""
        raise NotImplementedError

    @abstractmethod
    def get_by_id_with_nodes(
        self, path_id: str, *, ctx: Optional[OperationContext] = None
    ) -> Optional[LearningPath]:
        """Path with ``nodes`` ordered ascending by position."""
        raise NotImplementedError

    @abstractmethod
    def get_by_user_id(self, user_id: str, *, ctx: Optional[OperationContext] = None) -> List[LearningPath]:
        """Newest first; empty list when the user has none."""
        raise NotImplementedError

    @abstractmethod
    def update_status(
        self, path_id: str, status: PathStatus, *, ctx: Optional[OperationContext] = None
    ) -> None:
        """Update status (and updated_at) only. Raises NotFound for an unknown id."""
        raise NotImplementedError


class NodeRepository(ABC):
    """Persistence contract for PathNode."""

    @abstractmethod
    def create_batch(self, nodes: Sequence[PathNode], *, ctx: Optional[OperationContext] = None) -> None:
        """
        Insert all nodes as one atomic unit: all persist or none do.
        An empty sequence is a no-op.
        """
        raise NotImplementedError

    @abstractmethod
    def get_by_id(self, node_id: str, *, ctx: Optional[OperationContext] = None) -> Optional[PathNode]:
        raise NotImplementedError

    @abstractmethod
    def get_by_path_id(self, path_id: str, *, ctx: Optional[OperationContext] = None) -> List[PathNode]:
        """Ordered ascending by position."""
        raise NotImplementedError

    @abstractmethod
    def update_status(
        self,
        node_id: str,
        status: NodeStatus,
        *,
        expected: Optional[NodeStatus] = None,
        ctx: Optional[OperationContext] = None,
    ) -> None:
        """
        Update status (and updated_at) only. Raises NotFound for an unknown id.

        With ``expected`` the write is one conditional update that only applies
        while the row still has that status; otherwise InvalidTransition.
        """
        raise NotImplementedError

    @abstractmethod
    def unlock_next(
        self, path_id: str, current_position: int, *, ctx: Optional[OperationContext] = None
    ) -> bool:
        """
        Unlock the node at ``current_position + 1`` if, and only if, it is locked.

        Must be a single atomic conditional update. Returns True only for the
        caller whose update moved the node from locked to unlocked.
        """
        raise NotImplementedError

    @abstractmethod
    def max_position(self, path_id: str, *, ctx: Optional[OperationContext] = None) -> int:
        """Highest node position in the path, 0 when it has no nodes."""
        raise NotImplementedError


@dataclass
class Repositories:
    """Path and node repositories bound to the same store (and, inside a transaction, the same session)."""
    paths: PathRepository
    nodes: NodeRepository


# A store that can run several repository calls as one unit exposes this shape.
TransactionFactory = Callable[[Optional[OperationContext]], AbstractContextManager[Repositories]]
