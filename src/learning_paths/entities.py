"""
Learning path entities and their legal state transitions.

Pure in-memory values: no I/O, and transitions never raise. An illegal transition
is a no-op, so callers that need to tell "already completed" from "just completed"
check the status afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, List, Optional
from uuid import uuid4

from learning_paths.errors import InvalidPathLayout


def utcnow() -> datetime:
    """Naive UTC timestamp (the store keeps naive datetimes)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid4())


class PathStatus(str, Enum):
    """Learning path status."""
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class NodeStatus(str, Enum):
    """Node status within a path."""
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    COMPLETED = "completed"


DEFAULT_XP_REWARD = 100


@dataclass
class PathNode:
    """A single exercise inside a learning path."""
    id: str
    path_id: str
    position: int  # 1-based, unique per path
    title: str
    description: str = ""
    markdown_content: str = ""
    boilerplate_code: str = ""
    documentation_snippet: str = ""
    hidden_tests: str = ""  # serialized test cases (JSON text), opaque here
    status: NodeStatus = NodeStatus.LOCKED
    xp_reward: int = DEFAULT_XP_REWARD
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def is_locked(self) -> bool:
        return self.status == NodeStatus.LOCKED

    def is_unlocked(self) -> bool:
        return self.status == NodeStatus.UNLOCKED

    def is_completed(self) -> bool:
        return self.status == NodeStatus.COMPLETED

    def unlock(self) -> None:
        if self.status == NodeStatus.LOCKED:
            self.status = NodeStatus.UNLOCKED
            self.updated_at = utcnow()

    def complete(self) -> None:
        if self.status == NodeStatus.UNLOCKED:
            self.status = NodeStatus.COMPLETED
            self.updated_at = utcnow()


@dataclass
class LearningPath:
    """An AI-generated learning path. ``nodes`` is only populated when loaded with nodes."""
    id: str
    user_id: str
    topic: str
    title: str
    status: PathStatus = PathStatus.ACTIVE
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    nodes: List[PathNode] = field(default_factory=list)

    def is_active(self) -> bool:
        return self.status == PathStatus.ACTIVE

    def mark_completed(self) -> None:
        self.status = PathStatus.COMPLETED
        self.updated_at = utcnow()

    def last_position(self) -> int:
        return max((n.position for n in self.nodes), default=0)

    def current_node(self) -> Optional[PathNode]:
        for n in self.nodes:
            if n.is_unlocked():
                return n
        return None

    def total_xp(self) -> int:
        return sum(n.xp_reward for n in self.nodes)

    def earned_xp(self) -> int:
        return sum(n.xp_reward for n in self.nodes if n.is_completed())


def build_nodes(path_id: str, drafts: Iterable[dict[str, Any]]) -> List[PathNode]:
    """
    Turn ordered node drafts (as produced by the generator) into PathNodes.

    Positions are assigned 1..N in draft order; the first node starts unlocked,
    every other node locked. Unknown draft keys are ignored.
    """
    nodes: List[PathNode] = []
    now = utcnow()
    for idx, d in enumerate(drafts, start=1):
        xp = d.get("xp_reward")
        if isinstance(xp, bool) or not isinstance(xp, (int, float)):
            xp = DEFAULT_XP_REWARD
        nodes.append(
            PathNode(
                id=d.get("id") or new_id(),
                path_id=path_id,
                position=idx,
                title=str(d.get("title") or f"Step {idx}"),
                description=d.get("description") or "",
                markdown_content=d.get("markdown_content") or "",
                boilerplate_code=d.get("boilerplate_code") or "",
                documentation_snippet=d.get("documentation_snippet") or "",
                hidden_tests=d.get("hidden_tests") or "",
                status=NodeStatus.UNLOCKED if idx == 1 else NodeStatus.LOCKED,
                xp_reward=int(xp),
                created_at=now,
                updated_at=now,
            )
        )
    return nodes


def validate_initial_layout(path_id: str, nodes: List[PathNode]) -> None:
    """Raise InvalidPathLayout unless nodes are positions 1..N of path_id, node 1 unlocked, the rest locked."""
    positions = sorted(n.position for n in nodes)
    if positions != list(range(1, len(nodes) + 1)):
        raise InvalidPathLayout(f"positions must be 1..{len(nodes)} without gaps, got {positions}")
    for n in nodes:
        if n.path_id != path_id:
            raise InvalidPathLayout(f"node {n.id} belongs to path {n.path_id}, not {path_id}")
        expected = NodeStatus.UNLOCKED if n.position == 1 else NodeStatus.LOCKED
        if n.status != expected:
            raise InvalidPathLayout(
                f"node at position {n.position} must start {expected.value}, got {n.status.value}"
            )
