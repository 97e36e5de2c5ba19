"""
Learning path progression core.

Import surface for entities, errors, repository contracts and the engine:

    from learning_paths import ProgressionEngine, LearningPath, PathNode, NodeStatus
"""

from learning_paths.context import OperationContext
from learning_paths.entities import (
    LearningPath,
    NodeStatus,
    PathNode,
    PathStatus,
    build_nodes,
    new_id,
    utcnow,
    validate_initial_layout,
)
from learning_paths.errors import (
    Conflict,
    DeadlineExceeded,
    InvalidPathLayout,
    InvalidTransition,
    NotFound,
    PathError,
    StoreUnavailable,
)
from learning_paths.progression import CompletionResult, ProgressionEngine
from learning_paths.repositories import NodeRepository, PathRepository, Repositories

__all__ = [
    "OperationContext",
    # entities
    "LearningPath",
    "NodeStatus",
    "PathNode",
    "PathStatus",
    "build_nodes",
    "new_id",
    "utcnow",
    "validate_initial_layout",
    # errors
    "Conflict",
    "DeadlineExceeded",
    "InvalidPathLayout",
    "InvalidTransition",
    "NotFound",
    "PathError",
    "StoreUnavailable",
    # engine
    "CompletionResult",
    "ProgressionEngine",
    # contracts
    "NodeRepository",
    "PathRepository",
    "Repositories",
]
