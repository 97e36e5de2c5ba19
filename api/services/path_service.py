"""
Path service: builds the progression engine over the app's store and runs each
operation under a per-request deadline.
"""

import logging
from typing import Union

from api.config import Settings
from api.schemas.path_schemas import (
    CompletionResponse,
    CreatePathRequest,
    NodeResponse,
    PathDetailResponse,
    PathListResponse,
)
from api.utils.common import node_response, path_detail_response, path_response
from api.utils.logger import log_request
from infra.persistence.memory_store import MemoryStore
from infra.persistence.sql_store import SqlStore
from learning_paths.context import OperationContext
from learning_paths.entities import LearningPath, build_nodes, new_id
from learning_paths.progression import CompletionResult, ProgressionEngine

logger = logging.getLogger(__name__)

Store = Union[SqlStore, MemoryStore]


class PathService:
    """Thin mapping between API schemas and ProgressionEngine operations."""

    def __init__(self, store: Store, settings: Settings):
        self.settings = settings
        repos = store.repositories()
        self.engine = ProgressionEngine(
            repos.paths,
            repos.nodes,
            transaction=store.transaction if settings.atomic_completion else None,
        )

    def _ctx(self) -> OperationContext:
        return OperationContext.with_timeout(self.settings.request_timeout_seconds)

    def create_path(self, req: CreatePathRequest) -> PathDetailResponse:
        path = LearningPath(id=new_id(), user_id=req.user_id, topic=req.topic, title=req.title)
        nodes = build_nodes(path.id, [d.model_dump() for d in req.nodes])
        with log_request(logger, f"create_path path_id={path.id}"):
            created = self.engine.create_path(path, nodes, ctx=self._ctx())
        return path_detail_response(created)

    def get_path(self, path_id: str) -> PathDetailResponse:
        return path_detail_response(self.engine.get_path(path_id, ctx=self._ctx()))

    def list_user_paths(self, user_id: str) -> PathListResponse:
        paths = self.engine.get_user_paths(user_id, ctx=self._ctx())
        return PathListResponse(paths=[path_response(p) for p in paths])

    def get_node(self, path_id: str, node_id: str) -> NodeResponse:
        return node_response(self.engine.get_node(path_id, node_id, ctx=self._ctx()))

    def complete_node(self, path_id: str, node_id: str, position: int | None = None) -> CompletionResponse:
        with log_request(logger, f"complete_node path_id={path_id} node_id={node_id}"):
            result = self.engine.complete_node(path_id, node_id, position, ctx=self._ctx())
        return _completion_response(result)

    def resume_progression(self, path_id: str, node_id: str) -> CompletionResponse:
        with log_request(logger, f"resume_progression path_id={path_id} node_id={node_id}"):
            result = self.engine.resume_progression(path_id, node_id, ctx=self._ctx())
        return _completion_response(result)


def _completion_response(result: CompletionResult) -> CompletionResponse:
    return CompletionResponse(
        node=node_response(result.node),
        unlocked_next=result.unlocked_next,
        next_node_id=result.next_node_id,
        path_completed=result.path_completed,
    )
