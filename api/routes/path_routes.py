"""
Learning path endpoints. Request parsing and response mapping only; progression
rules live in learning_paths.progression and failures are mapped to status codes
by the handlers in api.api.
"""

from fastapi import APIRouter, Depends, HTTPException

from api.config import Settings, get_settings, get_store
from api.schemas.path_schemas import (
    CompleteNodeRequest,
    CompletionResponse,
    CreatePathRequest,
    NodeResponse,
    PathDetailResponse,
    PathListResponse,
    UpdateNodeRequest,
)
from api.services.path_service import PathService

path_routes = APIRouter()


def get_path_service(store=Depends(get_store), settings: Settings = Depends(get_settings)) -> PathService:
    return PathService(store, settings)


@path_routes.post("/paths", response_model=PathDetailResponse, status_code=201)
def create_path(
    req: CreatePathRequest,
    service: PathService = Depends(get_path_service),
) -> PathDetailResponse:
    """Store a generated path with its nodes; the first node starts unlocked."""
    return service.create_path(req)


@path_routes.get("/paths/{path_id}", response_model=PathDetailResponse)
def get_path(path_id: str, service: PathService = Depends(get_path_service)) -> PathDetailResponse:
    return service.get_path(path_id)


@path_routes.get("/users/{user_id}/paths", response_model=PathListResponse)
def list_user_paths(user_id: str, service: PathService = Depends(get_path_service)) -> PathListResponse:
    """All paths of a user, newest first."""
    return service.list_user_paths(user_id)


@path_routes.get("/paths/{path_id}/nodes/{node_id}", response_model=NodeResponse)
def get_node(path_id: str, node_id: str, service: PathService = Depends(get_path_service)) -> NodeResponse:
    return service.get_node(path_id, node_id)


@path_routes.post("/paths/{path_id}/nodes/{node_id}/complete", response_model=CompletionResponse)
def complete_node(
    path_id: str,
    node_id: str,
    req: CompleteNodeRequest | None = None,
    service: PathService = Depends(get_path_service),
) -> CompletionResponse:
    """Complete an unlocked node and unlock the next one."""
    position = req.position if req is not None else None
    return service.complete_node(path_id, node_id, position)


@path_routes.patch("/paths/{path_id}/nodes/{node_id}", response_model=CompletionResponse)
def update_node(
    path_id: str,
    node_id: str,
    req: UpdateNodeRequest,
    service: PathService = Depends(get_path_service),
) -> CompletionResponse:
    if not req.completed:
        raise HTTPException(status_code=400, detail="Completed nodes cannot be reopened")
    return service.complete_node(path_id, node_id)


@path_routes.post("/paths/{path_id}/nodes/{node_id}/resume", response_model=CompletionResponse)
def resume_progression(
    path_id: str,
    node_id: str,
    service: PathService = Depends(get_path_service),
) -> CompletionResponse:
    """Re-run the unlock cascade for a completed node (retry after a partial failure)."""
    return service.resume_progression(path_id, node_id)
