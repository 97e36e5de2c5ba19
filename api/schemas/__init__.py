"""
API schemas package. Import from submodules or from this package.

Example:
    from api.schemas import PathDetailResponse, CompletionResponse
    from api.schemas.path_schemas import CreatePathRequest
"""

from api.schemas.path_schemas import (
    NodeDraft,
    CreatePathRequest,
    NodeResponse,
    PathResponse,
    PathDetailResponse,
    PathListResponse,
    UpdateNodeRequest,
    CompleteNodeRequest,
    CompletionResponse,
)

__all__ = [
    # requests
    "NodeDraft",
    "CreatePathRequest",
    "UpdateNodeRequest",
    "CompleteNodeRequest",
    # responses
    "NodeResponse",
    "PathResponse",
    "PathDetailResponse",
    "PathListResponse",
    "CompletionResponse",
]
