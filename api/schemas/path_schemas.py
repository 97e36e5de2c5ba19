"""
Learning path and node request/response schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional


class NodeDraft(BaseModel):
    """One generated exercise, in path order. Position and initial status are assigned on create."""
    title: str = Field(min_length=1)
    description: str = ""
    markdown_content: str = ""
    boilerplate_code: str = ""
    documentation_snippet: str = ""
    hidden_tests: str = ""  # JSON text, stored as-is
    xp_reward: int = Field(default=100, ge=0)


class CreatePathRequest(BaseModel):
    user_id: str = Field(min_length=1)
    topic: str
    title: str
    nodes: list[NodeDraft] = Field(min_length=1)


class NodeResponse(BaseModel):
    id: str
    path_id: str
    position: int
    title: str
    description: str
    markdown_content: str
    boilerplate_code: str
    documentation_snippet: str
    status: str  # locked|unlocked|completed
    xp_reward: int
    created_at: str
    updated_at: str


class PathResponse(BaseModel):
    id: str
    user_id: str
    topic: str
    title: str
    status: str  # active|completed|archived
    created_at: str
    updated_at: str


class PathDetailResponse(PathResponse):
    nodes: list[NodeResponse]
    current_node_id: Optional[str] = None
    total_xp: int
    earned_xp: int


class PathListResponse(BaseModel):
    paths: list[PathResponse]


class UpdateNodeRequest(BaseModel):
    completed: bool


class CompleteNodeRequest(BaseModel):
    position: Optional[int] = Field(default=None, ge=1)


class CompletionResponse(BaseModel):
    node: NodeResponse
    unlocked_next: bool
    next_node_id: Optional[str] = None
    path_completed: bool
