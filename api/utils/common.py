"""
Common utility functions used across routes and services.
"""

from datetime import datetime

from learning_paths.entities import LearningPath, PathNode
from api.schemas.path_schemas import NodeResponse, PathDetailResponse, PathResponse


def iso_format(dt: datetime) -> str:
    """Format a naive UTC datetime as ISO string with Z suffix."""
    return dt.isoformat() + "Z"


def node_response(n: PathNode) -> NodeResponse:
    return NodeResponse(
        id=n.id,
        path_id=n.path_id,
        position=n.position,
        title=n.title,
        description=n.description,
        markdown_content=n.markdown_content,
        boilerplate_code=n.boilerplate_code,
        documentation_snippet=n.documentation_snippet,
        status=n.status.value,
        xp_reward=n.xp_reward,
        created_at=iso_format(n.created_at),
        updated_at=iso_format(n.updated_at),
    )


def path_response(p: LearningPath) -> PathResponse:
    return PathResponse(
        id=p.id,
        user_id=p.user_id,
        topic=p.topic,
        title=p.title,
        status=p.status.value,
        created_at=iso_format(p.created_at),
        updated_at=iso_format(p.updated_at),
    )


def path_detail_response(p: LearningPath) -> PathDetailResponse:
    current = p.current_node()
    return PathDetailResponse(
        **path_response(p).model_dump(),
        nodes=[node_response(n) for n in p.nodes],
        current_node_id=current.id if current is not None else None,
        total_xp=p.total_xp(),
        earned_xp=p.earned_xp(),
    )
