"""
SQLAlchemy rows for the learning path tables and their entity converters.

Statuses are stored as plain text and converted to the enums here only.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

from learning_paths.entities import (
    DEFAULT_XP_REWARD,
    LearningPath,
    NodeStatus,
    PathNode,
    PathStatus,
    utcnow,
)

Base = declarative_base()


class LearningPathRow(Base):
    __tablename__ = "learning_paths"
    id = Column(String(36), primary_key=True)  # uuid
    user_id = Column(String(255), index=True, nullable=False)
    topic = Column(Text, nullable=False, default="")
    title = Column(String(500), nullable=False, default="")
    status = Column(String(50), nullable=False, default=PathStatus.ACTIVE.value)  # active|completed|archived
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    nodes = relationship(
        "PathNodeRow",
        back_populates="path",
        order_by="PathNodeRow.position",
        lazy="raise",  # load explicitly with selectinload
    )

    def to_entity(self, with_nodes: bool = False) -> LearningPath:
        path = LearningPath(
            id=self.id,
            user_id=self.user_id,
            topic=self.topic,
            title=self.title,
            status=PathStatus(self.status),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
        if with_nodes:
            path.nodes = [n.to_entity() for n in self.nodes]
        return path

    @classmethod
    def from_entity(cls, e: LearningPath) -> "LearningPathRow":
        return cls(
            id=e.id,
            user_id=e.user_id,
            topic=e.topic,
            title=e.title,
            status=PathStatus(e.status).value,
            created_at=e.created_at,
            updated_at=e.updated_at,
        )


class PathNodeRow(Base):
    __tablename__ = "path_nodes"
    __table_args__ = (UniqueConstraint("path_id", "position", name="uq_path_nodes_path_position"),)

    id = Column(String(36), primary_key=True)  # uuid
    path_id = Column(String(36), ForeignKey("learning_paths.id"), index=True, nullable=False)
    position = Column(Integer, nullable=False)
    title = Column(String(500), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    markdown_content = Column(Text, nullable=False, default="")
    boilerplate_code = Column(Text, nullable=False, default="")
    documentation_snippet = Column(Text, nullable=False, default="")
    hidden_tests = Column(Text, nullable=False, default="")  # JSON text
    status = Column(String(50), nullable=False, default=NodeStatus.LOCKED.value)  # locked|unlocked|completed
    xp_reward = Column(Integer, nullable=False, default=DEFAULT_XP_REWARD)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    path = relationship("LearningPathRow", back_populates="nodes")

    def to_entity(self) -> PathNode:
        return PathNode(
            id=self.id,
            path_id=self.path_id,
            position=self.position,
            title=self.title,
            description=self.description,
            markdown_content=self.markdown_content,
            boilerplate_code=self.boilerplate_code,
            documentation_snippet=self.documentation_snippet,
            hidden_tests=self.hidden_tests,
            status=NodeStatus(self.status),
            xp_reward=self.xp_reward,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, e: PathNode) -> "PathNodeRow":
        return cls(
            id=e.id,
            path_id=e.path_id,
            position=e.position,
            title=e.title,
            description=e.description,
            markdown_content=e.markdown_content,
            boilerplate_code=e.boilerplate_code,
            documentation_snippet=e.documentation_snippet,
            hidden_tests=e.hidden_tests,
            status=NodeStatus(e.status).value,
            xp_reward=e.xp_reward,
            created_at=e.created_at,
            updated_at=e.updated_at,
        )
