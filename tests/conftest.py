"""
Pytest configuration and shared fixtures for the test suite.
Ensures the project root and src/ are importable and provides stores for unit and integration tests.
"""
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

# Add project root and src to Python path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))
src_path = project_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from infra.persistence.memory_store import MemoryStore  # noqa: E402
from infra.persistence.sql_store import SqlStore  # noqa: E402
from learning_paths.entities import LearningPath, build_nodes, new_id  # noqa: E402


# ----- In-memory stores (no real DB) -----
@pytest.fixture
def in_memory_engine():
    """In-memory SQLite engine on one shared connection. Single-threaded tests only; build_engine refuses this URL."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(in_memory_engine):
    store = SqlStore(in_memory_engine)
    store.create_all()
    return store


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Runs a test once per adapter: both must satisfy the same contracts."""
    if request.param == "memory":
        return MemoryStore()
    return request.getfixturevalue("sql_store")


@pytest.fixture
def repos(store):
    return store.repositories()


def make_path(user_id: str = "anonymous", topic: str = "Learn Go basics", title: str = "Go Fundamentals", n_nodes: int = 3):
    """A path plus n_nodes generated nodes (node 1 unlocked, the rest locked)."""
    path = LearningPath(id=new_id(), user_id=user_id, topic=topic, title=title)
    drafts = [
        {
            "title": f"Exercise {i}",
            "description": f"Step {i}",
            "markdown_content": f"# Exercise {i}",
            "boilerplate_code": "package main\n",
            "hidden_tests": '[{"input": "", "expected": "ok"}]',
            "xp_reward": 10 * i,
        }
        for i in range(1, n_nodes + 1)
    ]
    return path, build_nodes(path.id, drafts)


@pytest.fixture
def path_factory():
    return make_path


@pytest.fixture
def seeded_path(repos):
    """A three-node path already persisted in the parametrized store."""
    path, nodes = make_path()
    repos.paths.create(path)
    repos.nodes.create_batch(nodes)
    return path, nodes
