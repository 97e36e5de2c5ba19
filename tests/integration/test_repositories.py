"""
Repository contract tests. Every test runs against the in-memory store and the
SQLite-backed SQL store.
"""
import threading
import time
from datetime import timedelta

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.exc import InvalidRequestError

from infra.persistence.memory_store import MemoryStore
from infra.persistence.models import LearningPathRow
from infra.persistence.sql_store import SqlStore
from learning_paths.context import OperationContext
from learning_paths.entities import LearningPath, NodeStatus, PathStatus, build_nodes, new_id
from learning_paths.errors import Conflict, DeadlineExceeded, InvalidTransition, NotFound


def _status_by_position(repos, path_id):
    return {n.position: n.status for n in repos.nodes.get_by_path_id(path_id)}


@pytest.mark.integration
class TestPathRepository:
    @pytest.mark.parametrize(
        "user_id,topic,title,status",
        [
            ("anonymous", "Learn Go basics", "Go Programming Fundamentals", PathStatus.ACTIVE),
            ("user-123", "Learn C++ templates & generics", "C++ Advanced: Templates, Generics & Metaprogramming", PathStatus.ACTIVE),
            ("test-user", "Python for beginners", "Python 101", PathStatus.COMPLETED),
        ],
    )
    def test_round_trip(self, repos, user_id, topic, title, status):
        path = LearningPath(id=new_id(), user_id=user_id, topic=topic, title=title, status=status)
        repos.paths.create(path)

        got = repos.paths.get_by_id(path.id)
        assert got is not None
        assert (got.id, got.user_id, got.topic, got.title, got.status) == (
            path.id, user_id, topic, title, status,
        )
        assert got.nodes == []

    def test_duplicate_id_conflicts(self, repos, path_factory):
        path, _ = path_factory()
        repos.paths.create(path)
        with pytest.raises(Conflict):
            repos.paths.create(path)

    def test_missing_is_none(self, repos):
        assert repos.paths.get_by_id("missing") is None
        assert repos.paths.get_by_id_with_nodes("missing") is None

    def test_with_nodes_ordered(self, repos, path_factory):
        path, nodes = path_factory(n_nodes=5)
        repos.paths.create(path)
        repos.nodes.create_batch(list(reversed(nodes)))

        got = repos.paths.get_by_id_with_nodes(path.id)
        assert [n.position for n in got.nodes] == [1, 2, 3, 4, 5]
        assert [n.id for n in got.nodes] == [n.id for n in nodes]

    def test_with_nodes_empty_path(self, repos, path_factory):
        path, _ = path_factory()
        repos.paths.create(path)
        assert repos.paths.get_by_id_with_nodes(path.id).nodes == []

    def test_by_user_newest_first(self, repos, path_factory):
        older, _ = path_factory(user_id="u1", title="older")
        newer, _ = path_factory(user_id="u1", title="newer")
        newer.created_at = older.created_at + timedelta(minutes=5)
        other, _ = path_factory(user_id="u2")
        for p in (older, newer, other):
            repos.paths.create(p)

        assert [p.title for p in repos.paths.get_by_user_id("u1")] == ["newer", "older"]
        assert repos.paths.get_by_user_id("nobody") == []

    def test_update_status(self, repos, path_factory):
        path, _ = path_factory()
        repos.paths.create(path)
        before = repos.paths.get_by_id(path.id).updated_at
        repos.paths.update_status(path.id, PathStatus.COMPLETED)
        got = repos.paths.get_by_id(path.id)
        assert got.status == PathStatus.COMPLETED
        assert got.updated_at >= before
        assert got.title == path.title

    def test_update_status_unknown_id(self, repos):
        with pytest.raises(NotFound):
            repos.paths.update_status("missing", PathStatus.COMPLETED)


@pytest.mark.integration
class TestNodeRepository:
    def test_node_round_trip(self, repos, seeded_path):
        _, nodes = seeded_path
        got = repos.nodes.get_by_id(nodes[0].id)
        assert got.title == nodes[0].title
        assert got.markdown_content == nodes[0].markdown_content
        assert got.hidden_tests == nodes[0].hidden_tests
        assert got.xp_reward == nodes[0].xp_reward
        assert got.status == NodeStatus.UNLOCKED
        assert repos.nodes.get_by_id("missing") is None

    def test_order_preserved(self, repos, path_factory):
        path, nodes = path_factory(n_nodes=7)
        repos.paths.create(path)
        repos.nodes.create_batch(nodes[3:] + nodes[:3])
        got = repos.nodes.get_by_path_id(path.id)
        assert [n.position for n in got] == list(range(1, 8))
        assert repos.nodes.max_position(path.id) == 7

    def test_empty_batch_is_noop(self, repos):
        repos.nodes.create_batch([])
        assert repos.nodes.get_by_path_id("anything") == []
        assert repos.nodes.max_position("anything") == 0

    def test_batch_failure_persists_nothing(self, repos, path_factory):
        path, nodes = path_factory(n_nodes=5)
        repos.paths.create(path)
        nodes[3].position = 2  # collides with node 2 part-way through the batch
        with pytest.raises(Conflict):
            repos.nodes.create_batch(nodes)
        assert repos.nodes.get_by_path_id(path.id) == []

    def test_batch_duplicate_id_persists_nothing(self, repos, path_factory):
        path, nodes = path_factory(n_nodes=3)
        repos.paths.create(path)
        nodes[2].id = nodes[0].id
        with pytest.raises(Conflict):
            repos.nodes.create_batch(nodes)
        assert repos.nodes.get_by_path_id(path.id) == []

    def test_unlock_cascade(self, repos, seeded_path):
        path, nodes = seeded_path
        repos.nodes.update_status(nodes[0].id, NodeStatus.COMPLETED)

        assert repos.nodes.unlock_next(path.id, 1) is True
        assert _status_by_position(repos, path.id) == {
            1: NodeStatus.COMPLETED,
            2: NodeStatus.UNLOCKED,
            3: NodeStatus.LOCKED,
        }

    def test_unlock_next_only_from_locked(self, repos, seeded_path):
        path, nodes = seeded_path
        repos.nodes.update_status(nodes[1].id, NodeStatus.COMPLETED)
        assert repos.nodes.unlock_next(path.id, 1) is False
        assert repos.nodes.get_by_id(nodes[1].id).status == NodeStatus.COMPLETED

    def test_unlock_next_past_last_node(self, repos, seeded_path):
        path, _ = seeded_path
        assert repos.nodes.unlock_next(path.id, 3) is False

    def test_unlock_next_is_idempotent(self, repos, seeded_path):
        path, _ = seeded_path
        assert repos.nodes.unlock_next(path.id, 1) is True
        assert repos.nodes.unlock_next(path.id, 1) is False
        assert _status_by_position(repos, path.id)[2] == NodeStatus.UNLOCKED

    def test_guarded_update(self, repos, seeded_path):
        _, nodes = seeded_path
        with pytest.raises(InvalidTransition):
            repos.nodes.update_status(nodes[1].id, NodeStatus.COMPLETED, expected=NodeStatus.UNLOCKED)
        assert repos.nodes.get_by_id(nodes[1].id).status == NodeStatus.LOCKED

        repos.nodes.update_status(nodes[0].id, NodeStatus.COMPLETED, expected=NodeStatus.UNLOCKED)
        assert repos.nodes.get_by_id(nodes[0].id).status == NodeStatus.COMPLETED

    def test_update_status_unknown_id(self, repos):
        with pytest.raises(NotFound):
            repos.nodes.update_status("missing", NodeStatus.COMPLETED)
        with pytest.raises(NotFound):
            repos.nodes.update_status("missing", NodeStatus.COMPLETED, expected=NodeStatus.UNLOCKED)

    def test_expired_context_aborts(self, repos, seeded_path):
        path, _ = seeded_path
        ctx = OperationContext(deadline=time.monotonic() - 1)
        with pytest.raises(DeadlineExceeded):
            repos.nodes.unlock_next(path.id, 1, ctx=ctx)
        assert _status_by_position(repos, path.id)[2] == NodeStatus.LOCKED


@pytest.mark.integration
class TestTransactions:
    def test_transaction_commits_together(self, store, path_factory):
        path, nodes = path_factory()
        with store.transaction() as tx:
            tx.paths.create(path)
            tx.nodes.create_batch(nodes)
        assert len(store.repositories().paths.get_by_id_with_nodes(path.id).nodes) == 3

    def test_transaction_rolls_back_on_error(self, store, path_factory):
        path, nodes = path_factory()
        with pytest.raises(RuntimeError):
            with store.transaction() as tx:
                tx.paths.create(path)
                tx.nodes.create_batch(nodes)
                raise RuntimeError("generator crashed")
        repos = store.repositories()
        assert repos.paths.get_by_id(path.id) is None
        assert repos.nodes.get_by_path_id(path.id) == []


@pytest.mark.integration
class TestNodeCollectionLoading:
    def test_nodes_collection_not_loaded_implicitly(self, sql_store, path_factory):
        repos = sql_store.repositories()
        path, nodes = path_factory()
        repos.paths.create(path)
        repos.nodes.create_batch(nodes)

        with sql_store.session_factory() as session:
            row = session.scalar(select(LearningPathRow).where(LearningPathRow.id == path.id))
            assert row.to_entity().nodes == []
            with pytest.raises(InvalidRequestError):
                row.nodes

        assert [n.position for n in repos.paths.get_by_id_with_nodes(path.id).nodes] == [1, 2, 3]

    def test_nodes_loaded_after_create_in_same_transaction(self, sql_store, path_factory):
        path, nodes = path_factory()
        with sql_store.transaction() as tx:
            tx.paths.create(path)
            tx.nodes.create_batch(nodes)
            got = tx.paths.get_by_id_with_nodes(path.id)
        assert [n.id for n in got.nodes] == [n.id for n in nodes]


def _race(n_threads, fn):
    barrier = threading.Barrier(n_threads)
    results, errors = [], []

    def worker():
        barrier.wait()
        try:
            results.append(fn())
        except Exception as e:  # surfaced through the assertion below
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(n_threads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results, errors


@pytest.fixture(params=["memory", "sqlite-file"])
def concurrent_store(request, tmp_path):
    if request.param == "memory":
        yield MemoryStore()
        return
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    store = SqlStore(engine)
    store.create_all()
    yield store
    engine.dispose()


@pytest.mark.integration
class TestConcurrentUnlock:
    def test_single_winner(self, concurrent_store):
        repos = concurrent_store.repositories()
        path = LearningPath(id=new_id(), user_id="u", topic="t", title="race")
        nodes = build_nodes(path.id, [{"title": "A"}, {"title": "B"}, {"title": "C"}])
        repos.paths.create(path)
        repos.nodes.create_batch(nodes)
        repos.nodes.update_status(nodes[0].id, NodeStatus.COMPLETED)

        results, errors = _race(8, lambda: repos.nodes.unlock_next(path.id, 1))

        assert errors == []
        assert results.count(True) == 1
        assert results.count(False) == 7
        assert _status_by_position(repos, path.id) == {
            1: NodeStatus.COMPLETED,
            2: NodeStatus.UNLOCKED,
            3: NodeStatus.LOCKED,
        }

    def test_concurrent_guarded_completion(self, concurrent_store):
        repos = concurrent_store.repositories()
        path = LearningPath(id=new_id(), user_id="u", topic="t", title="race")
        nodes = build_nodes(path.id, [{"title": "A"}, {"title": "B"}])
        repos.paths.create(path)
        repos.nodes.create_batch(nodes)

        def complete():
            repos.nodes.update_status(nodes[0].id, NodeStatus.COMPLETED, expected=NodeStatus.UNLOCKED)
            return True

        results, errors = _race(6, complete)

        assert results == [True]
        assert len(errors) == 5
        assert all(isinstance(e, InvalidTransition) for e in errors)
