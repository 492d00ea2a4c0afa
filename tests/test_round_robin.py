"""Tests for persistent round-robin agent selection."""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor

import pytest

from app import create_app
from config import TestConfig
from extensions import db
from models import RoundRobinState, User
from services import round_robin
from tests.factories import make_user


@pytest.fixture
def file_app(tmp_path):
    """App on a file-backed SQLite database so several threads share one store."""
    config = type("FileTestConfig", (TestConfig,), {
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'crm.db'}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"check_same_thread": False, "timeout": 30}},
    })
    app = create_app(config)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


def deactivate(user_id):
    db.session.get(User, user_id).is_active = False
    db.session.commit()


class TestNextAgent:

    def test_cycles_through_pool_in_order(self, app):
        for agent_id in ("a", "b", "c"):
            make_user(id=agent_id)

        picks = [round_robin.next_agent("r1", ["a", "b", "c"]) for _ in range(4)]
        assert picks == ["a", "b", "c", "a"]

    def test_state_is_persisted_per_rule(self, app):
        make_user(id="a")
        make_user(id="b")

        round_robin.next_agent("r1", ["a", "b"])
        round_robin.next_agent("r1", ["a", "b"])
        assert round_robin.next_agent("r2", ["a", "b"]) == "a"

        state = db.session.get(RoundRobinState, "r1")
        assert (state.last_index, state.last_agent_id) == (1, "b")

    def test_departed_agent_is_skipped(self, app):
        for agent_id in ("a", "b", "c"):
            make_user(id=agent_id)
        pool = ["a", "b", "c"]

        assert round_robin.next_agent("r1", pool) == "a"
        assert round_robin.next_agent("r1", pool) == "b"
        deactivate("b")
        assert round_robin.next_agent("r1", pool) == "c"
        assert round_robin.next_agent("r1", pool) == "a"

    def test_empty_pool_means_all_active_users(self, app):
        make_user(id="u2")
        make_user(id="u1")
        make_user(id="u3", is_active=False)

        picks = [round_robin.next_agent("r1") for _ in range(3)]
        assert picks == ["u1", "u2", "u1"]

    def test_no_candidates(self, app):
        make_user(id="a", is_active=False)

        assert round_robin.next_agent("r1", ["a", "ghost"]) is None
        assert db.session.get(RoundRobinState, "r1") is None

    def test_reset_restarts_rotation(self, app):
        make_user(id="a")
        make_user(id="b")
        round_robin.next_agent("r1", ["a", "b"])

        round_robin.reset("r1")
        db.session.commit()

        assert round_robin.next_agent("r1", ["a", "b"]) == "a"


class TestResolvePool:

    def test_explicit_pool_keeps_order_and_drops_inactive(self, app):
        make_user(id="a")
        make_user(id="b", is_active=False)
        make_user(id="c")

        assert round_robin.resolve_pool(["c", "b", "a", "c"]) == ["c", "a"]


class TestConcurrentRotation:

    def test_parallel_workers_share_turns_evenly(self, file_app):
        pool = ["a", "b", "c"]
        for agent_id in pool:
            make_user(id=agent_id)
        workers, calls = 6, 10

        def worker(_):
            with file_app.app_context():
                try:
                    return [round_robin.next_agent("concurrent-rule", pool) for _ in range(calls)]
                finally:
                    db.session.remove()

        with ThreadPoolExecutor(max_workers=workers) as executor:
            picks = [agent for batch in executor.map(worker, range(workers)) for agent in batch]

        assert Counter(picks) == {agent: workers * calls // len(pool) for agent in pool}
