"""
Tests for concurrent callers sharing one adapter.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine

from sqladapter import SQLAdapter

WORKERS = 8
RULES_PER_WORKER = 10


@pytest.fixture
def file_adapter(tmp_path):
    """Adapter on a file-backed SQLite database with a real connection pool."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'rules.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    adapter = SQLAdapter(engine)
    adapter.metadata.create_all(engine)
    yield adapter
    engine.dispose()


def test_concurrent_adds_are_not_lost(file_adapter: SQLAdapter, make_model):
    def add_rules(worker: int) -> None:
        for i in range(RULES_PER_WORKER):
            file_adapter.add_policy("p", "p", [f"user{worker}", f"data{i}", "read"])

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        list(pool.map(add_rules, range(WORKERS)))

    model = make_model()
    file_adapter.load_policy(model)

    expected = {
        (f"user{worker}", f"data{i}", "read")
        for worker in range(WORKERS)
        for i in range(RULES_PER_WORKER)
    }
    assert {tuple(rule) for rule in model.get_policy("p", "p")} == expected
    assert len(model.get_policy("p", "p")) == WORKERS * RULES_PER_WORKER
