"""
Pytest fixtures for testing.

Provides:
- SQLite engine with a fresh rule table per test
- Adapter bound to that engine
- Factory fixture for seeding rows directly
- Casbin model built from an RBAC model definition
"""

from typing import Generator, Sequence

import pytest
from casbin.model import Model
from sqlalchemy import create_engine, func, insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from sqladapter import SQLAdapter
from sqladapter.models.rule import to_row


# Test database URL (SQLite in-memory for speed)
TEST_DATABASE_URL = "sqlite://"

TEST_TABLE_NAME = "casbin_rule"

# RBAC model with a second policy type and a domain-scoped role type
MODEL_TEXT = """
[request_definition]
r = sub, obj, act

[policy_definition]
p = sub, obj, act
p2 = sub, obj, act

[role_definition]
g = _, _
g2 = _, _, _

[policy_effect]
e = some(where (p.eft == allow))

[matchers]
m = g(r.sub, p.sub) && r.obj == p.obj && r.act == p.act
"""


def new_model() -> Model:
    """Empty casbin model from MODEL_TEXT."""
    model = Model()
    model.load_model_from_text(MODEL_TEXT)
    return model


@pytest.fixture(scope="function")
def db_engine() -> Generator[Engine, None, None]:
    """In-memory engine; StaticPool keeps one shared connection."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def adapter(db_engine: Engine) -> Generator[SQLAdapter, None, None]:
    """Adapter with its table created."""
    adapter = SQLAdapter(db_engine, table_name=TEST_TABLE_NAME)
    adapter.metadata.create_all(db_engine)
    yield adapter
    adapter.metadata.drop_all(db_engine)


# ============ Factory Fixtures ============


class RuleFactory:
    """Seeds and inspects the rule table without going through the adapter."""

    def __init__(self, adapter: SQLAdapter):
        self.adapter = adapter
        self.table = adapter.table

    def create(self, ptype: str, *fields: str) -> None:
        with self.adapter.engine.begin() as conn:
            conn.execute(insert(self.table), to_row(ptype, fields).as_params())

    def create_many(self, rows: Sequence[Sequence[str]]) -> None:
        for ptype, *fields in rows:
            self.create(ptype, *fields)

    def rows(self) -> list[tuple[str, ...]]:
        """All rows as (ptype, v0..v5) tuples."""
        with self.adapter.engine.connect() as conn:
            return [tuple(row) for row in conn.execute(select(self.table))]

    def count(self, **filters: str) -> int:
        stmt = select(func.count()).select_from(self.table)
        for column, value in filters.items():
            stmt = stmt.where(self.table.c[column] == value)
        with self.adapter.engine.connect() as conn:
            return conn.scalar(stmt) or 0


@pytest.fixture
def rule_factory(adapter: SQLAdapter) -> RuleFactory:
    """Fixture that provides RuleFactory."""
    return RuleFactory(adapter)


@pytest.fixture
def make_model():
    """Fixture that builds empty casbin models."""
    return new_model
