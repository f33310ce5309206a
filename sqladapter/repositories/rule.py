"""
Rule repository: the SQL issued against the rule table.

A repository is bound to one open connection, i.e. to one transaction.
It never begins or commits; the adapter owns the transaction.

Usage:
    def work(conn):
        repo = RuleRepository(conn, table)
        repo.insert_many([to_row("p", ["alice", "data1", "read"])])

    run_in_transaction(engine, work)
"""

from typing import Iterable, Iterator, Sequence

from sqlalchemy import ColumnElement, Table, and_, delete, insert, select, update
from sqlalchemy.engine import Connection

from sqladapter.models.rule import FIELD_COLUMNS, FIELD_COUNT, PolicyRule, RuleFilter


def field_conditions(
    table: Table,
    field_index: int,
    field_values: Sequence[str],
) -> list[ColumnElement[bool]]:
    """
    Equality conditions for v{field_index}.. matching field_values in order.

    Positions outside [field_index, field_index + len(field_values)) are
    left unconstrained.
    """
    if field_index < 0:
        raise ValueError(f"field_index must be >= 0, got {field_index}")
    if field_index + len(field_values) > FIELD_COUNT:
        raise ValueError(
            f"field_index {field_index} with {len(field_values)} values "
            f"exceeds the {FIELD_COUNT} rule columns"
        )
    return [
        table.c[f"v{field_index + offset}"] == value
        for offset, value in enumerate(field_values)
    ]


class RuleRepository:
    """
    Statements over the rule table.

    Each batch method builds its statement once and executes it per rule,
    so the first failing row stops the batch.
    """

    def __init__(self, conn: Connection, table: Table):
        self.conn = conn
        self.table = table

    def _exact_match(self, rule: PolicyRule) -> ColumnElement[bool]:
        """ptype and all six fields equal, "" included."""
        return and_(
            self.table.c.ptype == rule.ptype,
            *(self.table.c[name] == getattr(rule, name) for name in FIELD_COLUMNS),
        )

    # ============================================================
    # READ
    # ============================================================

    def select_all(self) -> Iterator[PolicyRule]:
        """All rows, in whatever order the database returns them."""
        result = self.conn.execute(select(self.table))
        for row in result:
            yield PolicyRule.from_row(row)

    def select_by_filter(self, rule_filter: RuleFilter) -> Iterator[PolicyRule]:
        """Rows whose columns are each in the filter's accepted values."""
        stmt = select(self.table)
        for column, values in rule_filter.constraints().items():
            stmt = stmt.where(self.table.c[column].in_(values))
        result = self.conn.execute(stmt)
        for row in result:
            yield PolicyRule.from_row(row)

    def select_filtered(
        self,
        ptype: str,
        field_index: int,
        field_values: Sequence[str],
    ) -> list[PolicyRule]:
        """Rows of ptype matching field_values from field_index on."""
        stmt = select(self.table).where(
            self.table.c.ptype == ptype,
            *field_conditions(self.table, field_index, field_values),
        )
        return [PolicyRule.from_row(row) for row in self.conn.execute(stmt)]

    # ============================================================
    # WRITE
    # ============================================================

    def insert(self, rule: PolicyRule) -> None:
        self.conn.execute(insert(self.table), rule.as_params())

    def insert_many(self, rules: Iterable[PolicyRule]) -> int:
        """Insert rules one by one in order. Returns the number inserted."""
        stmt = insert(self.table)
        count = 0
        for rule in rules:
            self.conn.execute(stmt, rule.as_params())
            count += 1
        return count

    def delete_all(self) -> int:
        result = self.conn.execute(delete(self.table))
        return result.rowcount

    def delete_exact(self, rule: PolicyRule) -> int:
        """Delete rows equal to rule on every column. Returns rows deleted."""
        result = self.conn.execute(delete(self.table).where(self._exact_match(rule)))
        return result.rowcount

    def delete_many_exact(self, rules: Iterable[PolicyRule]) -> int:
        deleted = 0
        for rule in rules:
            deleted += self.delete_exact(rule)
        return deleted

    def delete_filtered(
        self,
        ptype: str,
        field_index: int,
        field_values: Sequence[str],
    ) -> int:
        """Delete rows of ptype matching field_values from field_index on."""
        stmt = delete(self.table).where(
            self.table.c.ptype == ptype,
            *field_conditions(self.table, field_index, field_values),
        )
        result = self.conn.execute(stmt)
        return result.rowcount

    def update_exact(self, old: PolicyRule, new: PolicyRule) -> int:
        """Rewrite rows equal to old so they equal new. Returns rows updated."""
        stmt = (
            update(self.table)
            .where(self._exact_match(old))
            .values(**new.as_params())
        )
        result = self.conn.execute(stmt)
        return result.rowcount
