"""
SQL policy adapter.

Persists policy rules (ptype + v0..v5) in one relational table and loads
them back into a casbin model. Every public operation is one database
transaction: it either fully commits or fully rolls back. Nothing is cached
between calls.

Usage:
    engine = create_db_engine("postgresql+psycopg2://user:pw@db/authz")
    adapter = SQLAdapter(engine, table_name="casbin_rule")

    enforcer = casbin.Enforcer("rbac_model.conf", adapter)

    enforcer.add_policy("alice", "data1", "read")    # written through the adapter
    enforcer.remove_filtered_policy(0, "alice")

    # Or build the engine from configuration (DB_* environment variables)
    adapter = SQLAdapter.from_settings()
"""

from typing import Any, Callable, Iterator, Sequence, TypeVar

import structlog
from casbin import persist
from casbin.model import Model
from casbin.persist.adapters.update_adapter import UpdateAdapter
from sqlalchemy import MetaData
from sqlalchemy.engine import Engine

from sqladapter.core.config import Settings, get_settings
from sqladapter.core.exceptions import FilteredPolicyError
from sqladapter.models.database import (
    create_db_engine,
    engine_from_credentials,
    run_in_transaction,
    split_host_port,
)
from sqladapter.models.rule import (
    PolicyRule,
    RuleFilter,
    build_rule_table,
    is_line_safe,
    to_line,
    to_row,
)
from sqladapter.repositories.rule import RuleRepository

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_TABLE_NAME = "casbin_rule"

# Sections persisted, in save order: permission rules, then grouping rules
POLICY_SECTIONS = ("p", "g")


class SQLAdapter(
    persist.BatchAdapter,
    persist.FilteredAdapter,
    UpdateAdapter,
    persist.Adapter,
):
    """
    Casbin storage adapter over a SQLAlchemy engine.

    The engine (and its connection pool) is injected. Adapters built with
    ``from_credentials`` or ``from_settings`` own their engine and dispose
    it on ``close()``.

    Concurrent callers may share one adapter; isolation between their
    transactions is whatever the database provides.
    """

    def __init__(self, engine: Engine, table_name: str = DEFAULT_TABLE_NAME):
        self.engine = engine
        self.table_name = table_name
        self.metadata = MetaData()
        self.table = build_rule_table(table_name, self.metadata)
        self._filtered = False
        self._owns_engine = False

    @classmethod
    def from_credentials(
        cls,
        driver: str,
        user: str | None,
        password: str | None,
        host: str | None,
        database: str | None,
        table_name: str = DEFAULT_TABLE_NAME,
        port: int | None = None,
    ) -> "SQLAdapter":
        """
        Build an adapter and its engine from connection parts.

        ``host`` may carry the port as "host:port" or "[ipv6]:port". No
        connection is made here; errors surface on the first operation.
        """
        host, port = split_host_port(host, port)
        engine = engine_from_credentials(
            driver, user, password, host, database, port=port
        )
        adapter = cls(engine, table_name=table_name)
        adapter._owns_engine = True
        return adapter

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SQLAdapter":
        """Build an adapter from Settings (environment / .env)."""
        settings = settings or get_settings()
        db = settings.database
        engine = create_db_engine(db.sqlalchemy_url(), settings=db)
        adapter = cls(engine, table_name=db.table_name)
        adapter._owns_engine = True
        return adapter

    def close(self) -> None:
        """Dispose the engine if this adapter created it."""
        if self._owns_engine:
            self.engine.dispose()

    def __repr__(self) -> str:
        return f"<SQLAdapter table={self.table_name} url={self.engine.url!r}>"

    # ============================================================
    # INTERNALS
    # ============================================================

    def _run(
        self,
        operation: str,
        work: Callable[[RuleRepository], T],
        **log_fields: Any,
    ) -> T:
        """Run work in one transaction with a repository bound to it."""
        try:
            return run_in_transaction(
                self.engine,
                lambda conn: work(RuleRepository(conn, self.table)),
            )
        except Exception as exc:
            logger.error(
                "policy.operation_failed",
                operation=operation,
                table=self.table_name,
                error=repr(exc),
                **log_fields,
            )
            raise

    @staticmethod
    def _model_rows(model: Model) -> Iterator[PolicyRule]:
        """Every rule in the model as a row, p section before g."""
        for sec in POLICY_SECTIONS:
            for ptype, ast in model.model.get(sec, {}).items():
                for rule in ast.policy:
                    yield to_row(ptype, rule)

    @staticmethod
    def _feed(model: Model, rows: Iterator[PolicyRule]) -> int:
        """
        Hand each row to the model. Returns rules loaded.

        Rows whose plain line tokenizes back to the same fields go through
        casbin's line loader. Fields holding commas, quotes, brackets or
        surrounding whitespace would be split or stripped there, so those
        rows are added to the model as field lists. Either way a rule whose
        section or ptype the model does not define is skipped.
        """
        loaded = 0
        for row in rows:
            line = to_line(row)
            if line is None:
                continue
            if is_line_safe(row):
                persist.load_policy_line(line, model)
            else:
                sec = row.ptype[:1]
                if sec not in model.model or row.ptype not in model.model[sec]:
                    continue
                model.add_policy(sec, row.ptype, row.fields())
            loaded += 1
        return loaded

    # ============================================================
    # BULK OPERATIONS
    # ============================================================

    def load_policy(self, model: Model) -> None:
        """
        Load every row into the model.

        Rows with all fields empty are skipped. If reading fails midway,
        rules already handed to the model stay there.
        """
        loaded = self._run(
            "load_policy", lambda repo: self._feed(model, repo.select_all())
        )
        self._filtered = False
        logger.debug("policy.load", table=self.table_name, rules=loaded)

    def load_filtered_policy(
        self,
        model: Model,
        rule_filter: Any,
    ) -> None:
        """
        Load only the rows accepted by rule_filter.

        rule_filter is a RuleFilter or any object with ptype/v0..v5 list
        attributes, such as casbin's own Filter. A None or empty filter is a
        full load.

        After a filtered load the adapter refuses save_policy, since saving
        would drop the rows not loaded. The flag lives on the adapter, so
        every caller sharing it sees the most recent load.
        """
        if rule_filter is not None:
            rule_filter = RuleFilter.from_filter(rule_filter)
        if rule_filter is None or rule_filter.is_empty():
            self.load_policy(model)
            return

        loaded = self._run(
            "load_filtered_policy",
            lambda repo: self._feed(model, repo.select_by_filter(rule_filter)),
        )
        self._filtered = True
        logger.debug(
            "policy.load_filtered",
            table=self.table_name,
            rules=loaded,
            constraints=rule_filter.constraints(),
        )

    def is_filtered(self) -> bool:
        return self._filtered

    def save_policy(self, model: Model) -> None:
        """
        Replace the table contents with the model's rules.

        Clear and insert run in the same transaction: the first failing
        insert leaves the table as it was.
        """
        if self._filtered:
            raise FilteredPolicyError(
                "cannot save a filtered policy; load the full policy first"
            )

        def work(repo: RuleRepository) -> int:
            repo.delete_all()
            return repo.insert_many(self._model_rows(model))

        saved = self._run("save_policy", work)
        logger.debug("policy.save", table=self.table_name, rules=saved)

    # ============================================================
    # INCREMENTAL OPERATIONS
    # ============================================================

    def add_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> None:
        """Insert one rule."""
        self._run(
            "add_policy",
            lambda repo: repo.insert(to_row(ptype, rule)),
            ptype=ptype,
        )
        logger.debug("policy.add", table=self.table_name, ptype=ptype, rule=list(rule))

    def add_policies(
        self,
        sec: str,
        ptype: str,
        rules: Sequence[Sequence[str]],
    ) -> None:
        """Insert rules in order, all or none."""
        added = self._run(
            "add_policies",
            lambda repo: repo.insert_many(to_row(ptype, rule) for rule in rules),
            ptype=ptype,
        )
        logger.debug("policy.add_batch", table=self.table_name, ptype=ptype, rules=added)

    def remove_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> bool:
        """
        Delete rows equal to the full rule.

        Unset trailing fields must be empty in the row too: removing
        ["alice", "data1"] does not touch ["alice", "data1", "read"].
        Returns whether any row was deleted; deleting nothing is not an error.
        """
        deleted = self._run(
            "remove_policy",
            lambda repo: repo.delete_exact(to_row(ptype, rule)),
            ptype=ptype,
        )
        logger.debug("policy.remove", table=self.table_name, ptype=ptype, rows=deleted)
        return deleted > 0

    def remove_policies(
        self,
        sec: str,
        ptype: str,
        rules: Sequence[Sequence[str]],
    ) -> bool:
        """Delete each full rule, all or none. Returns whether any row was deleted."""
        deleted = self._run(
            "remove_policies",
            lambda repo: repo.delete_many_exact(to_row(ptype, rule) for rule in rules),
            ptype=ptype,
        )
        logger.debug("policy.remove_batch", table=self.table_name, ptype=ptype, rows=deleted)
        return deleted > 0

    def remove_filtered_policy(
        self,
        sec: str,
        ptype: str,
        field_index: int,
        *field_values: str,
    ) -> bool:
        """
        Delete rows of ptype whose fields match field_values from field_index on.

        remove_filtered_policy("p", "p", 1, "data1") deletes every "p" rule
        with v1 == "data1", whatever its other fields hold.
        """
        deleted = self._run(
            "remove_filtered_policy",
            lambda repo: repo.delete_filtered(ptype, field_index, field_values),
            ptype=ptype,
            field_index=field_index,
        )
        logger.debug(
            "policy.remove_filtered",
            table=self.table_name,
            ptype=ptype,
            field_index=field_index,
            field_values=list(field_values),
            rows=deleted,
        )
        return deleted > 0

    def update_policy(
        self,
        sec: str,
        ptype: str,
        old_rule: Sequence[str],
        new_rule: Sequence[str],
    ) -> None:
        """Rewrite rows equal to old_rule as new_rule."""
        updated = self._run(
            "update_policy",
            lambda repo: repo.update_exact(to_row(ptype, old_rule), to_row(ptype, new_rule)),
            ptype=ptype,
        )
        logger.debug("policy.update", table=self.table_name, ptype=ptype, rows=updated)

    def update_policies(
        self,
        sec: str,
        ptype: str,
        old_rules: Sequence[Sequence[str]],
        new_rules: Sequence[Sequence[str]],
    ) -> None:
        """Rewrite old_rules[i] as new_rules[i] for every i, all or none."""
        if len(old_rules) != len(new_rules):
            raise ValueError(
                f"old_rules and new_rules differ in length "
                f"({len(old_rules)} != {len(new_rules)})"
            )

        def work(repo: RuleRepository) -> int:
            updated = 0
            for old, new in zip(old_rules, new_rules):
                updated += repo.update_exact(to_row(ptype, old), to_row(ptype, new))
            return updated

        updated = self._run("update_policies", work, ptype=ptype)
        logger.debug("policy.update_batch", table=self.table_name, ptype=ptype, rows=updated)

    def update_filtered_policies(
        self,
        sec: str,
        ptype: str,
        new_rules: Sequence[Sequence[str]],
        field_index: int,
        *field_values: str,
    ) -> list[list[str]]:
        """
        Replace the rows matched by the filter with new_rules.

        Returns the replaced rules, each cut after its last non-empty field.
        """

        def work(repo: RuleRepository) -> list[list[str]]:
            old = repo.select_filtered(ptype, field_index, field_values)
            repo.delete_filtered(ptype, field_index, field_values)
            repo.insert_many(to_row(ptype, rule) for rule in new_rules)
            return [rule.fields() for rule in old]

        replaced = self._run(
            "update_filtered_policies",
            work,
            ptype=ptype,
            field_index=field_index,
        )
        logger.debug(
            "policy.update_filtered",
            table=self.table_name,
            ptype=ptype,
            replaced=len(replaced),
            added=len(new_rules),
        )
        return replaced
