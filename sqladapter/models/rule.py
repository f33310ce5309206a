"""
Policy rule rows and the codec between rules and rows.

A rule is a type tag plus up to six ordered string fields. It is stored as
one row of a fixed-width table:

    ptype | v0 | v1 | v2 | v3 | v4 | v5

Unused trailing fields are stored as "" (never NULL). When a row is turned
back into a policy line, it is cut after its last non-empty field, so a
trailing "" is indistinguishable from an absent field. Interior empty fields
are kept. Fields holding a comma, a double quote or surrounding whitespace
are double-quoted in the line, with inner quotes doubled.

Examples:
    to_row("p", ["alice", "data1", "read"])
        -> PolicyRule(ptype="p", v0="alice", v1="data1", v2="read", v3="", ...)

    to_line(PolicyRule(ptype="g", v0="alice", v1="admin"))
        -> "g, alice, admin"

    to_line(PolicyRule(ptype="p", v0="alice", v1="data1, data2", v2="read"))
        -> 'p, alice, "data1, data2", read'
"""

from dataclasses import dataclass, field, fields as dataclass_fields
from typing import Any, Sequence

import structlog
from sqlalchemy import Column, Index, MetaData, String, Table

logger = structlog.get_logger()

# Number of value columns (v0..v5)
FIELD_COUNT = 6

FIELD_COLUMNS = tuple(f"v{i}" for i in range(FIELD_COUNT))

# Separator used in policy lines ("p, alice, data1, read")
LINE_SEPARATOR = ", "

# Nesting characters the line tokenizer keeps commas inside of
BRACKET_CHARS = "()[]"


@dataclass
class PolicyRule:
    """
    One stored rule.

    Attributes:
        ptype: Rule type tag ("p", "p2", "g", "g2", ...)
        v0..v5: Positional rule fields, "" when unused
    """
    ptype: str
    v0: str = ""
    v1: str = ""
    v2: str = ""
    v3: str = ""
    v4: str = ""
    v5: str = ""

    @classmethod
    def from_row(cls, row: Any) -> "PolicyRule":
        """Build from a result row, mapping NULL columns to ""."""
        mapping = row._mapping if hasattr(row, "_mapping") else row
        return cls(
            ptype=mapping["ptype"] or "",
            **{name: mapping[name] or "" for name in FIELD_COLUMNS},
        )

    def values(self) -> list[str]:
        """All six field values, including empty ones."""
        return [getattr(self, name) for name in FIELD_COLUMNS]

    def fields(self) -> list[str]:
        """Field values cut after the last non-empty one."""
        values = self.values()
        for index in range(FIELD_COUNT - 1, -1, -1):
            if values[index] != "":
                return values[: index + 1]
        return []

    def as_params(self) -> dict[str, str]:
        """Bind parameters for insert/delete statements."""
        return {f.name: getattr(self, f.name) for f in dataclass_fields(self)}

    def __str__(self) -> str:
        return to_line(self) or self.ptype


def to_row(ptype: str, rule: Sequence[str]) -> PolicyRule:
    """
    Map a rule onto a fixed-width row.

    rule[0..5] go into v0..v5; missing positions are "". Fields past v5
    do not fit the schema and are dropped.
    """
    if len(rule) > FIELD_COUNT:
        logger.warning(
            "policy.rule_truncated",
            ptype=ptype,
            field_count=len(rule),
            dropped=list(rule[FIELD_COUNT:]),
        )
    values = {name: rule[i] for i, name in enumerate(FIELD_COLUMNS) if i < len(rule)}
    return PolicyRule(ptype=ptype, **values)


def needs_quoting(value: str) -> bool:
    """Whether a field would not survive a plain comma split and strip."""
    return "," in value or '"' in value or value != value.strip()


def quote_field(value: str) -> str:
    """Quote a field the way csv writes it: wrap in " and double inner "."""
    if not needs_quoting(value):
        return value
    return '"' + value.replace('"', '""') + '"'


def is_line_safe(rule: PolicyRule) -> bool:
    """
    Whether the unquoted policy line tokenizes back to the same fields.

    The framework's line tokenizer splits on commas outside brackets and
    strips whitespace; it does not understand quotes.
    """
    return not any(
        needs_quoting(value) or any(c in value for c in BRACKET_CHARS)
        for value in rule.fields()
    )


def to_line(rule: PolicyRule) -> str | None:
    """
    Rebuild a policy line from a row.

    Returns None when every field is empty; such rows are not loaded.
    """
    fields = rule.fields()
    if not fields:
        return None
    return LINE_SEPARATOR.join([rule.ptype, *(quote_field(f) for f in fields)])


def build_rule_table(name: str, metadata: MetaData | None = None) -> Table:
    """
    Define the rule table.

    No primary key: duplicate rows are possible unless the database
    enforces otherwise. Creating the table is left to migrations;
    tests call ``metadata.create_all``.
    """
    metadata = metadata if metadata is not None else MetaData()
    return Table(
        name,
        metadata,
        Column("ptype", String(255), nullable=False, default=""),
        *(Column(column, String(255), nullable=False, default="") for column in FIELD_COLUMNS),
        Index(f"idx_{name}_ptype", "ptype"),
    )


@dataclass
class RuleFilter:
    """
    Row filter for filtered loads.

    Each attribute lists the accepted values for that column; an empty
    list accepts any value.

    Example:
        RuleFilter(ptype=["p"], v0=["alice", "bob"])
    """
    ptype: list[str] = field(default_factory=list)
    v0: list[str] = field(default_factory=list)
    v1: list[str] = field(default_factory=list)
    v2: list[str] = field(default_factory=list)
    v3: list[str] = field(default_factory=list)
    v4: list[str] = field(default_factory=list)
    v5: list[str] = field(default_factory=list)

    @classmethod
    def from_filter(cls, rule_filter: Any) -> "RuleFilter":
        """Accept any object with ptype/v0..v5 list attributes."""
        if isinstance(rule_filter, cls):
            return rule_filter
        return cls(**{
            f.name: list(getattr(rule_filter, f.name, None) or [])
            for f in dataclass_fields(cls)
        })

    def is_empty(self) -> bool:
        return not self.constraints()

    def constraints(self) -> dict[str, list[str]]:
        """Column name -> accepted values, for non-empty attributes only."""
        return {
            f.name: getattr(self, f.name)
            for f in dataclass_fields(self)
            if getattr(self, f.name)
        }
