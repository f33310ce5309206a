"""
Tests for the rule codec.
"""

import pytest

from sqladapter.models.rule import (
    PolicyRule,
    RuleFilter,
    is_line_safe,
    quote_field,
    to_line,
    to_row,
)


@pytest.mark.parametrize(
    "fields, expected",
    [
        ([], None),
        (["alice"], "p, alice"),
        (["alice", "data1"], "p, alice, data1"),
        (["alice", "data1", "read"], "p, alice, data1, read"),
        (["a", "b", "c", "d", "e", "f"], "p, a, b, c, d, e, f"),
        (["alice", "", "read"], "p, alice, , read"),
        (["alice", "data1", "", ""], "p, alice, data1"),
        (["", "", ""], None),
    ],
)
def test_row_to_line_truncates_at_last_non_empty_field(fields, expected):
    """Lines stop after the last non-empty field; all-empty rules give no line."""
    assert to_line(to_row("p", fields)) == expected


def test_to_row_pads_unused_fields_with_empty_strings():
    rule = to_row("g", ["alice", "admin"])

    assert rule == PolicyRule(ptype="g", v0="alice", v1="admin")
    assert rule.values() == ["alice", "admin", "", "", "", ""]
    assert rule.as_params() == {
        "ptype": "g",
        "v0": "alice",
        "v1": "admin",
        "v2": "",
        "v3": "",
        "v4": "",
        "v5": "",
    }


def test_to_row_drops_fields_past_v5():
    rule = to_row("p", ["a", "b", "c", "d", "e", "f", "g", "h"])

    assert rule.values() == ["a", "b", "c", "d", "e", "f"]
    assert str(rule) == "p, a, b, c, d, e, f"
    assert str(to_row("p", [])) == "p"


def test_from_row_maps_null_to_empty_string():
    row = {"ptype": "p", "v0": "alice", "v1": None, "v2": None, "v3": None, "v4": None, "v5": None}

    assert PolicyRule.from_row(row) == PolicyRule(ptype="p", v0="alice")


def test_rule_filter_constraints_skip_empty_columns():
    rule_filter = RuleFilter(ptype=["p"], v1=["data1", "data2"])

    assert rule_filter.constraints() == {"ptype": ["p"], "v1": ["data1", "data2"]}


def test_rule_filter_from_filter_object():
    class Filter:
        ptype = ["p"]
        v0 = ["alice"]

    rule_filter = RuleFilter.from_filter(Filter())

    assert rule_filter.constraints() == {"ptype": ["p"], "v0": ["alice"]}
    assert RuleFilter.from_filter(rule_filter) is rule_filter


def test_empty_rule_filter():
    assert RuleFilter().is_empty()
    assert not RuleFilter(v2=["read"]).is_empty()


# ============ Quoting ============


@pytest.mark.parametrize(
    "value, expected",
    [
        ("data1", "data1"),
        ("", ""),
        ("data1, data2", '"data1, data2"'),
        (" padded ", '" padded "'),
        ('say "hi"', '"say ""hi"""'),
        ("keyMatch(/a/*)", "keyMatch(/a/*)"),
    ],
)
def test_quote_field(value, expected):
    assert quote_field(value) == expected


def test_to_line_quotes_fields_with_separators():
    rule = to_row("p", ["alice", "data1, data2", "read"])

    assert to_line(rule) == 'p, alice, "data1, data2", read'
    assert not is_line_safe(rule)


@pytest.mark.parametrize(
    "fields, safe",
    [
        (["alice", "data1", "read"], True),
        (["alice", "", "read"], True),
        (["alice", "data1 ", "read"], False),
        (["alice", 'a"b'], False),
        (["alice", "keyMatch(/a/*)"], False),
        (["alice", "[x]"], False),
    ],
)
def test_is_line_safe(fields, safe):
    assert is_line_safe(to_row("p", fields)) is safe
