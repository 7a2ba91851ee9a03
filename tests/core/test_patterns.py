from __future__ import annotations

import pytest

from mcp_log_plot_server.core.errors import InvalidCaptureGroups, PatternError
from mcp_log_plot_server.core.models import EventCount, EventValue, FieldValue
from mcp_log_plot_server.core.patterns import compile_pattern, normalize_value, regex_pattern


@pytest.mark.parametrize(
    ("value", "unit", "expected"),
    [
        ("12.5", None, 12.5),
        ("12.5", "ms", 12.5),
        ("12.5", "s", 12500.0),
        ("12.5", "us", 0.0125),
        ("12.5", "µs", 0.0125),
        ("12.5", "microseconds", 0.0125),
        ("1.5", "ns", 1.5 / 1_000_000),
        ("7", "kb", 7.0),
    ],
)
def test_normalize_value_units(value: str, unit: str | None, expected: float) -> None:
    assert normalize_value(value, unit) == expected


@pytest.mark.parametrize("value", ["abc", "1.2.3", "1_000", ""])
def test_normalize_value_rejects_non_numbers(value: str) -> None:
    assert normalize_value(value) is None


def test_literal_field_is_expanded_to_template() -> None:
    ds = FieldValue(field="duration")
    assert regex_pattern(ds) == r"\bduration=([\d\.]+)(\w+)?"

    m = compile_pattern(ds).search(" INFO op duration=12.5ms")
    assert m is not None
    assert m.groups() == ("12.5", "ms")


def test_literal_field_name_is_escaped() -> None:
    ds = FieldValue(field="a.b")
    pattern = compile_pattern(ds)
    assert pattern.search("x a.b=1") is not None
    assert pattern.search("x aXb=1") is None


def test_field_regex_with_groups_is_used_verbatim() -> None:
    ds = FieldValue(field=r"duration:([\d\.]+)(\w+)?")
    assert regex_pattern(ds) == ds.field


def test_field_regex_with_too_many_groups_fails() -> None:
    with pytest.raises(InvalidCaptureGroups):
        compile_pattern(FieldValue(field=r"(a)(b)(c)"))


def test_event_pattern_is_not_wrapped() -> None:
    assert regex_pattern(EventCount(pattern="started")) == "started"
    assert regex_pattern(EventValue(pattern="x=1", yvalue=2.0)) == "x=1"


def test_invalid_event_regex_raises_pattern_error() -> None:
    with pytest.raises(PatternError):
        compile_pattern(EventCount(pattern="(unclosed"))


def test_guard_is_plain_containment() -> None:
    pattern = compile_pattern(EventCount(guard="[svc]", pattern="done"))
    assert pattern.guard_matches("12:00 [svc] done")
    assert not pattern.guard_matches("12:00 svc done")
    assert compile_pattern(EventCount(pattern="done")).guard_matches("anything")
