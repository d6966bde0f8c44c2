from __future__ import annotations

from datetime import date

import pytest

from tablescan.domain import DateType, LongType, Record, Schema, StringType, optional_field, required_field
from tablescan.errors import TypeMismatchError, UnresolvedFieldError
from tablescan.expressions import (
    AlwaysFalse,
    AlwaysTrue,
    And,
    ColumnStats,
    EqualTo,
    GreaterThan,
    GreaterThanOrEqual,
    In,
    IsNull,
    LessThan,
    LessThanOrEqual,
    Not,
    NotEqualTo,
    NotIn,
    NotNull,
    StartsWith,
    bind_filters,
    filter_references,
    pushdown_expression,
)

SCHEMA = Schema(
    required_field(1, "data", StringType()),
    optional_field(2, "id", LongType()),
    optional_field(3, "day", DateType()),
)


def _record(data="a", id=1, day=None) -> Record:  # noqa: A002
    return Record(SCHEMA, [data, id, day])


def _stats(**columns):
    return lambda name: columns.get(name)


class TestEvaluate:
    def test_comparisons(self):
        record = _record(id=5)
        assert EqualTo("id", 5).evaluate(record)
        assert NotEqualTo("id", 4).evaluate(record)
        assert LessThan("id", 6).evaluate(record)
        assert LessThanOrEqual("id", 5).evaluate(record)
        assert GreaterThan("id", 4).evaluate(record)
        assert GreaterThanOrEqual("id", 5).evaluate(record)
        assert not GreaterThan("id", 5).evaluate(record)

    def test_null_semantics(self):
        record = _record(id=None)
        assert IsNull("id").evaluate(record)
        assert not NotNull("id").evaluate(record)
        assert not EqualTo("id", 1).evaluate(record)
        assert not LessThan("id", 1).evaluate(record)
        assert not In("id", [1, 2]).evaluate(record)
        assert NotEqualTo("id", 1).evaluate(record)
        assert NotIn("id", [1, 2]).evaluate(record)

    def test_set_membership(self):
        assert In("data", ["a", "b"]).evaluate(_record(data="b"))
        assert not NotIn("data", ["a", "b"]).evaluate(_record(data="b"))

    def test_starts_with(self):
        assert StartsWith("data", "ro").evaluate(_record(data="row-1"))
        assert not StartsWith("data", "x").evaluate(_record(data="row-1"))

    def test_combinators(self):
        record = _record(data="a", id=3)
        assert (EqualTo("data", "a") & GreaterThan("id", 2)).evaluate(record)
        assert (EqualTo("data", "z") | GreaterThan("id", 2)).evaluate(record)
        assert (~EqualTo("data", "z")).evaluate(record)
        assert AlwaysTrue().evaluate(record)
        assert not AlwaysFalse().evaluate(record)

    def test_expressions_are_callable(self):
        assert EqualTo("id", 1)(_record(id=1))

    def test_incomparable_values_raise_type_mismatch(self):
        with pytest.raises(TypeMismatchError):
            LessThan("data", 3).evaluate(_record(data="a"))


class TestBind:
    def test_bind_converts_literals_to_field_types(self):
        bound = EqualTo("day", "2020-03-20").bind(SCHEMA)
        assert bound == EqualTo("day", date(2020, 3, 20))
        assert bound.evaluate(_record(day=date(2020, 3, 20)))

    def test_bind_case_insensitive_uses_schema_spelling(self):
        bound = In("DATA", ["a"]).bind(SCHEMA, case_sensitive=False)
        assert bound.references() == frozenset(["data"])

    def test_bind_unknown_field(self):
        with pytest.raises(UnresolvedFieldError):
            EqualTo("missing", 1).bind(SCHEMA)
        with pytest.raises(UnresolvedFieldError):
            EqualTo("DATA", "a").bind(SCHEMA, case_sensitive=True)

    def test_bind_filters_passes_callables_through(self):
        predicate = lambda record: True  # noqa: E731
        bound = bind_filters([EqualTo("id", "7"), predicate], SCHEMA)
        assert bound == [EqualTo("id", 7), predicate]

    def test_bind_nested_expression(self):
        bound = Not(EqualTo("id", "1") & IsNull("day")).bind(SCHEMA)
        assert bound.references() == frozenset(["id", "day"])


class TestMightMatch:
    def test_equality_outside_bounds_is_pruned(self):
        stats = _stats(id=ColumnStats(lower=10, upper=20, null_count=0, value_count=5))
        assert not EqualTo("id", 5).might_match(stats)
        assert EqualTo("id", 15).might_match(stats)
        assert not GreaterThan("id", 20).might_match(stats)
        assert GreaterThanOrEqual("id", 20).might_match(stats)
        assert not LessThan("id", 10).might_match(stats)
        assert LessThanOrEqual("id", 10).might_match(stats)

    def test_in_prunes_when_no_literal_in_range(self):
        stats = _stats(id=ColumnStats(lower=10, upper=20))
        assert not In("id", [1, 30]).might_match(stats)
        assert In("id", [1, 12]).might_match(stats)
        assert not In("id", []).might_match(stats)

    def test_null_checks_use_null_counts(self):
        all_null = _stats(id=ColumnStats(null_count=5, value_count=5))
        no_nulls = _stats(id=ColumnStats(lower=1, upper=2, null_count=0, value_count=5))
        assert not NotNull("id").might_match(all_null)
        assert not EqualTo("id", 1).might_match(all_null)
        assert not IsNull("id").might_match(no_nulls)
        assert IsNull("id").might_match(all_null)

    def test_missing_stats_never_prune(self):
        assert EqualTo("id", 5).might_match(_stats())
        assert NotEqualTo("id", 5).might_match(_stats(id=ColumnStats(lower=5, upper=5)))

    def test_incomparable_stats_never_prune(self):
        stats = _stats(id=ColumnStats(lower="a", upper="b"))
        assert EqualTo("id", 5).might_match(stats)

    def test_combinators_prune(self):
        stats = _stats(id=ColumnStats(lower=10, upper=20))
        assert not (EqualTo("id", 1) & AlwaysTrue()).might_match(stats)
        assert (EqualTo("id", 1) | EqualTo("id", 11)).might_match(stats)
        assert not AlwaysFalse().might_match(stats)


def test_filter_references_ignores_callables():
    filters = [EqualTo("id", 1), lambda record: True, IsNull("day")]
    assert filter_references(filters) == frozenset(["id", "day"])


def test_pushdown_expression_combines_expressions_only():
    first, second = EqualTo("id", 1), IsNull("day")
    assert pushdown_expression([first, lambda record: True, second]) == And(first, second)
    assert pushdown_expression([lambda record: True]) is None
