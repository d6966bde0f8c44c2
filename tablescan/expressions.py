"""
Row filter expressions.

Filters reach the reader in two shapes:

- `BooleanExpression` trees (`EqualTo("id", 1) & NotNull("data")`): bound to the
  table schema by name, evaluated per record, and offered to decoders for
  statistics-based pushdown through `might_match`.
- Opaque callables `Record -> bool`: evaluated per record only.

Pushdown is best-effort: a decoder may skip data only when `might_match` proves
no row can pass. The reader always re-evaluates every filter on every record.

Null handling: comparisons against a null value are false, except
`NotEqualTo` and `NotIn`, which are true.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field, replace
from typing import Any, Callable, FrozenSet, Iterable, List, Optional, Sequence, Union

from tablescan.domain.record import Record
from tablescan.domain.schema import Schema
from tablescan.domain.types import parse_literal
from tablescan.errors import TypeMismatchError


@dataclass(frozen=True)
class ColumnStats:
    """
    Statistics a decoder can supply for one column of one block of rows.

    Any field may be None when the file does not record it.
    """

    lower: Any = None
    upper: Any = None
    null_count: Optional[int] = None
    value_count: Optional[int] = None

    @property
    def all_null(self) -> bool:
        return self.value_count is not None and self.null_count == self.value_count


StatsLookup = Callable[[str], Optional[ColumnStats]]


class BooleanExpression(abc.ABC):
    """
    Base class for filter expressions.
    """

    @abc.abstractmethod
    def evaluate(self, record: Record) -> bool:
        """Whether `record` passes the filter."""
        raise NotImplementedError

    @abc.abstractmethod
    def bind(self, schema: Schema, case_sensitive: bool = True) -> "BooleanExpression":
        """
        Resolve field names against `schema`.

        Returns an equivalent expression using the schema's spelling of every
        name, with literals converted to the fields' Python types.

        Raises
        ------
        UnresolvedFieldError
            If a referenced name is not in the schema.
        """
        raise NotImplementedError

    def references(self) -> FrozenSet[str]:
        return frozenset()

    def might_match(self, stats: StatsLookup) -> bool:
        """False only when `stats` prove no row in the block can match."""
        return True

    def __call__(self, record: Record) -> bool:
        return self.evaluate(record)

    def __and__(self, other: "BooleanExpression") -> "BooleanExpression":
        return And(self, other)

    def __or__(self, other: "BooleanExpression") -> "BooleanExpression":
        return Or(self, other)

    def __invert__(self) -> "BooleanExpression":
        return Not(self)


class AlwaysTrue(BooleanExpression):
    def evaluate(self, record: Record) -> bool:
        return True

    def bind(self, schema: Schema, case_sensitive: bool = True) -> BooleanExpression:
        return self

    def __eq__(self, other: object) -> bool:
        return isinstance(other, AlwaysTrue)

    def __hash__(self) -> int:
        return hash(AlwaysTrue)

    def __repr__(self) -> str:
        return "AlwaysTrue()"


class AlwaysFalse(BooleanExpression):
    def evaluate(self, record: Record) -> bool:
        return False

    def bind(self, schema: Schema, case_sensitive: bool = True) -> BooleanExpression:
        return self

    def might_match(self, stats: StatsLookup) -> bool:
        return False

    def __eq__(self, other: object) -> bool:
        return isinstance(other, AlwaysFalse)

    def __hash__(self) -> int:
        return hash(AlwaysFalse)

    def __repr__(self) -> str:
        return "AlwaysFalse()"


@dataclass(frozen=True)
class And(BooleanExpression):
    left: BooleanExpression
    right: BooleanExpression

    def evaluate(self, record: Record) -> bool:
        return self.left.evaluate(record) and self.right.evaluate(record)

    def bind(self, schema: Schema, case_sensitive: bool = True) -> BooleanExpression:
        return And(self.left.bind(schema, case_sensitive), self.right.bind(schema, case_sensitive))

    def references(self) -> FrozenSet[str]:
        return self.left.references() | self.right.references()

    def might_match(self, stats: StatsLookup) -> bool:
        return self.left.might_match(stats) and self.right.might_match(stats)


@dataclass(frozen=True)
class Or(BooleanExpression):
    left: BooleanExpression
    right: BooleanExpression

    def evaluate(self, record: Record) -> bool:
        return self.left.evaluate(record) or self.right.evaluate(record)

    def bind(self, schema: Schema, case_sensitive: bool = True) -> BooleanExpression:
        return Or(self.left.bind(schema, case_sensitive), self.right.bind(schema, case_sensitive))

    def references(self) -> FrozenSet[str]:
        return self.left.references() | self.right.references()

    def might_match(self, stats: StatsLookup) -> bool:
        return self.left.might_match(stats) or self.right.might_match(stats)


@dataclass(frozen=True)
class Not(BooleanExpression):
    child: BooleanExpression

    def evaluate(self, record: Record) -> bool:
        return not self.child.evaluate(record)

    def bind(self, schema: Schema, case_sensitive: bool = True) -> BooleanExpression:
        return Not(self.child.bind(schema, case_sensitive))

    def references(self) -> FrozenSet[str]:
        return self.child.references()


@dataclass(frozen=True)
class _Predicate(BooleanExpression):
    term: str

    def references(self) -> FrozenSet[str]:
        return frozenset([self.term])

    def bind(self, schema: Schema, case_sensitive: bool = True) -> BooleanExpression:
        bound = schema.find_field(self.term, case_sensitive=case_sensitive)
        return replace(self, term=bound.name)

    def _value(self, record: Record) -> Any:
        return record.get(self.term)

    def _compare(self, op: Callable[[Any, Any], bool], left: Any, right: Any) -> bool:
        try:
            return op(left, right)
        except TypeError as exc:
            raise TypeMismatchError(self.term, f"cannot compare {left!r} with {right!r}") from exc

    @staticmethod
    def _safe(check: Callable[[], bool]) -> bool:
        # Statistics may come back in a different Python type than the literal.
        try:
            return check()
        except TypeError:
            return True


@dataclass(frozen=True)
class IsNull(_Predicate):
    def evaluate(self, record: Record) -> bool:
        return self._value(record) is None

    def might_match(self, stats: StatsLookup) -> bool:
        column = stats(self.term)
        return column is None or column.null_count is None or column.null_count > 0


@dataclass(frozen=True)
class NotNull(_Predicate):
    def evaluate(self, record: Record) -> bool:
        return self._value(record) is not None

    def might_match(self, stats: StatsLookup) -> bool:
        column = stats(self.term)
        return column is None or not column.all_null


@dataclass(frozen=True)
class _LiteralPredicate(_Predicate):
    literal: Any = None

    def bind(self, schema: Schema, case_sensitive: bool = True) -> BooleanExpression:
        bound = schema.find_field(self.term, case_sensitive=case_sensitive)
        return replace(self, term=bound.name, literal=parse_literal(bound.field_type, self.literal))


@dataclass(frozen=True)
class EqualTo(_LiteralPredicate):
    def evaluate(self, record: Record) -> bool:
        value = self._value(record)
        return value is not None and self._compare(lambda a, b: a == b, value, self.literal)

    def might_match(self, stats: StatsLookup) -> bool:
        column = stats(self.term)
        if column is None:
            return True
        if column.all_null:
            return False
        return self._safe(
            lambda: not (
                (column.lower is not None and self.literal < column.lower)
                or (column.upper is not None and self.literal > column.upper)
            )
        )


@dataclass(frozen=True)
class NotEqualTo(_LiteralPredicate):
    def evaluate(self, record: Record) -> bool:
        value = self._value(record)
        return value is None or self._compare(lambda a, b: a != b, value, self.literal)


@dataclass(frozen=True)
class LessThan(_LiteralPredicate):
    def evaluate(self, record: Record) -> bool:
        value = self._value(record)
        return value is not None and self._compare(lambda a, b: a < b, value, self.literal)

    def might_match(self, stats: StatsLookup) -> bool:
        column = stats(self.term)
        if column is None:
            return True
        if column.all_null:
            return False
        return self._safe(lambda: column.lower is None or column.lower < self.literal)


@dataclass(frozen=True)
class LessThanOrEqual(_LiteralPredicate):
    def evaluate(self, record: Record) -> bool:
        value = self._value(record)
        return value is not None and self._compare(lambda a, b: a <= b, value, self.literal)

    def might_match(self, stats: StatsLookup) -> bool:
        column = stats(self.term)
        if column is None:
            return True
        if column.all_null:
            return False
        return self._safe(lambda: column.lower is None or column.lower <= self.literal)


@dataclass(frozen=True)
class GreaterThan(_LiteralPredicate):
    def evaluate(self, record: Record) -> bool:
        value = self._value(record)
        return value is not None and self._compare(lambda a, b: a > b, value, self.literal)

    def might_match(self, stats: StatsLookup) -> bool:
        column = stats(self.term)
        if column is None:
            return True
        if column.all_null:
            return False
        return self._safe(lambda: column.upper is None or column.upper > self.literal)


@dataclass(frozen=True)
class GreaterThanOrEqual(_LiteralPredicate):
    def evaluate(self, record: Record) -> bool:
        value = self._value(record)
        return value is not None and self._compare(lambda a, b: a >= b, value, self.literal)

    def might_match(self, stats: StatsLookup) -> bool:
        column = stats(self.term)
        if column is None:
            return True
        if column.all_null:
            return False
        return self._safe(lambda: column.upper is None or column.upper >= self.literal)


@dataclass(frozen=True)
class StartsWith(_LiteralPredicate):
    def evaluate(self, record: Record) -> bool:
        value = self._value(record)
        return value is not None and self._compare(lambda a, b: str.startswith(a, b), value, self.literal)


@dataclass(frozen=True)
class _SetPredicate(_Predicate):
    literals: FrozenSet[Any] = field(default_factory=frozenset)

    def __init__(self, term: str, literals: Iterable[Any]) -> None:
        object.__setattr__(self, "term", term)
        object.__setattr__(self, "literals", frozenset(literals))

    def bind(self, schema: Schema, case_sensitive: bool = True) -> BooleanExpression:
        bound = schema.find_field(self.term, case_sensitive=case_sensitive)
        return type(self)(bound.name, [parse_literal(bound.field_type, item) for item in self.literals])


@dataclass(frozen=True, init=False)
class In(_SetPredicate):
    def evaluate(self, record: Record) -> bool:
        value = self._value(record)
        return value is not None and value in self.literals

    def might_match(self, stats: StatsLookup) -> bool:
        column = stats(self.term)
        if column is None or not self.literals:
            return bool(self.literals)
        if column.all_null:
            return False

        def _any_in_range() -> bool:
            return any(
                (column.lower is None or column.lower <= item)
                and (column.upper is None or item <= column.upper)
                for item in self.literals
            )

        return self._safe(_any_in_range)


@dataclass(frozen=True, init=False)
class NotIn(_SetPredicate):
    def evaluate(self, record: Record) -> bool:
        value = self._value(record)
        return value is None or value not in self.literals


RowFilter = Union[BooleanExpression, Callable[[Record], bool]]


def bind_filters(filters: Sequence[RowFilter], schema: Schema, case_sensitive: bool = True) -> List[RowFilter]:
    """Bind every expression in `filters`; opaque callables pass through unchanged."""
    return [
        row_filter.bind(schema, case_sensitive) if isinstance(row_filter, BooleanExpression) else row_filter
        for row_filter in filters
    ]


def filter_references(filters: Sequence[RowFilter]) -> FrozenSet[str]:
    names: FrozenSet[str] = frozenset()
    for row_filter in filters:
        if isinstance(row_filter, BooleanExpression):
            names = names | row_filter.references()
    return names


def pushdown_expression(filters: Sequence[RowFilter]) -> Optional[BooleanExpression]:
    """
    Conjunction of the filters a decoder may use for pruning, or None.

    Opaque callables cannot be pushed down and are left out.
    """
    expressions = [row_filter for row_filter in filters if isinstance(row_filter, BooleanExpression)]
    if not expressions:
        return None
    combined = expressions[0]
    for expression in expressions[1:]:
        combined = And(combined, expression)
    return combined


__all__ = [
    "ColumnStats",
    "StatsLookup",
    "BooleanExpression",
    "AlwaysTrue",
    "AlwaysFalse",
    "And",
    "Or",
    "Not",
    "IsNull",
    "NotNull",
    "EqualTo",
    "NotEqualTo",
    "LessThan",
    "LessThanOrEqual",
    "GreaterThan",
    "GreaterThanOrEqual",
    "StartsWith",
    "In",
    "NotIn",
    "RowFilter",
    "bind_filters",
    "filter_references",
    "pushdown_expression",
]
