"""
Self-describing output record.

A record pairs a read schema with a tuple of values, so consumers can access
fields by position, name or field id without knowing which file format the row
came from.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, Sequence, Tuple, Union

from tablescan.domain.schema import Schema


class Record:
    """
    One row of a scan.

    Records produced under the same schema compare equal when their values do,
    whatever decoder produced them.
    """

    __slots__ = ("_schema", "_values")

    def __init__(self, schema: Schema, values: Sequence[Any]) -> None:
        if len(values) != len(schema):
            raise ValueError(f"Expected {len(schema)} values for {schema}, got {len(values)}")
        self._schema = schema
        self._values: Tuple[Any, ...] = tuple(values)

    @classmethod
    def from_dict(cls, schema: Schema, values: Dict[str, Any]) -> "Record":
        """Build a record from a name → value mapping; missing names are null."""
        return cls(schema, [values.get(field.name) for field in schema.fields])

    @property
    def schema(self) -> Schema:
        return self._schema

    def get(self, name: str, default: Any = None) -> Any:
        """Value by field name, or `default` when the record has no such field."""
        field = self._schema.find_field_or_none(name)
        if field is None:
            return default
        return self._values[self._schema.position_of(field.field_id)]

    def get_by_id(self, field_id: int) -> Any:
        return self._values[self._schema.position_of(field_id)]

    def __getitem__(self, key: Union[int, str]) -> Any:
        if isinstance(key, int):
            return self._values[key]
        field = self._schema.find_field(key)
        return self._values[self._schema.position_of(field.field_id)]

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def as_tuple(self) -> Tuple[Any, ...]:
        return self._values

    def to_dict(self) -> Dict[str, Any]:
        return {field.name: value for field, value in zip(self._schema.fields, self._values)}

    def select(self, schema: Schema) -> "Record":
        """Narrow this record to the fields of `schema` (a subset of its own)."""
        if schema == self._schema:
            return self
        return Record(schema, [self.get_by_id(field_id) for field_id in schema.field_ids])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self._schema.field_ids == other._schema.field_ids and self._values == other._values

    def __hash__(self) -> int:
        return hash((self._schema.field_ids, self._values))

    def __repr__(self) -> str:
        body = ", ".join(f"{name}={value!r}" for name, value in self.to_dict().items())
        return f"Record({body})"


__all__ = ["Record"]
