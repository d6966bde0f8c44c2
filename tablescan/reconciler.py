"""
Schema reconciliation.

Two steps turn a table schema into a per-file plan:

1. `resolve` narrows the table schema to the projection (the read schema).
   This happens once per reader, before any I/O.
2. `map_physical` matches every read field against one data file's physical
   schema and decides where its values come from:

   - a constant supplied by the planner (partition values, `_file`);
   - a physical column, matched by field id, or by name when the file has
     no ids;
   - the field's initial default (null when it has none), for columns
     added after the file was written;
   - the row ordinal, for the `_pos` metadata column.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from tablescan.decoders.abstract import PhysicalColumn, PhysicalSchema
from tablescan.domain.schema import METADATA_COLUMNS, ROW_POSITION, NestedField, Schema
from tablescan.domain.types import can_promote, parse_literal
from tablescan.errors import TypeMismatchError, UnresolvedFieldError


class AccessorKind(str, Enum):
    CONSTANT = "constant"
    PHYSICAL = "physical"
    DEFAULT = "default"
    ROW_POSITION = "row_position"


@dataclass(frozen=True)
class FieldAccessor:
    """
    Where the value of one read field comes from.

    `index` is the offset into the physical records the decoder yields (only
    for PHYSICAL); `value` is the constant or default.
    """

    field: NestedField
    kind: AccessorKind
    index: Optional[int] = None
    value: Any = None
    column: Optional[PhysicalColumn] = None


@dataclass(frozen=True)
class FieldMapping:
    """
    Accessors for every read field, in read-schema order, plus the physical
    columns the decoder has to materialize.
    """

    accessors: Tuple[FieldAccessor, ...]
    physical_columns: Tuple[int, ...]

    def __iter__(self):
        return iter(self.accessors)

    def __len__(self) -> int:
        return len(self.accessors)

    def accessor_for(self, field_id: int) -> FieldAccessor:
        for accessor in self.accessors:
            if accessor.field.field_id == field_id:
                return accessor
        raise UnresolvedFieldError(field_id)

    def physical_positions(self) -> Dict[str, int]:
        """Physical column position of every field read from the file, by field name."""
        return {
            accessor.field.name: accessor.column.position
            for accessor in self.accessors
            if accessor.kind is AccessorKind.PHYSICAL and accessor.column is not None
        }


def resolve(schema: Schema, projection: Optional[Iterable[int]] = None) -> Schema:
    """
    Narrow `schema` to the field ids in `projection`.

    Table fields keep the order of `schema`; requested metadata columns
    (`_file`, `_pos`) follow them in the order they were requested. An empty
    or missing projection reads every table field.

    Raises
    ------
    UnresolvedFieldError
        If a projected id is neither a table field nor a metadata column.
    """
    if not projection:
        return schema
    requested = list(dict.fromkeys(projection))
    metadata: List[NestedField] = []
    for field_id in requested:
        if schema.find_field_or_none(field_id) is not None:
            continue
        if field_id in METADATA_COLUMNS:
            metadata.append(METADATA_COLUMNS[field_id])
            continue
        raise UnresolvedFieldError(field_id, f"Projected field id {field_id} is not in schema {schema}")
    wanted = set(requested)
    table_fields = [field for field in schema.fields if field.field_id in wanted]
    return Schema(*table_fields, *metadata, schema_id=schema.schema_id)


def _match_column(
    field: NestedField,
    physical_schema: PhysicalSchema,
    name_mapping: Optional[Mapping[str, int]],
    case_sensitive: bool,
) -> Optional[PhysicalColumn]:
    if physical_schema.has_field_ids:
        return physical_schema.find_by_id(field.field_id)
    if name_mapping:
        for column in physical_schema.columns:
            if name_mapping.get(column.name) == field.field_id:
                return column
    column = physical_schema.find_by_name(field.name, case_sensitive=case_sensitive)
    # A column the mapping assigns to another field never matches by name.
    if column is not None and name_mapping and name_mapping.get(column.name, field.field_id) != field.field_id:
        return None
    return column


def map_physical(
    read_schema: Schema,
    physical_schema: PhysicalSchema,
    constants: Optional[Mapping[int, Any]] = None,
    name_mapping: Optional[Mapping[str, int]] = None,
    case_sensitive: bool = True,
    path: Optional[str] = None,
) -> FieldMapping:
    """
    Match the read schema against one file's physical schema.

    Parameters
    ----------
    read_schema : Schema
        Output of `resolve`.
    physical_schema : PhysicalSchema
        Schema reported by the decoder for the file.
    constants : mapping[int, Any], optional
        Field id → value supplied out of band. Constants win over a physical
        column with the same id.
    name_mapping : mapping[str, int], optional
        Physical column name → field id, used when the file has no ids.
    case_sensitive : bool
        Whether name matching is case sensitive.
    path : str, optional
        File path for error messages.

    Raises
    ------
    UnresolvedFieldError
        If a required field with no default is absent from the file.
    TypeMismatchError
        If a matched column cannot be read as the declared type.
    """
    constants = constants or {}
    accessors: List[FieldAccessor] = []
    physical_columns: List[int] = []

    for field in read_schema.fields:
        if field.field_id in constants:
            raw = constants[field.field_id]
            try:
                value = parse_literal(field.field_type, raw)
            except (ValueError, ArithmeticError) as exc:
                raise TypeMismatchError(
                    field.name, f"constant {raw!r} is not a valid {field.field_type}: {exc}", path=path
                ) from exc
            accessors.append(FieldAccessor(field, AccessorKind.CONSTANT, value=value))
            continue
        if field.field_id == ROW_POSITION.field_id:
            accessors.append(FieldAccessor(field, AccessorKind.ROW_POSITION))
            continue

        column = _match_column(field, physical_schema, name_mapping, case_sensitive)
        if column is None:
            if field.initial_default is None and field.required:
                raise UnresolvedFieldError(
                    field.name, f"Required field {field.name!r} is missing and has no default", path=path
                )
            accessors.append(FieldAccessor(field, AccessorKind.DEFAULT, value=field.initial_default))
            continue

        if column.field_type is None:
            raise TypeMismatchError(field.name, f"column {column.name!r} has an unsupported physical type", path=path)
        if not can_promote(column.field_type, field.field_type):
            raise TypeMismatchError(
                field.name, f"cannot read {column.field_type} as {field.field_type}", path=path
            )
        if column.position not in physical_columns:
            physical_columns.append(column.position)
        accessors.append(
            FieldAccessor(field, AccessorKind.PHYSICAL, index=physical_columns.index(column.position), column=column)
        )

    return FieldMapping(accessors=tuple(accessors), physical_columns=tuple(physical_columns))


__all__ = ["AccessorKind", "FieldAccessor", "FieldMapping", "resolve", "map_physical"]
