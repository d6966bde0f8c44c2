"""
Logical table schema.

A schema is an ordered tuple of fields, each with a stable integer id. Ids are
what survives schema evolution (renames, reorders), so projection and physical
column matching are done by id whenever the data file carries them.

The JSON layout follows the table-format metadata convention:

    {"type": "struct", "schema-id": 0,
     "fields": [{"id": 1, "name": "data", "required": true, "type": "string"}]}
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    Field,
    PrivateAttr,
    ValidationInfo,
    field_serializer,
    field_validator,
    model_validator,
)

from tablescan.domain.types import LongType, PrimitiveType, StringType, parse_literal, parse_type
from tablescan.errors import UnresolvedFieldError


class NestedField(BaseModel):
    """
    A named, typed column of a schema.
    """

    field_id: int = Field(..., alias="id", ge=0)
    name: str = Field(..., min_length=1)
    field_type: PrimitiveType = Field(..., alias="type")
    required: bool = Field(False, description="Whether null is a legal value.")
    doc: Optional[str] = None
    initial_default: Any = Field(
        None,
        alias="initial-default",
        description="Value used for files written before this field existed.",
    )

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    @field_validator("field_type", mode="before")
    @classmethod
    def _parse_field_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_type(value)
        return value

    @field_validator("initial_default", mode="after")
    @classmethod
    def _parse_initial_default(cls, value: Any, info: ValidationInfo) -> Any:
        field_type = info.data.get("field_type")
        if field_type is None:
            return value
        return parse_literal(field_type, value)

    @field_serializer("field_type")
    def _serialize_field_type(self, value: PrimitiveType) -> str:
        return str(value)

    @property
    def optional(self) -> bool:
        return not self.required

    def __str__(self) -> str:
        nullability = "required" if self.required else "optional"
        return f"{self.field_id}: {self.name}: {nullability} {self.field_type}"


def required_field(field_id: int, name: str, field_type: PrimitiveType, **kwargs: Any) -> NestedField:
    return NestedField(field_id=field_id, name=name, field_type=field_type, required=True, **kwargs)


def optional_field(field_id: int, name: str, field_type: PrimitiveType, **kwargs: Any) -> NestedField:
    return NestedField(field_id=field_id, name=name, field_type=field_type, required=False, **kwargs)


# Reserved ids for columns derived from the file rather than stored in it.
FILE_PATH = required_field(2147483646, "_file", StringType(), doc="Path of the file the row was read from")
ROW_POSITION = required_field(2147483645, "_pos", LongType(), doc="Ordinal position of the row in the file")

METADATA_COLUMNS: Dict[int, NestedField] = {
    FILE_PATH.field_id: FILE_PATH,
    ROW_POSITION.field_id: ROW_POSITION,
}


def is_metadata_column(field_id: int) -> bool:
    return field_id in METADATA_COLUMNS


class Schema(BaseModel):
    """
    Immutable, ordered set of fields.

    Can be built positionally, `Schema(field_a, field_b, schema_id=1)`, or
    validated from the JSON layout with `Schema.from_json(...)`.
    """

    fields: Tuple[NestedField, ...] = ()
    schema_id: int = Field(0, alias="schema-id")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    _by_id: Dict[int, NestedField] = PrivateAttr(default_factory=dict)
    _by_name: Dict[str, NestedField] = PrivateAttr(default_factory=dict)
    _by_lower_name: Dict[str, NestedField] = PrivateAttr(default_factory=dict)
    _positions: Dict[int, int] = PrivateAttr(default_factory=dict)

    def __init__(self, *fields: NestedField, **data: Any) -> None:
        if fields:
            data["fields"] = fields
        super().__init__(**data)

    @model_validator(mode="after")
    def _check_unique(self) -> "Schema":
        seen_ids = set()
        seen_names = set()
        for field in self.fields:
            if field.field_id in seen_ids:
                raise ValueError(f"Duplicate field id {field.field_id}")
            if field.name in seen_names:
                raise ValueError(f"Duplicate field name {field.name!r}")
            seen_ids.add(field.field_id)
            seen_names.add(field.name)
        return self

    def model_post_init(self, __context: Any) -> None:
        self._by_id = {field.field_id: field for field in self.fields}
        self._by_name = {field.name: field for field in self.fields}
        self._by_lower_name = {field.name.lower(): field for field in self.fields}
        self._positions = {field.field_id: position for position, field in enumerate(self.fields)}

    @classmethod
    def from_json(cls, payload: Union[str, bytes, Dict[str, Any]]) -> "Schema":
        data = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
        return cls.model_validate(data)

    def to_json(self) -> str:
        payload = {"type": "struct", **self.model_dump(mode="json", by_alias=True)}
        return json.dumps(payload)

    @property
    def field_ids(self) -> Tuple[int, ...]:
        return tuple(field.field_id for field in self.fields)

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(field.name for field in self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def find_field(self, key: Union[int, str], case_sensitive: bool = True) -> NestedField:
        """
        Look up a field by id or by name.

        Raises
        ------
        UnresolvedFieldError
            If no field matches.
        """
        field = self.find_field_or_none(key, case_sensitive=case_sensitive)
        if field is None:
            raise UnresolvedFieldError(key)
        return field

    def find_field_or_none(self, key: Union[int, str], case_sensitive: bool = True) -> Optional[NestedField]:
        if isinstance(key, int):
            return self._by_id.get(key)
        if case_sensitive:
            return self._by_name.get(key)
        return self._by_lower_name.get(key.lower())

    def position_of(self, field_id: int) -> int:
        try:
            return self._positions[field_id]
        except KeyError:
            raise UnresolvedFieldError(field_id) from None

    def select_ids(self, field_ids: Iterable[int]) -> "Schema":
        """Fields whose ids are in `field_ids`, in this schema's order."""
        wanted = set(field_ids)
        return Schema(*[field for field in self.fields if field.field_id in wanted], schema_id=self.schema_id)

    def select(self, *names: str, case_sensitive: bool = True) -> "Schema":
        """Fields named in `names`, in this schema's order."""
        ids = [self.find_field(name, case_sensitive=case_sensitive).field_id for name in names]
        return self.select_ids(ids)

    def __str__(self) -> str:
        body = ", ".join(str(field) for field in self.fields)
        return f"table {{{body}}}"


__all__ = [
    "NestedField",
    "Schema",
    "required_field",
    "optional_field",
    "FILE_PATH",
    "ROW_POSITION",
    "METADATA_COLUMNS",
    "is_metadata_column",
]
