"""Generation choice for a named schema.

Every :class:`SchemaDefinition` falls into exactly one shape. The checks in
:func:`classify_schema` run in a fixed order, so the first match wins and no
schema can take two branches.
"""

from dataclasses import dataclass, field
from typing import Any, Literal

from apisync.model import SchemaDefinition, SchemaProperty

__all__ = [
    'BooleanShape',
    'RefShape',
    'EnumShape',
    'ValueEnumShape',
    'UnionShape',
    'MapShape',
    'RecordShape',
    'AliasShape',
    'SchemaShape',
    'classify_schema',
]


@dataclass(frozen=True)
class BooleanShape:
    value: bool


@dataclass(frozen=True)
class RefShape:
    ref: str


@dataclass(frozen=True)
class EnumShape:
    literals: list[str]
    nullable: bool = False
    null_literal: bool = False


@dataclass(frozen=True)
class ValueEnumShape:
    values: list[Any]


@dataclass(frozen=True)
class UnionShape:
    kind: Literal['oneOf', 'anyOf']
    variants: list[SchemaProperty]


@dataclass(frozen=True)
class MapShape:
    values: SchemaProperty


@dataclass(frozen=True)
class RecordShape:
    bases: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AliasShape:
    pass


SchemaShape = (
    BooleanShape
    | RefShape
    | EnumShape
    | ValueEnumShape
    | UnionShape
    | MapShape
    | RecordShape
    | AliasShape
)


def classify_schema(schema: SchemaDefinition) -> SchemaShape:
    if schema.boolean_schema is not None:
        return BooleanShape(schema.boolean_schema)
    if schema.ref:
        return RefShape(schema.ref)
    if schema.enum_values:
        literals = [value for value in schema.enum_values if value is not None]
        if literals and all(isinstance(value, str) for value in literals):
            return EnumShape(
                literals,
                nullable=schema.is_nullable,
                null_literal=None in schema.enum_values,
            )
        return ValueEnumShape(list(schema.enum_values))
    if schema.one_of or schema.one_of_schemas:
        variants = [SchemaProperty(ref=name) for name in schema.one_of]
        return UnionShape('oneOf', variants + list(schema.one_of_schemas))
    if schema.any_of or schema.any_of_schemas:
        variants = [SchemaProperty(ref=name) for name in schema.any_of]
        return UnionShape('anyOf', variants + list(schema.any_of_schemas))
    primary = schema.primary_type
    if schema.all_of and not schema.types:
        primary = 'object'
    if primary != 'object' and not schema.properties:
        return AliasShape()
    if (
        not schema.properties
        and not schema.all_of
        and schema.additional_properties is not None
        and schema.additional_properties.boolean_schema is not False
    ):
        return MapShape(schema.additional_properties)
    return RecordShape(list(schema.all_of))
