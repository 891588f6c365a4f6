"""Schema node models.

A schema node describes the shape of a value. Named schemas (the entries of
``components.schemas``) are :class:`SchemaDefinition` instances; every nested
node (properties, items, inline compositions) is a :class:`SchemaProperty`.
Cross references between schemas are kept as ``ref`` strings and looked up
by name, so cyclic schema graphs never need cyclic ownership.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    'Discriminator',
    'ExternalDocumentation',
    'Xml',
    'SchemaProperty',
    'SchemaDefinition',
]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ExternalDocumentation(_Frozen):
    """Link to external documentation."""

    url: str
    description: str | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class Discriminator(_Frozen):
    """Hint naming the property that selects a union variant."""

    property_name: str
    mapping: dict[str, str] = Field(default_factory=dict)
    default_mapping: str | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class Xml(_Frozen):
    """XML projection hints."""

    name: str | None = None
    namespace: str | None = None
    prefix: str | None = None
    node_type: str | None = None
    attribute: bool = False
    wrapped: bool = False
    extensions: dict[str, Any] = Field(default_factory=dict)


class _SchemaFacets(_Frozen):
    """Facets shared by named and nested schema nodes."""

    boolean_schema: bool | None = Field(
        None, description='Set for the boolean schemas `true` and `false`.'
    )
    types: list[str] = Field(
        default_factory=list,
        description='Type set; holding "null" marks the value as nullable.',
    )
    format: str | None = None
    content_media_type: str | None = None
    content_encoding: str | None = None

    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    minimum: int | float | None = None
    maximum: int | float | None = None
    multiple_of: int | float | None = None
    exclusive_minimum: int | float | None = None
    exclusive_maximum: int | float | None = None
    min_items: int | None = None
    max_items: int | None = None
    unique_items: bool | None = None
    min_properties: int | None = None
    max_properties: int | None = None

    items: SchemaProperty | None = None
    prefix_items: list[SchemaProperty] = Field(default_factory=list)
    contains: SchemaProperty | None = None
    min_contains: int | None = None
    max_contains: int | None = None
    properties: dict[str, SchemaProperty] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)
    additional_properties: SchemaProperty | None = Field(
        None,
        description='Nested schema, or a boolean schema for `true`/`false`.',
    )

    ref: str | None = None
    schema_id: str | None = None
    schema_dialect: str | None = None
    anchor: str | None = None
    dynamic_anchor: str | None = None
    dynamic_ref: str | None = None
    comment: str | None = None
    defs: dict[str, SchemaProperty] = Field(default_factory=dict)

    description: str | None = None
    title: str | None = None
    default: Any = None
    const: Any = None
    deprecated: bool = False
    read_only: bool = False
    write_only: bool = False
    external_docs: ExternalDocumentation | None = None
    discriminator: Discriminator | None = None
    xml: Xml | None = None
    enum_values: list[Any] | None = None

    not_schema: SchemaProperty | None = None
    if_schema: SchemaProperty | None = None
    then_schema: SchemaProperty | None = None
    else_schema: SchemaProperty | None = None
    example: Any = None

    pattern_properties: dict[str, SchemaProperty] = Field(default_factory=dict)
    property_names: SchemaProperty | None = None
    dependent_required: dict[str, list[str]] = Field(default_factory=dict)
    dependent_schemas: dict[str, SchemaProperty] = Field(default_factory=dict)
    unevaluated_properties: SchemaProperty | None = None
    unevaluated_items: SchemaProperty | None = None
    content_schema: SchemaProperty | None = None
    custom_keywords: dict[str, Any] = Field(default_factory=dict)
    extensions: dict[str, Any] = Field(default_factory=dict)

    @property
    def effective_types(self) -> list[str]:
        if self.boolean_schema is True:
            return ['any']
        if self.boolean_schema is False:
            return ['never']
        return list(self.types)

    @property
    def primary_type(self) -> str:
        """The first non-null type, falling back to ``string``."""
        types = self.effective_types
        for type_ in types:
            if type_ != 'null':
                return type_
        return types[0] if types else 'string'

    @property
    def is_nullable(self) -> bool:
        return 'null' in self.types


class SchemaProperty(_SchemaFacets):
    """A nested schema node."""

    one_of: list[SchemaProperty] = Field(default_factory=list)
    any_of: list[SchemaProperty] = Field(default_factory=list)
    all_of: list[SchemaProperty] = Field(default_factory=list)
    examples: list[Any] | None = None


class SchemaDefinition(_SchemaFacets):
    """A named schema, the unit of record generation."""

    name: str
    one_of: list[str] = Field(
        default_factory=list, description='Variant names referenced by `oneOf`.'
    )
    one_of_schemas: list[SchemaProperty] = Field(default_factory=list)
    any_of: list[str] = Field(default_factory=list)
    any_of_schemas: list[SchemaProperty] = Field(default_factory=list)
    all_of: list[str] = Field(default_factory=list)
    all_of_schemas: list[SchemaProperty] = Field(default_factory=list)
    examples: dict[str, Any] | None = Field(
        None, description='Keyed examples, rendered as `@example key: value`.'
    )
    examples_list: list[Any] | None = None


SchemaProperty.model_rebuild()
SchemaDefinition.model_rebuild()
