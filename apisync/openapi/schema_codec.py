"""Conversion between JSON Schema objects and schema nodes.

Both directions are driven by one keyword table so a node survives
``load_schema(dump_schema(node))`` unchanged.
"""

from typing import Any

from apisync.codegen.references import resolve_ref_to_type
from apisync.model import (
    Discriminator,
    ExternalDocumentation,
    SchemaDefinition,
    SchemaProperty,
    Xml,
)

__all__ = [
    'load_schema',
    'load_schema_definition',
    'dump_schema',
    'dump_schema_definition',
    'load_external_docs',
    'dump_external_docs',
    'split_extensions',
]

# (model field, JSON keyword, kind)
_KEYWORDS: list[tuple[str, str, str]] = [
    ('ref', '$ref', 'value'),
    ('dynamic_ref', '$dynamicRef', 'value'),
    ('schema_id', '$id', 'value'),
    ('schema_dialect', '$schema', 'value'),
    ('anchor', '$anchor', 'value'),
    ('dynamic_anchor', '$dynamicAnchor', 'value'),
    ('comment', '$comment', 'value'),
    ('defs', '$defs', 'schema_map'),
    ('format', 'format', 'value'),
    ('content_media_type', 'contentMediaType', 'value'),
    ('content_encoding', 'contentEncoding', 'value'),
    ('min_length', 'minLength', 'value'),
    ('max_length', 'maxLength', 'value'),
    ('pattern', 'pattern', 'value'),
    ('minimum', 'minimum', 'value'),
    ('maximum', 'maximum', 'value'),
    ('multiple_of', 'multipleOf', 'value'),
    ('exclusive_minimum', 'exclusiveMinimum', 'value'),
    ('exclusive_maximum', 'exclusiveMaximum', 'value'),
    ('min_items', 'minItems', 'value'),
    ('max_items', 'maxItems', 'value'),
    ('unique_items', 'uniqueItems', 'value'),
    ('min_properties', 'minProperties', 'value'),
    ('max_properties', 'maxProperties', 'value'),
    ('items', 'items', 'schema'),
    ('prefix_items', 'prefixItems', 'schema_list'),
    ('contains', 'contains', 'schema'),
    ('min_contains', 'minContains', 'value'),
    ('max_contains', 'maxContains', 'value'),
    ('properties', 'properties', 'schema_map'),
    ('required', 'required', 'list'),
    ('additional_properties', 'additionalProperties', 'schema'),
    ('description', 'description', 'value'),
    ('title', 'title', 'value'),
    ('default', 'default', 'value'),
    ('const', 'const', 'value'),
    ('deprecated', 'deprecated', 'flag'),
    ('read_only', 'readOnly', 'flag'),
    ('write_only', 'writeOnly', 'flag'),
    ('external_docs', 'externalDocs', 'external_docs'),
    ('discriminator', 'discriminator', 'discriminator'),
    ('xml', 'xml', 'xml'),
    ('enum_values', 'enum', 'value'),
    ('not_schema', 'not', 'schema'),
    ('if_schema', 'if', 'schema'),
    ('then_schema', 'then', 'schema'),
    ('else_schema', 'else', 'schema'),
    ('example', 'example', 'value'),
    ('pattern_properties', 'patternProperties', 'schema_map'),
    ('property_names', 'propertyNames', 'schema'),
    ('dependent_required', 'dependentRequired', 'value'),
    ('dependent_schemas', 'dependentSchemas', 'schema_map'),
    ('unevaluated_properties', 'unevaluatedProperties', 'schema'),
    ('unevaluated_items', 'unevaluatedItems', 'schema'),
    ('content_schema', 'contentSchema', 'schema'),
]

_COMPOSITIONS = (('one_of', 'oneOf'), ('any_of', 'anyOf'), ('all_of', 'allOf'))

_KNOWN_KEYWORDS = {keyword for _, keyword, _ in _KEYWORDS} | {
    'type',
    'nullable',
    'examples',
    'oneOf',
    'anyOf',
    'allOf',
}


def split_extensions(node: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in node.items() if key.startswith('x-')}


def load_external_docs(node: dict[str, Any] | None) -> ExternalDocumentation | None:
    if not isinstance(node, dict) or 'url' not in node:
        return None
    return ExternalDocumentation(
        url=node['url'],
        description=node.get('description'),
        extensions=split_extensions(node),
    )


def dump_external_docs(docs: ExternalDocumentation) -> dict[str, Any]:
    result: dict[str, Any] = {}
    if docs.description is not None:
        result['description'] = docs.description
    result['url'] = docs.url
    result.update(docs.extensions)
    return result


def _load_discriminator(node: dict[str, Any]) -> Discriminator:
    return Discriminator(
        property_name=node.get('propertyName', ''),
        mapping=dict(node.get('mapping') or {}),
        default_mapping=node.get('defaultMapping'),
        extensions=split_extensions(node),
    )


def _dump_discriminator(discriminator: Discriminator) -> dict[str, Any]:
    result: dict[str, Any] = {'propertyName': discriminator.property_name}
    if discriminator.mapping:
        result['mapping'] = dict(discriminator.mapping)
    if discriminator.default_mapping is not None:
        result['defaultMapping'] = discriminator.default_mapping
    result.update(discriminator.extensions)
    return result


def _load_xml(node: dict[str, Any]) -> Xml:
    return Xml(
        name=node.get('name'),
        namespace=node.get('namespace'),
        prefix=node.get('prefix'),
        node_type=node.get('nodeType'),
        attribute=bool(node.get('attribute', False)),
        wrapped=bool(node.get('wrapped', False)),
        extensions=split_extensions(node),
    )


def _dump_xml(xml: Xml) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for field, key in (
        ('name', 'name'),
        ('namespace', 'namespace'),
        ('prefix', 'prefix'),
        ('node_type', 'nodeType'),
    ):
        value = getattr(xml, field)
        if value is not None:
            result[key] = value
    if xml.attribute:
        result['attribute'] = True
    if xml.wrapped:
        result['wrapped'] = True
    result.update(xml.extensions)
    return result


def _load_types(node: dict[str, Any]) -> list[str]:
    raw = node.get('type')
    if isinstance(raw, str):
        types = [raw]
    elif isinstance(raw, list):
        types = [item for item in raw if isinstance(item, str)]
    else:
        types = []
    if node.get('nullable') is True and types and 'null' not in types:
        types.append('null')
    return types


def _load_facets(node: dict[str, Any]) -> dict[str, Any]:
    fields: dict[str, Any] = {'types': _load_types(node)}
    for field, keyword, kind in _KEYWORDS:
        if keyword not in node:
            continue
        raw = node[keyword]
        if kind == 'value':
            fields[field] = raw
        elif kind == 'flag':
            fields[field] = bool(raw)
        elif kind == 'list':
            fields[field] = list(raw or [])
        elif kind == 'schema':
            fields[field] = load_schema(raw)
        elif kind == 'schema_list':
            fields[field] = [load_schema(item) for item in raw or []]
        elif kind == 'schema_map':
            fields[field] = {key: load_schema(value) for key, value in (raw or {}).items()}
        elif kind == 'external_docs':
            fields[field] = load_external_docs(raw)
        elif kind == 'discriminator':
            fields[field] = _load_discriminator(raw or {})
        elif kind == 'xml':
            fields[field] = _load_xml(raw or {})
    fields['extensions'] = split_extensions(node)
    fields['custom_keywords'] = {
        key: value
        for key, value in node.items()
        if key not in _KNOWN_KEYWORDS and not key.startswith('x-')
    }
    return fields


def load_schema(node: Any) -> SchemaProperty:
    """Build a nested schema node from a JSON Schema value (object or boolean)."""
    if isinstance(node, bool):
        return SchemaProperty(boolean_schema=node)
    if not isinstance(node, dict):
        return SchemaProperty()
    fields = _load_facets(node)
    for field, keyword in _COMPOSITIONS:
        if keyword in node:
            fields[field] = [load_schema(item) for item in node[keyword] or []]
    if 'examples' in node and isinstance(node['examples'], list):
        fields['examples'] = list(node['examples'])
    return SchemaProperty(**fields)


def load_schema_definition(name: str, node: Any) -> SchemaDefinition:
    """Build a named schema; pure ``$ref`` composition members become names."""
    if isinstance(node, bool):
        return SchemaDefinition(name=name, boolean_schema=node)
    if not isinstance(node, dict):
        return SchemaDefinition(name=name)
    fields = _load_facets(node)
    for field, keyword in _COMPOSITIONS:
        names: list[str] = []
        inline: list[SchemaProperty] = []
        for item in node.get(keyword) or []:
            if isinstance(item, dict) and set(item) == {'$ref'}:
                names.append(resolve_ref_to_type(item['$ref']))
            else:
                inline.append(load_schema(item))
        fields[field] = names
        fields[f'{field}_schemas'] = inline
    examples = node.get('examples')
    if isinstance(examples, list):
        fields['examples_list'] = list(examples)
    elif isinstance(examples, dict):
        fields['examples'] = dict(examples)
    return SchemaDefinition(name=name, **fields)


def _dump_facets(schema: SchemaProperty | SchemaDefinition) -> dict[str, Any]:
    result: dict[str, Any] = {}
    if schema.types:
        result['type'] = schema.types[0] if len(schema.types) == 1 else list(schema.types)
    for field, keyword, kind in _KEYWORDS:
        value = getattr(schema, field)
        if kind == 'flag':
            if value:
                result[keyword] = True
            continue
        if value is None or (kind in ('list', 'schema_list', 'schema_map') and not value):
            continue
        if kind == 'value':
            if field == 'dependent_required' and not value:
                continue
            result[keyword] = value
        elif kind == 'list':
            result[keyword] = list(value)
        elif kind == 'schema':
            result[keyword] = dump_schema(value)
        elif kind == 'schema_list':
            result[keyword] = [dump_schema(item) for item in value]
        elif kind == 'schema_map':
            result[keyword] = {key: dump_schema(item) for key, item in value.items()}
        elif kind == 'external_docs':
            result[keyword] = dump_external_docs(value)
        elif kind == 'discriminator':
            result[keyword] = _dump_discriminator(value)
        elif kind == 'xml':
            result[keyword] = _dump_xml(value)
    result.update(schema.custom_keywords)
    result.update(schema.extensions)
    return result


def dump_schema(schema: SchemaProperty) -> dict[str, Any] | bool:
    """Render a nested schema node as a JSON Schema value."""
    if schema.boolean_schema is not None:
        return schema.boolean_schema
    result = _dump_facets(schema)
    for field, keyword in _COMPOSITIONS:
        members = getattr(schema, field)
        if members:
            result[keyword] = [dump_schema(item) for item in members]
    if schema.examples is not None:
        result['examples'] = list(schema.examples)
    return result


def dump_schema_definition(schema: SchemaDefinition) -> dict[str, Any] | bool:
    if schema.boolean_schema is not None:
        return schema.boolean_schema
    result = _dump_facets(schema)
    for field, keyword in _COMPOSITIONS:
        members = [
            {'$ref': f'#/components/schemas/{name}'} for name in getattr(schema, field)
        ]
        members += [dump_schema(item) for item in getattr(schema, f'{field}_schemas')]
        if members:
            result[keyword] = members
    if schema.examples_list is not None:
        result['examples'] = list(schema.examples_list)
    elif schema.examples is not None:
        result['examples'] = dict(schema.examples)
    return result
