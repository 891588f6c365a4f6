"""Documentation-tag side channel.

Facets that have no first-class Python representation are written into
docstrings as ``@tagName value`` lines, one tag per line, after the free
text description. Structured values are single-line JSON, so every line
can be parsed back without context.
"""

import inspect
import json
import re
from collections.abc import Callable
from typing import Any

from apisync.codegen.type_mapping import FORMATS_EXPRESSED_BY_TYPE
from apisync.model import (
    Discriminator,
    ExternalDocumentation,
    SchemaDefinition,
    SchemaProperty,
    Xml,
)
from apisync.openapi.schema_codec import dump_schema, load_schema

__all__ = [
    'DocBlock',
    'render_doc_value',
    'render_json',
    'parse_json_value',
    'parse_doc_text',
    'parse_doc_block',
    'description_lines',
    'schema_doc_lines',
    'schema_doc_updates',
]

_TAG_LINE = re.compile(r'^@([A-Za-z][A-Za-z0-9]*)(?:\s(.*))?$')
_KEYED_EXAMPLE = re.compile(r'^([^\s:"{\[]+): (.*)$')


def render_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def render_doc_value(value: Any) -> str:
    """Render a tag value: strings raw, scalars as literals, collections as JSON."""
    if isinstance(value, str):
        if '\n' in value or value != value.strip():
            return render_json(value)
        return value
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return str(value)
    return render_json(value)


def parse_json_value(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return text


def parse_doc_text(text: str) -> str:
    if text.startswith('"'):
        value = parse_json_value(text)
        if isinstance(value, str):
            return value
    return text


def description_lines(text: str | None) -> list[str]:
    """Docstring lines for free text.

    Text that would read back as a tag line, or that starts with a quote, is
    written as one JSON string instead.
    """
    if not text:
        return []
    lines = text.splitlines()
    if text.startswith('"') or any(_TAG_LINE.match(line.strip()) for line in lines):
        return [render_json(text)]
    return lines


def _parse_number(text: str) -> int | float | str:
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


def _parse_int(text: str) -> int | None:
    try:
        return int(text)
    except ValueError:
        return None


def _parse_flag(text: str) -> bool:
    return text.strip() in ('', 'true')


class DocBlock:
    """A parsed docstring: description text plus ordered ``(tag, value)`` pairs."""

    def __init__(self, description: str | None, tags: list[tuple[str, str]]):
        self.description = description
        self.tags = tags

    def get(self, tag: str) -> str | None:
        for name, value in self.tags:
            if name == tag:
                return value
        return None

    def get_all(self, tag: str) -> list[str]:
        return [value for name, value in self.tags if name == tag]

    def has(self, tag: str) -> bool:
        return any(name == tag for name, _ in self.tags)


def parse_doc_block(docstring: str | None) -> DocBlock:
    """Split a docstring into its description and tag lines."""
    if not docstring:
        return DocBlock(None, [])
    lines = inspect.cleandoc(docstring).splitlines()
    description: list[str] = []
    tags: list[tuple[str, str]] = []
    for line in lines:
        stripped = line.strip()
        match = _TAG_LINE.match(stripped)
        if match:
            tags.append((match.group(1), match.group(2) or ''))
        elif not tags:
            description.append(line)
    text = '\n'.join(description).strip()
    if text.startswith('"') and '\n' not in text:
        text = parse_doc_text(text)
    return DocBlock(text or None, tags)


# =============================================================================
# Schema facets
# =============================================================================

_NUMERIC_TAGS = [
    ('minLength', 'min_length'),
    ('maxLength', 'max_length'),
    ('pattern', 'pattern'),
    ('minimum', 'minimum'),
    ('maximum', 'maximum'),
    ('multipleOf', 'multiple_of'),
    ('exclusiveMinimum', 'exclusive_minimum'),
    ('exclusiveMaximum', 'exclusive_maximum'),
    ('minItems', 'min_items'),
    ('maxItems', 'max_items'),
    ('uniqueItems', 'unique_items'),
    ('minProperties', 'min_properties'),
    ('maxProperties', 'max_properties'),
    ('minContains', 'min_contains'),
    ('maxContains', 'max_contains'),
]

_IDENTITY_TAGS = [
    ('comment', 'comment'),
    ('schemaId', 'schema_id'),
    ('schemaDialect', 'schema_dialect'),
    ('anchor', 'anchor'),
    ('dynamicAnchor', 'dynamic_anchor'),
    ('dynamicRef', 'dynamic_ref'),
]

_NESTED_TAGS = [
    ('contains', 'contains'),
    ('not', 'not_schema'),
    ('if', 'if_schema'),
    ('then', 'then_schema'),
    ('else', 'else_schema'),
    ('propertyNames', 'property_names'),
    ('unevaluatedProperties', 'unevaluated_properties'),
    ('unevaluatedItems', 'unevaluated_items'),
    ('contentSchema', 'content_schema'),
]

_NESTED_MAP_TAGS = [
    ('defs', 'defs'),
    ('patternProperties', 'pattern_properties'),
    ('dependentSchemas', 'dependent_schemas'),
]

_FLAG_TAGS = [
    ('deprecated', 'deprecated'),
    ('readOnly', 'read_only'),
    ('writeOnly', 'write_only'),
]

_INTEGER_FACETS = {
    'min_length',
    'max_length',
    'min_items',
    'max_items',
    'min_properties',
    'max_properties',
    'min_contains',
    'max_contains',
}


def _needs_format_tag(schema: SchemaProperty | SchemaDefinition) -> bool:
    if not schema.format:
        return False
    return (schema.primary_type, schema.format) not in FORMATS_EXPRESSED_BY_TYPE


def schema_doc_lines(
    schema: SchemaProperty | SchemaDefinition,
    include_enum: bool = False,
    include_discriminator: bool = True,
) -> list[str]:
    """Render every documented facet of a schema as docstring lines.

    The description comes first, followed by a blank line and one tag per
    line in a fixed order.
    """
    tags: list[str] = []

    def add(tag: str, value: Any = None) -> None:
        tags.append(f'@{tag}' if value is None else f'@{tag} {render_doc_value(value)}')

    if schema.external_docs is not None:
        docs = schema.external_docs
        add('see', f'{docs.url} {docs.description}'.strip() if docs.description else docs.url)
    if include_discriminator and schema.discriminator is not None:
        add('discriminator', schema.discriminator.property_name)
        if schema.discriminator.mapping:
            tags.append(f'@discriminatorMapping {render_json(schema.discriminator.mapping)}')
        if schema.discriminator.default_mapping:
            add('discriminatorDefault', schema.discriminator.default_mapping)
    if schema.example is not None:
        tags.append(f'@example {render_json(schema.example)}')
    if isinstance(schema, SchemaDefinition):
        if schema.examples_list is not None:
            tags.append(f'@examples {render_json(schema.examples_list)}')
        for key, value in (schema.examples or {}).items():
            tags.append(f'@example {key}: {render_json(value)}')
    elif schema.examples is not None:
        tags.append(f'@examples {render_json(schema.examples)}')
    if include_enum:
        for value in schema.enum_values or []:
            tags.append(f'@enum {render_json(value)}')
    if schema.title is not None:
        add('title', schema.title)
    if schema.default is not None:
        tags.append(f'@default {render_json(schema.default)}')
    if schema.const is not None:
        tags.append(f'@const {render_json(schema.const)}')
    if _needs_format_tag(schema):
        add('format', schema.format)
    for tag, field in _IDENTITY_TAGS:
        value = getattr(schema, field)
        if value is not None:
            add(tag, value)
    for tag, field in _NESTED_MAP_TAGS[:1]:
        if getattr(schema, field):
            tags.append(f'@{tag} {_render_schema_map(getattr(schema, field))}')
    for tag, field in _NUMERIC_TAGS:
        value = getattr(schema, field)
        if value is not None:
            add(tag, value)
    if schema.contains is not None:
        tags.append(f'@contains {render_json(dump_schema(schema.contains))}')
    if schema.prefix_items:
        tags.append(
            f'@prefixItems {render_json([dump_schema(item) for item in schema.prefix_items])}'
        )
    for tag, field in _NESTED_MAP_TAGS[1:2]:
        if getattr(schema, field):
            tags.append(f'@{tag} {_render_schema_map(getattr(schema, field))}')
    if schema.property_names is not None:
        tags.append(f'@propertyNames {render_json(dump_schema(schema.property_names))}')
    if schema.dependent_required:
        tags.append(f'@dependentRequired {render_json(schema.dependent_required)}')
    for tag, field in _NESTED_MAP_TAGS[2:]:
        if getattr(schema, field):
            tags.append(f'@{tag} {_render_schema_map(getattr(schema, field))}')
    for tag, field in _NESTED_TAGS:
        if tag in ('contains', 'propertyNames'):
            continue
        value = getattr(schema, field)
        if value is not None:
            tags.append(f'@{tag} {render_json(dump_schema(value))}')
    if schema.custom_keywords:
        tags.append(f'@keywords {render_json(schema.custom_keywords)}')
    if schema.extensions:
        tags.append(f'@extensions {render_json(schema.extensions)}')
    for tag, field in _FLAG_TAGS:
        if getattr(schema, field):
            add(tag)
    if schema.content_media_type is not None:
        add('contentMediaType', schema.content_media_type)
    if schema.content_encoding is not None:
        add('contentEncoding', schema.content_encoding)
    if schema.xml is not None:
        tags.extend(_xml_lines(schema.xml))

    lines: list[str] = []
    if schema.description:
        lines.extend(description_lines(schema.description.strip()))
    if lines and tags:
        lines.append('')
    lines.extend(tags)
    return lines


def _render_schema_map(value: dict[str, SchemaProperty]) -> str:
    return render_json({key: dump_schema(item) for key, item in value.items()})


def _xml_lines(xml: Xml) -> list[str]:
    lines = []
    for tag, field in (
        ('xmlName', 'name'),
        ('xmlNamespace', 'namespace'),
        ('xmlPrefix', 'prefix'),
        ('xmlNodeType', 'node_type'),
    ):
        value = getattr(xml, field)
        if value is not None:
            lines.append(f'@{tag} {render_doc_value(value)}')
    if xml.attribute:
        lines.append('@xmlAttribute')
    if xml.wrapped:
        lines.append('@xmlWrapped')
    return lines


def schema_doc_updates(block: DocBlock, named: bool = False) -> dict[str, Any]:
    """Turn a parsed doc block back into schema field updates.

    Args:
        block: The parsed docstring.
        named: Build updates for a :class:`SchemaDefinition` (keyed examples
            and ``examples_list``) instead of a nested node.
    """
    updates: dict[str, Any] = {}
    if block.description:
        updates['description'] = block.description

    keyed_examples: dict[str, Any] = {}
    enum_values: list[Any] = []
    xml_fields: dict[str, Any] = {}
    discriminator: dict[str, Any] = {}

    simple: dict[str, tuple[str, Callable[[str], Any]]] = {
        'title': ('title', parse_doc_text),
        'default': ('default', parse_json_value),
        'const': ('const', parse_json_value),
        'format': ('format', parse_doc_text),
        'keywords': ('custom_keywords', parse_json_value),
        'extensions': ('extensions', parse_json_value),
        'dependentRequired': ('dependent_required', parse_json_value),
        'contentMediaType': ('content_media_type', parse_doc_text),
        'contentEncoding': ('content_encoding', parse_doc_text),
    }
    for tag, field in _IDENTITY_TAGS:
        simple[tag] = (field, parse_doc_text)
    for tag, field in _NUMERIC_TAGS:
        if field == 'pattern':
            simple[tag] = (field, parse_doc_text)
        elif field == 'unique_items':
            simple[tag] = (field, lambda text: text.strip() == 'true')
        elif field in _INTEGER_FACETS:
            simple[tag] = (field, _parse_int)
        else:
            simple[tag] = (field, _parse_number)
    for tag, field in _NESTED_TAGS:
        simple[tag] = (field, lambda text: load_schema(parse_json_value(text)))
    for tag, field in _NESTED_MAP_TAGS:
        simple[tag] = (
            field,
            lambda text: {
                key: load_schema(value)
                for key, value in (parse_json_value(text) or {}).items()
            },
        )
    flags = {tag: field for tag, field in _FLAG_TAGS}

    for tag, value in block.tags:
        if tag in simple:
            field, parser = simple[tag]
            updates[field] = parser(value)
        elif tag in flags:
            updates[flags[tag]] = _parse_flag(value)
        elif tag == 'see':
            url, _, description = value.partition(' ')
            updates['external_docs'] = ExternalDocumentation(
                url=url, description=description or None
            )
        elif tag == 'discriminator':
            discriminator['property_name'] = value
        elif tag == 'discriminatorMapping':
            discriminator['mapping'] = parse_json_value(value)
        elif tag == 'discriminatorDefault':
            discriminator['default_mapping'] = value
        elif tag == 'example':
            keyed = _KEYED_EXAMPLE.match(value) if named else None
            if keyed:
                keyed_examples[keyed.group(1)] = parse_json_value(keyed.group(2))
            else:
                updates['example'] = parse_json_value(value)
        elif tag == 'examples':
            updates['examples_list' if named else 'examples'] = parse_json_value(value)
        elif tag == 'enum':
            enum_values.append(parse_json_value(value))
        elif tag == 'prefixItems':
            updates['prefix_items'] = [load_schema(item) for item in parse_json_value(value)]
        elif tag.startswith('xml'):
            field = {
                'xmlName': 'name',
                'xmlNamespace': 'namespace',
                'xmlPrefix': 'prefix',
                'xmlNodeType': 'node_type',
                'xmlAttribute': 'attribute',
                'xmlWrapped': 'wrapped',
            }.get(tag)
            if field in ('attribute', 'wrapped'):
                xml_fields[field] = True
            elif field is not None:
                xml_fields[field] = parse_doc_text(value)

    if keyed_examples:
        updates['examples'] = keyed_examples
    if enum_values:
        updates['enum_values'] = enum_values
    if xml_fields:
        updates['xml'] = Xml(**xml_fields)
    if 'property_name' in discriminator:
        updates['discriminator'] = Discriminator(**discriminator)
    return updates
