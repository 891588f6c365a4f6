"""Bidirectional mapping between schema nodes and Python type expressions.

The forward direction is lossy: ``int32`` and ``int64`` both become ``int``
and ``float``/``double`` both become ``float``. Generators carry the lost
``format`` through documentation tags instead.
"""

import ast
import logging

from apisync.codegen.ast_utils import _name, _parse_expr, _subscript, _union_expr
from apisync.codegen.references import resolve_ref_to_type
from apisync.codegen.utils import class_name
from apisync.model import SchemaDefinition, SchemaProperty

__all__ = [
    'type_annotation',
    'map_type',
    'type_expression_to_schema',
    'FORMATS_EXPRESSED_BY_TYPE',
]

logger = logging.getLogger(__name__)

# Formats that survive the forward mapping without a documentation tag.
FORMATS_EXPRESSED_BY_TYPE = {('string', 'date-time'), ('string', 'date')}

_SEQUENCE_NAMES = {'list', 'List', 'Sequence', 'set', 'Set', 'frozenset', 'tuple'}
_MAPPING_NAMES = {'dict', 'Dict', 'Mapping', 'MutableMapping'}

_PRIMITIVES: dict[str, dict] = {
    'str': {'types': ['string']},
    'int': {'types': ['integer']},
    'float': {'types': ['number']},
    'bool': {'types': ['boolean']},
    'datetime': {'types': ['string'], 'format': 'date-time'},
    'date': {'types': ['string'], 'format': 'date'},
    'bytes': {'types': ['string'], 'content_media_type': 'application/octet-stream'},
}


def _is_map_shape(schema: SchemaProperty | SchemaDefinition) -> bool:
    additional = schema.additional_properties
    return (
        additional is not None
        and additional.boolean_schema is not False
        and not schema.properties
    )


def _base_annotation(schema: SchemaProperty | SchemaDefinition | None) -> ast.expr:
    if schema is None:
        return _name('Any')
    if schema.boolean_schema is True:
        return _name('Any')
    if schema.boolean_schema is False:
        return _name('Never')
    if schema.ref:
        return _name(class_name(resolve_ref_to_type(schema.ref)))
    if not schema.types:
        return _name('str')

    primary = schema.primary_type
    if primary == 'string':
        if schema.content_encoding or schema.content_media_type:
            return _name('bytes')
        if schema.format == 'date-time':
            return _name('datetime')
        if schema.format == 'date':
            return _name('date')
        return _name('str')
    if primary == 'integer':
        return _name('int')
    if primary == 'number':
        return _name('float')
    if primary == 'boolean':
        return _name('bool')
    if primary == 'array':
        return _subscript('list', type_annotation(schema.items, nested=True))
    if primary == 'object':
        if _is_map_shape(schema):
            value = type_annotation(schema.additional_properties, nested=True)
            return _subscript(
                'dict', ast.Tuple(elts=[_name('str'), value], ctx=ast.Load())
            )
        if isinstance(schema, SchemaDefinition):
            return _name(class_name(schema.name))
        return _name('Any')
    if primary == 'null':
        return ast.Constant(value=None)
    return _name('Any')


def type_annotation(
    schema: SchemaProperty | SchemaDefinition | None, nested: bool = False
) -> ast.expr:
    """Build the annotation AST for a schema node.

    Args:
        schema: The schema node, or None for an unconstrained value.
        nested: When True a nullable node gets a ``| None`` suffix. Top-level
            callers decide nullability themselves (required vs optional).
    """
    annotation = _base_annotation(schema)
    if (
        nested
        and schema is not None
        and schema.is_nullable
        and schema.primary_type != 'null'
    ):
        annotation = _union_expr([annotation, ast.Constant(value=None)])
    return annotation


def map_type(schema: SchemaProperty | SchemaDefinition | None) -> str:
    """Return the Python type expression for a schema node.

    >>> map_type(SchemaProperty(types=['array'], items=SchemaProperty(types=['string'])))
    'list[str]'
    """
    return ast.unparse(type_annotation(schema))


def _schema_for(node: ast.expr) -> SchemaProperty:
    # X | None, None | X
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        members = _flatten_union(node)
        non_null = [m for m in members if not _is_none(m)]
        if len(non_null) == 1 and len(non_null) < len(members):
            return _with_null(_schema_for(non_null[0]))
        if len(non_null) == len(members):
            return SchemaProperty(any_of=[_schema_for(m) for m in members])
        return _with_null(SchemaProperty(any_of=[_schema_for(m) for m in non_null]))

    if isinstance(node, ast.Subscript):
        generic = _generic_name(node.value)
        args = node.slice.elts if isinstance(node.slice, ast.Tuple) else [node.slice]
        if generic == 'Optional':
            return _with_null(_schema_for(args[0]))
        if generic in _SEQUENCE_NAMES:
            return SchemaProperty(types=['array'], items=_schema_for(args[0]))
        if generic in _MAPPING_NAMES:
            value = args[1] if len(args) > 1 else args[0]
            return SchemaProperty(
                types=['object'], additional_properties=_schema_for(value)
            )
        if generic == 'Annotated':
            return _schema_for(args[0])
        return SchemaProperty(types=['string'])

    if isinstance(node, ast.Constant):
        if node.value is None:
            return SchemaProperty(types=['null'])
        if isinstance(node.value, str):
            return type_expression_to_schema(node.value)
        return SchemaProperty(types=['string'])

    if isinstance(node, ast.Attribute):
        return _named(node.attr)
    if isinstance(node, ast.Name):
        return _named(node.id)
    return SchemaProperty(types=['string'])


def _named(name: str) -> SchemaProperty:
    if name in _PRIMITIVES:
        return SchemaProperty(**_PRIMITIVES[name])
    if name == 'Any':
        return SchemaProperty(boolean_schema=True)
    if name in ('Never', 'NoReturn'):
        return SchemaProperty(boolean_schema=False)
    if name[:1].isupper():
        return SchemaProperty(types=['object'], ref=name)
    return SchemaProperty(types=['string'])


def _generic_name(node: ast.expr) -> str | None:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def _flatten_union(node: ast.expr) -> list[ast.expr]:
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _flatten_union(node.left) + _flatten_union(node.right)
    return [node]


def _is_none(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is None


def _with_null(schema: SchemaProperty) -> SchemaProperty:
    if schema.boolean_schema is not None or 'null' in schema.types:
        return schema
    return schema.model_copy(update={'types': [*schema.types, 'null']})


def type_expression_to_schema(expression: str) -> SchemaProperty:
    """Recover a schema node from a Python type expression.

    ``X | None`` and ``Optional[X]`` add ``null`` to the type set, sequence
    and mapping generics recurse, known primitives map back to their
    ``(type, format)`` pair and any other capitalized name becomes a
    reference. Anything unrecognized is treated as a string.
    """
    try:
        node = _parse_expr(expression.strip())
    except SyntaxError:
        logger.debug('Unparseable type expression %r, using string', expression)
        return SchemaProperty(types=['string'])
    return _schema_for(node)
