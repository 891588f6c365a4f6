"""Recover schema nodes from generated (or hand-edited) model modules."""

import ast
import logging

from apisync.codegen.docs import parse_doc_block, parse_json_value, schema_doc_updates
from apisync.codegen.references import resolve_ref_to_type
from apisync.codegen.toolkit import current_toolkit
from apisync.codegen.type_mapping import type_expression_to_schema
from apisync.model import SchemaDefinition, SchemaProperty
from apisync.openapi.schema_codec import load_schema

__all__ = [
    'parse_dtos',
    'parse_declaration',
    'is_record_class',
    'record_fields',
    'ParsedField',
]

logger = logging.getLogger(__name__)

_UNION_TAGS = ('oneOf', 'anyOf')


class ParsedField:
    """One annotated field of a record class."""

    def __init__(
        self,
        python_name: str,
        wire_name: str,
        statement: ast.AnnAssign,
        doc: str | None,
        end_lineno: int,
    ):
        self.python_name = python_name
        self.wire_name = wire_name
        self.statement = statement
        self.doc = doc
        self.end_lineno = end_lineno


def _base_name(node: ast.expr) -> str | None:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Subscript):
        return _base_name(node.value)
    return None


def _has_model_config(node: ast.ClassDef) -> bool:
    for statement in node.body:
        if isinstance(statement, ast.Assign):
            if any(isinstance(t, ast.Name) and t.id == 'model_config' for t in statement.targets):
                return True
        elif isinstance(statement, ast.AnnAssign):
            if isinstance(statement.target, ast.Name) and statement.target.id == 'model_config':
                return True
    return False


def is_record_class(node: ast.ClassDef) -> bool:
    """A record carries a ``model_config`` marker or derives from ``BaseModel``."""
    bases = {_base_name(base) for base in node.bases}
    if 'RootModel' in bases or 'Enum' in bases:
        return False
    return 'BaseModel' in bases or _has_model_config(node)


def _is_classvar(annotation: ast.expr) -> bool:
    return _base_name(annotation) == 'ClassVar'


def _field_call(value: ast.expr | None) -> ast.Call | None:
    if isinstance(value, ast.Call) and _base_name(value.func) == 'Field':
        return value
    return None


def _keyword_value(call: ast.Call, name: str) -> ast.expr | None:
    for keyword in call.keywords:
        if keyword.arg == name:
            return keyword.value
    return None


def _has_default(value: ast.expr | None) -> bool:
    if value is None:
        return False
    call = _field_call(value)
    if call is None:
        return True
    if call.args:
        first = call.args[0]
        return not (isinstance(first, ast.Constant) and first.value is Ellipsis)
    return any(k.arg in ('default', 'default_factory') for k in call.keywords)


def record_fields(node: ast.ClassDef) -> list[ParsedField]:
    """List the annotated fields of a record class in declaration order."""
    fields: list[ParsedField] = []
    body = node.body
    for index, statement in enumerate(body):
        if not isinstance(statement, ast.AnnAssign):
            continue
        if not isinstance(statement.target, ast.Name):
            continue
        python_name = statement.target.id
        if python_name == 'model_config' or _is_classvar(statement.annotation):
            continue
        wire_name = python_name
        call = _field_call(statement.value)
        if call is not None:
            for key in ('alias', 'validation_alias', 'serialization_alias'):
                alias = _keyword_value(call, key)
                if isinstance(alias, ast.Constant) and isinstance(alias.value, str):
                    wire_name = alias.value
                    break
        doc = None
        end_lineno = statement.end_lineno or statement.lineno
        following = body[index + 1] if index + 1 < len(body) else None
        if (
            isinstance(following, ast.Expr)
            and isinstance(following.value, ast.Constant)
            and isinstance(following.value.value, str)
        ):
            doc = following.value.value
            end_lineno = following.end_lineno or following.lineno
        fields.append(ParsedField(python_name, wire_name, statement, doc, end_lineno))
    return fields


def _strip_none(node: ast.expr) -> tuple[ast.expr | None, bool]:
    """Split ``X | None`` into ``X`` and a nullable flag."""
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        members = _union_members(node)
        rest = [m for m in members if not (isinstance(m, ast.Constant) and m.value is None)]
        if len(rest) < len(members):
            if not rest:
                return None, True
            result = rest[0]
            for member in rest[1:]:
                result = ast.BinOp(left=result, op=ast.BitOr(), right=member)
            return result, True
    if isinstance(node, ast.Subscript) and _base_name(node.value) == 'Optional':
        return node.slice, True
    return node, False


def _union_members(node: ast.expr) -> list[ast.expr]:
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _union_members(node.left) + _union_members(node.right)
    return [node]


def _facets(schema: SchemaProperty) -> dict:
    return schema.model_dump(exclude_unset=True, exclude={'one_of', 'any_of', 'all_of'})


def _parse_field(field: ParsedField) -> tuple[SchemaProperty, bool]:
    statement = field.statement
    inner, nullable = _strip_none(statement.annotation)
    has_default = _has_default(statement.value)
    if inner is None:
        schema = SchemaProperty(types=['null'])
    else:
        schema = type_expression_to_schema(ast.unparse(inner))
    # Optional fields carry ``| None`` with a None default; the null there
    # comes from optionality rather than from the field's own type set.
    if nullable and not has_default and schema.boolean_schema is None:
        if 'null' not in schema.types:
            schema = schema.model_copy(update={'types': [*schema.types, 'null']})

    updates = schema_doc_updates(parse_doc_block(field.doc)) if field.doc else {}
    call = _field_call(statement.value)
    if call is not None:
        deprecated = _keyword_value(call, 'deprecated')
        if isinstance(deprecated, ast.Constant) and deprecated.value:
            updates['deprecated'] = True
    if updates:
        schema = schema.model_copy(update=updates)
    required = not nullable and not has_default
    return schema, required


def _parse_record(node: ast.ClassDef, block) -> SchemaDefinition:
    properties: dict[str, SchemaProperty] = {}
    required: list[str] = []
    for field in record_fields(node):
        schema, is_required = _parse_field(field)
        properties[field.wire_name] = schema
        if is_required:
            required.append(field.wire_name)

    all_of = [
        name
        for name in (_base_name(base) for base in node.bases)
        if name and name not in ('BaseModel', 'object', 'Generic')
    ]
    fields = {
        'name': node.name,
        'types': ['object'],
        'properties': properties,
        'required': required,
        'all_of': all_of,
    }
    fields.update(_named_updates(block))
    return SchemaDefinition(**fields)


def _parse_enum(node: ast.ClassDef, block) -> SchemaDefinition:
    literals = []
    for statement in node.body:
        if not isinstance(statement, ast.Assign) or len(statement.targets) != 1:
            continue
        target = statement.targets[0]
        if not isinstance(target, ast.Name):
            continue
        value = statement.value
        if isinstance(value, ast.Constant) and isinstance(value.value, str):
            literals.append(value.value)
        else:
            literals.append(target.id)
    updates = _named_updates(block)
    # Tagged values only carry what the members cannot, such as a null literal
    extra = [value for value in updates.pop('enum_values', []) if value not in literals]
    types = ['string', 'null'] if block.has('nullable') else ['string']
    fields = {'name': node.name, 'types': types, 'enum_values': [*literals, *extra]}
    fields.update(updates)
    return SchemaDefinition(**fields)


def _member_schema(member: ast.expr) -> tuple[str | None, SchemaProperty | None]:
    schema = type_expression_to_schema(ast.unparse(member))
    if schema.ref and not schema.types[1:]:
        return resolve_ref_to_type(schema.ref), None
    return None, schema


def _parse_root(node: ast.ClassDef, base: ast.Subscript, block) -> SchemaDefinition:
    inner, nullable = _strip_none(base.slice)
    fields: dict = {'name': node.name}
    union_kind = next((tag for tag in _UNION_TAGS if block.has(tag)), None)

    if inner is None:
        fields['types'] = ['null']
    elif union_kind is not None:
        names: list[str] = []
        inline: list[SchemaProperty] = []
        for member in _union_members(inner):
            name, schema = _member_schema(member)
            if name is not None:
                names.append(name)
            else:
                inline.append(schema)
        key = 'one_of' if union_kind == 'oneOf' else 'any_of'
        fields[key] = names
        fields[f'{key}_schemas'] = inline
        fields['types'] = ['object', 'null'] if nullable else ['object']
    else:
        schema = type_expression_to_schema(ast.unparse(inner))
        if schema.boolean_schema is not None and not nullable:
            fields['boolean_schema'] = schema.boolean_schema
        elif schema.ref:
            fields['ref'] = f'#/components/schemas/{resolve_ref_to_type(schema.ref)}'
            if nullable:
                fields['types'] = ['null']
        else:
            fields.update(_facets(schema))
            if nullable:
                fields['types'] = [*fields.get('types', []), 'null']
    fields.update(_named_updates(block))
    return SchemaDefinition(**fields)


def _named_updates(block) -> dict:
    updates = schema_doc_updates(block, named=True)
    for tag in ('allOf', 'additionalProperties'):
        value = block.get(tag)
        if value is None:
            continue
        parsed = parse_json_value(value)
        if tag == 'allOf':
            updates['all_of_schemas'] = [load_schema(item) for item in parsed or []]
        else:
            updates['additional_properties'] = load_schema(parsed)
    return updates


def _is_deprecated(node: ast.ClassDef) -> bool:
    for decorator in node.decorator_list:
        target = decorator.func if isinstance(decorator, ast.Call) else decorator
        if _base_name(target) == 'deprecated':
            return True
    return False


def parse_declaration(node: ast.ClassDef) -> SchemaDefinition | None:
    """Recover the schema for one class, or None when it is not schema-derived."""
    block = parse_doc_block(ast.get_docstring(node, clean=False))
    bases = [_base_name(base) for base in node.bases]
    root = next(
        (
            base
            for base in node.bases
            if isinstance(base, ast.Subscript) and _base_name(base.value) == 'RootModel'
        ),
        None,
    )
    if 'Enum' in bases:
        schema = _parse_enum(node, block)
    elif root is not None:
        schema = _parse_root(node, root, block)
    elif is_record_class(node):
        schema = _parse_record(node, block)
    else:
        return None
    if _is_deprecated(node) and not schema.deprecated:
        schema = schema.model_copy(update={'deprecated': True})
    return schema


def parse_dtos(text: str) -> list[SchemaDefinition]:
    """Recover every schema declared in a module, in declaration order.

    Classes that are not records, enums or root models are skipped, and
    unparseable input yields an empty list.
    """
    with current_toolkit() as toolkit:
        try:
            tree = toolkit.parse(text)
        except SyntaxError as e:
            logger.warning('Cannot parse model source: %s', e)
            return []
    schemas = []
    for node in tree.body:
        if not isinstance(node, ast.ClassDef):
            continue
        schema = parse_declaration(node)
        if schema is None:
            logger.debug('Skipping non-model class %s', node.name)
            continue
        schemas.append(schema)
    return schemas
