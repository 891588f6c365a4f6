"""Record generation: schema nodes to pydantic declarations.

Each named schema becomes exactly one declaration, chosen by
:func:`~apisync.codegen.records.shapes.classify_schema`:

* records become ``BaseModel`` subclasses (``allOf`` names become bases),
* string enumerations become ``str, Enum`` classes,
* everything else (refs, maps, arrays, primitives, unions, boolean schemas
  and non-string enumerations) becomes a ``RootModel[...]`` subclass.

Facets without a Python representation travel in docstrings as tags.
"""

import ast
import logging
from collections.abc import Iterable

from apisync.codegen.ast_utils import (
    ImportCollector,
    _ann_assign,
    _assign,
    _call,
    _class,
    _docstring,
    _keyword,
    _name,
    _subscript,
    _union_expr,
    annotation_imports,
)
from apisync.codegen.docs import render_json, schema_doc_lines
from apisync.codegen.records.shapes import (
    AliasShape,
    BooleanShape,
    EnumShape,
    MapShape,
    RecordShape,
    RefShape,
    UnionShape,
    ValueEnumShape,
    classify_schema,
)
from apisync.codegen.references import resolve_ref_to_type
from apisync.codegen.toolkit import current_toolkit
from apisync.codegen.type_mapping import type_annotation
from apisync.codegen.utils import (
    class_name,
    enum_case_name,
    sanitize_parameter_field_name,
    to_snake_case,
)
from apisync.model import SchemaDefinition, SchemaProperty
from apisync.openapi.schema_codec import dump_schema

__all__ = [
    'RecordDeclaration',
    'build_declaration',
    'generate_dto',
    'generate_models',
    'field_python_name',
    'build_field',
    'MODELS_DOCSTRING',
]

logger = logging.getLogger(__name__)

MODELS_DOCSTRING = 'Generated models from OpenAPI schema.'
DEPRECATION_MESSAGE = 'Deprecated'

# Attribute names pydantic reserves on BaseModel.
_RESERVED_FIELD_NAMES = {
    'construct',
    'copy',
    'dict',
    'fields',
    'json',
    'schema',
    'validate',
}


class RecordDeclaration:
    """A generated declaration together with the imports it needs."""

    def __init__(self, name: str, node: ast.ClassDef, imports: dict[str, set[str]]):
        self.name = name
        self.node = node
        self.imports = imports

    @property
    def dependencies(self) -> set[str]:
        """Names that must be defined before this class statement runs."""
        names: set[str] = set()
        for expr in [*self.node.bases, *self.node.decorator_list]:
            names.update(n.id for n in ast.walk(expr) if isinstance(n, ast.Name))
        return names


def field_python_name(name: str) -> str:
    python_name = sanitize_parameter_field_name(name)
    if python_name in _RESERVED_FIELD_NAMES or python_name.startswith('model_'):
        python_name = f'{python_name}_'
    return python_name


def _deprecated_decorator() -> ast.expr:
    return _call(_name('deprecated'), [ast.Constant(value=DEPRECATION_MESSAGE)])


def build_field(
    name: str, prop: SchemaProperty, required: bool, python_name: str | None = None
) -> tuple[list[ast.stmt], dict[str, set[str]]]:
    """Build the statements for one record field and the imports it needs.

    The field is nullable (``T | None`` with a ``None`` default) when its own
    type set holds ``null`` or when it is not required.
    """
    python_name = python_name or field_python_name(name)
    annotation = type_annotation(prop)
    nullable = prop.is_nullable or not required
    keywords = []
    if nullable:
        if not (isinstance(annotation, ast.Constant) and annotation.value is None):
            annotation = _union_expr([annotation, ast.Constant(value=None)])
        keywords.append(_keyword('default', None))
    keywords.append(_keyword('alias', name))
    if prop.deprecated:
        keywords.append(_keyword('deprecated', True))

    statements: list[ast.stmt] = [
        _ann_assign(python_name, annotation, _call(_name('Field'), keywords=keywords))
    ]
    doc_lines = schema_doc_lines(prop, include_enum=True)
    if doc_lines:
        statements.append(ast.Expr(value=ast.Constant(value='\n'.join(doc_lines))))

    imports = annotation_imports(annotation)
    imports.setdefault('pydantic', set()).add('Field')
    return statements, imports


def _model_config() -> ast.stmt:
    return _assign(
        _name('model_config'),
        _call(
            _name('ConfigDict'),
            keywords=[
                _keyword('populate_by_name', True),
                _keyword('use_attribute_docstrings', True),
            ],
        ),
    )


def _root_model(inner: ast.expr) -> ast.expr:
    return _subscript('RootModel', inner)


def _nullable(schema: SchemaDefinition, annotation: ast.expr) -> ast.expr:
    if schema.is_nullable and schema.primary_type != 'null':
        return _union_expr([annotation, ast.Constant(value=None)])
    return annotation


def _union_members(variants: Iterable[SchemaProperty]) -> list[ast.expr]:
    members: list[ast.expr] = []
    seen: set[str] = set()
    for variant in variants:
        annotation = type_annotation(variant, nested=True)
        key = ast.unparse(annotation)
        if key not in seen:
            seen.add(key)
            members.append(annotation)
    return members or [_name('Any')]


def build_declaration(schema: SchemaDefinition) -> RecordDeclaration:
    """Build the class declaration for one named schema."""
    name = class_name(schema.name)
    shape = classify_schema(schema)
    imports: dict[str, set[str]] = {}

    def need(module: str, *names: str) -> None:
        imports.setdefault(module, set()).update(names)

    body: list[ast.stmt] = []
    extra_tags: list[str] = []

    match shape:
        case RecordShape(bases=bases):
            base_nodes = [_name(class_name(resolve_ref_to_type(b))) for b in bases]
            if not base_nodes:
                base_nodes = [_name('BaseModel')]
                need('pydantic', 'BaseModel')
            need('pydantic', 'ConfigDict')
            if schema.all_of_schemas:
                extra_tags.append(
                    f'@allOf {render_json([dump_schema(s) for s in schema.all_of_schemas])}'
                )
            if schema.additional_properties is not None:
                extra_tags.append(
                    f'@additionalProperties {render_json(dump_schema(schema.additional_properties))}'
                )
            body.append(_model_config())
            used: set[str] = set()
            for prop_name, prop in schema.properties.items():
                python_name = field_python_name(prop_name)
                while python_name in used:
                    python_name = f'{python_name}_'
                used.add(python_name)
                statements, field_imports = build_field(
                    prop_name, prop, prop_name in schema.required, python_name
                )
                body.extend(statements)
                for module, names in field_imports.items():
                    need(module, *names)
            bases_ast = base_nodes
            include_enum = False
        case EnumShape(literals=literals, nullable=nullable, null_literal=null_literal):
            need('enum', 'Enum')
            if nullable:
                extra_tags.append('@nullable')
            if null_literal:
                extra_tags.append('@enum null')
            seen: dict[str, int] = {}
            for literal in literals:
                member = enum_case_name(literal)
                if member in seen:
                    seen[member] += 1
                    member = f'{member}_{seen[member]}'
                else:
                    seen[member] = 0
                body.append(_assign(_name(member), ast.Constant(value=literal)))
            bases_ast = [_name('str'), _name('Enum')]
            include_enum = False
        case UnionShape(kind=kind, variants=variants):
            extra_tags.append(f'@{kind}')
            inner = _nullable(schema, _union_expr(_union_members(variants)))
            bases_ast = [_root_model(inner)]
            include_enum = False
        case ValueEnumShape():
            bases_ast = [_root_model(_nullable(schema, type_annotation(schema)))]
            include_enum = True
        case BooleanShape(value=value):
            bases_ast = [_root_model(_name('Any' if value else 'Never'))]
            include_enum = False
        case RefShape(ref=ref):
            target = _name(class_name(resolve_ref_to_type(ref)))
            bases_ast = [_root_model(_nullable(schema, target))]
            include_enum = False
        case MapShape(values=values):
            inner = _subscript(
                'dict',
                ast.Tuple(
                    elts=[_name('str'), type_annotation(values, nested=True)],
                    ctx=ast.Load(),
                ),
            )
            bases_ast = [_root_model(_nullable(schema, inner))]
            include_enum = False
        case AliasShape():
            bases_ast = [_root_model(_nullable(schema, type_annotation(schema)))]
            include_enum = False

    if any(isinstance(b, ast.Subscript) for b in bases_ast):
        need('pydantic', 'RootModel')

    doc_lines = schema_doc_lines(
        schema,
        include_enum=include_enum,
        include_discriminator=True,
    )
    if extra_tags:
        if doc_lines and not any(line.startswith('@') for line in doc_lines):
            doc_lines.append('')
        doc_lines.extend(extra_tags)
    if doc_lines:
        body.insert(0, _docstring(doc_lines))
    if not body:
        body.append(ast.Pass())

    decorators = []
    if schema.deprecated:
        decorators.append(_deprecated_decorator())
        need('typing_extensions', 'deprecated')

    for base in bases_ast:
        for module, names in annotation_imports(base).items():
            need(module, *names)

    node = _class(name, bases_ast, body, decorators)
    logger.debug('Built %s declaration for schema %s', type(shape).__name__, schema.name)
    return RecordDeclaration(name, node, imports)


def _sorted_declarations(declarations: list[RecordDeclaration]) -> list[RecordDeclaration]:
    """Order declarations so bases and root types are defined before use."""
    by_name = {declaration.name: declaration for declaration in declarations}
    ordered: list[RecordDeclaration] = []
    visited: set[str] = set()

    def visit(declaration: RecordDeclaration) -> None:
        if declaration.name in visited:
            return
        visited.add(declaration.name)
        for dependency in sorted(declaration.dependencies):
            if dependency in by_name and dependency != declaration.name:
                visit(by_name[dependency])
        ordered.append(declaration)

    for declaration in declarations:
        visit(declaration)
    return ordered


def _render_module(
    declarations: list[RecordDeclaration],
    external_imports: dict[str, set[str]],
    docstring: str,
) -> str:
    local_names = {declaration.name for declaration in declarations}
    collector = ImportCollector()
    collector.add_import('__future__', 'annotations')
    for declaration in declarations:
        for module, names in declaration.imports.items():
            collector.add_imports({module: set(names) - local_names})
    collector.add_imports(external_imports)

    body: list[ast.stmt] = [ast.Expr(value=ast.Constant(value=docstring))]
    body.extend(stmt for stmt in collector.to_ast() if stmt.names)
    body.extend(declaration.node for declaration in declarations)
    module = ast.Module(body=body, type_ignores=[])
    with current_toolkit() as toolkit:
        return toolkit.render(module)


def _referenced_models(declaration: RecordDeclaration) -> set[str]:
    """Model names read by the bases, decorators and field annotations."""
    node = declaration.node
    roots: list[ast.expr] = [*node.bases, *node.decorator_list]
    roots.extend(s.annotation for s in node.body if isinstance(s, ast.AnnAssign))
    names: set[str] = set()
    for root in roots:
        for child in ast.walk(root):
            if (
                isinstance(child, ast.Name)
                and isinstance(child.ctx, ast.Load)
                and child.id[:1].isupper()
            ):
                names.add(child.id)
    known = {'BaseModel', 'RootModel', 'ConfigDict', 'Enum', 'Field', 'Any', 'Never'}
    return names - known - {declaration.name}


def generate_dto(schema: SchemaDefinition, docstring: str = MODELS_DOCSTRING) -> str:
    """Generate a module holding the declaration for a single schema.

    Referenced models are imported from sibling modules named after them
    (``Address`` from ``.address``).
    """
    declaration = build_declaration(schema)
    external = {
        f'.{to_snake_case(name)}': {name} for name in _referenced_models(declaration)
    }
    return _render_module([declaration], external, docstring)


def generate_models(
    schemas: Iterable[SchemaDefinition], docstring: str = MODELS_DOCSTRING
) -> str:
    """Generate one module holding a declaration for every schema."""
    declarations = [build_declaration(schema) for schema in schemas]
    return _render_module(_sorted_declarations(declarations), {}, docstring)
