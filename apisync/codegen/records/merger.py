"""Add fields a schema gained to an existing model declaration.

Merging is a text patch: new fields are inserted after the last existing
field and missing imports are added as new lines. Nothing already in the
file is rewritten, so comments and hand formatting survive.
"""

import ast
import logging

from apisync.codegen.records.generator import build_declaration, build_field, field_python_name
from apisync.codegen.records.parser import is_record_class, record_fields
from apisync.codegen.toolkit import current_toolkit
from apisync.codegen.utils import class_name
from apisync.exceptions import MalformedSourceError, NotFoundError
from apisync.model import SchemaDefinition

__all__ = ['merge_dto', 'append_declarations', 'find_class', 'bound_names', 'insert_imports']

logger = logging.getLogger(__name__)


def find_class(tree: ast.Module, name: str) -> ast.ClassDef | None:
    candidates = {name, class_name(name)}
    for node in tree.body:
        if isinstance(node, ast.ClassDef) and node.name in candidates:
            return node
    return None


def bound_names(tree: ast.Module) -> set[str]:
    """Names bound at module level by imports, classes, functions and assignments."""
    names: set[str] = set()
    for node in tree.body:
        if isinstance(node, (ast.Import, ast.ImportFrom)):
            names.update((alias.asname or alias.name).split('.')[0] for alias in node.names)
        elif isinstance(node, (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
            names.add(node.name)
        elif isinstance(node, ast.Assign):
            names.update(t.id for t in node.targets if isinstance(t, ast.Name))
        elif isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
            names.add(node.target.id)
    return names


def _import_anchor(tree: ast.Module) -> int:
    """Line after which new import lines go (0 means the top of the file)."""
    anchor = 0
    for index, node in enumerate(tree.body):
        if isinstance(node, (ast.Import, ast.ImportFrom)):
            anchor = node.end_lineno or node.lineno
        elif (
            index == 0
            and isinstance(node, ast.Expr)
            and isinstance(node.value, ast.Constant)
            and isinstance(node.value.value, str)
        ):
            anchor = node.end_lineno or node.lineno
    return anchor


def insert_imports(
    lines: list[str], tree: ast.Module, imports: dict[str, set[str]]
) -> list[str]:
    """Insert ``from module import name`` lines for names the module lacks."""
    bound = bound_names(tree)
    new_lines = []
    for module in sorted(imports):
        missing = sorted(set(imports[module]) - bound)
        if missing:
            new_lines.append(f'from {module} import {", ".join(missing)}\n')
    if not new_lines:
        return lines
    anchor = _import_anchor(tree)
    return lines[:anchor] + new_lines + lines[anchor:]


def _ensure_newline(lines: list[str], index: int) -> None:
    if 0 < index <= len(lines) and not lines[index - 1].endswith('\n'):
        lines[index - 1] += '\n'


def merge_dto(existing: str, schema: SchemaDefinition) -> str:
    """Append fields present in ``schema`` but missing from its declaration.

    Returns ``existing`` unchanged when nothing is missing.

    Raises:
        NotFoundError: If the module has no declaration for the schema.
        MalformedSourceError: If the declaration is not a record class or
            the module is not valid Python.
    """
    with current_toolkit() as toolkit:
        try:
            tree = toolkit.parse(existing)
        except SyntaxError as e:
            raise MalformedSourceError(schema.name, f'invalid source: {e.msg}') from e

        node = find_class(tree, schema.name)
        if node is None:
            raise NotFoundError(schema.name)
        if not is_record_class(node):
            if not schema.properties:
                return existing
            raise MalformedSourceError(schema.name, 'declaration has no field list')

        fields = record_fields(node)
        present = {field.wire_name for field in fields}
        used = {field.python_name for field in fields}
        missing = [name for name in schema.properties if name not in present]
        if not missing:
            logger.debug('Declaration %s is up to date', node.name)
            return existing

        if node.body[0].lineno == node.lineno:
            raise MalformedSourceError(schema.name, 'class body shares the class line')
        indent = ' ' * node.body[0].col_offset
        new_lines: list[str] = []
        imports: dict[str, set[str]] = {}
        for name in missing:
            python_name = field_python_name(name)
            while python_name in used:
                python_name = f'{python_name}_'
            used.add(python_name)
            statements, field_imports = build_field(
                name, schema.properties[name], required=False, python_name=python_name
            )
            for statement in statements:
                new_lines.append(f'{indent}{toolkit.render_node(statement)}\n')
            for module, names in field_imports.items():
                imports.setdefault(module, set()).update(names)

    if fields:
        anchor = fields[-1].end_lineno
    else:
        anchor = node.end_lineno or node.body[-1].end_lineno

    lines = existing.splitlines(keepends=True)
    _ensure_newline(lines, anchor)
    lines = lines[:anchor] + new_lines + lines[anchor:]
    lines = insert_imports(lines, tree, imports)
    logger.info('Merged %d new field(s) into %s', len(missing), node.name)
    return ''.join(lines)


def append_declarations(existing: str, schemas: list[SchemaDefinition]) -> str:
    """Append declarations for schemas the module does not declare yet.

    Raises:
        MalformedSourceError: If the module is not valid Python.
    """
    with current_toolkit() as toolkit:
        try:
            tree = toolkit.parse(existing)
        except SyntaxError as e:
            raise MalformedSourceError(None, f'invalid source: {e.msg}') from e

        present = bound_names(tree)
        declarations = [
            build_declaration(schema)
            for schema in schemas
            if find_class(tree, schema.name) is None
        ]
        if not declarations:
            return existing

        local = present | {declaration.name for declaration in declarations}
        new_lines: list[str] = []
        imports: dict[str, set[str]] = {}
        for declaration in declarations:
            new_lines.extend(['\n', '\n'])
            new_lines.extend(f'{line}\n' for line in toolkit.render_node(declaration.node).splitlines())
            for module, names in declaration.imports.items():
                imports.setdefault(module, set()).update(set(names) - local)

    lines = existing.splitlines(keepends=True)
    _ensure_newline(lines, len(lines))
    lines.extend(new_lines)
    lines = insert_imports(lines, tree, imports)
    logger.info('Appended %d declaration(s)', len(declarations))
    return ''.join(lines)
