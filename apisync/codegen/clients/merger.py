"""Add missing endpoint methods to an existing client module."""

import ast
import logging
from collections.abc import Iterable

from apisync.codegen.clients.generator import (
    RUNTIME_MODULE,
    ClientMethod,
    build_implementation_method,
    build_protocol_method,
    module_imports,
    plan_methods,
    validate_endpoint,
)
from apisync.codegen.clients.parser import find_implementation, find_protocol
from apisync.codegen.docs import parse_doc_block
from apisync.codegen.records.merger import insert_imports
from apisync.codegen.toolkit import current_toolkit
from apisync.exceptions import MalformedSourceError, NotFoundError
from apisync.model import EndpointDefinition

__all__ = ['merge_api', 'merge_endpoints']

logger = logging.getLogger(__name__)


def _method_names(node: ast.ClassDef | None) -> set[str]:
    if node is None:
        return set()
    return {
        member.name
        for member in node.body
        if isinstance(member, (ast.FunctionDef, ast.AsyncFunctionDef))
    }


def _documented(node: ast.ClassDef | None) -> dict[str, str]:
    """Method names keyed by the operation id their docstring declares."""
    documented: dict[str, str] = {}
    if node is None:
        return documented
    for member in node.body:
        if isinstance(member, (ast.FunctionDef, ast.AsyncFunctionDef)):
            operation_id = parse_doc_block(ast.get_docstring(member, clean=False)).get('operationId')
            if operation_id:
                documented[operation_id] = member.name
    return documented


def _missing(
    node: ast.ClassDef, methods: list[ClientMethod], stubs: dict[str, str]
) -> list[ClientMethod]:
    """Methods with neither a same-named member nor a member documenting their operation id.

    Implementation methods carry no docstring, so an operation id documented
    on an interface stub also covers the implementation method of that name.
    """
    names = _method_names(node)
    operation_ids = set(_documented(node))
    operation_ids.update(op for op, name in stubs.items() if name in names)
    return [
        m for m in methods if m.name not in names and m.endpoint.operation_id not in operation_ids
    ]


def _render_methods(nodes: list[ast.AST], indent: str) -> list[str]:
    lines: list[str] = []
    with current_toolkit() as toolkit:
        for node in nodes:
            lines.append('\n')
            for line in toolkit.render_node(node).splitlines():
                lines.append(f'{indent}{line}\n' if line else '\n')
    return lines


def merge_api(
    existing: str,
    endpoints: Iterable[EndpointDefinition],
    *,
    models_module: str | None = '.models',
    runtime_module: str = RUNTIME_MODULE,
) -> str:
    """Append methods for endpoints the client module does not cover yet.

    The interface and implementation classes are patched independently, so
    a method missing from only one of them is added to that one. Existing
    methods are never modified. Returns ``existing`` unchanged when nothing
    is missing.

    Raises:
        ValidationError: If an endpoint cannot be generated.
        NotFoundError: If the module has neither client class.
        MalformedSourceError: If the module is not valid Python.
    """
    endpoints = list(endpoints)
    for endpoint in endpoints:
        validate_endpoint(endpoint)
    methods = plan_methods(endpoints)

    with current_toolkit() as toolkit:
        try:
            tree = toolkit.parse(existing)
        except SyntaxError as e:
            raise MalformedSourceError('client', f'invalid source: {e.msg}') from e

    protocol = find_protocol(tree)
    implementation = find_implementation(tree)
    if protocol is None and implementation is None:
        raise NotFoundError('client class')

    stubs = _documented(protocol)
    insertions: list[tuple[int, list[str]]] = []
    new_nodes: list[ast.AST] = []
    new_methods: list[ClientMethod] = []
    for node, build in ((protocol, 'protocol'), (implementation, 'implementation')):
        if node is None:
            continue
        missing = _missing(node, methods, stubs)
        if not missing:
            continue
        if node.body[0].lineno == node.lineno:
            raise MalformedSourceError(node.name, 'class body shares the class line')
        indent = ' ' * node.body[0].col_offset
        if build == 'protocol':
            built = [build_protocol_method(m, doc_indent=indent) for m in missing]
        else:
            built = [build_implementation_method(m) for m in missing]
        new_nodes.extend(built)
        new_methods.extend(missing)
        insertions.append((node.end_lineno or node.lineno, _render_methods(built, indent)))
        logger.info('Adding %d method(s) to %s', len(missing), node.name)

    if not insertions:
        logger.debug('Client module is up to date')
        return existing

    lines = existing.splitlines(keepends=True)
    if lines and not lines[-1].endswith('\n'):
        lines[-1] += '\n'
    for anchor, new_lines in sorted(insertions, key=lambda item: item[0], reverse=True):
        lines[anchor:anchor] = new_lines

    local_names = {node.name for node in (protocol, implementation) if node is not None}
    imports = module_imports(
        new_nodes,
        [t for method in new_methods for t in method.type_expressions()],
        models_module,
        runtime_module,
        local_names=local_names,
    )
    lines = insert_imports(lines, tree, imports)
    return ''.join(lines)


def merge_endpoints(
    existing: Iterable[EndpointDefinition], spec: Iterable[EndpointDefinition]
) -> list[EndpointDefinition]:
    """Combine endpoints recovered from code with endpoints from a document.

    The result follows the document's order. Where both sides have an
    operation id the document's definition wins, and operations only the
    code knows are dropped.
    """
    current = {endpoint.operation_id for endpoint in existing}
    merged: dict[str, EndpointDefinition] = {}
    for endpoint in spec:
        merged[endpoint.operation_id] = endpoint
    added = [name for name in merged if name not in current]
    dropped = current - merged.keys()
    logger.debug(
        'Merged endpoints: %d kept, %d added, %d dropped',
        len(merged) - len(added),
        len(added),
        len(dropped),
    )
    return list(merged.values())
