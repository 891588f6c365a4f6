"""AST utilities and import collection for code generation.

This module provides helper functions for building Python AST nodes
and utilities for collecting and organizing imports during code generation.
"""

import ast
import sys
from collections.abc import Iterable

__all__ = [
    # AST helpers
    '_name',
    '_subscript',
    '_union_expr',
    '_argument',
    '_assign',
    '_ann_assign',
    '_call',
    '_keyword',
    '_async_func',
    '_class',
    '_docstring',
    '_parse_expr',
    # Import collection
    'ImportCollector',
    'annotation_imports',
]

_TYPE_PARAMS = {'type_params': []} if sys.version_info >= (3, 12) else {}

# Names that may appear in generated annotations and where they come from.
KNOWN_TYPE_IMPORTS: dict[str, str] = {
    'Any': 'typing',
    'Never': 'typing',
    'Annotated': 'typing',
    'Protocol': 'typing',
    'datetime': 'datetime',
    'date': 'datetime',
}


def _name(name: str) -> ast.Name:
    return ast.Name(id=name, ctx=ast.Load())


def _subscript(generic: str, inner: ast.expr) -> ast.Subscript:
    return ast.Subscript(value=_name(generic), slice=inner, ctx=ast.Load())


def _union_expr(types: list[ast.expr]) -> ast.expr:
    # A | B | C (using pipe operator instead of Union[A, B, C])
    if not types:
        raise ValueError('_union_expr requires at least one type')
    result = types[0]
    for t in types[1:]:
        result = ast.BinOp(left=result, op=ast.BitOr(), right=t)
    return result


def _argument(name: str, value: ast.expr | None = None) -> ast.arg:
    return ast.arg(
        arg=name,
        annotation=value,
    )


def _assign(target: ast.expr, value: ast.expr) -> ast.Assign:
    if isinstance(target, ast.Name):
        target = ast.Name(id=target.id, ctx=ast.Store())
    elif isinstance(target, (ast.Attribute, ast.Subscript)):
        target.ctx = ast.Store()
    return ast.Assign(
        targets=[target],
        value=value,
    )


def _ann_assign(name: str, annotation: ast.expr, value: ast.expr | None) -> ast.AnnAssign:
    return ast.AnnAssign(
        target=ast.Name(id=name, ctx=ast.Store()),
        annotation=annotation,
        value=value,
        simple=1,
    )


def _call(
    func: ast.expr,
    args: list[ast.expr] | None = None,
    keywords: list[ast.keyword] | None = None,
) -> ast.Call:
    return ast.Call(
        func=func,
        args=args or [],
        keywords=keywords or [],
    )


def _keyword(arg: str, value) -> ast.keyword:
    if not isinstance(value, ast.AST):
        value = ast.Constant(value=value)
    return ast.keyword(arg=arg, value=value)


def _arguments(
    args: list[ast.arg],
    defaults: list[ast.expr] | None,
    kwonlyargs: list[ast.arg] | None,
    kw_defaults: list[ast.expr | None] | None,
    kwargs: ast.arg | None,
) -> ast.arguments:
    return ast.arguments(
        posonlyargs=[],
        args=args,
        vararg=None,
        kwarg=kwargs,
        kwonlyargs=kwonlyargs or [],
        kw_defaults=kw_defaults or [],
        defaults=defaults or [],
    )


def _async_func(
    name: str,
    args: list[ast.arg],
    body: list[ast.stmt],
    returns: ast.expr | None = None,
    kwargs: ast.arg = None,
    kwonlyargs: list[ast.arg] = None,
    kw_defaults: list[ast.expr] = None,
    defaults: list[ast.expr] = None,
    decorators: list[ast.expr] = None,
) -> ast.AsyncFunctionDef:
    return ast.AsyncFunctionDef(
        name=name,
        args=_arguments(args, defaults, kwonlyargs, kw_defaults, kwargs),
        body=body,
        decorator_list=decorators or [],
        returns=returns,
        **_TYPE_PARAMS,
    )


def _class(
    name: str,
    bases: list[ast.expr],
    body: list[ast.stmt],
    decorators: list[ast.expr] = None,
) -> ast.ClassDef:
    return ast.ClassDef(
        name=name,
        bases=bases,
        keywords=[],
        body=body,
        decorator_list=decorators or [],
        **_TYPE_PARAMS,
    )


def _docstring(lines: list[str], indent: str = '    ') -> ast.Expr:
    """Build a docstring statement from logical lines.

    Continuation lines are indented to ``indent`` so the rendered docstring
    lines up with the body it documents.
    """
    if len(lines) == 1:
        return ast.Expr(value=ast.Constant(value=lines[0]))
    rest = [f'{indent}{line}' if line else '' for line in lines[1:]]
    value = '\n'.join([lines[0], *rest]) + '\n' + indent
    return ast.Expr(value=ast.Constant(value=value))


def _parse_expr(source: str) -> ast.expr:
    """Parse a type expression such as ``list[User] | None`` into an AST node."""
    return ast.parse(source, mode='eval').body


# =============================================================================
# Import Collection
# =============================================================================


class ImportCollector:
    """Collects and manages imports for generated Python code.

    This class provides a centralized way to collect imports from various
    sources during code generation and convert them to AST import statements.
    It automatically deduplicates imports and sorts them for consistent output.

    Example:
        >>> collector = ImportCollector()
        >>> collector.add_imports({'typing': {'Any', 'Annotated'}})
        >>> collector.add_import('pydantic', 'BaseModel')
        >>> imports = collector.to_ast()
        >>> # [ImportFrom(module='typing', ...), ImportFrom(module='pydantic', ...)]
    """

    def __init__(self):
        self._imports: dict[str, set[str]] = {}

    def add_imports(self, imports: dict[str, set[str]]) -> None:
        """Add imports from a dictionary mapping modules to sets of names.

        Args:
            imports: Dictionary mapping module names to sets of imported names.
                    Example: {'typing': {'Any'}, 'pydantic': {'BaseModel'}}
        """
        for module, names in imports.items():
            if module not in self._imports:
                self._imports[module] = set()
            self._imports[module].update(names)

    def add_import(self, module: str, name: str) -> None:
        if module not in self._imports:
            self._imports[module] = set()
        self._imports[module].add(name)

    def _get_import_category(self, module: str) -> int:
        """Get the sort category for a module.

        Returns:
            -1 for ``__future__``, 0 for standard library, 1 for third-party,
            2 for local/relative imports.
        """
        if module == '__future__':
            return -1
        if module.startswith('.'):
            return 2

        base_module = module.split('.')[0]
        if base_module in sys.stdlib_module_names:
            return 0

        return 1

    def to_ast(self) -> list[ast.ImportFrom]:
        """Convert collected imports to AST ImportFrom statements.

        Imports are sorted according to Python conventions:
        1. ``from __future__`` imports
        2. Standard library imports
        3. Third-party imports
        4. Local/relative imports

        Within each category, imports are sorted alphabetically by module name.
        Names within each import are also sorted alphabetically.
        """
        import_stmts = []

        sorted_modules = sorted(
            self._imports.items(),
            key=lambda x: (self._get_import_category(x[0]), x[0]),
        )

        for module, names in sorted_modules:
            if module.startswith('.'):
                level = len(module) - len(module.lstrip('.'))
                import_module = module.lstrip('.') or None
            else:
                level = 0
                import_module = module

            import_stmts.append(
                ast.ImportFrom(
                    module=import_module,
                    names=[ast.alias(name=name, asname=None) for name in sorted(names)],
                    level=level,
                )
            )
        return import_stmts


def annotation_imports(
    node: ast.AST, local_names: Iterable[str] = (), models_module: str | None = None
) -> dict[str, set[str]]:
    """Collect the imports an annotation needs.

    Known library names map to their modules. Capitalized names that are not
    defined locally are model references and import from ``models_module``
    when one is given.
    """
    local = set(local_names)
    imports: dict[str, set[str]] = {}
    for child in ast.walk(node):
        if not isinstance(child, ast.Name):
            continue
        name = child.id
        if name in local:
            continue
        module = KNOWN_TYPE_IMPORTS.get(name)
        if module is None and models_module and name[:1].isupper():
            module = models_module
        if module is not None:
            imports.setdefault(module, set()).add(name)
    return imports
