"""Scoped engine for parsing and printing Python source.

Generators, parsers and mergers never touch ``ast.parse``/``ast.unparse``
directly; they go through a :class:`SourceToolkit`. A toolkit is opened once
for a batch run and closed at the end of it::

    with toolkit_session() as toolkit:
        text = generate_dto(schema)
        parsed = parse_dtos(text)

Outside a session every call opens and closes a short-lived toolkit.
"""

import ast
import contextlib
import logging
import shutil
import subprocess
from collections.abc import Iterator
from contextvars import ContextVar

__all__ = ['SourceToolkit', 'toolkit_session', 'active_toolkit', 'current_toolkit']

logger = logging.getLogger(__name__)

_ACTIVE: ContextVar['SourceToolkit | None'] = ContextVar('apisync_toolkit', default=None)

# Parsed trees kept per toolkit; the oldest entry is dropped past this size
CACHE_LIMIT = 64


class SourceToolkit:
    """Parse/print engine with an explicit acquire/release lifetime.

    Args:
        format_code: Run ``ruff format`` (or ``black``) over rendered output
            when one of them is installed. Off by default so output only
            depends on the interpreter's ``ast.unparse``.
    """

    def __init__(self, format_code: bool = False):
        self.format_code = format_code
        self._cache: dict[str, ast.Module] | None = None

    @property
    def is_open(self) -> bool:
        return self._cache is not None

    def open(self) -> 'SourceToolkit':
        if self._cache is not None:
            raise RuntimeError('SourceToolkit is already open')
        self._cache = {}
        logger.debug('Source toolkit opened')
        return self

    def close(self) -> None:
        if self._cache is None:
            return
        self._cache = None
        logger.debug('Source toolkit closed')

    def __enter__(self) -> 'SourceToolkit':
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _require_open(self) -> dict[str, ast.Module]:
        if self._cache is None:
            raise RuntimeError('SourceToolkit is not open')
        return self._cache

    def parse(self, text: str) -> ast.Module:
        """Parse source text, reusing the tree for text seen in this session.

        Raises:
            SyntaxError: If the text is not valid Python.
        """
        cache = self._require_open()
        tree = cache.get(text)
        if tree is None:
            tree = ast.parse(text)
            if len(cache) >= CACHE_LIMIT:
                cache.pop(next(iter(cache)))
            cache[text] = tree
        return tree

    def render(self, module: ast.Module) -> str:
        """Render a module AST to source text ending with a newline."""
        self._require_open()
        ast.fix_missing_locations(module)
        source = ast.unparse(module) + '\n'
        # Validate before handing the text out
        compile(source, '<generated>', 'exec')
        if self.format_code:
            source = self._format_source(source)
        return source

    def render_node(self, node: ast.AST) -> str:
        self._require_open()
        return ast.unparse(ast.fix_missing_locations(node))

    def _format_source(self, source: str) -> str:
        for command in (['ruff', 'format', '-'], ['black', '-q', '-']):
            if shutil.which(command[0]) is None:
                continue
            try:
                result = subprocess.run(
                    command,
                    input=source,
                    capture_output=True,
                    text=True,
                    check=True,
                )
            except (subprocess.CalledProcessError, OSError) as e:
                logger.warning('Formatter %s failed: %s', command[0], e)
                continue
            return result.stdout
        return source


@contextlib.contextmanager
def toolkit_session(format_code: bool = False) -> Iterator[SourceToolkit]:
    """Open a toolkit for the duration of a batch run and close it afterwards."""
    toolkit = SourceToolkit(format_code=format_code).open()
    token = _ACTIVE.set(toolkit)
    try:
        yield toolkit
    finally:
        _ACTIVE.reset(token)
        toolkit.close()


def active_toolkit() -> SourceToolkit | None:
    return _ACTIVE.get()


@contextlib.contextmanager
def current_toolkit() -> Iterator[SourceToolkit]:
    """Yield the session toolkit, or a short-lived one when no session is open."""
    toolkit = _ACTIVE.get()
    if toolkit is not None:
        yield toolkit
        return
    with SourceToolkit() as transient:
        yield transient
