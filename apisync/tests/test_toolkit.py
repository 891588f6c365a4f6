"""Test the scoped source toolkit."""

import ast

import pytest

from apisync.codegen.toolkit import (
    CACHE_LIMIT,
    SourceToolkit,
    active_toolkit,
    current_toolkit,
    toolkit_session,
)


class TestSourceToolkit:
    """Test the toolkit lifetime."""

    def test_open_and_close(self):
        toolkit = SourceToolkit()
        assert not toolkit.is_open
        toolkit.open()
        assert toolkit.is_open
        toolkit.close()
        assert not toolkit.is_open

    def test_open_twice(self):
        with SourceToolkit() as toolkit:
            with pytest.raises(RuntimeError, match='already open'):
                toolkit.open()

    def test_use_after_close(self):
        """Test a closed toolkit refuses work."""
        toolkit = SourceToolkit()
        with pytest.raises(RuntimeError, match='not open'):
            toolkit.parse('x = 1\n')

    def test_parse_reuses_trees(self):
        with SourceToolkit() as toolkit:
            assert toolkit.parse('x = 1\n') is toolkit.parse('x = 1\n')

    def test_parse_cache_is_bounded(self):
        """Test old trees are dropped once the cache is full."""
        with SourceToolkit() as toolkit:
            first = toolkit.parse('x = 0\n')
            for index in range(1, CACHE_LIMIT + 1):
                toolkit.parse(f'x = {index}\n')
            assert len(toolkit._cache) == CACHE_LIMIT
            assert toolkit.parse('x = 0\n') is not first
            latest = toolkit.parse(f'x = {CACHE_LIMIT}\n')
            assert toolkit.parse(f'x = {CACHE_LIMIT}\n') is latest

    def test_parse_error(self):
        with SourceToolkit() as toolkit:
            with pytest.raises(SyntaxError):
                toolkit.parse('def (:')

    def test_render(self):
        module = ast.Module(
            body=[ast.Assign(targets=[ast.Name(id='x', ctx=ast.Store())], value=ast.Constant(1))],
            type_ignores=[],
        )
        with SourceToolkit() as toolkit:
            assert toolkit.render(module) == 'x = 1\n'

    def test_render_rejects_invalid_trees(self):
        """Test rendered text is compiled before it is returned."""
        module = ast.Module(body=[ast.Return(value=ast.Constant(1))], type_ignores=[])
        with SourceToolkit() as toolkit:
            with pytest.raises(SyntaxError):
                toolkit.render(module)


class TestSessions:
    """Test toolkit_session and current_toolkit."""

    def test_session_is_active(self):
        assert active_toolkit() is None
        with toolkit_session() as toolkit:
            assert active_toolkit() is toolkit
            with current_toolkit() as current:
                assert current is toolkit
        assert active_toolkit() is None
        assert not toolkit.is_open

    def test_transient_toolkit_outside_session(self):
        with current_toolkit() as toolkit:
            assert toolkit.is_open
            assert active_toolkit() is None
        assert not toolkit.is_open
