"""Test the in-memory document registry."""

from apisync.codegen.paths import flatten_paths
from apisync.model import Components, PathItem, SchemaProperty
from apisync.openapi.loader import load_document
from apisync.openapi.registry import DocumentRegistry

SHARED_SPEC = {
    'openapi': '3.2.0',
    '$self': 'https://example.com/shared/openapi.json',
    'info': {'title': 'Shared', 'version': '1.0.0'},
    'paths': {},
    'components': {
        'pathItems': {
            'Pets': {
                'get': {
                    'operationId': 'getPets',
                    'responses': {'200': {'description': 'OK'}},
                }
            }
        }
    },
}


def _document(self_uri: str = 'https://example.com/shared/openapi.json'):
    return load_document({**SHARED_SPEC, '$self': self_uri})


class TestDocumentRegistry:
    """Test registration and lookup."""

    def test_indexed_by_base_and_self(self):
        definition = _document()
        registry = DocumentRegistry()
        registry.register_openapi(definition, 'file:///specs/shared.json')
        assert registry.resolve_openapi('file:///specs/shared.json') is definition
        assert registry.resolve_openapi('https://example.com/shared/openapi.json') is definition

    def test_fragment_is_ignored(self):
        definition = _document()
        registry = DocumentRegistry()
        registry.register_openapi(definition)
        assert registry.resolve('https://example.com/shared/openapi.json#/paths') is definition

    def test_relative_self_resolves_against_base(self):
        """Test a relative $self is joined with the retrieval URI."""
        definition = _document('/api/openapi.json')
        registry = DocumentRegistry()
        registry.register_openapi(definition, 'https://example.com/root/openapi.json')
        assert registry.resolve_openapi('https://example.com/api/openapi.json') is definition
        assert registry.resolve_openapi('https://example.com/root/openapi.json') is definition

    def test_schema_by_id_and_base(self):
        schema = SchemaProperty(schema_id='https://example.com/schemas/pet.json', types=['object'])
        registry = DocumentRegistry()
        registry.register_schema(schema, 'file:///schemas/pet.json')
        assert registry.resolve_schema('https://example.com/schemas/pet.json') is schema
        assert registry.resolve_schema('file:///schemas/pet.json') is schema
        assert registry.resolve_openapi('file:///schemas/pet.json') is None

    def test_unknown_and_blank(self):
        registry = DocumentRegistry()
        assert registry.resolve('https://nowhere.test/openapi.json') is None
        assert registry.resolve('  ') is None
        assert registry.resolve(None) is None


class TestPathItemResolver:
    """Test the resolver handed to path flattening."""

    def test_resolves_component_path_item(self):
        registry = DocumentRegistry()
        registry.register_openapi(_document())
        resolution = registry.path_item_resolver()(
            'https://example.com/shared/openapi.json', 'Pets'
        )
        assert resolution is not None
        assert resolution.item.get.operation_id == 'getPets'
        assert resolution.self_base == 'https://example.com/shared/openapi.json'
        assert 'Pets' in resolution.components.path_items

    def test_missing_key_or_document(self):
        registry = DocumentRegistry()
        registry.register_openapi(_document())
        resolver = registry.path_item_resolver()
        assert resolver('https://example.com/shared/openapi.json', 'Nope') is None
        assert resolver('https://example.com/other.json', 'Pets') is None

    def test_flatten_across_documents(self):
        """Test a reference into a registered document yields its operations."""
        registry = DocumentRegistry()
        registry.register_openapi(_document())
        item = PathItem(ref='https://example.com/shared/openapi.json#/components/pathItems/Pets')
        endpoints = flatten_paths(
            {'/pets': item},
            Components(),
            ref_resolver=registry.path_item_resolver(),
            self_uri='https://example.com/main/openapi.json',
        )
        assert [(e.path, e.operation_id) for e in endpoints] == [('/pets', 'getPets')]
