"""Test reading and writing OpenAPI documents."""

import json

import httpx
import pytest
import yaml

from apisync.exceptions import SchemaLoadError, SchemaReferenceError
from apisync.model import ParameterLocation
from apisync.openapi.loader import DocumentLoader, load_document
from apisync.openapi.media import choose_body_media_type, choose_response_media_type, specificity
from apisync.openapi.schema_codec import (
    dump_schema,
    dump_schema_definition,
    load_schema,
    load_schema_definition,
)
from apisync.openapi.writer import dump_document, dump_document_text

from .fixtures import MINIMAL_SPEC, PETSTORE_SPEC, USER_SCHEMA


class TestSchemaCodec:
    """Test JSON Schema values to schema nodes and back."""

    def test_definition_roundtrip(self):
        schema = load_schema_definition('User', USER_SCHEMA)
        assert schema.required == ['id', 'name']
        assert dump_schema_definition(schema) == USER_SCHEMA

    def test_ref_members_become_names(self):
        schema = load_schema_definition(
            'Animal',
            {'oneOf': [{'$ref': '#/components/schemas/Cat'}, {'type': 'string'}]},
        )
        assert schema.one_of == ['Cat']
        assert schema.one_of_schemas[0].types == ['string']
        assert dump_schema_definition(schema) == {
            'oneOf': [{'$ref': '#/components/schemas/Cat'}, {'type': 'string'}]
        }

    def test_legacy_nullable(self):
        assert load_schema({'type': 'string', 'nullable': True}).types == ['string', 'null']

    def test_boolean_schemas(self):
        assert dump_schema(load_schema(True)) is True
        assert dump_schema(load_schema(False)) is False

    def test_unknown_keywords_and_extensions_are_kept(self):
        node = {'type': 'string', 'x-internal': True, 'myKeyword': 1}
        schema = load_schema(node)
        assert schema.extensions == {'x-internal': True}
        assert schema.custom_keywords == {'myKeyword': 1}
        assert dump_schema(schema) == node


class TestLoadDocument:
    """Test load_document function."""

    def test_minimal(self):
        definition = load_document(MINIMAL_SPEC)
        assert definition.info.title == 'Minimal API'
        assert definition.paths == {}
        assert definition.components is None

    def test_petstore(self):
        definition = load_document(PETSTORE_SPEC)

        assert [s.url for s in definition.servers] == ['https://petstore.example.com/v1']
        assert definition.security == [{'apiKey': []}]
        assert set(definition.components.schemas) == {'Pet', 'NewPet', 'Status'}

        list_pets = definition.paths['/pets'].get
        assert list_pets.operation_id == 'listPets'
        assert [p.location for p in list_pets.parameters] == [
            ParameterLocation.QUERY,
            ParameterLocation.HEADER,
        ]
        assert list_pets.parameters[0].type == 'int'
        assert list_pets.responses['200'].type == 'list[Pet]'

        create_pet = definition.paths['/pets'].post
        assert create_pet.request_body_type == 'NewPet'
        assert create_pet.request_body.required is True

        item = definition.paths['/pets/{petId}']
        assert [p.name for p in item.parameters] == ['petId']
        assert item.delete.deprecated is True

        scheme = definition.components.security_schemes['petstore_auth']
        assert scheme.flows.authorization_code.token_url == 'https://auth.example.com/token'

    def test_derived_operation_id(self):
        data = {
            'openapi': '3.2.0',
            'info': {'title': 'T', 'version': '1'},
            'paths': {'/users/{id}': {'get': {'responses': {}}}},
        }
        endpoint = load_document(data).paths['/users/{id}'].get
        assert endpoint.operation_id == 'get_users_id'
        assert endpoint.operation_id_explicit is False

    def test_component_parameter_reference(self):
        data = {
            'openapi': '3.2.0',
            'info': {'title': 'T', 'version': '1'},
            'paths': {
                '/items': {
                    'get': {'parameters': [{'$ref': '#/components/parameters/Limit'}], 'responses': {}}
                }
            },
            'components': {
                'parameters': {
                    'Limit': {'name': 'limit', 'in': 'query', 'schema': {'type': 'integer'}}
                }
            },
        }
        (parameter,) = load_document(data).paths['/items'].get.parameters
        assert parameter.name == 'limit'
        assert parameter.reference.ref == '#/components/parameters/Limit'

    def test_broken_component_reference(self):
        data = {
            'openapi': '3.2.0',
            'info': {'title': 'T', 'version': '1'},
            'paths': {
                '/items': {
                    'get': {'parameters': [{'$ref': '#/components/parameters/Nope'}], 'responses': {}}
                }
            },
        }
        with pytest.raises(SchemaReferenceError):
            load_document(data)

    def test_reference_cycle(self):
        data = {
            'openapi': '3.2.0',
            'info': {'title': 'T', 'version': '1'},
            'paths': {},
            'components': {
                'parameters': {
                    'A': {'$ref': '#/components/parameters/B'},
                    'B': {'$ref': '#/components/parameters/A'},
                }
            },
        }
        with pytest.raises(SchemaReferenceError, match='cycle'):
            load_document(data)


class TestWriter:
    """Test dump_document and dump_document_text."""

    def test_petstore_sections(self):
        data = dump_document(load_document(PETSTORE_SPEC))

        assert list(data)[:2] == ['openapi', 'info']
        assert data['servers'] == PETSTORE_SPEC['servers']
        assert data['security'] == PETSTORE_SPEC['security']
        assert data['tags'] == PETSTORE_SPEC['tags']
        assert data['components']['schemas'] == PETSTORE_SPEC['components']['schemas']
        assert (
            data['components']['securitySchemes']
            == PETSTORE_SPEC['components']['securitySchemes']
        )
        assert data['paths']['/pets']['post'] == PETSTORE_SPEC['paths']['/pets']['post']
        assert data['paths']['/pets/{petId}']['parameters'] == (
            PETSTORE_SPEC['paths']['/pets/{petId}']['parameters']
        )

    def test_derived_operation_id_is_not_written(self):
        data = {
            'openapi': '3.2.0',
            'info': {'title': 'T', 'version': '1'},
            'paths': {'/a': {'get': {'responses': {'200': {'description': 'OK'}}}}},
        }
        assert 'operationId' not in dump_document(load_document(data))['paths']['/a']['get']

    def test_explicit_empty_security(self):
        data = {**MINIMAL_SPEC, 'security': []}
        assert dump_document(load_document(data))['security'] == []

    def test_text_is_yaml(self):
        text = dump_document_text(load_document(MINIMAL_SPEC))
        assert yaml.safe_load(text)['info']['title'] == 'Minimal API'
        assert text.startswith('openapi:')


class TestMediaTypes:
    """Test media type selection."""

    def test_specificity(self):
        assert specificity('*/*') == 0
        assert specificity('image/*') == 1
        assert specificity('application/json; charset=utf-8') == 2

    def test_body_prefers_json(self):
        assert choose_body_media_type({'text/plain': 1, 'application/json': 2}) == 'application/json'
        assert choose_body_media_type({'text/plain': 1}) == 'text/plain'
        assert choose_body_media_type({}) is None

    def test_response_prefers_specific(self):
        assert choose_response_media_type({'*/*': 1, 'image/*': 2, 'image/png': 3}) == 'image/png'
        assert choose_response_media_type({'text/plain': 1, 'application/json': 2}) == 'text/plain'


class TestDocumentLoader:
    """Test DocumentLoader sources."""

    def test_json_file(self, tmp_path):
        path = tmp_path / 'openapi.json'
        path.write_text(json.dumps(PETSTORE_SPEC))
        definition = DocumentLoader().load(str(path))
        assert definition.info.title == 'Petstore'

    def test_yaml_file(self, tmp_path):
        path = tmp_path / 'openapi.yaml'
        path.write_text(yaml.safe_dump(MINIMAL_SPEC))
        assert DocumentLoader().load(str(path)).info.title == 'Minimal API'

    def test_missing_file(self, tmp_path):
        with pytest.raises(SchemaLoadError) as exc_info:
            DocumentLoader().load(str(tmp_path / 'missing.yaml'))
        assert 'File not found' in str(exc_info.value)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / 'openapi.json'
        path.write_text('{not json')
        with pytest.raises(SchemaLoadError):
            DocumentLoader().load(str(path))

    def test_root_must_be_mapping(self, tmp_path):
        path = tmp_path / 'openapi.yaml'
        path.write_text('- a\n- b\n')
        with pytest.raises(SchemaLoadError, match='mapping'):
            DocumentLoader().load(str(path))

    def test_url(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == 'https://api.test/openapi.yaml'
            return httpx.Response(200, text=yaml.safe_dump(MINIMAL_SPEC))

        loader = DocumentLoader(httpx.Client(transport=httpx.MockTransport(handler)))
        assert loader.load('https://api.test/openapi.yaml').info.title == 'Minimal API'

    def test_url_error(self):
        loader = DocumentLoader(
            httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        )
        with pytest.raises(SchemaLoadError) as exc_info:
            loader.load('https://api.test/openapi.json')
        assert exc_info.value.source == 'https://api.test/openapi.json'

    @pytest.mark.parametrize(
        'source,expected',
        [
            ('https://api.test/openapi.yaml', True),
            ('HTTP://api.test/openapi.yaml', True),
            ('s3://bucket/openapi.yaml', False),
            ('/specs/openapi.yaml', False),
            ('openapi.yaml', False),
        ],
    )
    def test_only_http_sources_are_fetched(self, source, expected):
        """Test other schemes are left to the path reader."""
        assert DocumentLoader()._is_url(source) is expected
