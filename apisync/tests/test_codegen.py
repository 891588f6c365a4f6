"""Test the Codegen orchestration class."""

import copy
import json

import httpx
import pytest

from apisync.codegen.codegen import Codegen
from apisync.codegen.records import parse_dtos
from apisync.config import DocumentConfig
from apisync.exceptions import OutputError
from apisync.openapi.loader import DocumentLoader

from .fixtures import MINIMAL_SPEC, PETSTORE_SPEC


def _write_spec(directory, data) -> str:
    path = directory / 'openapi.json'
    path.write_text(json.dumps(data))
    return str(path)


@pytest.fixture
def petstore_source(tmp_path):
    """The petstore document written to a temporary file."""
    return _write_spec(tmp_path, PETSTORE_SPEC)


class TestGenerate:
    """Test writing fresh output files."""

    def test_writes_models_and_client(self, tmp_path, petstore_source):
        output = tmp_path / 'client'
        config = DocumentConfig(source=petstore_source, output=str(output), api_name='Petstore')

        files = Codegen(config).generate()

        assert files == [str(output / 'models.py'), str(output / 'client.py')]
        models = (output / 'models.py').read_text()
        client = (output / 'client.py').read_text()
        assert 'class Pet(BaseModel):' in models
        assert 'class Petstore:' in client
        assert 'from .models import' in client

    def test_models_only(self, tmp_path, petstore_source):
        output = tmp_path / 'client'
        config = DocumentConfig(source=petstore_source, output=str(output))

        files = Codegen(config, generate_client=False).generate()

        assert files == [str(output / 'models.py')]
        assert not (output / 'client.py').exists()

    def test_custom_file_names(self, tmp_path, petstore_source):
        """Test the client imports models from the configured module."""
        output = tmp_path / 'client'
        config = DocumentConfig(
            source=petstore_source,
            output=str(output),
            models_file='schemas.py',
            client_file='api.py',
        )

        Codegen(config).generate()

        assert 'from .schemas import' in (output / 'api.py').read_text()

    def test_unwritable_output(self, tmp_path, petstore_source):
        blocked = tmp_path / 'blocked'
        blocked.write_text('not a directory')
        config = DocumentConfig(source=petstore_source, output=str(blocked))

        with pytest.raises(OutputError) as exc_info:
            Codegen(config).generate()

        assert exc_info.value.output_path == str(blocked)


class TestMerge:
    """Test merging into files generated earlier."""

    def test_merge_keeps_edits_and_adds_new_members(self, tmp_path, petstore_source):
        """Test hand edits survive while new fields and endpoints are added."""
        output = tmp_path / 'client'
        Codegen(DocumentConfig(source=petstore_source, output=str(output))).generate()

        models_path = output / 'models.py'
        client_path = output / 'client.py'
        models_path.write_text(models_path.read_text() + '# keep me\n')
        client_path.write_text(client_path.read_text() + '# and me\n')

        updated = copy.deepcopy(PETSTORE_SPEC)
        updated['components']['schemas']['Pet']['properties']['age'] = {'type': 'integer'}
        updated['components']['schemas']['Owner'] = {
            'type': 'object',
            'properties': {'name': {'type': 'string'}},
        }
        updated['paths']['/owners'] = {
            'get': {
                'operationId': 'listOwners',
                'responses': {
                    '200': {
                        'description': 'OK',
                        'content': {
                            'application/json': {
                                'schema': {
                                    'type': 'array',
                                    'items': {'$ref': '#/components/schemas/Owner'},
                                }
                            }
                        },
                    }
                },
            }
        }
        source = tmp_path / 'updated.json'
        source.write_text(json.dumps(updated))
        config = DocumentConfig(source=str(source), output=str(output), merge=True)

        Codegen(config).generate()

        models = models_path.read_text()
        client = client_path.read_text()
        assert '# keep me' in models
        assert "age: int | None = Field(default=None, alias='age')" in models
        assert [s.name for s in parse_dtos(models)][-1] == 'Owner'
        assert '# and me' in client
        assert client.count('async def list_owners(') == 2

    def test_merge_without_existing_files_generates(self, tmp_path, petstore_source):
        output = tmp_path / 'client'
        config = DocumentConfig(source=petstore_source, output=str(output), merge=True)

        Codegen(config).generate()

        assert (output / 'client.py').exists()


class TestMetadata:
    """Test the base URL handed to the generated client."""

    def test_configured_base_url_without_servers(self, tmp_path):
        source = _write_spec(tmp_path, MINIMAL_SPEC)
        config = DocumentConfig(source=source, output='out', base_url='https://api.test/v1')
        codegen = Codegen(config)
        codegen.load()

        assert [s.url for s in codegen.metadata().servers] == ['https://api.test/v1']

    def test_document_servers_win(self, petstore_source):
        config = DocumentConfig(source=petstore_source, output='out', base_url='https://other.test')
        codegen = Codegen(config)
        codegen.load()

        assert codegen.metadata().servers[0].url == 'https://petstore.example.com/v1'

    def test_relative_server_resolved_against_source_url(self):
        """Test a relative server URL is joined with the URL the document came from."""
        spec = {**MINIMAL_SPEC, 'servers': [{'url': '/v2'}]}
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=spec))
        loader = DocumentLoader(httpx.Client(transport=transport))
        config = DocumentConfig(source='https://api.test/specs/openapi.json', output='out')
        codegen = Codegen(config, loader=loader)
        codegen.load()

        assert codegen.metadata().servers[0].url == 'https://api.test/v2'


class TestEndpoints:
    """Test endpoint flattening with the document registry."""

    def test_loaded_document_is_registered(self, petstore_source):
        codegen = Codegen(DocumentConfig(source=petstore_source, output='out'))
        definition = codegen.load()
        assert codegen.registry.resolve_openapi(petstore_source) is definition

    def test_reference_into_registered_document(self, tmp_path):
        """Test a path item in another registered document is followed."""
        shared = {
            **MINIMAL_SPEC,
            '$self': 'https://specs.test/shared.json',
            'components': {
                'pathItems': {
                    'Health': {
                        'get': {
                            'operationId': 'getHealth',
                            'responses': {'200': {'description': 'OK'}},
                        }
                    }
                }
            },
        }
        main = {
            **MINIMAL_SPEC,
            'paths': {'/health': {'$ref': 'https://specs.test/shared.json#/components/pathItems/Health'}},
        }
        codegen = Codegen(DocumentConfig(source=_write_spec(tmp_path, main), output='out'))
        codegen.load()
        assert codegen.endpoints() == []

        shared_path = tmp_path / 'shared'
        shared_path.mkdir()
        codegen.registry.register_openapi(DocumentLoader().load(_write_spec(shared_path, shared)))
        assert [(e.path, e.operation_id) for e in codegen.endpoints()] == [('/health', 'getHealth')]
