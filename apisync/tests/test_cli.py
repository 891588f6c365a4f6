"""Test CLI functionality."""

from unittest.mock import MagicMock, patch

import pytest
import yaml
from typer.testing import CliRunner

from apisync.cli import app
from apisync.codegen.clients import generate_api
from apisync.codegen.paths import flatten_paths
from apisync.codegen.records import generate_models
from apisync.config import CodegenConfig, DocumentConfig
from apisync.exceptions import ConfigurationError, OutputError
from apisync.openapi.loader import load_document

from .fixtures import PETSTORE_SPEC


@pytest.fixture
def runner():
    """Fixture providing CLI test runner."""
    return CliRunner()


@pytest.fixture
def sample_config():
    """Fixture providing sample configuration."""
    return CodegenConfig(
        documents=[DocumentConfig(source='https://api.example.com/openapi.json', output='./out')],
        generate_client=True,
    )


class TestGenerateCommand:
    """Test the generate command."""

    @patch('apisync.cli.get_config')
    @patch('apisync.cli.Codegen')
    def test_generate_without_config_file(
        self, mock_codegen_class, mock_get_config, runner, sample_config
    ):
        """Test generate command without specifying config file."""
        mock_get_config.return_value = sample_config
        mock_codegen_instance = MagicMock()
        mock_codegen_instance.generate.return_value = ['out/models.py', 'out/client.py']
        mock_codegen_class.return_value = mock_codegen_instance

        result = runner.invoke(app, ['generate'])

        assert result.exit_code == 0
        mock_get_config.assert_called_once_with(None)
        mock_codegen_class.assert_called_once_with(
            sample_config.documents[0], generate_client=True, format_code=False
        )
        mock_codegen_instance.generate.assert_called_once()
        assert 'Generated files:' in result.stdout
        assert 'out/models.py' in result.stdout
        assert 'out/client.py' in result.stdout

    @patch('apisync.cli.get_config')
    @patch('apisync.cli.Codegen')
    def test_generate_with_short_config_option(
        self, mock_codegen_class, mock_get_config, runner, sample_config
    ):
        """Test generate command with short config option."""
        mock_get_config.return_value = sample_config
        mock_codegen_class.return_value.generate.return_value = []

        result = runner.invoke(app, ['generate', '-c', 'config.json'])

        assert result.exit_code == 0
        mock_get_config.assert_called_once_with('config.json')

    @patch('apisync.cli.get_config')
    def test_generate_config_not_found(self, mock_get_config, runner):
        """Test generate command exits when no configuration is found."""
        mock_get_config.side_effect = FileNotFoundError('config not found')

        result = runner.invoke(app, ['generate'])

        assert result.exit_code == 1
        assert 'config not found' in result.stdout

    @patch('apisync.cli.get_config')
    def test_generate_invalid_config(self, mock_get_config, runner):
        mock_get_config.side_effect = ConfigurationError('bad value', field='documents')

        result = runner.invoke(app, ['generate'])

        assert result.exit_code == 1
        assert 'bad value' in result.stdout

    @patch('apisync.cli.get_config')
    @patch('apisync.cli.Codegen')
    def test_generate_failure(self, mock_codegen_class, mock_get_config, runner, sample_config):
        """Test errors raised during generation exit with status 1."""
        mock_get_config.return_value = sample_config
        mock_codegen_class.return_value.generate.side_effect = OutputError('out')

        result = runner.invoke(app, ['generate'])

        assert result.exit_code == 1
        assert 'Failed to write output' in result.stdout


class TestParseCommands:
    """Test the parse-models and parse-client commands."""

    def test_parse_models(self, runner, tmp_path):
        """Test schemas are printed as YAML."""
        definition = load_document(PETSTORE_SPEC)
        path = tmp_path / 'models.py'
        path.write_text(generate_models(definition.components.schemas.values()))

        result = runner.invoke(app, ['parse-models', str(path)])

        assert result.exit_code == 0
        data = yaml.safe_load(result.stdout)
        assert set(data['schemas']) == {'Pet', 'NewPet', 'Status'}
        assert data['schemas']['Pet']['required'] == ['id', 'name']

    def test_parse_client(self, runner, tmp_path):
        """Test the recovered document is printed as YAML."""
        definition = load_document(PETSTORE_SPEC)
        endpoints = flatten_paths(definition.paths, definition.components)
        path = tmp_path / 'client.py'
        path.write_text(generate_api(endpoints, definition.metadata(), api_name='Petstore'))

        result = runner.invoke(app, ['parse-client', str(path)])

        assert result.exit_code == 0
        data = yaml.safe_load(result.stdout)
        assert data['info']['title'] == 'Petstore'
        assert data['paths']['/pets']['get']['operationId'] == 'listPets'
        assert set(data['components']['securitySchemes']) == {'apiKey', 'petstore_auth'}

    def test_parse_client_with_models(self, runner, tmp_path):
        definition = load_document(PETSTORE_SPEC)
        endpoints = flatten_paths(definition.paths, definition.components)
        client = tmp_path / 'client.py'
        client.write_text(generate_api(endpoints, definition.metadata()))
        models = tmp_path / 'models.py'
        models.write_text(generate_models(definition.components.schemas.values()))

        result = runner.invoke(app, ['parse-client', str(client), '--models', str(models)])

        assert result.exit_code == 0
        data = yaml.safe_load(result.stdout)
        assert set(data['components']['schemas']) == {'Pet', 'NewPet', 'Status'}

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(app, ['parse-models', str(tmp_path / 'missing.py')])

        assert result.exit_code == 1
        assert 'cannot read' in result.stdout


class TestVersionCommand:
    """Test the version command."""

    def test_version(self, runner):
        result = runner.invoke(app, ['version'])

        assert result.exit_code == 0
        assert 'apisync version:' in result.stdout
