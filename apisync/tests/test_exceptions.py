"""Test suite for apisync exceptions."""

import pytest

from apisync.exceptions import (
    ApiSyncError,
    ConfigurationError,
    MalformedSourceError,
    NotFoundError,
    OutputError,
    SchemaError,
    SchemaLoadError,
    SchemaReferenceError,
    ValidationError,
)


class TestApiSyncError:
    """Tests for the base ApiSyncError exception."""

    def test_basic_message(self):
        """Test that the error stores the message."""
        error = ApiSyncError('Something went wrong')
        assert error.message == 'Something went wrong'
        assert str(error) == 'Something went wrong'

    @pytest.mark.parametrize(
        'error',
        [
            ValidationError('op', 'reason'),
            NotFoundError('User'),
            MalformedSourceError('User', 'reason'),
            SchemaLoadError('a.yaml'),
            SchemaReferenceError('#/x'),
            ConfigurationError('bad'),
            OutputError('out'),
        ],
    )
    def test_hierarchy(self, error):
        """Test every error can be caught as ApiSyncError."""
        assert isinstance(error, ApiSyncError)


class TestSourceErrors:
    """Tests for errors raised by generators and mergers."""

    def test_validation_error(self):
        error = ValidationError('listPets', 'only one querystring parameter is allowed')
        assert error.endpoint == 'listPets'
        assert str(error) == (
            "Invalid endpoint 'listPets': only one querystring parameter is allowed"
        )

    def test_not_found(self):
        error = NotFoundError('User')
        assert error.name == 'User'
        assert str(error) == "Declaration 'User' not found in source"

    def test_malformed_with_name(self):
        error = MalformedSourceError('Color', 'declaration has no field list')
        assert str(error) == "Malformed declaration 'Color': declaration has no field list"

    def test_malformed_without_name(self):
        assert str(MalformedSourceError(None, 'invalid source')) == 'Malformed source: invalid source'


class TestSchemaErrors:
    """Tests for document loading errors."""

    def test_load_error_with_cause(self):
        cause = FileNotFoundError('File not found: a.yaml')
        error = SchemaLoadError('a.yaml', cause=cause)
        assert isinstance(error, SchemaError)
        assert error.cause is cause
        assert str(error) == "Failed to load document from 'a.yaml': File not found: a.yaml"

    def test_reference_error(self):
        error = SchemaReferenceError('#/components/schemas/Nope', 'no such component')
        assert error.reference == '#/components/schemas/Nope'
        assert str(error) == (
            "Failed to resolve reference '#/components/schemas/Nope': no such component"
        )


class TestConfigurationAndOutputErrors:
    """Tests for ConfigurationError and OutputError."""

    def test_configuration_error_full_message(self):
        error = ConfigurationError('must end with .py', config_path='apisync.yaml', field='client_file')
        assert str(error) == "must end with .py in 'apisync.yaml' (field: client_file)"

    def test_configuration_error_plain(self):
        assert str(ConfigurationError('bad')) == 'bad'

    def test_output_error(self):
        error = OutputError('./out', cause=PermissionError('denied'))
        assert error.output_path == './out'
        assert str(error) == "Failed to write output to './out': denied"
