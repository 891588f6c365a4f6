import json
import os
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from apisync.exceptions import ConfigurationError

DEFAULT_FILENAMES = ['apisync.yaml', 'apisync.yml']

_ENV_VAR = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}')


class DocumentConfig(BaseModel):
    """Represents a single document to be processed."""

    source: str = Field(..., description='Path or URL to the OpenAPI document.')

    output: str = Field(..., description='Output directory for the generated code.')

    api_name: str = Field(
        'Api', description='Base name of the generated client classes and factory.'
    )

    base_url: str | None = Field(
        None,
        description='Base URL used when the document declares no servers.',
    )

    models_file: str = Field('models.py', description='File name for generated models.')

    models_import_path: str | None = Field(
        None,
        description='Module the client imports models from; defaults to a relative import of models_file.',
    )

    client_file: str = Field('client.py', description='File name for the generated client.')

    lift_common_path_metadata: bool = Field(
        False,
        description='Move facets shared by every operation on a path to its path item.',
    )

    merge: bool = Field(
        False,
        description='Merge into existing files instead of overwriting them.',
    )

    @field_validator('source', 'output')
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('must not be blank')
        return value

    @field_validator('models_file', 'client_file')
    @classmethod
    def _python_file(cls, value: str) -> str:
        if not value.endswith('.py'):
            raise ValueError(f"'{value}' must end with .py")
        return value

    @property
    def models_module(self) -> str:
        """Import path the generated client uses for model types."""
        if self.models_import_path:
            return self.models_import_path
        return '.' + self.models_file.removesuffix('.py')


class CodegenConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='APISYNC_')

    documents: list[DocumentConfig] = Field(
        ..., min_length=1, description='List of OpenAPI documents to process.'
    )

    generate_client: bool = Field(
        True, description='Whether to generate a client next to the models.'
    )

    format_code: bool = Field(
        False, description='Format generated code with ruff or black when available.'
    )


def expand_env_vars(value: Any) -> Any:
    """Replace ``${VAR}`` and ``${VAR:-default}`` in every string of a tree."""
    if isinstance(value, str):
        return _ENV_VAR.sub(lambda m: os.environ.get(m.group(1), m.group(2) or ''), value)
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    if isinstance(value, dict):
        return {key: expand_env_vars(item) for key, item in value.items()}
    return value


def load_yaml(path: str | Path) -> dict:
    import yaml

    return yaml.safe_load(Path(path).read_text()) or {}


def _load_file(path: Path) -> dict:
    if path.suffix == '.json':
        return json.loads(path.read_text())
    return load_yaml(path)


def _validate(data: Any, source: str) -> CodegenConfig:
    if not isinstance(data, dict):
        raise ConfigurationError('configuration must be a mapping', config_path=source)
    try:
        return CodegenConfig(**expand_env_vars(data))
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = '.'.join(str(part) for part in error['loc'])
        raise ConfigurationError(error['msg'], config_path=source, field=field) from e


def get_config(path: str | None = None) -> CodegenConfig:
    """Load configuration from a file or from the current directory.

    Raises:
        FileNotFoundError: If no configuration can be found.
        ConfigurationError: If the configuration is invalid.
    """
    if path:
        return _validate(_load_file(Path(path)), path)

    cwd = Path(os.getcwd())

    for filename in DEFAULT_FILENAMES:
        candidate = cwd / filename
        if candidate.exists():
            return _validate(load_yaml(candidate), str(candidate))

    candidate = cwd / 'pyproject.toml'

    if candidate.exists():
        import tomllib

        pyproject = tomllib.loads(candidate.read_text())
        tools = pyproject.get('tool', {})

        if 'apisync' in tools:
            return _validate(tools['apisync'], str(candidate))

    raise FileNotFoundError('config not found')
