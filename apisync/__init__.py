"""apisync - Keep OpenAPI documents and Python source in sync.

apisync generates Pydantic models and an async httpx client from an OpenAPI
document, parses previously generated (and possibly hand-edited) source back
into the document model, and merges new schema fields and endpoints into
existing files without rewriting what is already there.

Quick Start:
    >>> from apisync import Codegen, DocumentConfig
    >>>
    >>> config = DocumentConfig(source='./openapi.yaml', output='./client')
    >>> Codegen(config).generate()

CLI Usage:
    $ apisync generate --config apisync.yaml
    $ apisync parse-models ./client/models.py
    $ apisync parse-client ./client/client.py
"""

from importlib.metadata import PackageNotFoundError, version

from apisync.codegen.codegen import Codegen
from apisync.config import CodegenConfig, DocumentConfig, get_config
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

__all__ = [
    # Main classes
    'Codegen',
    # Configuration
    'CodegenConfig',
    'DocumentConfig',
    'get_config',
    # Exceptions
    'ApiSyncError',
    'ValidationError',
    'NotFoundError',
    'MalformedSourceError',
    'SchemaError',
    'SchemaLoadError',
    'SchemaReferenceError',
    'ConfigurationError',
    'OutputError',
]

try:
    __version__ = version('apisync')
except PackageNotFoundError:
    __version__ = 'unknown'
