"""Code generation orchestration for apisync.

This module provides the Codegen class that turns one configured document
into a models file and a client file, either writing them fresh or merging
into files generated earlier.
"""

import logging
from urllib.parse import urljoin

from upath import UPath

from apisync.codegen.clients import generate_api, merge_api
from apisync.codegen.paths import flatten_all
from apisync.codegen.records import append_declarations, generate_models, merge_dto
from apisync.codegen.toolkit import toolkit_session
from apisync.codegen.utils import is_url
from apisync.config import DocumentConfig
from apisync.exceptions import NotFoundError, OutputError
from apisync.model import EndpointDefinition, OpenApiDefinition, OpenApiMetadata, SchemaDefinition, Server
from apisync.openapi.loader import DocumentLoader
from apisync.openapi.registry import DocumentRegistry

logger = logging.getLogger(__name__)


class Codegen:
    """Generate (or merge) models and a client for one document.

    Attributes:
        config: The DocumentConfig with source and output settings.
        definition: The loaded document, populated by :meth:`load`.

    Example:
        >>> from apisync.config import DocumentConfig
        >>> from apisync.codegen.codegen import Codegen
        >>>
        >>> config = DocumentConfig(source='./openapi.yaml', output='./client')
        >>> Codegen(config).generate()
        # Creates models.py and client.py in ./client/
    """

    def __init__(
        self,
        config: DocumentConfig,
        loader: DocumentLoader | None = None,
        generate_client: bool = True,
        format_code: bool = False,
    ):
        self.config = config
        self.generate_client = generate_client
        self.format_code = format_code
        self.definition: OpenApiDefinition | None = None
        self._loader = loader or DocumentLoader()
        self.registry = DocumentRegistry()

    def load(self) -> OpenApiDefinition:
        """Load the configured document.

        Raises:
            SchemaLoadError: If the document cannot be read or parsed.
            SchemaReferenceError: If a component reference is broken.
        """
        self.definition = self._loader.load(self.config.source)
        self.registry.register_openapi(self.definition, self.config.source)
        return self.definition

    def schemas(self) -> list[SchemaDefinition]:
        components = self.definition.components
        return list(components.schemas.values()) if components else []

    def endpoints(self) -> list[EndpointDefinition]:
        definition = self.definition
        return flatten_all(
            definition.paths,
            definition.webhooks,
            definition.components,
            ref_resolver=self.registry.path_item_resolver(),
            self_uri=definition.self_uri,
        )

    def metadata(self) -> OpenApiMetadata:
        """Root metadata, with the base URL filled in where the document lacks one.

        A configured ``base_url`` applies when the document declares no
        servers. A relative first server URL is resolved against the source
        when the document was loaded from a URL.
        """
        metadata = self.definition.metadata()
        servers = list(metadata.servers)
        if not servers:
            if self.config.base_url:
                servers = [Server(url=self.config.base_url)]
        elif not is_url(servers[0].url) and is_url(self.config.source):
            resolved = urljoin(self.config.source, servers[0].url)
            logger.info(
                "Resolved relative server URL '%s' to '%s' using source URL '%s'",
                servers[0].url,
                resolved,
                self.config.source,
            )
            servers[0] = servers[0].model_copy(update={'url': resolved})
        return metadata.model_copy(update={'servers': servers})

    def _models_text(self, path: UPath, schemas: list[SchemaDefinition]) -> str:
        if not (self.config.merge and path.exists()):
            return generate_models(schemas)
        text = path.read_text(encoding='utf-8')
        missing = []
        for schema in schemas:
            try:
                text = merge_dto(text, schema)
            except NotFoundError:
                missing.append(schema)
        return append_declarations(text, missing)

    def _client_text(self, path: UPath, endpoints: list[EndpointDefinition]) -> str:
        models_module = self.config.models_module
        if self.config.merge and path.exists():
            return merge_api(
                path.read_text(encoding='utf-8'), endpoints, models_module=models_module
            )
        return generate_api(
            endpoints,
            self.metadata(),
            api_name=self.config.api_name,
            models_module=models_module,
        )

    def _write(self, path: UPath, text: str) -> None:
        try:
            path.write_text(text, encoding='utf-8')
        except OSError as e:
            raise OutputError(str(path), cause=e) from e
        logger.debug('Wrote %s', path)

    def generate(self) -> list[str]:
        """Generate or merge the output files and return their paths.

        Every text is produced before anything is written, so a validation
        failure leaves existing files untouched.

        Raises:
            ValidationError: If an endpoint cannot be generated.
            OutputError: If the output cannot be written.
        """
        if self.definition is None:
            self.load()

        directory = UPath(self.config.output)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputError(str(directory), cause=e) from e

        outputs: list[tuple[UPath, str]] = []
        with toolkit_session(format_code=self.format_code):
            models_path = directory / self.config.models_file
            outputs.append((models_path, self._models_text(models_path, self.schemas())))
            if self.generate_client:
                client_path = directory / self.config.client_file
                outputs.append((client_path, self._client_text(client_path, self.endpoints())))

        for path, text in outputs:
            self._write(path, text)
        logger.info('Generated %d file(s) in %s', len(outputs), directory)
        return [str(path) for path, _ in outputs]
