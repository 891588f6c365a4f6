"""In-memory registry of loaded documents for cross-document references.

Documents are indexed by the URI they were retrieved from and by their own
``$self`` (OpenAPI documents) or ``$id`` (standalone schemas). A relative
``$self``/``$id`` is resolved against the retrieval URI first, so a
``$ref`` to ``other.yaml#/components/pathItems/Pets`` can be answered
without touching the network.
"""

import logging
from urllib.parse import urljoin

from apisync.codegen.paths import PathItemRefResolver, PathItemResolution
from apisync.codegen.utils import is_url
from apisync.model import OpenApiDefinition, SchemaProperty

__all__ = ['DocumentRegistry']

logger = logging.getLogger(__name__)


def _normalize(uri: str | None) -> str | None:
    trimmed = (uri or '').strip()
    if not trimmed:
        return None
    return trimmed.split('#', 1)[0]


def _resolve_relative(reference: str | None, base: str | None) -> str | None:
    normalized = _normalize(reference)
    if normalized is None or not base or is_url(normalized):
        return normalized
    return _normalize(urljoin(base, normalized))


class DocumentRegistry:
    """Documents keyed by base URI, used to resolve external references.

    Example:
        >>> registry = DocumentRegistry()
        >>> registry.register_openapi(definition, 'https://example.com/api/openapi.json')
        >>> endpoints = flatten_paths(
        ...     definition.paths,
        ...     definition.components,
        ...     ref_resolver=registry.path_item_resolver(),
        ... )
    """

    def __init__(self):
        self._documents: dict[str, OpenApiDefinition | SchemaProperty] = {}

    def _add(self, uri: str | None, document: OpenApiDefinition | SchemaProperty) -> None:
        key = _normalize(uri)
        if key is not None:
            self._documents[key] = document

    def register(
        self, document: OpenApiDefinition | SchemaProperty, base_uri: str | None = None
    ) -> None:
        """Register a document under its retrieval URI and its own identifier."""
        base = _normalize(base_uri)
        self._add(base, document)
        own = document.self_uri if isinstance(document, OpenApiDefinition) else document.schema_id
        self._add(own, document)
        self._add(_resolve_relative(own, base), document)
        logger.debug('Registered document %s', own or base)

    def register_openapi(self, definition: OpenApiDefinition, base_uri: str | None = None) -> None:
        self.register(definition, base_uri)

    def register_schema(self, schema: SchemaProperty, base_uri: str | None = None) -> None:
        self.register(schema, base_uri)

    def resolve(self, base_uri: str | None) -> OpenApiDefinition | SchemaProperty | None:
        key = _normalize(base_uri)
        return self._documents.get(key) if key is not None else None

    def resolve_openapi(self, base_uri: str | None) -> OpenApiDefinition | None:
        document = self.resolve(base_uri)
        return document if isinstance(document, OpenApiDefinition) else None

    def resolve_schema(self, base_uri: str | None) -> SchemaProperty | None:
        document = self.resolve(base_uri)
        return document if isinstance(document, SchemaProperty) else None

    def path_item_resolver(self) -> PathItemRefResolver:
        """A resolver for ``#/components/pathItems/<Name>`` refs into registered documents."""

        def resolve(base_uri: str | None, key: str) -> PathItemResolution | None:
            definition = self.resolve_openapi(base_uri)
            if definition is None or definition.components is None:
                return None
            item = definition.components.path_items.get(key)
            if item is None:
                return None
            own = _normalize(definition.self_uri)
            base = _normalize(base_uri)
            self_base = _resolve_relative(own, base) if own is not None else None
            return PathItemResolution(item, definition.components, self_base)

        return resolve
