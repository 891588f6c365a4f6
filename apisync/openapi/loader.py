"""Reading OpenAPI documents into the model.

:class:`DocumentLoader` fetches YAML or JSON from a URL or path, and
:func:`load_document` converts the resulting plain tree into an
:class:`~apisync.model.OpenApiDefinition`. Component references
(``#/components/parameters/...`` and friends) are looked up in the same
document, while schema references stay as names.
"""

import json
import logging
from typing import Any
import httpx
import yaml
from upath import UPath

from apisync.codegen.paths import derive_operation_id
from apisync.codegen.references import resolve_ref_to_type
from apisync.codegen.type_mapping import map_type
from apisync.codegen.utils import is_url
from apisync.exceptions import SchemaLoadError, SchemaReferenceError
from apisync.model import (
    Callback,
    Components,
    Contact,
    EncodingObject,
    EndpointDefinition,
    EndpointParameter,
    EndpointResponse,
    ExampleObject,
    Header,
    HttpMethod,
    Info,
    License,
    Link,
    MediaTypeObject,
    OAuthFlow,
    OAuthFlows,
    OpenApiDefinition,
    PathItem,
    ReferenceObject,
    RequestBody,
    SecurityScheme,
    Server,
    ServerVariable,
    Tag,
)
from apisync.openapi.media import choose_body_media_type, choose_response_media_type
from apisync.openapi.schema_codec import (
    load_external_docs,
    load_schema,
    load_schema_definition,
    split_extensions,
)

__all__ = ['DocumentLoader', 'DocumentReader', 'load_document', 'read_document']

logger = logging.getLogger(__name__)

METHOD_SLOTS = ('get', 'put', 'post', 'delete', 'options', 'head', 'patch', 'trace', 'query')


def load_server(node: dict[str, Any]) -> Server:
    variables = None
    if isinstance(node.get('variables'), dict):
        variables = {
            name: ServerVariable(
                default=str(value.get('default', '')),
                enum=value.get('enum'),
                description=value.get('description'),
                extensions=split_extensions(value),
            )
            for name, value in node['variables'].items()
        }
    return Server(
        url=node.get('url', '/'),
        description=node.get('description'),
        variables=variables,
        name=node.get('name'),
        extensions=split_extensions(node),
    )


def load_info(node: dict[str, Any]) -> Info:
    contact = node.get('contact')
    license_node = node.get('license')
    return Info(
        title=node.get('title', ''),
        version=str(node.get('version', '')),
        summary=node.get('summary'),
        description=node.get('description'),
        terms_of_service=node.get('termsOfService'),
        contact=(
            Contact(
                name=contact.get('name'),
                url=contact.get('url'),
                email=contact.get('email'),
                extensions=split_extensions(contact),
            )
            if isinstance(contact, dict)
            else None
        ),
        license=(
            License(
                name=license_node.get('name', ''),
                identifier=license_node.get('identifier'),
                url=license_node.get('url'),
                extensions=split_extensions(license_node),
            )
            if isinstance(license_node, dict)
            else None
        ),
        extensions=split_extensions(node),
    )


def load_tag(node: dict[str, Any]) -> Tag:
    return Tag(
        name=node.get('name', ''),
        summary=node.get('summary'),
        description=node.get('description'),
        external_docs=load_external_docs(node.get('externalDocs')),
        parent=node.get('parent'),
        kind=node.get('kind'),
        extensions=split_extensions(node),
    )


def _load_flow(node: dict[str, Any] | None) -> OAuthFlow | None:
    if not isinstance(node, dict):
        return None
    return OAuthFlow(
        authorization_url=node.get('authorizationUrl'),
        token_url=node.get('tokenUrl'),
        refresh_url=node.get('refreshUrl'),
        scopes=dict(node.get('scopes') or {}),
        device_authorization_url=node.get('deviceAuthorizationUrl'),
        extensions=split_extensions(node),
    )


def load_security_scheme(node: dict[str, Any]) -> SecurityScheme:
    flows = node.get('flows')
    return SecurityScheme(
        type=node.get('type', 'apiKey'),
        description=node.get('description'),
        name=node.get('name'),
        location=node.get('in'),
        scheme=node.get('scheme'),
        bearer_format=node.get('bearerFormat'),
        flows=(
            OAuthFlows(
                implicit=_load_flow(flows.get('implicit')),
                password=_load_flow(flows.get('password')),
                client_credentials=_load_flow(flows.get('clientCredentials')),
                authorization_code=_load_flow(flows.get('authorizationCode')),
                device_authorization=_load_flow(flows.get('deviceAuthorization')),
                extensions=split_extensions(flows),
            )
            if isinstance(flows, dict)
            else None
        ),
        open_id_connect_url=node.get('openIdConnectUrl'),
        oauth2_metadata_url=node.get('oauth2MetadataUrl'),
        deprecated=bool(node.get('deprecated', False)),
        extensions=split_extensions(node),
    )


def _reference(node: dict[str, Any]) -> ReferenceObject:
    return ReferenceObject(
        ref=node['$ref'],
        summary=node.get('summary'),
        description=node.get('description'),
    )


def load_example(node: Any) -> ExampleObject:
    if not isinstance(node, dict):
        return ExampleObject(value=node)
    return ExampleObject(
        ref=node.get('$ref'),
        summary=node.get('summary'),
        description=node.get('description'),
        data_value=node.get('dataValue'),
        serialized_value=node.get('serializedValue'),
        external_value=node.get('externalValue'),
        value=node.get('value'),
        extensions=split_extensions(node),
    )


def _examples(node: dict[str, Any]) -> dict[str, ExampleObject]:
    return {key: load_example(value) for key, value in (node.get('examples') or {}).items()}


class DocumentReader:
    """Convert a plain document tree into model objects.

    Component references are followed within the same tree. Schema
    references are not followed: the model keeps them as names.
    """

    def __init__(self, data: dict[str, Any]):
        self.data = data
        self._components: dict[str, Any] = data.get('components') or {}

    def _follow(self, node: dict[str, Any], section: str, visited: set[str] | None = None) -> dict[str, Any]:
        visited = set() if visited is None else visited
        while isinstance(node, dict) and '$ref' in node and set(node) <= {'$ref', 'summary', 'description'}:
            ref = node['$ref']
            marker = f'#/components/{section}/'
            if not ref.startswith(marker):
                return node
            if ref in visited:
                raise SchemaReferenceError(ref, 'reference cycle')
            visited.add(ref)
            key = resolve_ref_to_type(ref)
            target = (self._components.get(section) or {}).get(key)
            if target is None:
                raise SchemaReferenceError(ref, f'no {section} entry named {key!r}')
            node = target
        return node

    # -- content -------------------------------------------------------------

    def encoding(self, node: dict[str, Any]) -> EncodingObject:
        return EncodingObject(
            content_type=node.get('contentType'),
            headers={name: self.header(value) for name, value in (node.get('headers') or {}).items()},
            style=node.get('style'),
            explode=node.get('explode'),
            allow_reserved=node.get('allowReserved'),
            encoding={name: self.encoding(value) for name, value in (node.get('encoding') or {}).items()},
            prefix_encoding=[self.encoding(value) for value in node.get('prefixEncoding') or []],
            item_encoding=self.encoding(node['itemEncoding']) if node.get('itemEncoding') else None,
            extensions=split_extensions(node),
        )

    def media_type(self, node: dict[str, Any]) -> MediaTypeObject:
        if '$ref' in node and 'schema' not in node:
            return MediaTypeObject(ref=node['$ref'], reference=_reference(node))
        return MediaTypeObject(
            schema=load_schema(node['schema']) if 'schema' in node else None,
            item_schema=load_schema(node['itemSchema']) if 'itemSchema' in node else None,
            example=ExampleObject(value=node['example']) if 'example' in node else None,
            examples=_examples(node),
            encoding={name: self.encoding(value) for name, value in (node.get('encoding') or {}).items()},
            prefix_encoding=[self.encoding(value) for value in node.get('prefixEncoding') or []],
            item_encoding=self.encoding(node['itemEncoding']) if node.get('itemEncoding') else None,
            extensions=split_extensions(node),
        )

    def content(self, node: dict[str, Any] | None) -> dict[str, MediaTypeObject]:
        return {media: self.media_type(value or {}) for media, value in (node or {}).items()}

    def header(self, node: dict[str, Any]) -> Header:
        node = self._follow(node, 'headers')
        schema = load_schema(node['schema']) if 'schema' in node else None
        content = self.content(node.get('content'))
        return Header(
            type=_content_type_name(schema, content),
            schema=schema,
            content=content,
            description=node.get('description'),
            required=bool(node.get('required', False)),
            deprecated=bool(node.get('deprecated', False)),
            example=ExampleObject(value=node['example']) if 'example' in node else None,
            examples=_examples(node),
            style=node.get('style', 'simple'),
            explode=node.get('explode', False),
            extensions=split_extensions(node),
        )

    # -- operations ------------------------------------------------------------

    def parameter(self, node: dict[str, Any]) -> EndpointParameter:
        reference = _reference(node) if '$ref' in node else None
        node = self._follow(node, 'parameters')
        location = node.get('in', 'query')
        schema = load_schema(node['schema']) if 'schema' in node else None
        content = self.content(node.get('content'))
        return EndpointParameter(
            name=node.get('name', ''),
            type=_content_type_name(schema, content),
            location=location,
            required=bool(node.get('required', location == 'path')),
            schema=schema,
            content=content,
            description=node.get('description'),
            deprecated=bool(node.get('deprecated', False)),
            allow_empty_value=node.get('allowEmptyValue'),
            style=node.get('style'),
            explode=node.get('explode'),
            allow_reserved=node.get('allowReserved'),
            example=ExampleObject(value=node['example']) if 'example' in node else None,
            examples=_examples(node),
            reference=reference,
            extensions=split_extensions(node),
        )

    def request_body(self, node: dict[str, Any]) -> RequestBody:
        reference = _reference(node) if '$ref' in node else None
        node = self._follow(node, 'requestBodies')
        return RequestBody(
            description=node.get('description'),
            content=self.content(node.get('content')),
            required=bool(node.get('required', False)),
            reference=reference,
            extensions=split_extensions(node),
        )

    def link(self, node: dict[str, Any]) -> Link:
        reference = _reference(node) if '$ref' in node else None
        node = self._follow(node, 'links')
        return Link(
            ref=reference.ref if reference else None,
            reference=reference,
            operation_id=node.get('operationId'),
            operation_ref=node.get('operationRef'),
            parameters=dict(node.get('parameters') or {}),
            request_body=node.get('requestBody'),
            description=node.get('description'),
            server=load_server(node['server']) if isinstance(node.get('server'), dict) else None,
            extensions=split_extensions(node),
        )

    def response(self, status_code: str, node: dict[str, Any]) -> EndpointResponse:
        reference = _reference(node) if '$ref' in node else None
        node = self._follow(node, 'responses')
        content = self.content(node.get('content'))
        media = choose_response_media_type(content)
        schema = content[media].schema_ if media else None
        links = node.get('links')
        return EndpointResponse(
            status_code=str(status_code),
            summary=node.get('summary'),
            description=node.get('description'),
            headers={name: self.header(value) for name, value in (node.get('headers') or {}).items()},
            content=content,
            type=map_type(schema) if schema is not None else None,
            links={name: self.link(value) for name, value in links.items()} if isinstance(links, dict) else None,
            reference=reference,
            extensions=split_extensions(node),
        )

    def callback(self, node: dict[str, Any]) -> Callback:
        reference = _reference(node) if '$ref' in node else None
        node = self._follow(node, 'callbacks')
        return Callback(
            expressions={
                expression: self.path_item(expression, value)
                for expression, value in node.items()
                if not expression.startswith('x-')
            },
            reference=reference,
            extensions=split_extensions(node),
        )

    def operation(
        self, path: str, method: HttpMethod, node: dict[str, Any], verb: str | None = None
    ) -> EndpointDefinition:
        request_body = self.request_body(node['requestBody']) if 'requestBody' in node else None
        body_type = None
        if request_body is not None:
            media = choose_body_media_type(request_body.content)
            if media is not None and request_body.content[media].schema_ is not None:
                body_type = map_type(request_body.content[media].schema_)
        operation_id = node.get('operationId')
        security = node.get('security')
        return EndpointDefinition(
            path=path,
            method=method,
            custom_method=verb,
            operation_id=operation_id or derive_operation_id(verb or method.value, path),
            operation_id_explicit=operation_id is not None,
            parameters=[self.parameter(value) for value in node.get('parameters') or []],
            request_body_type=body_type,
            request_body=request_body,
            responses={
                str(code): self.response(str(code), value)
                for code, value in (node.get('responses') or {}).items()
                if not str(code).startswith('x-')
            },
            summary=node.get('summary'),
            description=node.get('description'),
            external_docs=load_external_docs(node.get('externalDocs')),
            tags=list(node.get('tags') or []),
            callbacks={name: self.callback(value) for name, value in (node.get('callbacks') or {}).items()},
            deprecated=bool(node.get('deprecated', False)),
            security=list(security or []),
            security_explicit_empty=security == [],
            servers=[load_server(value) for value in node.get('servers') or []],
            extensions=split_extensions(node),
        )

    def path_item(self, path: str, node: dict[str, Any]) -> PathItem:
        slots = {
            slot: self.operation(path, HttpMethod(slot.upper()), node[slot])
            for slot in METHOD_SLOTS
            if isinstance(node.get(slot), dict)
        }
        return PathItem(
            ref=node.get('$ref'),
            summary=node.get('summary'),
            description=node.get('description'),
            additional_operations={
                verb: self.operation(path, HttpMethod.CUSTOM, value, verb=verb)
                for verb, value in (node.get('additionalOperations') or {}).items()
            },
            parameters=[self.parameter(value) for value in node.get('parameters') or []],
            servers=[load_server(value) for value in node.get('servers') or []],
            extensions=split_extensions(node),
            **slots,
        )

    def path_items(self, node: dict[str, Any] | None) -> dict[str, PathItem]:
        return {
            key: self.path_item(key, value)
            for key, value in (node or {}).items()
            if not key.startswith('x-')
        }

    # -- document --------------------------------------------------------------

    def components(self) -> Components | None:
        node = self.data.get('components')
        if not isinstance(node, dict):
            return None
        return Components(
            schemas={
                name: load_schema_definition(name, value)
                for name, value in (node.get('schemas') or {}).items()
            },
            responses={name: self.response(name, value) for name, value in (node.get('responses') or {}).items()},
            parameters={name: self.parameter(value) for name, value in (node.get('parameters') or {}).items()},
            request_bodies={
                name: self.request_body(value) for name, value in (node.get('requestBodies') or {}).items()
            },
            headers={name: self.header(value) for name, value in (node.get('headers') or {}).items()},
            security_schemes={
                name: load_security_scheme(value)
                for name, value in (node.get('securitySchemes') or {}).items()
            },
            examples={name: load_example(value) for name, value in (node.get('examples') or {}).items()},
            links={name: self.link(value) for name, value in (node.get('links') or {}).items()},
            callbacks={name: self.callback(value) for name, value in (node.get('callbacks') or {}).items()},
            path_items=self.path_items(node.get('pathItems')),
            media_types={
                name: self.media_type(value) for name, value in (node.get('mediaTypes') or {}).items()
            },
            extensions=split_extensions(node),
        )

    def document(self) -> OpenApiDefinition:
        data = self.data
        security = data.get('security')
        return OpenApiDefinition(
            openapi=str(data.get('openapi', '3.2.0')),
            info=load_info(data.get('info') or {}),
            json_schema_dialect=data.get('jsonSchemaDialect'),
            servers=[load_server(value) for value in data.get('servers') or []],
            paths=self.path_items(data.get('paths')),
            paths_extensions=split_extensions(data.get('paths') or {}),
            webhooks=self.path_items(data.get('webhooks')),
            webhooks_extensions=split_extensions(data.get('webhooks') or {}),
            components=self.components(),
            security=list(security or []),
            security_explicit_empty=security == [],
            tags=[load_tag(value) for value in data.get('tags') or []],
            external_docs=load_external_docs(data.get('externalDocs')),
            self_uri=data.get('$self'),
            extensions=split_extensions(data),
        )


def _content_type_name(schema, content: dict[str, MediaTypeObject]) -> str:
    if schema is None and content:
        schema = next(iter(content.values())).schema_
    if schema is None:
        return 'str'
    return map_type(schema)


def load_document(data: dict[str, Any]) -> OpenApiDefinition:
    """Convert a parsed YAML/JSON tree into an :class:`OpenApiDefinition`.

    Raises:
        SchemaReferenceError: If a component reference cannot be followed.
    """
    return DocumentReader(data).document()


class DocumentLoader:
    """Fetch a document from a URL or a (local or remote) path.

    Example:
        >>> loader = DocumentLoader()
        >>> definition = loader.load('https://api.example.com/openapi.json')
    """

    def __init__(self, http_client: httpx.Client | None = None):
        self._http_client = http_client

    def load(self, source: str) -> OpenApiDefinition:
        data = self.load_data(source)
        try:
            return load_document(data)
        except SchemaReferenceError:
            raise
        except Exception as e:
            raise SchemaLoadError(source, cause=e) from e

    def load_data(self, source: str) -> dict[str, Any]:
        """Read and parse the raw YAML/JSON tree.

        Raises:
            SchemaLoadError: If the source cannot be read or parsed.
        """
        if self._is_url(source):
            text, yaml_hint = self._load_from_url(source)
        else:
            text, yaml_hint = self._load_from_path(source)
        try:
            data = yaml.safe_load(text) if yaml_hint else json.loads(text)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise SchemaLoadError(source, cause=e) from e
        if not isinstance(data, dict):
            raise SchemaLoadError(source, cause=ValueError('document root must be a mapping'))
        return data

    def _is_url(self, text: str) -> bool:
        # Other schemes (s3://, gs://, ...) are read through UPath
        return is_url(text) and text.split(':', 1)[0].lower() in ('http', 'https')

    def _load_from_url(self, url: str) -> tuple[str, bool]:
        try:
            if self._http_client:
                response = self._http_client.get(url)
            else:
                response = httpx.get(url, follow_redirects=True, timeout=30.0)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SchemaLoadError(url, cause=e) from e
        content_type = response.headers.get('content-type', '')
        return response.text, 'yaml' in content_type or url.endswith(('.yaml', '.yml'))

    def _load_from_path(self, source: str) -> tuple[str, bool]:
        path = UPath(source)
        try:
            text = path.read_text(encoding='utf-8')
        except FileNotFoundError as e:
            raise SchemaLoadError(source, cause=FileNotFoundError(f'File not found: {path}')) from e
        except OSError as e:
            raise SchemaLoadError(source, cause=e) from e
        return text, path.suffix.lower() in ('.yaml', '.yml')


def read_document(source: str) -> OpenApiDefinition:
    """Load a document from a file path or URL holding YAML or JSON."""
    logger.debug('Reading document from %s', source)
    return DocumentLoader().load(source)
