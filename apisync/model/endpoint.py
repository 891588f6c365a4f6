"""Endpoint, parameter and path item models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from apisync.model.schema import ExternalDocumentation, SchemaProperty

__all__ = [
    'HttpMethod',
    'ParameterLocation',
    'ParameterStyle',
    'ReferenceObject',
    'ExampleObject',
    'EncodingObject',
    'MediaTypeObject',
    'RequestBody',
    'Header',
    'Link',
    'EndpointResponse',
    'Callback',
    'EndpointParameter',
    'EndpointDefinition',
    'PathItem',
    'SecurityRequirement',
    'Server',
    'ServerVariable',
]

SecurityRequirement = dict[str, list[str]]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class HttpMethod(str, Enum):
    GET = 'GET'
    POST = 'POST'
    PUT = 'PUT'
    DELETE = 'DELETE'
    PATCH = 'PATCH'
    HEAD = 'HEAD'
    OPTIONS = 'OPTIONS'
    TRACE = 'TRACE'
    QUERY = 'QUERY'
    CUSTOM = 'CUSTOM'


class ParameterLocation(str, Enum):
    PATH = 'path'
    QUERY = 'query'
    QUERYSTRING = 'querystring'
    HEADER = 'header'
    COOKIE = 'cookie'


class ParameterStyle(str, Enum):
    """Serialization styles for parameters and encoded body fields."""

    SIMPLE = 'simple'
    FORM = 'form'
    MATRIX = 'matrix'
    LABEL = 'label'
    SPACE_DELIMITED = 'spaceDelimited'
    PIPE_DELIMITED = 'pipeDelimited'
    DEEP_OBJECT = 'deepObject'
    COOKIE = 'cookie'


class ServerVariable(_Frozen):
    default: str
    enum: list[str] | None = None
    description: str | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class Server(_Frozen):
    """A server the API is reachable on; ``{var}`` placeholders use ``variables``."""

    url: str
    description: str | None = None
    variables: dict[str, ServerVariable] | None = None
    name: str | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)

    def resolved_url(self) -> str:
        """Return the URL with every declared variable replaced by its default."""
        url = self.url
        for name, variable in (self.variables or {}).items():
            url = url.replace('{' + name + '}', variable.default)
        return url


class ReferenceObject(_Frozen):
    ref: str
    summary: str | None = None
    description: str | None = None


class ExampleObject(_Frozen):
    ref: str | None = None
    summary: str | None = None
    description: str | None = None
    data_value: Any = None
    serialized_value: str | None = None
    external_value: str | None = None
    value: Any = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class Header(_Frozen):
    type: str = 'str'
    schema_: SchemaProperty | None = Field(None, alias='schema')
    content: dict[str, MediaTypeObject] = Field(default_factory=dict)
    description: str | None = None
    required: bool = False
    deprecated: bool = False
    example: ExampleObject | None = None
    examples: dict[str, ExampleObject] = Field(default_factory=dict)
    style: ParameterStyle | None = ParameterStyle.SIMPLE
    explode: bool | None = False
    reference: ReferenceObject | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class EncodingObject(_Frozen):
    """Per-field encoding override for form and multipart bodies."""

    content_type: str | None = None
    headers: dict[str, Header] = Field(default_factory=dict)
    style: ParameterStyle | None = None
    explode: bool | None = None
    allow_reserved: bool | None = None
    encoding: dict[str, EncodingObject] = Field(default_factory=dict)
    prefix_encoding: list[EncodingObject] = Field(default_factory=list)
    item_encoding: EncodingObject | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class MediaTypeObject(_Frozen):
    ref: str | None = None
    reference: ReferenceObject | None = None
    schema_: SchemaProperty | None = Field(None, alias='schema')
    item_schema: SchemaProperty | None = None
    example: ExampleObject | None = None
    examples: dict[str, ExampleObject] = Field(default_factory=dict)
    encoding: dict[str, EncodingObject] = Field(default_factory=dict)
    prefix_encoding: list[EncodingObject] = Field(default_factory=list)
    item_encoding: EncodingObject | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class RequestBody(_Frozen):
    description: str | None = None
    content: dict[str, MediaTypeObject] = Field(default_factory=dict)
    required: bool = False
    reference: ReferenceObject | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class Link(_Frozen):
    ref: str | None = None
    reference: ReferenceObject | None = None
    operation_id: str | None = None
    operation_ref: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    request_body: Any = None
    description: str | None = None
    server: Server | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class EndpointResponse(_Frozen):
    status_code: str
    summary: str | None = None
    description: str | None = None
    headers: dict[str, Header] = Field(default_factory=dict)
    content: dict[str, MediaTypeObject] = Field(default_factory=dict)
    type: str | None = Field(
        None, description='Target-language type of the response payload.'
    )
    links: dict[str, Link] | None = None
    reference: ReferenceObject | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class Callback(_Frozen):
    """Out-of-band requests keyed by runtime expression, or a reference."""

    expressions: dict[str, PathItem] = Field(default_factory=dict)
    reference: ReferenceObject | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class EndpointParameter(_Frozen):
    name: str
    type: str = 'str'
    location: ParameterLocation
    required: bool = True
    schema_: SchemaProperty | None = Field(None, alias='schema')
    content: dict[str, MediaTypeObject] = Field(default_factory=dict)
    description: str | None = None
    deprecated: bool = False
    allow_empty_value: bool | None = None
    style: ParameterStyle | None = None
    explode: bool | None = None
    allow_reserved: bool | None = None
    example: ExampleObject | None = None
    examples: dict[str, ExampleObject] = Field(default_factory=dict)
    reference: ReferenceObject | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> tuple[str, ParameterLocation]:
        """Identity used when merging path-level and operation-level lists."""
        return self.name, self.location


class EndpointDefinition(_Frozen):
    """One HTTP operation with all of its metadata."""

    path: str
    method: HttpMethod
    custom_method: str | None = None
    operation_id: str
    operation_id_explicit: bool = True
    parameters: list[EndpointParameter] = Field(default_factory=list)
    request_body_type: str | None = None
    request_body: RequestBody | None = None
    responses: dict[str, EndpointResponse] = Field(default_factory=dict)
    summary: str | None = None
    description: str | None = None
    external_docs: ExternalDocumentation | None = None
    tags: list[str] = Field(default_factory=list)
    callbacks: dict[str, Callback] = Field(default_factory=dict)
    deprecated: bool = False
    security: list[SecurityRequirement] = Field(default_factory=list)
    security_explicit_empty: bool = False
    servers: list[Server] = Field(default_factory=list)
    extensions: dict[str, Any] = Field(default_factory=dict)

    @property
    def method_name(self) -> str:
        if self.method is HttpMethod.CUSTOM:
            return self.custom_method or 'CUSTOM'
        return self.method.value

    @property
    def success_status(self) -> str | None:
        """The lowest declared 2xx status code."""
        codes = sorted(code for code in self.responses if code.startswith('2'))
        return codes[0] if codes else None

    @property
    def response_type(self) -> str | None:
        status = self.success_status
        if status is None:
            return None
        return self.responses[status].type


_METHOD_SLOTS = (
    'get',
    'put',
    'post',
    'delete',
    'options',
    'head',
    'patch',
    'trace',
    'query',
)


class PathItem(_Frozen):
    """Operations sharing one path (or webhook) key plus cascading metadata."""

    ref: str | None = None
    summary: str | None = None
    description: str | None = None
    get: EndpointDefinition | None = None
    put: EndpointDefinition | None = None
    post: EndpointDefinition | None = None
    delete: EndpointDefinition | None = None
    options: EndpointDefinition | None = None
    head: EndpointDefinition | None = None
    patch: EndpointDefinition | None = None
    trace: EndpointDefinition | None = None
    query: EndpointDefinition | None = None
    additional_operations: dict[str, EndpointDefinition] = Field(default_factory=dict)
    parameters: list[EndpointParameter] = Field(default_factory=list)
    servers: list[Server] = Field(default_factory=list)
    extensions: dict[str, Any] = Field(default_factory=dict)

    def operations(self) -> list[tuple[HttpMethod, str | None, EndpointDefinition]]:
        """List ``(method, custom verb, endpoint)`` in slot order."""
        result = []
        for slot in _METHOD_SLOTS:
            endpoint = getattr(self, slot)
            if endpoint is not None:
                result.append((HttpMethod(slot.upper()), None, endpoint))
        for verb, endpoint in self.additional_operations.items():
            result.append((HttpMethod.CUSTOM, verb, endpoint))
        return result


for _model in (
    Header,
    EncodingObject,
    MediaTypeObject,
    RequestBody,
    EndpointResponse,
    Callback,
    EndpointParameter,
    EndpointDefinition,
    PathItem,
):
    _model.model_rebuild()
