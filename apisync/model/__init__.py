"""Canonical OpenAPI document model.

Every entity is an immutable pydantic model. Transforms never mutate them;
they build new instances with ``model_copy(update=...)``.
"""

from apisync.model.document import (
    Components,
    Contact,
    Info,
    License,
    OAuthFlow,
    OAuthFlows,
    OpenApiDefinition,
    OpenApiMetadata,
    SecurityScheme,
    Tag,
)
from apisync.model.endpoint import (
    Callback,
    EncodingObject,
    EndpointDefinition,
    EndpointParameter,
    EndpointResponse,
    ExampleObject,
    Header,
    HttpMethod,
    Link,
    MediaTypeObject,
    ParameterLocation,
    ParameterStyle,
    PathItem,
    ReferenceObject,
    RequestBody,
    SecurityRequirement,
    Server,
    ServerVariable,
)
from apisync.model.schema import (
    Discriminator,
    ExternalDocumentation,
    SchemaDefinition,
    SchemaProperty,
    Xml,
)

__all__ = [
    'Callback',
    'Components',
    'Contact',
    'Discriminator',
    'EncodingObject',
    'EndpointDefinition',
    'EndpointParameter',
    'EndpointResponse',
    'ExampleObject',
    'ExternalDocumentation',
    'Header',
    'HttpMethod',
    'Info',
    'License',
    'Link',
    'MediaTypeObject',
    'OAuthFlow',
    'OAuthFlows',
    'OpenApiDefinition',
    'OpenApiMetadata',
    'ParameterLocation',
    'ParameterStyle',
    'PathItem',
    'ReferenceObject',
    'RequestBody',
    'SchemaDefinition',
    'SchemaProperty',
    'SecurityRequirement',
    'SecurityScheme',
    'Server',
    'ServerVariable',
    'Tag',
    'Xml',
]
