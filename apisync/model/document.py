"""Document-level models: components, root metadata and security."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from apisync.model.endpoint import (
    Callback,
    EndpointParameter,
    EndpointResponse,
    ExampleObject,
    Header,
    Link,
    MediaTypeObject,
    PathItem,
    RequestBody,
    SecurityRequirement,
    Server,
)
from apisync.model.schema import ExternalDocumentation, SchemaDefinition

__all__ = [
    'Contact',
    'License',
    'Info',
    'OAuthFlow',
    'OAuthFlows',
    'SecurityScheme',
    'Tag',
    'Components',
    'OpenApiDefinition',
    'OpenApiMetadata',
]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Contact(_Frozen):
    name: str | None = None
    url: str | None = None
    email: str | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class License(_Frozen):
    name: str
    identifier: str | None = None
    url: str | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class Info(_Frozen):
    title: str
    version: str
    summary: str | None = None
    description: str | None = None
    terms_of_service: str | None = None
    contact: Contact | None = None
    license: License | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class OAuthFlow(_Frozen):
    authorization_url: str | None = None
    token_url: str | None = None
    refresh_url: str | None = None
    scopes: dict[str, str] = Field(default_factory=dict)
    device_authorization_url: str | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class OAuthFlows(_Frozen):
    implicit: OAuthFlow | None = None
    password: OAuthFlow | None = None
    client_credentials: OAuthFlow | None = None
    authorization_code: OAuthFlow | None = None
    device_authorization: OAuthFlow | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class SecurityScheme(_Frozen):
    """How a client authenticates: apiKey, http, oauth2, openIdConnect or mutualTLS."""

    type: str = 'apiKey'
    description: str | None = None
    name: str | None = None
    location: str | None = Field(None, alias='in')
    scheme: str | None = None
    bearer_format: str | None = None
    flows: OAuthFlows | None = None
    open_id_connect_url: str | None = None
    oauth2_metadata_url: str | None = None
    deprecated: bool = False
    extensions: dict[str, Any] = Field(default_factory=dict)


class Tag(_Frozen):
    name: str
    summary: str | None = None
    description: str | None = None
    external_docs: ExternalDocumentation | None = None
    parent: str | None = None
    kind: str | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)


class Components(_Frozen):
    """Document-wide registry of reusable, name-keyed definitions."""

    schemas: dict[str, SchemaDefinition] = Field(default_factory=dict)
    responses: dict[str, EndpointResponse] = Field(default_factory=dict)
    parameters: dict[str, EndpointParameter] = Field(default_factory=dict)
    request_bodies: dict[str, RequestBody] = Field(default_factory=dict)
    headers: dict[str, Header] = Field(default_factory=dict)
    security_schemes: dict[str, SecurityScheme] = Field(default_factory=dict)
    examples: dict[str, ExampleObject] = Field(default_factory=dict)
    links: dict[str, Link] = Field(default_factory=dict)
    callbacks: dict[str, Callback] = Field(default_factory=dict)
    path_items: dict[str, PathItem] = Field(default_factory=dict)
    media_types: dict[str, MediaTypeObject] = Field(default_factory=dict)
    extensions: dict[str, Any] = Field(default_factory=dict)


class OpenApiDefinition(_Frozen):
    """A complete OpenAPI document."""

    openapi: str = '3.2.0'
    info: Info
    json_schema_dialect: str | None = None
    servers: list[Server] = Field(default_factory=list)
    paths: dict[str, PathItem] = Field(default_factory=dict)
    paths_extensions: dict[str, Any] = Field(default_factory=dict)
    webhooks: dict[str, PathItem] = Field(default_factory=dict)
    webhooks_extensions: dict[str, Any] = Field(default_factory=dict)
    components: Components | None = None
    security: list[SecurityRequirement] = Field(default_factory=list)
    security_explicit_empty: bool = False
    tags: list[Tag] = Field(default_factory=list)
    external_docs: ExternalDocumentation | None = None
    self_uri: str | None = Field(None, alias='self')
    extensions: dict[str, Any] = Field(default_factory=dict)

    def metadata(self) -> OpenApiMetadata:
        """Split off the root facets client generation needs."""
        return OpenApiMetadata(
            openapi=self.openapi,
            json_schema_dialect=self.json_schema_dialect,
            self_uri=self.self_uri,
            info=self.info,
            servers=self.servers,
            security=self.security,
            security_explicit_empty=self.security_explicit_empty,
            tags=self.tags,
            external_docs=self.external_docs,
            extensions=self.extensions,
            paths_extensions=self.paths_extensions,
            webhooks_extensions=self.webhooks_extensions,
            security_schemes=(
                self.components.security_schemes if self.components else {}
            ),
        )


class OpenApiMetadata(_Frozen):
    """Root facets of a document without its schema and endpoint payload."""

    openapi: str | None = None
    json_schema_dialect: str | None = None
    self_uri: str | None = Field(None, alias='self')
    info: Info | None = None
    servers: list[Server] = Field(default_factory=list)
    security: list[SecurityRequirement] = Field(default_factory=list)
    security_explicit_empty: bool = False
    tags: list[Tag] = Field(default_factory=list)
    external_docs: ExternalDocumentation | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)
    paths_extensions: dict[str, Any] = Field(default_factory=dict)
    webhooks_extensions: dict[str, Any] = Field(default_factory=dict)
    security_schemes: dict[str, SecurityScheme] = Field(default_factory=dict)
