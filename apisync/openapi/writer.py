"""Rendering the model back into plain JSON/YAML trees.

Every ``dump_*`` function returns plain ``dict``/``list`` values keyed by
the document's camelCase keywords, omitting unset optional members.
"""

from typing import Any

import yaml

from apisync.model import (
    Callback,
    Components,
    EncodingObject,
    EndpointDefinition,
    EndpointParameter,
    EndpointResponse,
    ExampleObject,
    Header,
    Info,
    Link,
    MediaTypeObject,
    OAuthFlow,
    OpenApiDefinition,
    PathItem,
    ReferenceObject,
    RequestBody,
    SecurityScheme,
    Server,
    Tag,
)
from apisync.openapi.schema_codec import dump_external_docs, dump_schema, dump_schema_definition

__all__ = [
    'dump_document',
    'dump_document_text',
    'dump_info',
    'dump_server',
    'dump_tag',
    'dump_security_scheme',
    'dump_parameter',
    'dump_request_body',
    'dump_response',
    'dump_header',
    'dump_media_type',
    'dump_encoding',
    'dump_example',
    'dump_link',
    'dump_callback',
    'dump_operation',
    'dump_path_item',
]


def _put(result: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        result[key] = value


def _reference(reference: ReferenceObject) -> dict[str, Any]:
    result: dict[str, Any] = {'$ref': reference.ref}
    _put(result, 'summary', reference.summary)
    _put(result, 'description', reference.description)
    return result


def dump_server(server: Server) -> dict[str, Any]:
    result: dict[str, Any] = {'url': server.url}
    _put(result, 'description', server.description)
    _put(result, 'name', server.name)
    if server.variables:
        variables = {}
        for name, variable in server.variables.items():
            entry: dict[str, Any] = {'default': variable.default}
            _put(entry, 'enum', variable.enum)
            _put(entry, 'description', variable.description)
            entry.update(variable.extensions)
            variables[name] = entry
        result['variables'] = variables
    result.update(server.extensions)
    return result


def dump_info(info: Info) -> dict[str, Any]:
    result: dict[str, Any] = {'title': info.title, 'version': info.version}
    _put(result, 'summary', info.summary)
    _put(result, 'description', info.description)
    _put(result, 'termsOfService', info.terms_of_service)
    if info.contact is not None:
        contact: dict[str, Any] = {}
        _put(contact, 'name', info.contact.name)
        _put(contact, 'url', info.contact.url)
        _put(contact, 'email', info.contact.email)
        contact.update(info.contact.extensions)
        result['contact'] = contact
    if info.license is not None:
        license_node: dict[str, Any] = {'name': info.license.name}
        _put(license_node, 'identifier', info.license.identifier)
        _put(license_node, 'url', info.license.url)
        license_node.update(info.license.extensions)
        result['license'] = license_node
    result.update(info.extensions)
    return result


def dump_tag(tag: Tag) -> dict[str, Any]:
    result: dict[str, Any] = {'name': tag.name}
    _put(result, 'summary', tag.summary)
    _put(result, 'description', tag.description)
    if tag.external_docs is not None:
        result['externalDocs'] = dump_external_docs(tag.external_docs)
    _put(result, 'parent', tag.parent)
    _put(result, 'kind', tag.kind)
    result.update(tag.extensions)
    return result


def _dump_flow(flow: OAuthFlow) -> dict[str, Any]:
    result: dict[str, Any] = {}
    _put(result, 'authorizationUrl', flow.authorization_url)
    _put(result, 'deviceAuthorizationUrl', flow.device_authorization_url)
    _put(result, 'tokenUrl', flow.token_url)
    _put(result, 'refreshUrl', flow.refresh_url)
    result['scopes'] = dict(flow.scopes)
    result.update(flow.extensions)
    return result


def dump_security_scheme(scheme: SecurityScheme) -> dict[str, Any]:
    result: dict[str, Any] = {'type': scheme.type}
    _put(result, 'description', scheme.description)
    _put(result, 'name', scheme.name)
    _put(result, 'in', scheme.location)
    _put(result, 'scheme', scheme.scheme)
    _put(result, 'bearerFormat', scheme.bearer_format)
    if scheme.flows is not None:
        flows: dict[str, Any] = {}
        for field, key in (
            ('implicit', 'implicit'),
            ('password', 'password'),
            ('client_credentials', 'clientCredentials'),
            ('authorization_code', 'authorizationCode'),
            ('device_authorization', 'deviceAuthorization'),
        ):
            flow = getattr(scheme.flows, field)
            if flow is not None:
                flows[key] = _dump_flow(flow)
        flows.update(scheme.flows.extensions)
        result['flows'] = flows
    _put(result, 'openIdConnectUrl', scheme.open_id_connect_url)
    _put(result, 'oauth2MetadataUrl', scheme.oauth2_metadata_url)
    if scheme.deprecated:
        result['deprecated'] = True
    result.update(scheme.extensions)
    return result


def dump_example(example: ExampleObject) -> dict[str, Any]:
    if example.ref is not None:
        result: dict[str, Any] = {'$ref': example.ref}
        _put(result, 'summary', example.summary)
        _put(result, 'description', example.description)
        return result
    result = {}
    _put(result, 'summary', example.summary)
    _put(result, 'description', example.description)
    _put(result, 'dataValue', example.data_value)
    _put(result, 'serializedValue', example.serialized_value)
    _put(result, 'externalValue', example.external_value)
    _put(result, 'value', example.value)
    result.update(example.extensions)
    return result


def _dump_examples(result: dict[str, Any], example: ExampleObject | None, examples: dict) -> None:
    if example is not None:
        result['example'] = example.value
    if examples:
        result['examples'] = {key: dump_example(value) for key, value in examples.items()}


def dump_encoding(encoding: EncodingObject) -> dict[str, Any]:
    result: dict[str, Any] = {}
    _put(result, 'contentType', encoding.content_type)
    if encoding.headers:
        result['headers'] = {name: dump_header(value) for name, value in encoding.headers.items()}
    if encoding.style is not None:
        result['style'] = encoding.style.value
    _put(result, 'explode', encoding.explode)
    _put(result, 'allowReserved', encoding.allow_reserved)
    if encoding.encoding:
        result['encoding'] = {name: dump_encoding(value) for name, value in encoding.encoding.items()}
    if encoding.prefix_encoding:
        result['prefixEncoding'] = [dump_encoding(value) for value in encoding.prefix_encoding]
    if encoding.item_encoding is not None:
        result['itemEncoding'] = dump_encoding(encoding.item_encoding)
    result.update(encoding.extensions)
    return result


def dump_media_type(media: MediaTypeObject) -> dict[str, Any]:
    if media.reference is not None:
        return _reference(media.reference)
    if media.ref is not None:
        return {'$ref': media.ref}
    result: dict[str, Any] = {}
    if media.schema_ is not None:
        result['schema'] = dump_schema(media.schema_)
    if media.item_schema is not None:
        result['itemSchema'] = dump_schema(media.item_schema)
    _dump_examples(result, media.example, media.examples)
    if media.encoding:
        result['encoding'] = {name: dump_encoding(value) for name, value in media.encoding.items()}
    if media.prefix_encoding:
        result['prefixEncoding'] = [dump_encoding(value) for value in media.prefix_encoding]
    if media.item_encoding is not None:
        result['itemEncoding'] = dump_encoding(media.item_encoding)
    result.update(media.extensions)
    return result


def _dump_content(content: dict[str, MediaTypeObject]) -> dict[str, Any]:
    return {media: dump_media_type(value) for media, value in content.items()}


def dump_header(header: Header) -> dict[str, Any]:
    if header.reference is not None:
        return _reference(header.reference)
    result: dict[str, Any] = {}
    _put(result, 'description', header.description)
    if header.required:
        result['required'] = True
    if header.deprecated:
        result['deprecated'] = True
    if header.style is not None and header.style.value != 'simple':
        result['style'] = header.style.value
    if header.explode:
        result['explode'] = True
    if header.schema_ is not None:
        result['schema'] = dump_schema(header.schema_)
    if header.content:
        result['content'] = _dump_content(header.content)
    _dump_examples(result, header.example, header.examples)
    result.update(header.extensions)
    return result


def dump_parameter(parameter: EndpointParameter) -> dict[str, Any]:
    if parameter.reference is not None:
        return _reference(parameter.reference)
    result: dict[str, Any] = {'name': parameter.name, 'in': parameter.location.value}
    _put(result, 'description', parameter.description)
    if parameter.required or parameter.location.value == 'path':
        result['required'] = True
    if parameter.deprecated:
        result['deprecated'] = True
    _put(result, 'allowEmptyValue', parameter.allow_empty_value)
    if parameter.style is not None:
        result['style'] = parameter.style.value
    _put(result, 'explode', parameter.explode)
    _put(result, 'allowReserved', parameter.allow_reserved)
    if parameter.schema_ is not None:
        result['schema'] = dump_schema(parameter.schema_)
    if parameter.content:
        result['content'] = _dump_content(parameter.content)
    _dump_examples(result, parameter.example, parameter.examples)
    result.update(parameter.extensions)
    return result


def dump_request_body(body: RequestBody) -> dict[str, Any]:
    if body.reference is not None:
        return _reference(body.reference)
    result: dict[str, Any] = {}
    _put(result, 'description', body.description)
    result['content'] = _dump_content(body.content)
    if body.required:
        result['required'] = True
    result.update(body.extensions)
    return result


def dump_link(link: Link) -> dict[str, Any]:
    if link.reference is not None:
        return _reference(link.reference)
    result: dict[str, Any] = {}
    _put(result, 'operationRef', link.operation_ref)
    _put(result, 'operationId', link.operation_id)
    if link.parameters:
        result['parameters'] = dict(link.parameters)
    _put(result, 'requestBody', link.request_body)
    _put(result, 'description', link.description)
    if link.server is not None:
        result['server'] = dump_server(link.server)
    result.update(link.extensions)
    return result


def dump_response(response: EndpointResponse) -> dict[str, Any]:
    if response.reference is not None:
        return _reference(response.reference)
    result: dict[str, Any] = {}
    _put(result, 'summary', response.summary)
    _put(result, 'description', response.description)
    if response.headers:
        result['headers'] = {name: dump_header(value) for name, value in response.headers.items()}
    if response.content:
        result['content'] = _dump_content(response.content)
    if response.links:
        result['links'] = {name: dump_link(value) for name, value in response.links.items()}
    result.update(response.extensions)
    return result


def dump_callback(callback: Callback) -> dict[str, Any]:
    if callback.reference is not None:
        return _reference(callback.reference)
    result: dict[str, Any] = {
        expression: dump_path_item(item) for expression, item in callback.expressions.items()
    }
    result.update(callback.extensions)
    return result


def dump_operation(endpoint: EndpointDefinition) -> dict[str, Any]:
    result: dict[str, Any] = {}
    if endpoint.tags:
        result['tags'] = list(endpoint.tags)
    _put(result, 'summary', endpoint.summary)
    _put(result, 'description', endpoint.description)
    if endpoint.external_docs is not None:
        result['externalDocs'] = dump_external_docs(endpoint.external_docs)
    if endpoint.operation_id_explicit:
        result['operationId'] = endpoint.operation_id
    if endpoint.parameters:
        result['parameters'] = [dump_parameter(value) for value in endpoint.parameters]
    if endpoint.request_body is not None:
        result['requestBody'] = dump_request_body(endpoint.request_body)
    result['responses'] = {
        code: dump_response(value) for code, value in endpoint.responses.items()
    }
    if endpoint.callbacks:
        result['callbacks'] = {name: dump_callback(value) for name, value in endpoint.callbacks.items()}
    if endpoint.deprecated:
        result['deprecated'] = True
    if endpoint.security or endpoint.security_explicit_empty:
        result['security'] = [dict(requirement) for requirement in endpoint.security]
    if endpoint.servers:
        result['servers'] = [dump_server(value) for value in endpoint.servers]
    result.update(endpoint.extensions)
    return result


def dump_path_item(item: PathItem) -> dict[str, Any]:
    result: dict[str, Any] = {}
    _put(result, '$ref', item.ref)
    _put(result, 'summary', item.summary)
    _put(result, 'description', item.description)
    for method, verb, endpoint in item.operations():
        if verb is None:
            result[method.value.lower()] = dump_operation(endpoint)
    if item.additional_operations:
        result['additionalOperations'] = {
            verb: dump_operation(endpoint) for verb, endpoint in item.additional_operations.items()
        }
    if item.servers:
        result['servers'] = [dump_server(value) for value in item.servers]
    if item.parameters:
        result['parameters'] = [dump_parameter(value) for value in item.parameters]
    result.update(item.extensions)
    return result


def dump_components(components: Components) -> dict[str, Any]:
    result: dict[str, Any] = {}
    sections = (
        ('schemas', components.schemas, dump_schema_definition),
        ('responses', components.responses, dump_response),
        ('parameters', components.parameters, dump_parameter),
        ('examples', components.examples, dump_example),
        ('requestBodies', components.request_bodies, dump_request_body),
        ('headers', components.headers, dump_header),
        ('securitySchemes', components.security_schemes, dump_security_scheme),
        ('links', components.links, dump_link),
        ('callbacks', components.callbacks, dump_callback),
        ('pathItems', components.path_items, dump_path_item),
        ('mediaTypes', components.media_types, dump_media_type),
    )
    for key, entries, dump in sections:
        if entries:
            result[key] = {name: dump(value) for name, value in entries.items()}
    result.update(components.extensions)
    return result


def dump_document(definition: OpenApiDefinition) -> dict[str, Any]:
    """Render a complete document as a plain tree."""
    result: dict[str, Any] = {'openapi': definition.openapi}
    _put(result, '$self', definition.self_uri)
    result['info'] = dump_info(definition.info)
    _put(result, 'jsonSchemaDialect', definition.json_schema_dialect)
    if definition.servers:
        result['servers'] = [dump_server(value) for value in definition.servers]
    if definition.paths or definition.paths_extensions:
        paths = {key: dump_path_item(item) for key, item in definition.paths.items()}
        paths.update(definition.paths_extensions)
        result['paths'] = paths
    if definition.webhooks or definition.webhooks_extensions:
        webhooks = {key: dump_path_item(item) for key, item in definition.webhooks.items()}
        webhooks.update(definition.webhooks_extensions)
        result['webhooks'] = webhooks
    if definition.components is not None:
        result['components'] = dump_components(definition.components)
    if definition.security or definition.security_explicit_empty:
        result['security'] = [dict(requirement) for requirement in definition.security]
    if definition.tags:
        result['tags'] = [dump_tag(value) for value in definition.tags]
    if definition.external_docs is not None:
        result['externalDocs'] = dump_external_docs(definition.external_docs)
    result.update(definition.extensions)
    return result


def dump_document_text(definition: OpenApiDefinition) -> str:
    """Render a document as YAML, keeping key order."""
    return yaml.safe_dump(dump_document(definition), sort_keys=False, allow_unicode=True)
