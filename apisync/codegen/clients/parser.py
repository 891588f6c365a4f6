"""Recover endpoints and root metadata from a generated client module.

The implementation class supplies the wire facts: the HTTP method and URL
template from ``self._client.request(...)`` and ``render_path(...)``, and
each parameter's wire name, style and media type from the runtime helper
calls. The interface's docstrings supply everything else as tags.
"""

import ast
import logging

from apisync.codegen.docs import DocBlock, parse_doc_block, parse_doc_text, parse_json_value
from apisync.codegen.toolkit import current_toolkit
from apisync.codegen.type_mapping import type_expression_to_schema
from apisync.model import (
    EncodingObject,
    EndpointDefinition,
    EndpointParameter,
    EndpointResponse,
    ExampleObject,
    HttpMethod,
    MediaTypeObject,
    OpenApiMetadata,
    ParameterLocation,
    RequestBody,
    Server,
)
from apisync.openapi.loader import (
    DocumentReader,
    load_example,
    load_info,
    load_security_scheme,
    load_server,
    load_tag,
)
from apisync.openapi.schema_codec import load_external_docs

__all__ = ['parse_api', 'parse_metadata', 'find_protocol', 'find_implementation', 'is_request_call']

logger = logging.getLogger(__name__)

_STANDARD_METHODS = {m.value for m in HttpMethod if m is not HttpMethod.CUSTOM}


def _call_name(node: ast.AST) -> str | None:
    if isinstance(node, ast.Call):
        if isinstance(node.func, ast.Name):
            return node.func.id
        if isinstance(node.func, ast.Attribute):
            return node.func.attr
    return None


def _constant(node: ast.AST | None):
    if isinstance(node, ast.Constant):
        return node.value
    return None


def _keyword(call: ast.Call, name: str):
    for keyword in call.keywords:
        if keyword.arg == name:
            try:
                return ast.literal_eval(keyword.value)
            except ValueError:
                return None
    return None


def is_request_call(node: ast.AST) -> bool:
    """True for ``self._client.request(...)``."""
    return (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Attribute)
        and node.func.attr == 'request'
        and isinstance(node.func.value, ast.Attribute)
        and node.func.value.attr == '_client'
    )


def find_protocol(tree: ast.Module) -> ast.ClassDef | None:
    for node in tree.body:
        if isinstance(node, ast.ClassDef):
            for base in node.bases:
                name = base.id if isinstance(base, ast.Name) else getattr(base, 'attr', None)
                if name == 'Protocol':
                    return node
    return None


def find_implementation(tree: ast.Module) -> ast.ClassDef | None:
    """The first class with a method that performs a request."""
    for node in tree.body:
        if not isinstance(node, ast.ClassDef) or node is find_protocol(tree):
            continue
        for member in node.body:
            if isinstance(member, ast.AsyncFunctionDef) and any(
                is_request_call(child) for child in ast.walk(member)
            ):
                return node
    return None


def _methods(node: ast.ClassDef | None) -> dict[str, ast.AsyncFunctionDef | ast.FunctionDef]:
    if node is None:
        return {}
    return {
        member.name: member
        for member in node.body
        if isinstance(member, (ast.AsyncFunctionDef, ast.FunctionDef))
    }


# =============================================================================
# Root metadata
# =============================================================================


def _json(block: DocBlock, tag: str):
    value = block.get(tag)
    if value is None:
        return None
    return parse_json_value(value)


def parse_metadata(block: DocBlock) -> OpenApiMetadata:
    """Rebuild root metadata from the interface's docstring tags."""
    info = _json(block, 'info')
    servers = _json(block, 'servers')
    security = _json(block, 'security')
    schemes = _json(block, 'securitySchemes')
    tags = _json(block, 'tags')
    return OpenApiMetadata(
        openapi=block.get('openapi'),
        json_schema_dialect=block.get('jsonSchemaDialect'),
        self_uri=block.get('self'),
        info=load_info(info) if isinstance(info, dict) else None,
        servers=[load_server(s) for s in servers] if isinstance(servers, list) else [],
        security=security if isinstance(security, list) else [],
        security_explicit_empty=security == [],
        tags=[load_tag(t) for t in tags] if isinstance(tags, list) else [],
        external_docs=load_external_docs(_json(block, 'externalDocs')),
        extensions=_json(block, 'extensions') or {},
        paths_extensions=_json(block, 'pathsExtensions') or {},
        webhooks_extensions=_json(block, 'webhooksExtensions') or {},
        security_schemes=(
            {name: load_security_scheme(value) for name, value in schemes.items()}
            if isinstance(schemes, dict)
            else {}
        ),
    )


# =============================================================================
# Signatures
# =============================================================================


class _Argument:
    def __init__(self, name: str, annotation: ast.expr | None, has_default: bool):
        self.name = name
        self.has_default = has_default
        self.deprecated = False
        if (
            isinstance(annotation, ast.Subscript)
            and isinstance(annotation.value, ast.Name)
            and annotation.value.id == 'Annotated'
            and isinstance(annotation.slice, ast.Tuple)
        ):
            elements = annotation.slice.elts
            annotation = elements[0]
            self.deprecated = any(_call_name(e) == 'deprecated' for e in elements[1:])
        self.annotation = annotation

    @property
    def type_text(self) -> str:
        """The annotation, without the ``| None`` an optional argument adds."""
        annotation = self.annotation
        if annotation is None:
            return 'Any'
        if self.has_default and isinstance(annotation, ast.BinOp) and isinstance(annotation.op, ast.BitOr):
            if _is_none(annotation.right):
                annotation = annotation.left
            elif _is_none(annotation.left):
                annotation = annotation.right
        return ast.unparse(annotation)


def _is_none(node: ast.AST) -> bool:
    return isinstance(node, ast.Constant) and node.value is None


def _signature(func: ast.AsyncFunctionDef | ast.FunctionDef) -> list[_Argument]:
    args = func.args
    first_default = len(args.args) - len(args.defaults)
    result = []
    for index, arg in enumerate(args.args):
        if arg.arg != 'self':
            result.append(_Argument(arg.arg, arg.annotation, index >= first_default))
    for arg, default in zip(args.kwonlyargs, args.kw_defaults):
        result.append(_Argument(arg.arg, arg.annotation, default is not None))
    return result


# =============================================================================
# Method bodies
# =============================================================================


class _Binding:
    """One parameter as bound in a method body."""

    def __init__(self, wire_name: str, location: ParameterLocation, value: ast.AST):
        self.wire_name = wire_name
        self.location = location
        self.python_name, self.media_type = _value_ref(value)
        self.style = None
        self.explode = None
        self.allow_reserved = None
        self.allow_empty_value = None

    def read_keywords(self, call: ast.Call, names=('style', 'explode', 'allow_reserved')) -> None:
        for name in names:
            setattr(self, name, _keyword(call, name))


def _value_ref(node: ast.AST) -> tuple[str | None, str | None]:
    if isinstance(node, ast.Name):
        return node.id, None
    name = _call_name(node)
    if name in ('serialize_content', 'format_scalar', 'header_value', 'cookie_value') and node.args:
        inner = node.args[0]
        media = _constant(node.args[1]) if name == 'serialize_content' and len(node.args) > 1 else None
        if isinstance(inner, ast.Name):
            return inner.id, media
    return None, None


class _MethodBody:
    """Wire facts read from one implementation method."""

    def __init__(self, func: ast.AsyncFunctionDef | ast.FunctionDef):
        self.http_method: str | None = None
        self.path: str | None = None
        self.base_url: str | None = None
        self.bindings: list[_Binding] = []
        self.body_expression: ast.AST | None = None
        self.content_type: str | None = None
        self.response_media_type: str | None = None
        empty_values: set[str] = set()

        for node in ast.walk(func):
            if is_request_call(node):
                self.http_method = _constant(node.args[0]) if node.args else None
            elif isinstance(node, ast.Assign) and len(node.targets) == 1:
                self._read_assignment(node.targets[0], node.value)
            elif isinstance(node, ast.Call):
                name = _call_name(node)
                if name == 'query_pairs' and node.args:
                    wire = _constant(node.args[0])
                    if isinstance(wire, str) and len(node.args) > 1:
                        binding = _Binding(wire, ParameterLocation.QUERY, node.args[1])
                        binding.read_keywords(node)
                        self.bindings.append(binding)
                elif name == 'append' and node.args and isinstance(node.args[0], ast.Tuple):
                    elements = node.args[0].elts
                    if len(elements) == 2 and _constant(elements[1]) == '':
                        wire = _constant(elements[0])
                        if isinstance(wire, str):
                            empty_values.add(wire)
            elif isinstance(node, ast.Return) and node.value is not None:
                self._read_return(node.value)

        for binding in self.bindings:
            if binding.location is ParameterLocation.QUERY and binding.wire_name in empty_values:
                binding.allow_empty_value = True

    def _read_url(self, value: ast.AST) -> None:
        if isinstance(value, ast.BinOp) and isinstance(value.op, ast.Add):
            base = _constant(value.left)
            if isinstance(base, str):
                self.base_url = base
            right = value.right
            if isinstance(right, ast.Constant) and isinstance(right.value, str):
                self.path = right.value
            elif _call_name(right) == 'render_path' and right.args:
                self.path = _constant(right.args[0])
                if len(right.args) > 1 and isinstance(right.args[1], ast.Dict):
                    self._read_path_values(right.args[1])
        elif isinstance(value, ast.JoinedStr):
            for part in value.values:
                if not isinstance(part, ast.FormattedValue):
                    continue
                if _call_name(part.value) in ('format_scalar', 'serialize_content'):
                    self.bindings.append(
                        _Binding('', ParameterLocation.QUERYSTRING, part.value)
                    )

    def _read_path_values(self, values: ast.Dict) -> None:
        for key, value in zip(values.keys, values.values):
            wire = _constant(key)
            if not isinstance(wire, str) or _call_name(value) != 'serialize_path_param':
                continue
            if not value.args:
                continue
            binding = _Binding(wire, ParameterLocation.PATH, value.args[0])
            binding.read_keywords(value)
            self.bindings.append(binding)

    def _read_assignment(self, target: ast.AST, value: ast.AST) -> None:
        if isinstance(target, ast.Name):
            if target.id == 'url':
                self._read_url(value)
            elif target.id in ('content', 'files') and not (
                isinstance(value, ast.Constant) and value.value is None
            ):
                self.body_expression = value
            return
        if not (isinstance(target, ast.Subscript) and isinstance(target.value, ast.Name)):
            return
        key = _constant(target.slice)
        if not isinstance(key, str):
            return
        if target.value.id == 'headers':
            if key == 'Content-Type' and isinstance(value, ast.Constant):
                self.content_type = value.value
            elif _call_name(value) in ('header_value', 'serialize_content'):
                binding = _Binding(key, ParameterLocation.HEADER, value)
                binding.read_keywords(value, ('explode',))
                self.bindings.append(binding)
        elif target.value.id == 'cookies':
            if _call_name(value) in ('cookie_value', 'serialize_content'):
                binding = _Binding(key, ParameterLocation.COOKIE, value)
                binding.read_keywords(value, ('explode',))
                self.bindings.append(binding)

    def _read_return(self, value: ast.AST) -> None:
        for node in ast.walk(value):
            name = _call_name(node)
            if name == 'validate_json':
                self.response_media_type = 'application/json'
            elif name == 'decode_json_seq' and len(node.args) > 1:
                self.response_media_type = _constant(node.args[1])
                return
            elif (
                isinstance(node, ast.Attribute)
                and isinstance(node.value, ast.Name)
                and node.value.id == 'response'
                and self.response_media_type is None
            ):
                if node.attr == 'text':
                    self.response_media_type = 'text/plain'
                elif node.attr == 'content':
                    self.response_media_type = 'application/octet-stream'

    def body_media(self) -> tuple[str, dict]:
        """The body's media type and the encoding facets of its encoder call."""
        node = self.body_expression
        facets: dict = {}
        name = _call_name(node)
        media = self.content_type
        if name == 'encode_multipart':
            media = 'multipart/form-data'
            facets = _encoding_facets(node)
        elif name == 'encode_form':
            media = media or 'application/x-www-form-urlencoded'
            facets = _encoding_facets(node)
        elif name in ('encode_json_seq', 'serialize_content') and len(node.args) > 1:
            media = media or _constant(node.args[1])
        elif name == 'encode_json':
            media = media or 'application/json'
        return media or 'application/octet-stream', facets


def _encoding(options) -> EncodingObject | None:
    if not isinstance(options, dict):
        return None
    return EncodingObject(
        content_type=options.get('content_type'),
        style=options.get('style'),
        explode=options.get('explode'),
        allow_reserved=options.get('allow_reserved'),
    )


def _encoding_facets(call: ast.Call) -> dict:
    facets: dict = {}
    if len(call.args) > 1:
        try:
            encodings = ast.literal_eval(call.args[1])
        except ValueError:
            encodings = None
        if isinstance(encodings, dict):
            facets['encoding'] = {name: _encoding(value) for name, value in encodings.items()}
    prefix = _keyword(call, 'prefix_encoding')
    if isinstance(prefix, list):
        facets['prefix_encoding'] = [e for e in (_encoding(value) for value in prefix) if e]
    item = _encoding(_keyword(call, 'item_encoding'))
    if item is not None:
        facets['item_encoding'] = item
    return facets


# =============================================================================
# Endpoints
# =============================================================================


def _param_examples(block: DocBlock) -> tuple[dict[str, ExampleObject], dict[str, dict]]:
    single: dict[str, ExampleObject] = {}
    keyed: dict[str, dict] = {}
    for value in block.get_all('paramExample'):
        name, sep, raw = value.partition(': ')
        if sep:
            single[name] = ExampleObject(value=parse_json_value(raw))
    for value in block.get_all('paramExamples'):
        name, _, raw = value.partition(' ')
        examples = parse_json_value(raw)
        if isinstance(examples, dict):
            keyed[name] = {key: load_example(item) for key, item in examples.items()}
    return single, keyed


def _param_descriptions(block: DocBlock) -> dict[str, str]:
    descriptions = {}
    for value in block.get_all('param'):
        name, _, text = value.partition(' ')
        if name and text:
            descriptions[name] = parse_doc_text(text)
    return descriptions


def _parameters(body: _MethodBody, signature: list[_Argument], block: DocBlock) -> list[EndpointParameter]:
    by_python_name = {binding.python_name: binding for binding in body.bindings}
    descriptions = _param_descriptions(block)
    examples, keyed_examples = _param_examples(block)
    querystring_name = block.get('querystring')
    parameters = []
    for argument in signature:
        binding = by_python_name.get(argument.name)
        if binding is None or argument.name == 'body':
            continue
        wire = binding.wire_name
        if binding.location is ParameterLocation.QUERYSTRING:
            wire = querystring_name or argument.name
        type_text = argument.type_text
        schema = type_expression_to_schema(type_text)
        parameters.append(
            EndpointParameter(
                name=wire,
                type=type_text,
                location=binding.location,
                required=not argument.has_default or binding.location is ParameterLocation.PATH,
                schema=None if binding.media_type else schema,
                content={binding.media_type: MediaTypeObject(schema=schema)} if binding.media_type else {},
                description=descriptions.get(wire),
                deprecated=argument.deprecated,
                allow_empty_value=binding.allow_empty_value,
                style=binding.style,
                explode=binding.explode,
                allow_reserved=binding.allow_reserved,
                example=examples.get(wire),
                examples=keyed_examples.get(wire, {}),
            )
        )
    return parameters


def _request_body(
    body: _MethodBody, signature: list[_Argument], block: DocBlock
) -> tuple[RequestBody | None, str | None]:
    argument = next((a for a in signature if a.name == 'body'), None)
    if argument is None or body.body_expression is None:
        return None, None
    type_text = argument.type_text
    media, facets = body.body_media()
    description = block.get('requestBody')
    request_body = RequestBody(
        description=parse_doc_text(description) if description else None,
        content={media: MediaTypeObject(schema=type_expression_to_schema(type_text), **facets)},
        required=not argument.has_default,
    )
    return request_body, type_text


def _return_type(func: ast.AsyncFunctionDef | ast.FunctionDef) -> str | None:
    returns = func.returns
    if not isinstance(returns, ast.Subscript) or _is_none(returns.slice):
        return None
    return ast.unparse(returns.slice)


def _responses(
    block: DocBlock, body: _MethodBody, func: ast.AsyncFunctionDef | ast.FunctionDef
) -> dict[str, EndpointResponse]:
    media_types: dict[str, list[str]] = {}
    for value in block.get_all('responseContent'):
        code, _, rest = value.partition(' ')
        media_types[code] = [m.strip() for m in rest.split(',') if m.strip()]
    details: dict[str, dict] = {}
    for value in block.get_all('responseDetail'):
        code, _, rest = value.partition(' ')
        detail = parse_json_value(rest)
        if isinstance(detail, dict):
            details[code] = detail

    entries: list[tuple[str, str | None, str | None]] = []
    for value in block.get_all('response'):
        parts = value.split(' ', 2)
        if not parts[0]:
            continue
        type_text = parts[1] if len(parts) > 1 and parts[1] != '-' else None
        description = parse_doc_text(parts[2]) if len(parts) > 2 else None
        entries.append((parts[0], type_text, description))
    if not entries:
        type_text = _return_type(func)
        if type_text is None:
            return {}
        entries.append(('200', type_text, None))

    success = sorted(code for code, _, _ in entries if code.startswith('2'))
    reader = DocumentReader({})
    responses = {}
    for code, type_text, description in entries:
        schema = type_expression_to_schema(type_text) if type_text else None
        media_list = media_types.get(code)
        if media_list is None:
            if type_text is None:
                media_list = []
            elif success and code == success[0] and body.response_media_type:
                media_list = [body.response_media_type]
            else:
                media_list = ['application/json']
        detail = details.get(code, {})
        headers = detail.get('headers') or {}
        links = detail.get('links')
        responses[code] = EndpointResponse(
            status_code=code,
            summary=detail.get('summary'),
            description=description,
            headers={name: reader.header(value) for name, value in headers.items()},
            content={media: MediaTypeObject(schema=schema) for media in media_list},
            type=type_text,
            links={name: reader.link(value) for name, value in links.items()} if links else None,
            extensions={k: v for k, v in detail.items() if k.startswith('x-')},
        )
    return responses


def _is_deprecated(func: ast.AsyncFunctionDef | ast.FunctionDef) -> bool:
    return any(
        _call_name(d) == 'deprecated' or (isinstance(d, ast.Name) and d.id == 'deprecated')
        for d in func.decorator_list
    )


def _parse_method(
    func: ast.AsyncFunctionDef | ast.FunctionDef, doc_source: ast.AST | None
) -> EndpointDefinition | None:
    body = _MethodBody(func)
    if body.http_method is None or body.path is None:
        logger.debug('Skipping method %s: no request found', func.name)
        return None
    block = parse_doc_block(ast.get_docstring(doc_source or func, clean=False))
    signature = _signature(func)

    verb = str(body.http_method)
    if verb.upper() in _STANDARD_METHODS:
        method, custom = HttpMethod(verb.upper()), None
    else:
        method, custom = HttpMethod.CUSTOM, verb

    request_body, body_type = _request_body(body, signature, block)

    see = block.get('see')
    external_docs = None
    if see:
        url, _, description = see.partition(' ')
        external_docs = load_external_docs(
            {'url': url, 'description': parse_doc_text(description) if description else None}
        )

    security = _json(block, 'security')
    servers = _json(block, 'servers')
    callbacks = _json(block, 'callbacks')
    tags = block.get('tag')
    summary = block.get('summary')
    reader = DocumentReader({})

    if isinstance(servers, list):
        server_list = [load_server(s) for s in servers]
    elif body.base_url:
        server_list = [Server(url=body.base_url)]
    else:
        server_list = []

    return EndpointDefinition(
        path=body.path,
        method=method,
        custom_method=custom,
        operation_id=block.get('operationId') or func.name,
        operation_id_explicit=not block.has('operationIdDerived'),
        parameters=_parameters(body, signature, block),
        request_body_type=body_type,
        request_body=request_body,
        responses=_responses(block, body, func),
        summary=parse_doc_text(summary) if summary else None,
        description=block.description,
        external_docs=external_docs,
        tags=[t.strip() for t in tags.split(',') if t.strip()] if tags else [],
        callbacks=(
            {name: reader.callback(value) for name, value in callbacks.items()}
            if isinstance(callbacks, dict)
            else {}
        ),
        deprecated=_is_deprecated(func),
        security=security if isinstance(security, list) else [],
        security_explicit_empty=security == [],
        servers=server_list,
        extensions=_json(block, 'extensions') or {},
    )


def parse_api(text: str) -> tuple[OpenApiMetadata, list[EndpointDefinition]]:
    """Recover root metadata and endpoints from client source.

    Source that is not valid Python, or holds no client classes, yields
    empty metadata and no endpoints.
    """
    with current_toolkit() as toolkit:
        try:
            tree = toolkit.parse(text)
        except SyntaxError as e:
            logger.warning('Cannot parse client source: %s', e)
            return OpenApiMetadata(), []

    protocol = find_protocol(tree)
    implementation = find_implementation(tree)
    metadata = OpenApiMetadata()
    if protocol is not None:
        metadata = parse_metadata(parse_doc_block(ast.get_docstring(protocol, clean=False)))
    if implementation is None:
        logger.debug('No implementation class found')
        return metadata, []

    stubs = _methods(protocol)
    endpoints = []
    for name, func in _methods(implementation).items():
        if name.startswith('__'):
            continue
        endpoint = _parse_method(func, stubs.get(name))
        if endpoint is not None:
            endpoints.append(endpoint)
    logger.debug('Parsed %d endpoint(s) from client source', len(endpoints))
    return metadata, endpoints
