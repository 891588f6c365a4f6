"""Client generation: endpoint definitions to an async httpx client module.

A generated module holds:

* ``<Api>Protocol``: the interface, one documented ``async def`` stub per
  endpoint, with the document's root metadata as tags on the class,
* ``<Api>``: the implementation, whose method bodies call
  :mod:`apisync.runtime` helpers and ``self._client.request(...)``,
* ``create_<api>()``: a factory that installs credentials and TLS settings
  on a new ``httpx.AsyncClient``, plus OAuth 2.0 helpers per oauth2 scheme.
"""

import ast
import logging
import textwrap
from collections.abc import Iterable

from apisync import runtime
from apisync.codegen.ast_utils import (
    ImportCollector,
    _argument,
    _assign,
    _async_func,
    _call,
    _class,
    _docstring,
    _name,
    _parse_expr,
    _subscript,
    _union_expr,
    annotation_imports,
)
from apisync.codegen.docs import description_lines, render_doc_value, render_json
from apisync.codegen.toolkit import current_toolkit
from apisync.codegen.utils import class_name, sanitize_parameter_field_name, to_snake_case
from apisync.exceptions import ValidationError
from apisync.model import (
    EncodingObject,
    EndpointDefinition,
    EndpointParameter,
    MediaTypeObject,
    OpenApiMetadata,
    ParameterLocation,
    ParameterStyle,
    SecurityScheme,
)
from apisync.openapi.media import (
    choose_body_media_type,
    choose_response_media_type,
    specificity,
)
from apisync.openapi.writer import (
    dump_callback,
    dump_example,
    dump_header,
    dump_info,
    dump_link,
    dump_security_scheme,
    dump_server,
    dump_tag,
)
from apisync.openapi.schema_codec import dump_external_docs
from apisync.runtime.codecs import is_json_media_type, is_json_seq_media_type

__all__ = [
    'ClientMethod',
    'generate_api',
    'plan_methods',
    'build_protocol_method',
    'build_implementation_method',
    'module_imports',
    'validate_endpoint',
    'endpoint_doc_lines',
    'CLIENT_DOCSTRING',
]

logger = logging.getLogger(__name__)

CLIENT_DOCSTRING = 'Generated API client from OpenAPI schema.'
RUNTIME_MODULE = 'apisync.runtime'
ROOT_BASE_URL = '/'
DEPRECATION_MESSAGE = 'Deprecated'

# Locals of generated method bodies; parameters get a '_' suffix instead.
_BODY_LOCALS = {
    'self',
    'body',
    'url',
    'params',
    'headers',
    'cookies',
    'content',
    'files',
    'response',
    'exc',
}

_IMPORT_SOURCES = {
    'Annotated': 'typing',
    'Any': 'typing',
    'Never': 'typing',
    'Protocol': 'typing',
    'Callable': 'collections.abc',
    'SSLContext': 'ssl',
    'AsyncClient': 'httpx',
    'TypeAdapter': 'pydantic',
    'deprecated': 'typing_extensions',
    'datetime': 'datetime',
    'date': 'datetime',
}

_RUNTIME_NAMES = set(runtime.__all__)

MULTIPART_FORM = 'multipart/form-data'
FORM_URLENCODED = 'application/x-www-form-urlencoded'


def _stmts(source: str) -> list[ast.stmt]:
    return ast.parse(textwrap.dedent(source)).body


def _type_expr(text: str | None) -> ast.expr:
    if not text:
        return _name('Any')
    try:
        return _parse_expr(text)
    except SyntaxError:
        logger.warning('Unparseable type expression %r, using Any', text)
        return _name('Any')


def _deprecated() -> ast.expr:
    return _call(_name('deprecated'), [ast.Constant(value=DEPRECATION_MESSAGE)])


def validate_endpoint(endpoint: EndpointDefinition) -> None:
    """Reject parameter combinations that cannot be generated.

    Raises:
        ValidationError: For a querystring parameter next to query
            parameters, more than one querystring parameter, a non-string
            querystring parameter, or a parameter with both style and content.
    """
    name = endpoint.operation_id
    query = [p for p in endpoint.parameters if p.location is ParameterLocation.QUERY]
    raw = [p for p in endpoint.parameters if p.location is ParameterLocation.QUERYSTRING]
    if raw and query:
        raise ValidationError(
            name, 'a querystring parameter cannot be combined with query parameters'
        )
    if len(raw) > 1:
        raise ValidationError(name, 'only one querystring parameter is allowed')
    for parameter in raw:
        if parameter.type != 'str':
            raise ValidationError(
                name,
                f"querystring parameter '{parameter.name}' must be a string, not {parameter.type}",
            )
    for parameter in endpoint.parameters:
        if parameter.style is not None and parameter.content:
            raise ValidationError(
                name, f"parameter '{parameter.name}' declares both style and content"
            )


class ClientArgument:
    """A method argument bound to one endpoint parameter."""

    def __init__(self, parameter: EndpointParameter, python_name: str):
        self.parameter = parameter
        self.python_name = python_name

    @property
    def required(self) -> bool:
        return self.parameter.required or self.parameter.location is ParameterLocation.PATH

    @property
    def content_media_type(self) -> str | None:
        return next(iter(self.parameter.content), None)

    def annotation(self) -> ast.expr:
        annotation = _type_expr(self.parameter.type)
        if not self.required:
            annotation = _union_expr([annotation, ast.Constant(value=None)])
        if self.parameter.deprecated:
            annotation = _subscript(
                'Annotated', ast.Tuple(elts=[annotation, _deprecated()], ctx=ast.Load())
            )
        return annotation

    def value_source(self) -> str:
        """The argument, routed through its media type when it has content."""
        media = self.content_media_type
        if media is not None:
            return f'serialize_content({self.python_name}, {media!r})'
        return self.python_name


class ClientMethod:
    """Everything needed to emit one endpoint as an interface/implementation pair."""

    def __init__(self, endpoint: EndpointDefinition, name: str):
        self.endpoint = endpoint
        self.name = name
        used = set(_BODY_LOCALS)
        self.arguments: list[ClientArgument] = []
        for parameter in endpoint.parameters:
            python_name = sanitize_parameter_field_name(parameter.name)
            while python_name in used:
                python_name = f'{python_name}_'
            used.add(python_name)
            self.arguments.append(ClientArgument(parameter, python_name))

        body = endpoint.request_body
        self.body_media_type: str | None = None
        self.body_media: MediaTypeObject | None = None
        if body is not None and body.content:
            self.body_media_type = choose_body_media_type(body.content)
            self.body_media = body.content[self.body_media_type]
        elif endpoint.request_body_type:
            self.body_media_type = 'application/json'
        self.body_type = endpoint.request_body_type or 'Any'
        self.body_required = body.required if body is not None else True

        self.response_type = endpoint.response_type
        self.response_media_type: str | None = None
        status = endpoint.success_status
        if status is not None:
            self.response_media_type = choose_response_media_type(endpoint.responses[status].content)

    @property
    def has_body(self) -> bool:
        return self.body_media_type is not None

    def by_location(self, location: ParameterLocation) -> list[ClientArgument]:
        return [a for a in self.arguments if a.parameter.location is location]

    def type_expressions(self) -> list[str]:
        types = [a.parameter.type for a in self.arguments]
        if self.has_body:
            types.append(self.body_type)
        if self.response_type:
            types.append(self.response_type)
        return types


def plan_methods(endpoints: Iterable[EndpointDefinition]) -> list[ClientMethod]:
    """Assign a unique snake_case method name to every endpoint."""
    methods = []
    used: set[str] = {'__init__'}
    for endpoint in endpoints:
        base = sanitize_parameter_field_name(to_snake_case(endpoint.operation_id) or 'call')
        name = base
        counter = 2
        while name in used:
            name = f'{base}_{counter}'
            counter += 1
        used.add(name)
        methods.append(ClientMethod(endpoint, name))
    return methods


# =============================================================================
# Documentation tags
# =============================================================================


def endpoint_doc_lines(endpoint: EndpointDefinition) -> list[str]:
    """Description text followed by one tag per facet of the endpoint."""
    lines = description_lines(endpoint.description)
    tags: list[str] = []
    if endpoint.summary:
        tags.append(f'@summary {render_doc_value(endpoint.summary)}')
    tags.append(f'@operationId {endpoint.operation_id}')
    if not endpoint.operation_id_explicit:
        tags.append('@operationIdDerived')
    if endpoint.tags:
        tags.append(f'@tag {", ".join(endpoint.tags)}')
    if endpoint.external_docs is not None:
        see = f'@see {endpoint.external_docs.url}'
        if endpoint.external_docs.description:
            see += f' {render_doc_value(endpoint.external_docs.description)}'
        tags.append(see)
    for parameter in endpoint.parameters:
        if parameter.location is ParameterLocation.QUERYSTRING:
            tags.append(f'@querystring {parameter.name}')
        if parameter.description:
            tags.append(f'@param {parameter.name} {render_doc_value(parameter.description)}')
        if parameter.example is not None:
            tags.append(f'@paramExample {parameter.name}: {render_json(parameter.example.value)}')
        if parameter.examples:
            examples = {key: dump_example(value) for key, value in parameter.examples.items()}
            tags.append(f'@paramExamples {parameter.name} {render_json(examples)}')
    if endpoint.request_body is not None and endpoint.request_body.description:
        tags.append(f'@requestBody {render_doc_value(endpoint.request_body.description)}')
    for code, response in endpoint.responses.items():
        type_text = (response.type or '-').replace(' ', '')
        line = f'@response {code} {type_text}'
        if response.description:
            line += f' {render_doc_value(response.description)}'
        tags.append(line)
        if response.content:
            tags.append(f'@responseContent {code} {", ".join(response.content)}')
        detail: dict = {}
        if response.summary:
            detail['summary'] = response.summary
        if response.headers:
            detail['headers'] = {k: dump_header(v) for k, v in response.headers.items()}
        if response.links:
            detail['links'] = {k: dump_link(v) for k, v in response.links.items()}
        detail.update(response.extensions)
        if detail:
            tags.append(f'@responseDetail {code} {render_json(detail)}')
    if endpoint.security or endpoint.security_explicit_empty:
        tags.append(f'@security {render_json(endpoint.security)}')
    if endpoint.servers:
        tags.append(f'@servers {render_json([dump_server(s) for s in endpoint.servers])}')
    if endpoint.callbacks:
        callbacks = {k: dump_callback(v) for k, v in endpoint.callbacks.items()}
        tags.append(f'@callbacks {render_json(callbacks)}')
    if endpoint.extensions:
        tags.append(f'@extensions {render_json(endpoint.extensions)}')
    if lines:
        lines.append('')
    return lines + tags


def metadata_doc_lines(metadata: OpenApiMetadata | None, api_name: str) -> list[str]:
    if metadata is None:
        return [f'{api_name} API.']
    title = metadata.info.title if metadata.info and metadata.info.title else api_name
    lines = [f'{title} API.', '']
    if metadata.openapi:
        lines.append(f'@openapi {metadata.openapi}')
    if metadata.info is not None:
        lines.append(f'@info {render_json(dump_info(metadata.info))}')
    if metadata.json_schema_dialect:
        lines.append(f'@jsonSchemaDialect {metadata.json_schema_dialect}')
    if metadata.self_uri:
        lines.append(f'@self {metadata.self_uri}')
    if metadata.servers:
        lines.append(f'@servers {render_json([dump_server(s) for s in metadata.servers])}')
    if metadata.security or metadata.security_explicit_empty:
        lines.append(f'@security {render_json(metadata.security)}')
    if metadata.security_schemes:
        schemes = {k: dump_security_scheme(v) for k, v in metadata.security_schemes.items()}
        lines.append(f'@securitySchemes {render_json(schemes)}')
    if metadata.tags:
        lines.append(f'@tags {render_json([dump_tag(t) for t in metadata.tags])}')
    if metadata.external_docs is not None:
        lines.append(f'@externalDocs {render_json(dump_external_docs(metadata.external_docs))}')
    if metadata.extensions:
        lines.append(f'@extensions {render_json(metadata.extensions)}')
    if metadata.paths_extensions:
        lines.append(f'@pathsExtensions {render_json(metadata.paths_extensions)}')
    if metadata.webhooks_extensions:
        lines.append(f'@webhooksExtensions {render_json(metadata.webhooks_extensions)}')
    return lines


# =============================================================================
# Methods
# =============================================================================


def _signature(method: ClientMethod) -> tuple[list[ast.arg], list[ast.expr]]:
    required = [a for a in method.arguments if a.required]
    optional = [a for a in method.arguments if not a.required]
    args = [_argument('self')]
    defaults: list[ast.expr] = []
    args.extend(_argument(a.python_name, a.annotation()) for a in required)
    if method.has_body and method.body_required:
        args.append(_argument('body', _type_expr(method.body_type)))
    for argument in optional:
        args.append(_argument(argument.python_name, argument.annotation()))
        defaults.append(ast.Constant(value=None))
    if method.has_body and not method.body_required:
        args.append(
            _argument('body', _union_expr([_type_expr(method.body_type), ast.Constant(value=None)]))
        )
        defaults.append(ast.Constant(value=None))
    return args, defaults


def _returns(method: ClientMethod) -> ast.expr:
    inner = _type_expr(method.response_type) if method.response_type else ast.Constant(value=None)
    return _subscript('ApiResult', inner)


def _decorators(method: ClientMethod) -> list[ast.expr]:
    return [_deprecated()] if method.endpoint.deprecated else []


def build_protocol_method(method: ClientMethod, doc_indent: str = '        ') -> ast.AsyncFunctionDef:
    """Build the documented interface stub for one endpoint."""
    args, defaults = _signature(method)
    body: list[ast.stmt] = [
        _docstring(endpoint_doc_lines(method.endpoint), indent=doc_indent),
        ast.Expr(value=ast.Constant(value=Ellipsis)),
    ]
    return _async_func(
        method.name,
        args,
        body,
        returns=_returns(method),
        defaults=defaults,
        decorators=_decorators(method),
    )


def _keywords(**values) -> str:
    return ''.join(f', {key}={value!r}' for key, value in values.items() if value is not None)


# explode values the runtime serializers assume when the keyword is left out
_RUNTIME_EXPLODE = {
    ParameterLocation.PATH: False,
    ParameterLocation.QUERY: True,
    ParameterLocation.HEADER: False,
    ParameterLocation.COOKIE: True,
}


def _explode(parameter: EndpointParameter) -> bool | None:
    """The explode keyword to emit, or None when the runtime default applies.

    An unset ``explode`` defaults to true for the ``form`` style only, and
    query and cookie parameters without a style use ``form``.
    """
    if parameter.explode is not None:
        return parameter.explode
    if parameter.style is None:
        explode = parameter.location in (ParameterLocation.QUERY, ParameterLocation.COOKIE)
    else:
        explode = parameter.style is ParameterStyle.FORM
    if explode == _RUNTIME_EXPLODE.get(parameter.location):
        return None
    return explode


def _path_value(argument: ClientArgument) -> str:
    parameter = argument.parameter
    return (
        f'serialize_path_param({argument.value_source()}, name={parameter.name!r}'
        + _keywords(
            style=parameter.style.value if parameter.style else None,
            explode=_explode(parameter),
            allow_reserved=parameter.allow_reserved,
        )
        + ')'
    )


def _url_statement(method: ClientMethod) -> ast.stmt:
    endpoint = method.endpoint
    if endpoint.servers:
        base = repr(endpoint.servers[0].resolved_url().rstrip('/'))
    else:
        base = 'self._base_url'
    path_args = method.by_location(ParameterLocation.PATH)
    if not path_args:
        return _stmts(f'url = {base} + {endpoint.path!r}')[0]
    entries = ', '.join(f'{a.parameter.name!r}: {_path_value(a)}' for a in path_args)
    return _stmts(f'url = {base} + render_path({endpoint.path!r}, {{{entries}}})')[0]


def _guard(argument: ClientArgument, statements: list[ast.stmt]) -> list[ast.stmt]:
    if argument.required:
        return statements
    test = ast.Compare(
        left=_name(argument.python_name), ops=[ast.IsNot()], comparators=[ast.Constant(value=None)]
    )
    return [ast.If(test=test, body=statements, orelse=[])]


def _query_statements(argument: ClientArgument) -> list[ast.stmt]:
    parameter = argument.parameter
    bind = (
        f'params.extend(query_pairs({parameter.name!r}, {argument.value_source()}'
        + _keywords(
            style=parameter.style.value if parameter.style else None,
            explode=_explode(parameter),
            allow_reserved=parameter.allow_reserved,
        )
        + '))'
    )
    if parameter.allow_empty_value:
        name = argument.python_name
        return _stmts(
            f"if {name} == '':\n"
            f"    params.append(({parameter.name!r}, ''))\n"
            f'elif {name} is not None:\n'
            f'    {bind}\n'
        )
    return _guard(argument, _stmts(bind))


def _querystring_statements(argument: ClientArgument) -> list[ast.stmt]:
    if argument.content_media_type is not None:
        value = _parse_expr(argument.value_source())
    else:
        value = _call(_name('format_scalar'), [_name(argument.python_name)])
    joined = ast.JoinedStr(
        values=[
            ast.FormattedValue(value=_name('url'), conversion=-1),
            ast.Constant(value='?'),
            ast.FormattedValue(value=value, conversion=-1),
        ]
    )
    return _guard(argument, [_assign(_name('url'), joined)])


def _header_statements(argument: ClientArgument) -> list[ast.stmt]:
    parameter = argument.parameter
    if argument.content_media_type is not None:
        value = argument.value_source()
    else:
        value = f'header_value({argument.python_name}{_keywords(explode=_explode(parameter))})'
    return _guard(argument, _stmts(f'headers[{parameter.name!r}] = {value}'))


def _cookie_statements(argument: ClientArgument) -> list[ast.stmt]:
    parameter = argument.parameter
    if argument.content_media_type is not None:
        value = argument.value_source()
    else:
        value = f'cookie_value({argument.python_name}{_keywords(explode=_explode(parameter))})'
    return _guard(argument, _stmts(f'cookies[{parameter.name!r}] = {value}'))


def _encoding_options(encoding: EncodingObject) -> dict:
    options = {}
    if encoding.content_type is not None:
        options['content_type'] = encoding.content_type
    if encoding.style is not None:
        options['style'] = encoding.style.value
    if encoding.explode is not None:
        options['explode'] = encoding.explode
    if encoding.allow_reserved is not None:
        options['allow_reserved'] = encoding.allow_reserved
    return options


def _field_encodings(media: MediaTypeObject | None) -> str:
    if media is None or not media.encoding:
        return ''
    return f', {({name: _encoding_options(value) for name, value in media.encoding.items()})!r}'


def _body_statements(method: ClientMethod) -> tuple[list[ast.stmt], str | None]:
    """Statements encoding ``body`` and the request keyword receiving it."""
    media_type = method.body_media_type
    if media_type is None:
        return [], None
    media = method.body_media
    essence = media_type.split(';', 1)[0].strip().lower()
    target = 'content'
    header = media_type
    if essence.startswith('multipart/'):
        target = 'files'
        header = None
        expression = f'encode_multipart(body{_field_encodings(media)}'
        if media is not None and media.prefix_encoding:
            prefix = [_encoding_options(e) for e in media.prefix_encoding]
            expression += f', prefix_encoding={prefix!r}'
        if media is not None and media.item_encoding is not None:
            expression += f', item_encoding={_encoding_options(media.item_encoding)!r}'
        expression += ')'
    elif essence == FORM_URLENCODED:
        expression = f'encode_form(body{_field_encodings(media)})'
    elif is_json_seq_media_type(essence):
        expression = f'encode_json_seq(body, {media_type!r})'
    elif specificity(essence) < 2:
        expression = f'serialize_content(body, {media_type!r})'
        header = None
    elif is_json_media_type(essence):
        expression = 'encode_json(body)'
    elif method.body_type == 'bytes':
        expression = 'body'
    else:
        expression = f'serialize_content(body, {media_type!r})'

    lines = [f'{target} = {expression}']
    if header is not None:
        lines.append(f"headers['Content-Type'] = {header!r}")
    if method.body_required:
        return _stmts('\n'.join(lines)), target
    indented = '\n'.join(f'    {line}' for line in lines)
    return _stmts(f'{target} = None\nif body is not None:\n{indented}'), target


def _return_statement(method: ClientMethod) -> ast.stmt:
    type_text = method.response_type
    media = method.response_media_type
    if not type_text or type_text == 'None':
        source = 'return ApiResult.success(None)'
    elif type_text == 'bytes':
        source = 'return ApiResult.success(response.content)'
    elif media is not None and is_json_seq_media_type(media):
        source = (
            f'return ApiResult.success(TypeAdapter({type_text})'
            f'.validate_python(decode_json_seq(response.text, {media!r})))'
        )
    elif media is None or is_json_media_type(media):
        source = f'return ApiResult.success(TypeAdapter({type_text}).validate_json(response.content))'
    else:
        source = f'return ApiResult.success(TypeAdapter({type_text}).validate_python(response.text))'
    return _stmts(source)[0]


def build_implementation_method(method: ClientMethod) -> ast.AsyncFunctionDef:
    """Build the method that performs the request for one endpoint."""
    statements: list[ast.stmt] = [_url_statement(method)]

    query = method.by_location(ParameterLocation.QUERY)
    if query:
        statements.extend(_stmts('params: list[tuple[str, str]] = []'))
        for argument in query:
            statements.extend(_query_statements(argument))
        statements.extend(_stmts("if params:\n    url = f'{url}?{encode_query(params)}'"))
    for argument in method.by_location(ParameterLocation.QUERYSTRING):
        statements.extend(_querystring_statements(argument))

    statements.extend(_stmts('headers: dict[str, str] = {}'))
    for argument in method.by_location(ParameterLocation.HEADER):
        statements.extend(_header_statements(argument))
    cookies = method.by_location(ParameterLocation.COOKIE)
    if cookies:
        statements.extend(_stmts('cookies: dict[str, str] = {}'))
        for argument in cookies:
            statements.extend(_cookie_statements(argument))
        statements.extend(
            _stmts(
                "if cookies:\n"
                "    headers['Cookie'] = '; '.join((f'{key}={value}' for key, value in cookies.items()))"
            )
        )

    body_statements, body_keyword = _body_statements(method)
    statements.extend(body_statements)

    request = f'response = await self._client.request({method.endpoint.method_name!r}, url, headers=headers'
    if body_keyword is not None:
        request += f', {body_keyword}={body_keyword}'
    statements.extend(_stmts(request + ')'))
    statements.extend(_stmts('response.raise_for_status()'))
    statements.append(_return_statement(method))

    handler = ast.ExceptHandler(
        type=_name('Exception'),
        name='exc',
        body=_stmts('return ApiResult.failure(ApiError.wrap(exc))'),
    )
    body = [ast.Try(body=statements, handlers=[handler], orelse=[], finalbody=[])]
    args, defaults = _signature(method)
    logger.debug('Built client method %s for %s %s', method.name, method.endpoint.method_name, method.endpoint.path)
    return _async_func(
        method.name,
        args,
        body,
        returns=_returns(method),
        defaults=defaults,
        decorators=_decorators(method),
    )


# =============================================================================
# Classes, factory and auth helpers
# =============================================================================


def _init_method() -> ast.FunctionDef:
    return _stmts(
        'def __init__(self, client: AsyncClient, base_url: str = DEFAULT_BASE_URL):\n'
        '    self._client = client\n'
        "    self._base_url = base_url.rstrip('/')\n"
    )[0]


def _scheme_argument(name: str, scheme: SecurityScheme) -> tuple[str, str, str] | None:
    """``(argument, annotation, auth expression)`` for a security scheme."""
    base = sanitize_parameter_field_name(name)
    kind = scheme.type
    http_scheme = (scheme.scheme or '').lower()
    if kind in ('oauth2', 'openIdConnect') or (kind == 'http' and http_scheme == 'bearer'):
        argument = f'{base}_token'
        return argument, 'str | CredentialProvider | None', f'BearerAuth({argument})'
    if kind == 'http' and http_scheme == 'basic':
        argument = f'{base}_credentials'
        return (
            argument,
            'tuple[str, str] | Callable[[], tuple[str, str] | None] | None',
            f'BasicAuth({argument})',
        )
    if kind == 'apiKey':
        argument = f'{base}_key'
        return (
            argument,
            'str | CredentialProvider | None',
            f'ApiKeyAuth({scheme.name or name!r}, {scheme.location or "header"!r}, {argument})',
        )
    if kind != 'mutualTLS':
        logger.debug('Security scheme %s (%s %s) has no client support', name, kind, http_scheme)
    return None


def _factory(api_name: str, metadata: OpenApiMetadata | None) -> ast.FunctionDef:
    schemes = metadata.security_schemes if metadata else {}
    arguments = []
    for name, scheme in schemes.items():
        entry = _scheme_argument(name, scheme)
        if entry is not None:
            arguments.append(entry)

    signature = ['base_url: str = DEFAULT_BASE_URL', '*']
    signature += [f'{argument}: {annotation} = None' for argument, annotation, _ in arguments]
    signature += [
        'tls: TlsConfig | None = None',
        'configure_tls: Callable[[SSLContext], None] | None = None',
        'client: AsyncClient | None = None',
    ]
    lines = [
        f'def create_{to_snake_case(api_name)}({", ".join(signature)}) -> {class_name(api_name)}:',
        f'    """Create a {class_name(api_name)} client.',
        '',
        '    A ``client`` passed in is used as-is. Otherwise a new one is built with',
        '    the given credentials and TLS settings.',
        '    """',
        '    if client is None:',
        '        auths = []',
    ]
    for argument, _, expression in arguments:
        lines.append(f'        if {argument} is not None:')
        lines.append(f'            auths.append({expression})')
    lines += [
        '        verify: SSLContext | bool = True',
        '        if tls is not None or configure_tls is not None:',
        '            verify = (tls or TlsConfig()).ssl_context()',
        '            if configure_tls is not None:',
        '                configure_tls(verify)',
        '        client = AsyncClient(auth=CompositeAuth(*auths), verify=verify)',
        f'    return {class_name(api_name)}(client, base_url)',
    ]
    return _stmts('\n'.join(lines))[0]


def _oauth_helpers(name: str, scheme: SecurityScheme) -> list[ast.stmt]:
    if scheme.type != 'oauth2' or scheme.flows is None:
        return []
    base = sanitize_parameter_field_name(name)
    flows = scheme.flows
    code_flow = flows.authorization_code
    device_flow = flows.device_authorization
    source: list[str] = []

    if code_flow is not None and code_flow.authorization_url:
        source.append(
            f'def {base}_authorization_url(*, client_id: str, redirect_uri: str, code_challenge: str, '
            'scopes: list[str] | None = None, state: str | None = None) -> str:\n'
            f'    """Authorization URL for the {name} authorization code flow (PKCE)."""\n'
            f'    return build_authorization_url({code_flow.authorization_url!r}, client_id=client_id, '
            'redirect_uri=redirect_uri, code_challenge=code_challenge, scopes=scopes, state=state)\n'
        )
    if code_flow is not None and code_flow.token_url:
        source.append(
            f'async def {base}_exchange_code(*, code: str, code_verifier: str, redirect_uri: str, '
            'client_id: str | None = None, client_secret: str | None = None, '
            'client: AsyncClient | None = None) -> OAuthToken:\n'
            f'    return await exchange_authorization_code({code_flow.token_url!r}, code=code, '
            'code_verifier=code_verifier, redirect_uri=redirect_uri, client_id=client_id, '
            'client_secret=client_secret, client=client)\n'
        )
    refresh_url = None
    for flow in (code_flow, device_flow, flows.client_credentials, flows.password):
        if flow is not None and (flow.refresh_url or flow.token_url):
            refresh_url = flow.refresh_url or flow.token_url
            break
    if refresh_url:
        source.append(
            f'async def {base}_refresh_token(*, refresh_token: str, client_id: str | None = None, '
            'client_secret: str | None = None, scopes: list[str] | None = None, '
            'client: AsyncClient | None = None) -> OAuthToken:\n'
            f'    return await refresh_access_token({refresh_url!r}, refresh_token=refresh_token, '
            'client_id=client_id, client_secret=client_secret, scopes=scopes, client=client)\n'
        )
    if device_flow is not None and device_flow.device_authorization_url:
        source.append(
            f'async def {base}_device_authorization(*, client_id: str, scopes: list[str] | None = None, '
            'client: AsyncClient | None = None) -> DeviceAuthorization:\n'
            f'    return await request_device_authorization({device_flow.device_authorization_url!r}, '
            'client_id=client_id, scopes=scopes, client=client)\n'
        )
        if device_flow.token_url:
            source.append(
                f'async def {base}_poll_device_token(*, device_code: str, client_id: str, interval: int = 5, '
                'client: AsyncClient | None = None) -> OAuthToken:\n'
                f'    return await poll_device_token({device_flow.token_url!r}, device_code=device_code, '
                'client_id=client_id, interval=interval, client=client)\n'
            )
    return _stmts('\n\n'.join(source)) if source else []


def module_imports(
    nodes: Iterable[ast.AST],
    type_expressions: Iterable[str],
    models_module: str | None,
    runtime_module: str = RUNTIME_MODULE,
    local_names: Iterable[str] = (),
) -> dict[str, set[str]]:
    """Collect the imports the given nodes and model type expressions need."""
    local = set(local_names)
    imports: dict[str, set[str]] = {}
    for node in nodes:
        for child in ast.walk(node):
            if not isinstance(child, ast.Name) or child.id in local:
                continue
            if child.id in _RUNTIME_NAMES:
                imports.setdefault(runtime_module, set()).add(child.id)
            elif child.id in _IMPORT_SOURCES:
                imports.setdefault(_IMPORT_SOURCES[child.id], set()).add(child.id)
    for expression in type_expressions:
        for module, names in annotation_imports(
            _type_expr(expression), local, models_module
        ).items():
            imports.setdefault(module, set()).update(names)
    return imports


def generate_api(
    endpoints: Iterable[EndpointDefinition],
    metadata: OpenApiMetadata | None = None,
    *,
    api_name: str = 'Api',
    models_module: str | None = '.models',
    runtime_module: str = RUNTIME_MODULE,
    docstring: str = CLIENT_DOCSTRING,
) -> str:
    """Generate a client module for the endpoints.

    Every endpoint is validated first, so a :class:`ValidationError` leaves
    no partial output behind.

    Args:
        endpoints: Flattened endpoints, in emission order.
        metadata: Root metadata carried on the interface and used for
            servers and security schemes.
        api_name: Base name of the generated classes and factory.
        models_module: Module the referenced models are imported from.
        runtime_module: Module providing the runtime helpers.
        docstring: Module docstring.
    """
    endpoints = list(endpoints)
    for endpoint in endpoints:
        validate_endpoint(endpoint)

    methods = plan_methods(endpoints)
    api_class = class_name(api_name)
    protocol_class = f'{api_class}Protocol'

    protocol_body: list[ast.stmt] = [_docstring(metadata_doc_lines(metadata, api_class))]
    protocol_body.extend(build_protocol_method(method) for method in methods)
    protocol = _class(protocol_class, [_name('Protocol')], protocol_body)

    impl_body: list[ast.stmt] = [
        _docstring([f'Async implementation of :class:`{protocol_class}`.']),
        _init_method(),
    ]
    impl_body.extend(build_implementation_method(method) for method in methods)
    implementation = _class(api_class, [], impl_body)

    default_url = ROOT_BASE_URL
    if metadata is not None and metadata.servers:
        default_url = metadata.servers[0].resolved_url()
    declarations: list[ast.stmt] = [
        _assign(_name('DEFAULT_BASE_URL'), ast.Constant(value=default_url)),
        protocol,
        implementation,
        _factory(api_name, metadata),
    ]
    for name, scheme in (metadata.security_schemes if metadata else {}).items():
        declarations.extend(_oauth_helpers(name, scheme))

    type_expressions = [t for method in methods for t in method.type_expressions()]
    imports = module_imports(
        declarations,
        type_expressions,
        models_module,
        runtime_module,
        local_names={api_class, protocol_class},
    )
    collector = ImportCollector()
    collector.add_import('__future__', 'annotations')
    collector.add_imports(imports)

    body: list[ast.stmt] = [ast.Expr(value=ast.Constant(value=docstring))]
    body.extend(collector.to_ast())
    body.extend(declarations)
    module = ast.Module(body=body, type_ignores=[])
    logger.debug('Generated client %s with %d method(s)', api_class, len(methods))
    with current_toolkit() as toolkit:
        return toolkit.render(module)
