"""Tests for the runtime helpers used by generated clients."""

import base64
import hashlib
import json
import logging

import httpx
import pytest
from pydantic import BaseModel, Field

from apisync.codegen.clients import generate_api
from apisync.codegen.paths import flatten_paths
from apisync.openapi.loader import load_document
from apisync.runtime import (
    ApiError,
    ApiKeyAuth,
    ApiResult,
    BasicAuth,
    BearerAuth,
    CompositeAuth,
    cookie_value,
    decode_json_seq,
    encode_form,
    encode_json,
    encode_json_seq,
    encode_multipart,
    encode_query,
    format_scalar,
    header_value,
    query_pairs,
    render_path,
    serialize_content,
    serialize_path_param,
)
from apisync.runtime.codecs import is_json_media_type, is_json_seq_media_type
from apisync.runtime.oauth import (
    OAuthError,
    build_authorization_url,
    exchange_authorization_code,
    generate_pkce_pair,
    poll_device_token,
)


class Pet(BaseModel):
    pet_id: int = Field(alias='petId')
    tag: str | None = None


class TestPathSerialization:
    """Test serialize_path_param for each style."""

    @pytest.mark.parametrize(
        'value,style,explode,expected',
        [
            ('blue', 'simple', False, 'blue'),
            (['a', 'b'], 'simple', False, 'a,b'),
            ({'r': 1, 'g': 2}, 'simple', False, 'r,1,g,2'),
            ({'r': 1, 'g': 2}, 'simple', True, 'r=1,g=2'),
            ('blue', 'label', False, '.blue'),
            (['a', 'b'], 'label', False, '.a,b'),
            (['a', 'b'], 'label', True, '.a.b'),
            ('blue', 'matrix', False, ';id=blue'),
            (['a', 'b'], 'matrix', False, ';id=a,b'),
            (['a', 'b'], 'matrix', True, ';id=a;id=b'),
            ({'r': 1}, 'matrix', True, ';r=1'),
        ],
    )
    def test_styles(self, value, style, explode, expected):
        assert serialize_path_param(value, name='id', style=style, explode=explode) == expected

    def test_reserved_characters(self):
        assert serialize_path_param('a/b c', name='id') == 'a%2Fb%20c'
        assert serialize_path_param('a/b', name='id', allow_reserved=True) == 'a/b'

    def test_render_path_keeps_unknown_placeholders(self):
        assert render_path('/pets/{petId}/{other}', {'petId': '7'}) == '/pets/7/{other}'


class TestQuerySerialization:
    """Test query_pairs and encode_query."""

    @pytest.mark.parametrize(
        'value,kwargs,expected',
        [
            (5, {}, [('n', '5')]),
            (True, {}, [('n', 'true')]),
            ([1, 2], {}, [('n', '1'), ('n', '2')]),
            ([1, 2], {'explode': False}, [('n', '1,2')]),
            ([1, 2], {'style': 'pipeDelimited', 'explode': False}, [('n', '1|2')]),
            ([1, 2], {'style': 'spaceDelimited', 'explode': False}, [('n', '1%202')]),
            ({'a': 1, 'b': None}, {}, [('a', '1')]),
            ({'a': 1, 'b': 2}, {'explode': False}, [('n', 'a,1,b,2')]),
            ({'a': 1}, {'style': 'deepObject'}, [('n%5Ba%5D', '1')]),
            (None, {}, []),
        ],
    )
    def test_pairs(self, value, kwargs, expected):
        assert query_pairs('n', value, **kwargs) == expected

    def test_encode_query(self):
        assert encode_query([('a', '1'), ('b', 'x%20y')]) == 'a=1&b=x%20y'

    def test_model_values_use_aliases(self):
        assert query_pairs('pet', Pet(petId=3), style='deepObject') == [('pet%5BpetId%5D', '3')]


class TestHeaderAndCookieValues:
    """Test header_value and cookie_value."""

    def test_header(self):
        assert header_value([1, 2]) == '1,2'
        assert header_value({'a': 1}, explode=True) == 'a=1'
        assert header_value({'a': 1}) == 'a,1'

    def test_cookie(self):
        assert cookie_value('x') == 'x'
        assert cookie_value({'a': 1, 'b': 2}) == 'a=1&b=2'
        assert cookie_value({'a': 1}, explode=False) == 'a,1'
        assert cookie_value({'a': 1, 'b': 2}, explode=True) == 'a=1&b=2'

    def test_format_scalar(self):
        assert format_scalar(None) == ''
        assert format_scalar(False) == 'false'
        assert format_scalar(1.5) == '1.5'


class TestCodecs:
    """Test body codecs."""

    def test_media_type_predicates(self):
        assert is_json_media_type('application/json; charset=utf-8')
        assert is_json_media_type('application/problem+json')
        assert is_json_media_type('*/*')
        assert not is_json_media_type('application/x-ndjson')
        assert is_json_seq_media_type('application/json-seq')

    def test_encode_json_uses_aliases_and_drops_none(self):
        assert json.loads(encode_json(Pet(petId=1))) == {'petId': 1}

    def test_encode_form(self):
        assert encode_form({'name': 'Rex', 'tags': ['a', 'b'], 'skip': None}) == 'name=Rex&tags=a&tags=b'

    def test_encode_form_field_encoding(self):
        body = {'tags': ['a', 'b'], 'meta': {'k': 1}}
        encoding = {'tags': {'explode': False}, 'meta': {'content_type': 'application/json'}}
        assert encode_form(body, encoding) == 'tags=a,b&meta=%7B%22k%22%3A1%7D'

    def test_encode_form_rejects_scalars(self):
        with pytest.raises(TypeError):
            encode_form('text')

    def test_encode_multipart_object(self):
        parts = encode_multipart(
            {'name': 'Rex', 'photo': b'\x89PNG', 'meta': {'a': 1}},
            {'photo': {'content_type': 'image/png'}},
        )
        assert parts == [
            ('name', (None, 'Rex')),
            ('photo', ('file', b'\x89PNG', 'image/png')),
            ('meta', (None, '{"a":1}', 'application/json')),
        ]

    def test_encode_multipart_array(self):
        parts = encode_multipart(
            [{'a': 1}, 'x', 'y'],
            prefix_encoding=[{'content_type': 'application/json'}],
            item_encoding={'content_type': 'text/plain'},
        )
        assert parts == [
            ('part0', (None, '{"a":1}', 'application/json')),
            ('part1', (None, 'x', 'text/plain')),
            ('part2', (None, 'y', 'text/plain')),
        ]

    def test_json_seq(self):
        items = [{'a': 1}, {'b': 2}]
        ndjson = encode_json_seq(items)
        assert ndjson == b'{"a":1}\n{"b":2}\n'
        assert decode_json_seq(ndjson.decode()) == items

        seq = encode_json_seq(items, 'application/json-seq')
        assert seq.startswith(b'\x1e')
        assert decode_json_seq(seq.decode(), 'application/json-seq') == items

    def test_serialize_content(self):
        assert serialize_content({'a': 1}, 'application/json') == '{"a":1}'
        assert serialize_content({'a': 1}, 'application/x-www-form-urlencoded') == 'a=1'
        assert serialize_content(3, 'text/plain') == '3'


def _apply(auth, url='https://api.test/items'):
    return next(auth.auth_flow(httpx.Request('GET', url)))


class TestAuth:
    """Test the httpx auth helpers."""

    def test_bearer(self):
        assert _apply(BearerAuth('t0k')).headers['Authorization'] == 'Bearer t0k'

    def test_bearer_provider_is_called_per_request(self):
        tokens = iter(['one', 'two'])
        auth = BearerAuth(lambda: next(tokens))
        assert _apply(auth).headers['Authorization'] == 'Bearer one'
        assert _apply(auth).headers['Authorization'] == 'Bearer two'

    def test_missing_token_sends_nothing(self):
        assert 'Authorization' not in _apply(BearerAuth(None)).headers

    def test_basic(self):
        expected = 'Basic ' + base64.b64encode(b'user:pass').decode()
        assert _apply(BasicAuth(('user', 'pass'))).headers['Authorization'] == expected

    def test_api_key_locations(self):
        assert _apply(ApiKeyAuth('X-Key', 'header', 's')).headers['X-Key'] == 's'
        assert _apply(ApiKeyAuth('key', 'query', 's')).url.params['key'] == 's'
        assert _apply(ApiKeyAuth('sid', 'cookie', 's')).headers['Cookie'] == 'sid=s'

    def test_unsupported_api_key_location(self, caplog):
        with caplog.at_level(logging.WARNING, logger='apisync.runtime.auth'):
            auth = ApiKeyAuth('key', 'body', 's')
        assert 'not supported' in caplog.text
        assert 'key' not in _apply(auth).headers

    def test_composite(self):
        request = _apply(CompositeAuth(BearerAuth('t'), ApiKeyAuth('X-Key', 'header', 'k')))
        assert request.headers['Authorization'] == 'Bearer t'
        assert request.headers['X-Key'] == 'k'

    async def test_auth_is_applied_by_client(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(204)

        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport, auth=BearerAuth('abc')) as client:
            await client.get('https://api.test/')
        assert seen['authorization'] == 'Bearer abc'


class TestApiError:
    """Test ApiError construction."""

    def test_from_response_reads_detail(self):
        response = httpx.Response(404, json={'detail': 'no such pet'})
        error = ApiError.from_response(response)
        assert error.status_code == 404
        assert error.detail == 'no such pet'
        assert error.message == 'HTTP 404: no such pet'

    def test_from_response_without_json(self):
        error = ApiError.from_response(httpx.Response(500, text='boom'))
        assert error.message == 'HTTP 500'
        assert error.body == 'boom'

    def test_wrap(self):
        request = httpx.Request('GET', 'https://api.test/')
        response = httpx.Response(503, text='down', request=request)
        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            response.raise_for_status()

        wrapped = ApiError.wrap(exc_info.value)
        assert wrapped.status_code == 503
        assert wrapped.cause is exc_info.value

        assert ApiError.wrap(httpx.ConnectError('refused')).message.startswith('Transport error')
        assert ApiError.wrap(ValueError('bad')).message == 'ValueError: bad'
        assert ApiError.wrap(wrapped) is wrapped


class TestApiResult:
    """Test ApiResult accessors."""

    def test_success(self):
        result = ApiResult.success(2)
        assert result.is_success
        assert result.get_or_none() == 2
        assert result.map(lambda x: x + 1).get_or_raise() == 3

    def test_failure(self):
        error = ApiError('nope')
        result = ApiResult.failure(error)
        assert result.is_failure
        assert result.get_or_none() is None
        assert result.map(lambda x: x + 1).error is error
        with pytest.raises(ApiError):
            result.get_or_raise()


class TestOAuth:
    """Test the OAuth 2.0 helpers."""

    def test_pkce_pair(self):
        verifier, challenge = generate_pkce_pair()
        assert 43 <= len(verifier) <= 128
        digest = hashlib.sha256(verifier.encode('ascii')).digest()
        assert challenge == base64.urlsafe_b64encode(digest).rstrip(b'=').decode('ascii')

    def test_authorization_url(self):
        url = build_authorization_url(
            'https://auth.test/authorize?tenant=1',
            client_id='cid',
            redirect_uri='https://app.test/cb',
            code_challenge='abc',
            scopes=['read', 'write'],
            state='xyz',
        )
        assert url.startswith('https://auth.test/authorize?tenant=1&response_type=code')
        assert 'code_challenge_method=S256' in url
        assert 'scope=read+write' in url
        assert 'state=xyz' in url

    async def test_exchange_code(self):
        def handler(request: httpx.Request) -> httpx.Response:
            form = dict(httpx.QueryParams(request.content.decode()))
            assert form['grant_type'] == 'authorization_code'
            assert form['code_verifier'] == 'ver'
            return httpx.Response(200, json={'access_token': 'tok', 'expires_in': 60})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            token = await exchange_authorization_code(
                'https://auth.test/token',
                code='c',
                code_verifier='ver',
                redirect_uri='https://app.test/cb',
                client=client,
            )
        assert token.access_token == 'tok'
        assert token.expires_in == 60

    async def test_token_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={'error': 'invalid_grant'})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(OAuthError) as exc_info:
                await exchange_authorization_code(
                    'https://auth.test/token',
                    code='c',
                    code_verifier='v',
                    redirect_uri='https://app.test/cb',
                    client=client,
                )
        assert exc_info.value.error == 'invalid_grant'

    async def test_poll_device_token(self, monkeypatch):
        answers = iter(
            [
                httpx.Response(400, json={'error': 'authorization_pending'}),
                httpx.Response(400, json={'error': 'slow_down'}),
                httpx.Response(200, json={'access_token': 'dev'}),
            ]
        )
        delays = []

        async def no_sleep(seconds):
            delays.append(seconds)

        monkeypatch.setattr('apisync.runtime.oauth.asyncio.sleep', no_sleep)
        transport = httpx.MockTransport(lambda request: next(answers))
        async with httpx.AsyncClient(transport=transport) as client:
            token = await poll_device_token(
                'https://auth.test/token', device_code='d', client_id='cid', interval=2, client=client
            )
        assert token.access_token == 'dev'
        assert delays == [2, 7]


ITEMS_SPEC = {
    'openapi': '3.2.0',
    'info': {'title': 'Items', 'version': '1.0.0'},
    'paths': {
        '/items/{itemId}': {
            'get': {
                'operationId': 'getItem',
                'parameters': [
                    {'name': 'itemId', 'in': 'path', 'required': True, 'schema': {'type': 'string'}},
                    {'name': 'q', 'in': 'query', 'schema': {'type': 'string'}},
                ],
                'responses': {
                    '200': {
                        'description': 'Item names',
                        'content': {
                            'application/json': {
                                'schema': {'type': 'array', 'items': {'type': 'string'}}
                            }
                        },
                    }
                },
            }
        }
    },
}


class TestGeneratedClient:
    """Execute a generated client against a mock transport."""

    @pytest.fixture
    def api_class(self):
        definition = load_document(ITEMS_SPEC)
        source = generate_api(flatten_paths(definition.paths), definition.metadata())
        namespace: dict = {}
        exec(compile(source, '<client>', 'exec'), namespace)
        return namespace['Api']

    async def test_success(self, api_class):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.raw_path)
            return httpx.Response(200, json=['one', 'two'])

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await api_class(client, 'https://api.test/').get_item('a b', q='x')

        assert result.get_or_raise() == ['one', 'two']
        assert seen == [b'/items/a%20b?q=x']

    async def test_http_error_becomes_failure(self, api_class):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={'message': 'gone'})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await api_class(client, 'https://api.test').get_item('a')

        assert result.is_failure
        assert result.error.status_code == 404
        assert result.error.detail == 'gone'


SEARCH_SPEC = {
    'openapi': '3.2.0',
    'info': {'title': 'Search', 'version': '1.0.0'},
    'paths': {
        '/search': {
            'get': {
                'operationId': 'search',
                'parameters': [
                    {
                        'name': 'pipes',
                        'in': 'query',
                        'style': 'pipeDelimited',
                        'schema': {'type': 'array', 'items': {'type': 'string'}},
                    },
                    {
                        'name': 'spaces',
                        'in': 'query',
                        'style': 'spaceDelimited',
                        'schema': {'type': 'array', 'items': {'type': 'string'}},
                    },
                    {
                        'name': 'prefs',
                        'in': 'cookie',
                        'schema': {
                            'type': 'object',
                            'additionalProperties': {'type': 'string'},
                        },
                    },
                ],
                'responses': {'204': {'description': 'Done'}},
            }
        }
    },
}


class TestGeneratedParameterStyles:
    """Execute a generated client whose parameters rely on default explode values."""

    @pytest.fixture
    def api_class(self):
        definition = load_document(SEARCH_SPEC)
        source = generate_api(flatten_paths(definition.paths), definition.metadata())
        namespace: dict = {}
        exec(compile(source, '<client>', 'exec'), namespace)
        return namespace['Api']

    async def test_delimited_queries_stay_joined(self, api_class):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            result = await api_class(client, 'https://api.test/').search(
                pipes=['a', 'b'], spaces=['c', 'd']
            )

        assert result.is_success
        (request,) = seen
        assert request.url.params.get_list('pipes') == ['a|b']
        assert request.url.params.get_list('spaces') == ['c d']

    async def test_cookie_object_is_exploded(self, api_class):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get('Cookie'))
            return httpx.Response(204)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await api_class(client, 'https://api.test/').search(prefs={'a': '1', 'b': '2'})

        assert seen == ['prefs=a=1&b=2']
