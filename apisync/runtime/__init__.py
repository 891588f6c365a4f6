"""Support library imported by generated clients."""

from apisync.runtime.auth import (
    ApiKeyAuth,
    BasicAuth,
    BearerAuth,
    CompositeAuth,
    CredentialProvider,
    TlsConfig,
)
from apisync.runtime.codecs import (
    decode_json_seq,
    encode_form,
    encode_json,
    encode_json_seq,
    encode_multipart,
    serialize_content,
)
from apisync.runtime.errors import ApiError
from apisync.runtime.oauth import (
    DeviceAuthorization,
    OAuthError,
    OAuthToken,
    build_authorization_url,
    exchange_authorization_code,
    generate_pkce_pair,
    poll_device_token,
    refresh_access_token,
    request_device_authorization,
)
from apisync.runtime.result import ApiResult
from apisync.runtime.serialization import (
    cookie_value,
    encode_query,
    format_scalar,
    header_value,
    query_pairs,
    render_path,
    serialize_path_param,
)

__all__ = [
    'ApiError',
    'ApiResult',
    'ApiKeyAuth',
    'BasicAuth',
    'BearerAuth',
    'CompositeAuth',
    'CredentialProvider',
    'TlsConfig',
    'DeviceAuthorization',
    'OAuthError',
    'OAuthToken',
    'build_authorization_url',
    'exchange_authorization_code',
    'generate_pkce_pair',
    'poll_device_token',
    'refresh_access_token',
    'request_device_authorization',
    'cookie_value',
    'encode_query',
    'format_scalar',
    'header_value',
    'query_pairs',
    'render_path',
    'serialize_path_param',
    'decode_json_seq',
    'encode_form',
    'encode_json',
    'encode_json_seq',
    'encode_multipart',
    'serialize_content',
]
