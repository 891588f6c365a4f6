"""httpx authentication and TLS helpers used by generated client factories."""

import base64
import logging
import ssl
from collections.abc import Callable, Generator
from dataclasses import dataclass

import httpx

__all__ = [
    'CredentialProvider',
    'BearerAuth',
    'BasicAuth',
    'ApiKeyAuth',
    'CompositeAuth',
    'TlsConfig',
]

logger = logging.getLogger(__name__)

CredentialProvider = Callable[[], str | None]


def _provider(value: str | CredentialProvider | None) -> CredentialProvider:
    if callable(value):
        return value
    return lambda: value


class _RequestAuth(httpx.Auth):
    """Single-step auth that decorates each outgoing request."""

    def apply(self, request: httpx.Request) -> httpx.Request:
        raise NotImplementedError

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        yield self.apply(request)


class BearerAuth(_RequestAuth):
    """``Authorization: Bearer <token>``; the token is looked up per request."""

    def __init__(self, token: str | CredentialProvider | None):
        self._token = _provider(token)

    def apply(self, request: httpx.Request) -> httpx.Request:
        token = self._token()
        if token:
            request.headers['Authorization'] = f'Bearer {token}'
        return request


class BasicAuth(_RequestAuth):
    """``Authorization: Basic``; credentials are looked up per request.

    Args:
        credentials: ``(username, password)`` or a callable returning it.
    """

    def __init__(
        self,
        credentials: tuple[str, str] | Callable[[], tuple[str, str] | None] | None,
    ):
        self._credentials = credentials if callable(credentials) else (lambda: credentials)

    def apply(self, request: httpx.Request) -> httpx.Request:
        credentials = self._credentials()
        if credentials:
            username, password = credentials
            token = base64.b64encode(f'{username}:{password}'.encode()).decode('ascii')
            request.headers['Authorization'] = f'Basic {token}'
        return request


class ApiKeyAuth(_RequestAuth):
    """Inject an API key into the query string, a header or a cookie.

    Any other location is accepted but does nothing, and a warning is
    logged once when the auth is created.
    """

    SUPPORTED_LOCATIONS = ('query', 'header', 'cookie')

    def __init__(self, name: str, location: str, key: str | CredentialProvider | None):
        self.name = name
        self.location = location
        self._key = _provider(key)
        if location not in self.SUPPORTED_LOCATIONS:
            logger.warning(
                'API key location %r is not supported; %s will not be sent',
                location,
                name,
            )

    def apply(self, request: httpx.Request) -> httpx.Request:
        key = self._key()
        if not key:
            return request
        if self.location == 'header':
            request.headers[self.name] = key
        elif self.location == 'query':
            request.url = request.url.copy_merge_params({self.name: key})
        elif self.location == 'cookie':
            existing = request.headers.get('Cookie')
            cookie = f'{self.name}={key}'
            request.headers['Cookie'] = f'{existing}; {cookie}' if existing else cookie
        return request


class CompositeAuth(_RequestAuth):
    """Apply several auths to the same request, in order."""

    def __init__(self, *auths: _RequestAuth):
        self.auths = auths

    def apply(self, request: httpx.Request) -> httpx.Request:
        for auth in self.auths:
            request = auth.apply(request)
        return request


@dataclass(frozen=True)
class TlsConfig:
    """Client certificate and trust settings for mutual TLS.

    Attributes:
        cert_file: PEM client certificate (may include the key).
        key_file: PEM private key, when separate from ``cert_file``.
        password: Password for an encrypted private key.
        ca_file: CA bundle used to verify the server.
        verify: Verify the server certificate.
    """

    cert_file: str | None = None
    key_file: str | None = None
    password: str | None = None
    ca_file: str | None = None
    verify: bool = True

    def ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context(cafile=self.ca_file)
        if not self.verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        if self.cert_file:
            context.load_cert_chain(self.cert_file, self.key_file, self.password)
        return context
