"""OAuth 2.0 helpers: authorization code with PKCE, refresh and device flow."""

import asyncio
import base64
import hashlib
import logging
import secrets
from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ConfigDict

__all__ = [
    'OAuthError',
    'OAuthToken',
    'DeviceAuthorization',
    'generate_pkce_pair',
    'build_authorization_url',
    'exchange_authorization_code',
    'refresh_access_token',
    'request_device_authorization',
    'poll_device_token',
]

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT = 'urn:ietf:params:oauth:grant-type:device_code'


class OAuthError(Exception):
    """A token endpoint rejected a request or answered without a token."""

    def __init__(self, message: str, error: str | None = None):
        self.error = error
        super().__init__(message)


class OAuthToken(BaseModel):
    model_config = ConfigDict(extra='allow')

    access_token: str
    token_type: str = 'Bearer'
    expires_in: int | None = None
    refresh_token: str | None = None
    scope: str | None = None
    id_token: str | None = None


class DeviceAuthorization(BaseModel):
    model_config = ConfigDict(extra='allow')

    device_code: str
    user_code: str
    verification_uri: str
    verification_uri_complete: str | None = None
    expires_in: int | None = None
    interval: int = 5


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    # RFC 7636: 43-128 characters from the unreserved set
    code_verifier = secrets.token_urlsafe(64)[:128]
    digest = hashlib.sha256(code_verifier.encode('ascii')).digest()
    code_challenge = base64.urlsafe_b64encode(digest).rstrip(b'=').decode('ascii')
    return code_verifier, code_challenge


def build_authorization_url(
    authorization_url: str,
    *,
    client_id: str,
    redirect_uri: str,
    code_challenge: str,
    scopes: list[str] | None = None,
    state: str | None = None,
) -> str:
    params = {
        'response_type': 'code',
        'client_id': client_id,
        'redirect_uri': redirect_uri,
        'code_challenge': code_challenge,
        'code_challenge_method': 'S256',
    }
    if scopes:
        params['scope'] = ' '.join(scopes)
    if state:
        params['state'] = state
    separator = '&' if '?' in authorization_url else '?'
    return f'{authorization_url}{separator}{urlencode(params)}'


async def _token_request(
    url: str, data: dict[str, str], client: httpx.AsyncClient | None
) -> dict[str, Any]:
    headers = {'Accept': 'application/json'}
    if client is None:
        async with httpx.AsyncClient(timeout=30.0) as owned:
            response = await owned.post(url, data=data, headers=headers)
    else:
        response = await client.post(url, data=data, headers=headers)
    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if response.is_error:
        error = payload.get('error') if isinstance(payload, dict) else None
        raise OAuthError(
            f'Token request failed with status {response.status_code}: {response.text}',
            error=error,
        )
    return payload


def _client_fields(client_id: str | None, client_secret: str | None) -> dict[str, str]:
    fields = {}
    if client_id:
        fields['client_id'] = client_id
    if client_secret:
        fields['client_secret'] = client_secret
    return fields


def _token(payload: dict[str, Any]) -> OAuthToken:
    if 'access_token' not in payload:
        raise OAuthError("Token response missing 'access_token' field")
    return OAuthToken.model_validate(payload)


async def exchange_authorization_code(
    token_url: str,
    *,
    code: str,
    code_verifier: str,
    redirect_uri: str,
    client_id: str | None = None,
    client_secret: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> OAuthToken:
    data = {
        'grant_type': 'authorization_code',
        'code': code,
        'redirect_uri': redirect_uri,
        'code_verifier': code_verifier,
        **_client_fields(client_id, client_secret),
    }
    return _token(await _token_request(token_url, data, client))


async def refresh_access_token(
    token_url: str,
    *,
    refresh_token: str,
    client_id: str | None = None,
    client_secret: str | None = None,
    scopes: list[str] | None = None,
    client: httpx.AsyncClient | None = None,
) -> OAuthToken:
    data = {
        'grant_type': 'refresh_token',
        'refresh_token': refresh_token,
        **_client_fields(client_id, client_secret),
    }
    if scopes:
        data['scope'] = ' '.join(scopes)
    return _token(await _token_request(token_url, data, client))


async def request_device_authorization(
    device_authorization_url: str,
    *,
    client_id: str,
    scopes: list[str] | None = None,
    client: httpx.AsyncClient | None = None,
) -> DeviceAuthorization:
    data = {'client_id': client_id}
    if scopes:
        data['scope'] = ' '.join(scopes)
    payload = await _token_request(device_authorization_url, data, client)
    if 'device_code' not in payload:
        raise OAuthError("Device authorization response missing 'device_code'")
    return DeviceAuthorization.model_validate(payload)


async def poll_device_token(
    token_url: str,
    *,
    device_code: str,
    client_id: str,
    interval: int = 5,
    max_attempts: int = 120,
    client: httpx.AsyncClient | None = None,
) -> OAuthToken:
    """Poll the token endpoint until the user approves the device.

    ``authorization_pending`` keeps polling and ``slow_down`` adds five
    seconds to the interval. Any other error is raised.
    """
    poll_interval = max(interval, 1)
    data = {'grant_type': DEVICE_CODE_GRANT, 'device_code': device_code, 'client_id': client_id}
    for _ in range(max_attempts):
        try:
            return _token(await _token_request(token_url, data, client))
        except OAuthError as e:
            if e.error == 'authorization_pending':
                pass
            elif e.error == 'slow_down':
                poll_interval += 5
            else:
                raise
        logger.debug('Device authorization pending, retrying in %ss', poll_interval)
        await asyncio.sleep(poll_interval)
    raise OAuthError('Device authorization timed out', error='expired_token')
