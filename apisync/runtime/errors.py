"""Error type returned by generated clients."""

from typing import Any

import httpx

__all__ = ['ApiError']


class ApiError(Exception):
    """A failed API call.

    Attributes:
        message: Human-readable description.
        status_code: HTTP status, when the server answered.
        body: Raw response text, when the server answered.
        detail: Parsed ``detail``/``message``/``error`` field of a JSON body.
        cause: The exception that triggered the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str = '',
        detail: Any | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.body = body
        self.detail = detail
        self.cause = cause
        super().__init__(message)

    @classmethod
    def from_response(cls, response: httpx.Response, cause: BaseException | None = None) -> 'ApiError':
        body = response.text
        detail = None
        try:
            json_body = response.json()
            if isinstance(json_body, dict):
                detail = (
                    json_body.get('detail')
                    or json_body.get('message')
                    or json_body.get('error')
                )
        except ValueError:
            pass
        message = f'HTTP {response.status_code}'
        if detail:
            message = f'{message}: {detail}'
        return cls(
            message,
            status_code=response.status_code,
            body=body,
            detail=detail,
            cause=cause,
        )

    @classmethod
    def wrap(cls, exc: BaseException) -> 'ApiError':
        """Convert any exception raised while calling an endpoint."""
        if isinstance(exc, ApiError):
            return exc
        if isinstance(exc, httpx.HTTPStatusError):
            return cls.from_response(exc.response, cause=exc)
        if isinstance(exc, httpx.TransportError):
            return cls(f'Transport error: {exc}', cause=exc)
        return cls(f'{type(exc).__name__}: {exc}', cause=exc)

    def __repr__(self) -> str:
        return f'ApiError(status_code={self.status_code!r}, message={self.message!r})'
