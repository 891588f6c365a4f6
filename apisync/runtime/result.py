"""Success/failure wrapper returned by every generated client method."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from apisync.runtime.errors import ApiError

__all__ = ['ApiResult']

T = TypeVar('T')
U = TypeVar('U')


@dataclass(frozen=True)
class ApiResult(Generic[T]):
    """Either a value or an :class:`ApiError`, never both.

    Example:
        >>> result = ApiResult.success(3)
        >>> result.map(lambda x: x * 2).get_or_raise()
        6
    """

    value: T | None = None
    error: ApiError | None = None

    @classmethod
    def success(cls, value: T) -> 'ApiResult[T]':
        return cls(value=value)

    @classmethod
    def failure(cls, error: ApiError) -> 'ApiResult[T]':
        return cls(error=error)

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    def get_or_none(self) -> T | None:
        return self.value if self.error is None else None

    def get_or_raise(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value

    def map(self, fn: Callable[[T], U]) -> 'ApiResult[U]':
        if self.error is not None:
            return ApiResult(error=self.error)
        return ApiResult(value=fn(self.value))
