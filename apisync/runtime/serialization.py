"""Parameter serialization following the OpenAPI ``style``/``explode`` rules.

Values are percent-encoded per RFC 3986. Delimiters introduced by a style
(``,`` ``|`` ``;`` ``.`` ``=``) are left as-is, while the same characters
inside a value are encoded unless ``allow_reserved`` is set.
"""

import re
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel

__all__ = [
    'RESERVED',
    'percent_encode',
    'format_scalar',
    'to_plain',
    'render_path',
    'serialize_path_param',
    'query_pairs',
    'encode_query',
    'header_value',
    'cookie_value',
]

# RFC 3986 gen-delims and sub-delims
RESERVED = ":/?#[]@!$&'()*+,;="

_PLACEHOLDER = re.compile(r'\{([^{}]+)\}')


def percent_encode(text: str, allow_reserved: bool = False) -> str:
    return quote(text, safe=RESERVED if allow_reserved else '')


def to_plain(value: Any) -> Any:
    """Reduce models and root models to plain JSON-compatible values."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode='json', by_alias=True, exclude_none=True)
    return value


def format_scalar(value: Any) -> str:
    """Render a single value the way it appears on the wire."""
    value = to_plain(value)
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _encode(value: Any, allow_reserved: bool) -> str:
    return percent_encode(format_scalar(value), allow_reserved)


def _entries(value: Mapping) -> list[tuple[str, Any]]:
    return [(str(key), item) for key, item in value.items() if item is not None]


def render_path(template: str, values: Mapping[str, str]) -> str:
    """Substitute already-serialized values into ``{name}`` placeholders."""

    def replace(match: re.Match) -> str:
        name = match.group(1)
        return values[name] if name in values else match.group(0)

    return _PLACEHOLDER.sub(replace, template)


def serialize_path_param(
    value: Any,
    *,
    name: str,
    style: str = 'simple',
    explode: bool = False,
    allow_reserved: bool = False,
) -> str:
    """Serialize a path parameter for the ``simple``, ``label`` or ``matrix`` style.

    >>> serialize_path_param(['a', 'b'], name='id', style='matrix', explode=True)
    ';id=a;id=b'
    """
    value = to_plain(value)

    def enc(item: Any) -> str:
        return _encode(item, allow_reserved)

    if style == 'matrix':
        if isinstance(value, Mapping):
            entries = _entries(value)
            if explode:
                return ''.join(f';{enc(k)}={enc(v)}' for k, v in entries)
            return f';{name}=' + ','.join(f'{enc(k)},{enc(v)}' for k, v in entries)
        if isinstance(value, (list, tuple)):
            if explode:
                return ''.join(f';{name}={enc(item)}' for item in value)
            return f';{name}=' + ','.join(enc(item) for item in value)
        if value is None or value == '':
            return f';{name}'
        return f';{name}={enc(value)}'

    if style == 'label':
        separator = '.' if explode else ','
        if isinstance(value, Mapping):
            entries = _entries(value)
            if explode:
                return '.' + '.'.join(f'{enc(k)}={enc(v)}' for k, v in entries)
            return '.' + ','.join(f'{enc(k)},{enc(v)}' for k, v in entries)
        if isinstance(value, (list, tuple)):
            return '.' + separator.join(enc(item) for item in value)
        return f'.{enc(value)}'

    # simple
    if isinstance(value, Mapping):
        entries = _entries(value)
        if explode:
            return ','.join(f'{enc(k)}={enc(v)}' for k, v in entries)
        return ','.join(f'{enc(k)},{enc(v)}' for k, v in entries)
    if isinstance(value, (list, tuple)):
        return ','.join(enc(item) for item in value)
    return enc(value)


_DELIMITERS = {
    'form': ',',
    'spaceDelimited': '%20',
    'pipeDelimited': '|',
}


def query_pairs(
    name: str,
    value: Any,
    *,
    style: str = 'form',
    explode: bool = True,
    allow_reserved: bool = False,
) -> list[tuple[str, str]]:
    """Serialize one query parameter into encoded ``(name, value)`` pairs.

    >>> query_pairs('ids', [1, 2], explode=False)
    [('ids', '1,2')]
    >>> query_pairs('filter', {'a': 1}, style='deepObject')
    [('filter%5Ba%5D', '1')]
    """
    value = to_plain(value)
    if value is None:
        return []
    key = percent_encode(name)

    def enc(item: Any) -> str:
        return _encode(item, allow_reserved)

    if style == 'deepObject':
        if isinstance(value, Mapping):
            return [
                (percent_encode(f'{name}[{k}]'), enc(v)) for k, v in _entries(value)
            ]
        return [(key, enc(value))]

    delimiter = _DELIMITERS.get(style, ',')
    if isinstance(value, Mapping):
        entries = _entries(value)
        if explode:
            return [(percent_encode(k), enc(v)) for k, v in entries]
        return [(key, delimiter.join(f'{enc(k)}{delimiter}{enc(v)}' for k, v in entries))]
    if isinstance(value, (list, tuple)):
        if explode:
            return [(key, enc(item)) for item in value]
        return [(key, delimiter.join(enc(item) for item in value))]
    return [(key, enc(value))]


def encode_query(params: list[tuple[str, str]]) -> str:
    """Join encoded pairs into a query string."""
    return '&'.join(f'{key}={value}' for key, value in params)


def header_value(value: Any, *, explode: bool = False) -> str:
    """Serialize a header with the ``simple`` style (no percent-encoding)."""
    value = to_plain(value)
    if isinstance(value, Mapping):
        entries = _entries(value)
        if explode:
            return ','.join(f'{k}={format_scalar(v)}' for k, v in entries)
        return ','.join(f'{k},{format_scalar(v)}' for k, v in entries)
    if isinstance(value, (list, tuple)):
        return ','.join(format_scalar(item) for item in value)
    return format_scalar(value)


def cookie_value(value: Any, *, explode: bool = True) -> str:
    """Serialize a cookie value with the ``form`` style."""
    value = to_plain(value)
    if isinstance(value, Mapping):
        entries = _entries(value)
        if explode:
            return '&'.join(f'{k}={format_scalar(v)}' for k, v in entries)
        return ','.join(f'{k},{format_scalar(v)}' for k, v in entries)
    if isinstance(value, (list, tuple)):
        return ','.join(format_scalar(item) for item in value)
    return format_scalar(value)
