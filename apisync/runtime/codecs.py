"""Request and response body codecs keyed by media type."""

import json
from collections.abc import Mapping
from typing import Any

from pydantic import TypeAdapter

from apisync.runtime.serialization import (
    encode_query,
    format_scalar,
    query_pairs,
    to_plain,
)

__all__ = [
    'JSON_SEQ_SEPARATOR',
    'is_json_media_type',
    'is_json_seq_media_type',
    'encode_json',
    'encode_form',
    'encode_multipart',
    'encode_json_seq',
    'decode_json_seq',
    'serialize_content',
]

JSON_SEQ_SEPARATOR = '\x1e'

_ANY = TypeAdapter(Any)
_JSON_SEQ_TYPES = {'application/x-ndjson', 'application/jsonl', 'application/json-seq'}


def _essence(media_type: str) -> str:
    return media_type.split(';', 1)[0].strip().lower()


def is_json_media_type(media_type: str) -> bool:
    essence = _essence(media_type)
    if essence in _JSON_SEQ_TYPES:
        return False
    return essence == 'application/json' or essence.endswith('+json') or essence == '*/*'


def is_json_seq_media_type(media_type: str) -> bool:
    return _essence(media_type) in _JSON_SEQ_TYPES


def _dump_json(value: Any) -> str:
    return _ANY.dump_json(value, by_alias=True, exclude_none=True).decode('utf-8')


def encode_json(value: Any) -> bytes:
    """Serialize a body (models by alias, ``None`` fields dropped) as JSON."""
    return _ANY.dump_json(value, by_alias=True, exclude_none=True)


def _field_map(body: Any) -> dict[str, Any]:
    plain = to_plain(body)
    if isinstance(plain, Mapping):
        return {str(key): item for key, item in plain.items() if item is not None}
    raise TypeError(f'Cannot encode {type(body).__name__} as form fields')


def encode_form(body: Any, encoding: Mapping[str, Mapping[str, Any]] | None = None) -> str:
    """Encode a body as ``application/x-www-form-urlencoded``.

    ``encoding`` maps a field name to ``style``/``explode``/``allow_reserved``
    overrides, or to a ``content_type`` whose serialization replaces the
    style rules for that field.
    """
    encoding = encoding or {}
    params: list[tuple[str, str]] = []
    for name, value in _field_map(body).items():
        options = encoding.get(name, {})
        content_type = options.get('content_type')
        if content_type:
            value = serialize_content(value, content_type)
        params.extend(
            query_pairs(
                name,
                value,
                style=options.get('style') or 'form',
                explode=options.get('explode', True),
                allow_reserved=options.get('allow_reserved', False),
            )
        )
    return encode_query(params)


def _part(value: Any, content_type: str | None) -> tuple:
    if isinstance(value, (bytes, bytearray)):
        return ('file', bytes(value), content_type or 'application/octet-stream')
    if content_type:
        return (None, serialize_content(value, content_type), content_type)
    plain = to_plain(value)
    if isinstance(plain, (Mapping, list)):
        return (None, _dump_json(plain), 'application/json')
    return (None, format_scalar(plain))


def encode_multipart(
    body: Any,
    encoding: Mapping[str, Mapping[str, Any]] | None = None,
    *,
    prefix_encoding: list[Mapping[str, Any]] | None = None,
    item_encoding: Mapping[str, Any] | None = None,
) -> list[tuple[str, tuple]]:
    """Build the httpx ``files`` argument for a multipart body.

    Object bodies produce one part per field, with ``encoding[field]``
    choosing the part's content type. Array bodies produce one part per
    element: ``prefix_encoding`` applies positionally and ``item_encoding``
    covers the remaining elements.
    """
    if isinstance(body, (list, tuple)):
        prefix_encoding = prefix_encoding or []
        parts = []
        for index, item in enumerate(body):
            if index < len(prefix_encoding):
                options = prefix_encoding[index]
            else:
                options = item_encoding or {}
            parts.append((f'part{index}', _part(item, options.get('content_type'))))
        return parts

    encoding = encoding or {}
    parts = []
    for name, value in _field_map(body).items():
        content_type = encoding.get(name, {}).get('content_type')
        if isinstance(value, (list, tuple)) and not content_type:
            parts.extend((name, _part(item, None)) for item in value)
        else:
            parts.append((name, _part(value, content_type)))
    return parts


def encode_json_seq(items: list[Any], media_type: str = 'application/x-ndjson') -> bytes:
    """Encode items as newline-delimited JSON, or RS-prefixed for ``json-seq``."""
    prefix = JSON_SEQ_SEPARATOR if _essence(media_type) == 'application/json-seq' else ''
    return ''.join(f'{prefix}{_dump_json(item)}\n' for item in items).encode('utf-8')


def decode_json_seq(text: str, media_type: str = 'application/x-ndjson') -> list[Any]:
    if _essence(media_type) == 'application/json-seq':
        chunks = text.split(JSON_SEQ_SEPARATOR)
    else:
        chunks = text.splitlines()
    return [json.loads(chunk) for chunk in chunks if chunk.strip()]


def serialize_content(value: Any, media_type: str) -> str:
    """Serialize a value through its declared media type."""
    essence = _essence(media_type)
    if is_json_media_type(essence):
        return _dump_json(value)
    if essence == 'application/x-www-form-urlencoded':
        return encode_form(value)
    if is_json_seq_media_type(essence):
        return encode_json_seq(list(value), essence).decode('utf-8')
    return format_scalar(value)
