"""Conversion between path maps and flat endpoint lists.

:func:`flatten_paths` turns the nested ``paths`` (or ``webhooks``) structure
into independent :class:`EndpointDefinition` objects with path-level
metadata cascaded into each operation. :func:`build_paths` is its inverse.
"""

import logging
import re
from collections.abc import Callable, Iterable
from typing import NamedTuple
from urllib.parse import unquote, urljoin

from apisync.codegen.references import unescape_json_pointer
from apisync.model import (
    Components,
    EndpointDefinition,
    EndpointParameter,
    HttpMethod,
    PathItem,
)

__all__ = [
    'PathItemResolution',
    'PathItemRefResolver',
    'flatten_paths',
    'flatten_webhooks',
    'flatten_all',
    'flatten_path_item',
    'build_paths',
    'derive_operation_id',
    'merge_parameters',
]

logger = logging.getLogger(__name__)

_PATH_ITEMS_MARKER = '#/components/pathItems/'
_NON_IDENTIFIER = re.compile(r'[^A-Za-z0-9]+')


class PathItemResolution(NamedTuple):
    """A path item found by an external resolver, with its own context."""

    item: PathItem
    components: Components | None = None
    self_base: str | None = None


PathItemRefResolver = Callable[[str | None, str], PathItemResolution | None]


def derive_operation_id(method: str, path: str) -> str:
    """Build an operationId for operations that do not declare one.

    >>> derive_operation_id('GET', '/users/{id}')
    'get_users_id'
    """
    token = _NON_IDENTIFIER.sub('_', f'{method.lower()}_{path}').strip('_')
    return token or method.lower()


def _normalize_base(value: str | None) -> str | None:
    trimmed = (value or '').strip()
    if not trimmed:
        return None
    return trimmed.split('#', 1)[0]


def _reference_base(ref_base: str, context_base: str | None) -> str | None:
    normalized = _normalize_base(ref_base)
    if not normalized:
        return _normalize_base(context_base) or context_base
    resolved = urljoin(context_base, normalized) if context_base else normalized
    return _normalize_base(resolved) or resolved


def _is_self_match(ref_base: str, self_base: str | None) -> bool:
    expected = (self_base or '').rstrip('#')
    if not expected or not ref_base:
        return True
    return ref_base.rstrip('#') == expected


def _component_key(ref: str, self_base: str | None) -> tuple[str | None, str] | None:
    index = ref.find(_PATH_ITEMS_MARKER)
    if index < 0:
        return None
    raw = ref[index + len(_PATH_ITEMS_MARKER) :]
    if not raw.strip() or '/' in raw:
        return None
    key = unquote(unescape_json_pointer(raw))
    return _reference_base(ref[:index], self_base), key


def _lookup(
    ref: str,
    components: Components,
    self_base: str | None,
    resolver: PathItemRefResolver | None,
) -> PathItemResolution | None:
    parsed = _component_key(ref, self_base)
    if parsed is None:
        logger.debug('Unsupported path item reference %s', ref)
        return None
    base, key = parsed
    if base is None or _is_self_match(base, self_base):
        local = components.path_items.get(key)
        if local is not None:
            return PathItemResolution(local, components, self_base)
        if base is not None and resolver is not None:
            return resolver(base, key)
        return None
    return resolver(base, key) if resolver is not None else None


def _resolve_ref(
    item: PathItem,
    components: Components,
    visited: set[str],
    self_base: str | None,
    resolver: PathItemRefResolver | None,
) -> PathItem | None:
    ref = item.ref
    if ref is None:
        return item
    if ref in visited:
        logger.warning('Path item reference cycle at %s', ref)
        return None
    visited.add(ref)

    resolution = _lookup(ref, components, self_base, resolver)
    if resolution is None:
        return None
    target = resolution.item
    if target.ref is not None:
        target = (
            _resolve_ref(
                target,
                resolution.components or components,
                visited,
                resolution.self_base or self_base,
                resolver,
            )
            or target
        )
    return target.model_copy(
        update={
            'ref': None,
            'summary': item.summary if item.summary is not None else target.summary,
            'description': (
                item.description if item.description is not None else target.description
            ),
            'parameters': item.parameters or target.parameters,
            'servers': item.servers or target.servers,
            'extensions': {**target.extensions, **item.extensions},
        }
    )


def merge_parameters(
    path_params: list[EndpointParameter], op_params: list[EndpointParameter]
) -> list[EndpointParameter]:
    """Merge by ``(name, location)``; operation entries replace path-level ones."""
    if not path_params:
        return list(op_params)
    if not op_params:
        return list(path_params)
    merged: dict[tuple, EndpointParameter] = {}
    for param in path_params:
        merged[param.key] = param
    for param in op_params:
        merged[param.key] = param
    return list(merged.values())


def flatten_path_item(
    path: str,
    item: PathItem,
    components: Components | None = None,
    self_base: str | None = None,
    ref_resolver: PathItemRefResolver | None = None,
) -> list[EndpointDefinition]:
    """Emit one endpoint per operation of a single path item."""
    if item.ref is not None:
        resolved = _resolve_ref(
            item, components or Components(), set(), self_base, ref_resolver
        )
        if resolved is None:
            logger.debug('Skipping unresolved path item %s -> %s', path, item.ref)
            return []
        item = resolved

    endpoints = []
    for method, verb, operation in item.operations():
        endpoints.append(
            operation.model_copy(
                update={
                    'path': path,
                    'method': method,
                    'custom_method': verb if verb is not None else operation.custom_method,
                    'parameters': merge_parameters(item.parameters, operation.parameters),
                    'summary': (
                        operation.summary if operation.summary is not None else item.summary
                    ),
                    'description': (
                        operation.description
                        if operation.description is not None
                        else item.description
                    ),
                    'servers': operation.servers or item.servers,
                }
            )
        )
    return endpoints


def flatten_paths(
    paths: dict[str, PathItem],
    components: Components | None = None,
    ref_resolver: PathItemRefResolver | None = None,
    self_uri: str | None = None,
) -> list[EndpointDefinition]:
    """Flatten a ``paths`` map into endpoints, in key order then slot order.

    Args:
        paths: Path key to path item.
        components: Registry used for ``#/components/pathItems/<Name>`` refs.
        ref_resolver: Called with ``(base_uri, key)`` for references that
            cannot be found locally.
        self_uri: The document's ``$self``; component refs resolve relative
            to it and only match the local registry when their base agrees.
    """
    self_base = _normalize_base(self_uri)
    endpoints: list[EndpointDefinition] = []
    for path, item in paths.items():
        endpoints.extend(flatten_path_item(path, item, components, self_base, ref_resolver))
    return endpoints


def flatten_webhooks(
    webhooks: dict[str, PathItem],
    components: Components | None = None,
    ref_resolver: PathItemRefResolver | None = None,
    self_uri: str | None = None,
) -> list[EndpointDefinition]:
    """Flatten webhooks; each webhook key becomes the endpoint path."""
    return flatten_paths(webhooks, components, ref_resolver, self_uri)


def flatten_all(
    paths: dict[str, PathItem],
    webhooks: dict[str, PathItem],
    components: Components | None = None,
    ref_resolver: PathItemRefResolver | None = None,
    self_uri: str | None = None,
) -> list[EndpointDefinition]:
    return flatten_paths(paths, components, ref_resolver, self_uri) + flatten_webhooks(
        webhooks, components, ref_resolver, self_uri
    )


def _common(values: list):
    """Return the shared value when every entry is equal, else None."""
    first = values[0]
    if all(value == first for value in values[1:]):
        return first
    return None


def _build_path_item(operations: list[EndpointDefinition], lift: bool) -> PathItem:
    summary = description = None
    parameters: list[EndpointParameter] = []
    servers = []
    if lift:
        summary = _common([op.summary for op in operations])
        description = _common([op.description for op in operations])
        parameters = _common([op.parameters for op in operations]) or []
        servers = _common([op.servers for op in operations]) or []
        cleared = {}
        if summary is not None:
            cleared['summary'] = None
        if description is not None:
            cleared['description'] = None
        if parameters:
            cleared['parameters'] = []
        if servers:
            cleared['servers'] = []
        if cleared:
            operations = [op.model_copy(update=cleared) for op in operations]

    slots: dict[str, EndpointDefinition] = {}
    additional: dict[str, EndpointDefinition] = {}
    for operation in operations:
        if operation.method is HttpMethod.CUSTOM:
            additional[operation.custom_method or operation.method_name] = operation
        else:
            slots[operation.method.value.lower()] = operation

    return PathItem(
        summary=summary,
        description=description,
        parameters=parameters,
        servers=servers,
        additional_operations=additional,
        **slots,
    )


def build_paths(
    endpoints: Iterable[EndpointDefinition], lift_common_path_metadata: bool = False
) -> dict[str, PathItem]:
    """Group endpoints into path items keyed by path, in first-seen order.

    With ``lift_common_path_metadata`` a facet moves to the path item only
    when every operation on that path holds exactly the same value.
    """
    grouped: dict[str, list[EndpointDefinition]] = {}
    for endpoint in endpoints:
        grouped.setdefault(endpoint.path, []).append(endpoint)
    return {
        path: _build_path_item(operations, lift_common_path_metadata)
        for path, operations in grouped.items()
    }
