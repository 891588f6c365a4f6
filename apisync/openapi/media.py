"""Media type selection for request bodies and responses."""

from collections.abc import Mapping

from apisync.runtime.codecs import is_json_media_type

__all__ = ['choose_body_media_type', 'choose_response_media_type', 'specificity']


def specificity(media_type: str) -> int:
    """Rank a media range: ``*/*`` is 0, ``type/*`` is 1, a full type is 2."""
    essence = media_type.split(';', 1)[0].strip()
    if essence == '*/*':
        return 0
    if essence.endswith('/*'):
        return 1
    return 2


def choose_body_media_type(content: Mapping) -> str | None:
    """The first JSON-compatible media type, else the first declared one."""
    for media_type in content:
        if is_json_media_type(media_type) and specificity(media_type) == 2:
            return media_type
    return next(iter(content), None)


def choose_response_media_type(content: Mapping) -> str | None:
    """The most specific declared media type; ties keep declaration order."""
    best = None
    for media_type in content:
        if best is None or specificity(media_type) > specificity(best):
            best = media_type
    return best
