"""Turn ``$ref`` strings into short type-name hints.

Only the name is derived here; looking up what the reference points at is
left to the caller (the components registry or an external resolver).
"""

from urllib.parse import unquote

__all__ = ['resolve_ref_to_type', 'unescape_json_pointer']


def unescape_json_pointer(token: str) -> str:
    return token.replace('~1', '/').replace('~0', '~')


def resolve_ref_to_type(ref: str) -> str:
    """Extract a type name from a reference.

    Examples:
        >>> resolve_ref_to_type('#/components/schemas/User')
        'User'
        >>> resolve_ref_to_type('./models/Address.json')
        'Address'
        >>> resolve_ref_to_type('https://example.com/Order.yaml#/definitions/Detail')
        'Detail'
        >>> resolve_ref_to_type('SimpleType')
        'SimpleType'
        >>> resolve_ref_to_type('#')
        '#'
    """
    if '#' in ref:
        fragment = unquote(ref.rsplit('#', 1)[1])
        if fragment.startswith('/'):
            tokens = [token for token in fragment.split('/') if token]
            if tokens:
                return unescape_json_pointer(tokens[-1])
        elif fragment:
            return unescape_json_pointer(fragment)

    path = ref.split('#', 1)[0]
    if path:
        filename = unquote(path.rsplit('/', 1)[-1])
        if '.' in filename:
            return filename.rsplit('.', 1)[0]
        if filename:
            return filename

    return ref.rsplit('/', 1)[-1]
