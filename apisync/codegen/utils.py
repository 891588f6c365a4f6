import keyword
import re
import unicodedata
from urllib.parse import urlparse

__all__ = (
    'is_url',
    'sanitize_identifier',
    'class_name',
    'enum_case_name',
    'to_snake_case',
    'sanitize_parameter_field_name',
)


def capitalize(input_string):
    if not input_string:
        return ''
    return input_string[0].upper() + input_string[1:]


def is_url(text):
    try:
        result = urlparse(text)
        return all([result.scheme, result.netloc])
    except (TypeError, ValueError, AttributeError):
        return False


def remove_accents(input_str):
    nfkd_form = unicodedata.normalize('NFKD', input_str)
    return ''.join(c for c in nfkd_form if not unicodedata.combining(c))


def sanitize_name_python_keywords(name: str) -> str:
    if name in keyword.kwlist:
        return f'{name}_'
    return name


def to_snake_case(name: str) -> str:
    """Convert camelCase, PascalCase or kebab-case into snake_case.

    >>> to_snake_case('getPetById')
    'get_pet_by_id'
    >>> to_snake_case('X-Request-ID')
    'x_request_id'
    """
    name = remove_accents(name)
    name = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', name)
    name = re.sub(r'([a-z0-9])([A-Z])', r'\1_\2', name)
    name = re.sub(r'[^A-Za-z0-9]+', '_', name).strip('_').lower()
    return name


def sanitize_parameter_field_name(name: str) -> str:
    """Sanitize parameter or field names to be valid Python identifiers.

    - Convert to snake_case
    - Remove other invalid characters
    - Ensure it doesn't start with a digit or clash with a keyword
    """
    if not name:
        raise ValueError('Name cannot be empty')

    sanitized = to_snake_case(name) or '_'
    sanitized = re.sub(r'[^A-Za-z0-9_]', '', sanitized)

    if sanitized and sanitized[0].isdigit():
        sanitized = '_' + sanitized
    return sanitize_name_python_keywords(sanitized)


def sanitize_identifier(name: str) -> str:
    """Convert a string into a valid Python identifier.

    - Replace spaces and hyphens with underscores
    - Remove other invalid characters
    - Ensure it doesn't start with a digit
    - Convert to PascalCase for class names
    """
    if not name:
        return 'UnnamedType'

    parts = re.sub(r'[^A-Za-z0-9]+', '_', remove_accents(name)).split('_')

    if len(parts) == 1:
        sanitized = parts[0]
    else:
        sanitized = ''.join(capitalize(part) for part in parts if part)

    sanitized = re.sub(r'[^A-Za-z0-9_]', '', sanitized)

    if sanitized and sanitized[0].isdigit():
        sanitized = '_' + sanitized

    return sanitized or 'UnnamedType'


def class_name(name: str) -> str:
    """PascalCase class name for a schema or API name."""
    sanitized = sanitize_identifier(name)
    if sanitized.startswith('_'):
        return sanitized
    return capitalize(sanitized)


def enum_case_name(literal: str) -> str:
    """Build an enumeration case name from a literal.

    Non-alphanumeric runs split words, each word is title-cased, a leading
    digit gets an underscore prefix and an empty result becomes ``Unknown``.

    >>> enum_case_name('in_progress')
    'InProgress'
    >>> enum_case_name('2fa')
    '_2fa'
    """
    words = re.sub(r'[^A-Za-z0-9]', ' ', remove_accents(literal)).split()
    name = ''.join(word.lower().capitalize() for word in words)
    if not name:
        return 'Unknown'
    if name[0].isdigit():
        return '_' + name
    return name
