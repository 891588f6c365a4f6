"""Custom exceptions for apisync.

This module defines a hierarchy of exceptions used throughout the apisync library
to provide clear, actionable error messages for different failure scenarios.
"""


class ApiSyncError(Exception):
    """Base exception for all apisync errors.

    All exceptions raised by apisync inherit from this class, making it easy
    to catch every apisync-related error with a single except clause.

    Example:
        try:
            merge_dto(source, schema)
        except ApiSyncError as e:
            print(f"apisync error: {e}")
    """

    def __init__(self, message: str, *args, **kwargs):
        self.message = message
        super().__init__(message, *args, **kwargs)


class ValidationError(ApiSyncError):
    """An endpoint combines inputs that cannot be generated together.

    Raised before any source text is produced, so generation either succeeds
    completely or leaves nothing behind.

    Attributes:
        endpoint: The operationId of the offending endpoint.
        reason: What is wrong with it.
    """

    def __init__(self, endpoint: str, reason: str):
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(f"Invalid endpoint '{endpoint}': {reason}")


class NotFoundError(ApiSyncError):
    """A merge target declaration does not exist in the supplied source.

    Attributes:
        name: The declaration name that was looked up.
    """

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Declaration '{name}' not found in source")


class MalformedSourceError(ApiSyncError):
    """A merge target exists but cannot be patched.

    Attributes:
        name: The declaration name, if known.
        reason: Why the declaration cannot be patched.
    """

    def __init__(self, name: str | None, reason: str):
        self.name = name
        self.reason = reason
        message = f"Malformed declaration '{name}'" if name else 'Malformed source'
        super().__init__(f'{message}: {reason}')


class SchemaError(ApiSyncError):
    """Base exception for document-related errors."""

    pass


class SchemaLoadError(SchemaError):
    """Failed to load an OpenAPI document from a source.

    Attributes:
        source: The source path or URL that failed to load.
        cause: The underlying exception that caused the failure.
    """

    def __init__(self, source: str, cause: Exception | None = None):
        self.source = source
        self.cause = cause
        message = f"Failed to load document from '{source}'"
        if cause:
            message += f': {cause}'
        super().__init__(message)


class SchemaReferenceError(SchemaError):
    """Failed to resolve a $ref reference in the document.

    Attributes:
        reference: The $ref string that could not be resolved.
        reason: Explanation of why the reference couldn't be resolved.
    """

    def __init__(self, reference: str, reason: str | None = None):
        self.reference = reference
        self.reason = reason
        message = f"Failed to resolve reference '{reference}'"
        if reason:
            message += f': {reason}'
        super().__init__(message)


class ConfigurationError(ApiSyncError):
    """Error in configuration.

    Attributes:
        config_path: The path to the configuration file, if applicable.
        field: The specific configuration field that is invalid.
    """

    def __init__(
        self, message: str, config_path: str | None = None, field: str | None = None
    ):
        self.config_path = config_path
        self.field = field
        full_message = message
        if config_path:
            full_message = f"{message} in '{config_path}'"
        if field:
            full_message += f' (field: {field})'
        super().__init__(full_message)


class OutputError(ApiSyncError):
    """Error writing generated output.

    Attributes:
        output_path: The path where output was being written.
        cause: The underlying exception that caused the failure.
    """

    def __init__(self, output_path: str, cause: Exception | None = None):
        self.output_path = output_path
        self.cause = cause
        message = f"Failed to write output to '{output_path}'"
        if cause:
            message += f': {cause}'
        super().__init__(message)
