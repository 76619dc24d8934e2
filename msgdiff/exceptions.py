"""Custom exceptions for msgdiff."""


class MsgDiffError(Exception):
    """Base exception for msgdiff errors."""
    pass


class ValidationError(MsgDiffError):
    """Raised when input validation fails."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SchemaParseError(MsgDiffError):
    """Raised when a schema document cannot be turned into descriptors."""
    def __init__(self, message: str, reason: str = None):
        super().__init__(message)
        self.message = message
        self.reason = reason


class UnknownFieldError(MsgDiffError):
    """Raised when a field scope references a field the schema does not have."""
    def __init__(self, descriptor_name: str, field):
        super().__init__(f"Message type '{descriptor_name}' has no field {field!r}")
        self.descriptor_name = descriptor_name
        self.field = field


class InvalidPathError(MsgDiffError):
    """Raised when a JSONPath field pattern cannot be parsed."""
    def __init__(self, path: str, reason: str):
        super().__init__(f"Invalid field path '{path}': {reason}")
        self.path = path
        self.reason = reason


class ComparisonFailure(AssertionError):
    """Raised by the default failure strategy when a message assertion fails."""
    def __init__(self, narrative: str):
        super().__init__(narrative)
        self.narrative = narrative
