"""
msgdiff - Structural comparison of schema-described messages

Decides whether two messages of the same type are equal under a
configurable equivalence relation (field presence, repeated field order,
field scopes) and explains every difference it finds.
"""

from .differ import MessageDifferencer
from .engine import MessageDiffEngine, configure_logging, diff
from .exceptions import (
    ComparisonFailure,
    InvalidPathError,
    MsgDiffError,
    SchemaParseError,
    UnknownFieldError,
    ValidationError,
)
from .models import (
    ComparisonConfig,
    DiffReport,
    EngineConfig,
    FieldPresence,
    LogLevel,
    RepeatedFieldComparison,
    ReportType,
    SpecificField,
    Summary,
)
from .reporter import RecordingReporter, ReporterRecord, StreamReporter
from .schema import (
    FieldDescriptor,
    FieldType,
    Label,
    Message,
    MessageDescriptor,
    SchemaRegistry,
)
from .scope import (
    FieldScope,
    FieldScopes,
    IgnoreCriteria,
    ScopeResult,
    and_scopes,
    format_path,
    not_scope,
)
from .subject import FluentEquality, MessageSubject, assert_that, raise_failure
from .text_format import print_to_string, print_value

__version__ = "1.0.0"
__all__ = [
    # Engine
    "MessageDiffEngine",
    "MessageDifferencer",
    "EngineConfig",
    "LogLevel",
    "configure_logging",
    "diff",
    # Configuration
    "ComparisonConfig",
    "FieldPresence",
    "RepeatedFieldComparison",
    # Scopes
    "FieldScope",
    "FieldScopes",
    "IgnoreCriteria",
    "ScopeResult",
    "and_scopes",
    "not_scope",
    "format_path",
    # Reports
    "DiffReport",
    "Summary",
    "ReportType",
    "SpecificField",
    "ReporterRecord",
    "RecordingReporter",
    "StreamReporter",
    # Schema
    "SchemaRegistry",
    "MessageDescriptor",
    "FieldDescriptor",
    "FieldType",
    "Label",
    "Message",
    "print_to_string",
    "print_value",
    # Assertions
    "MessageSubject",
    "FluentEquality",
    "assert_that",
    "raise_failure",
    # Errors
    "MsgDiffError",
    "ValidationError",
    "SchemaParseError",
    "UnknownFieldError",
    "InvalidPathError",
    "ComparisonFailure",
]
