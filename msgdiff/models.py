"""Data models for msgdiff."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .schema import FieldDescriptor
    from .scope import FieldScope


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class ReportType(Enum):
    ADDED = "ADDED"
    DELETED = "DELETED"
    MODIFIED = "MODIFIED"
    MATCHED = "MATCHED"
    IGNORED = "IGNORED"

    @property
    def is_failure(self) -> bool:
        return self in (ReportType.ADDED, ReportType.DELETED, ReportType.MODIFIED)


class FieldPresence(Enum):
    """How an unset field compares against one set to its default."""
    EQUAL = "equal"
    EQUIVALENT = "equivalent"


class RepeatedFieldComparison(Enum):
    AS_LIST = "as_list"
    AS_SET = "as_set"


@dataclass
class EngineConfig:
    """Global configuration for the comparison engine."""
    log_level: Optional[LogLevel] = None
    trace_scope_decisions: bool = False


@dataclass(frozen=True)
class SpecificField:
    """
    One step of a field path.

    ``index`` is the element position on the expected side of a repeated
    field, ``new_index`` the position on the actual side (they differ only
    for unordered matches), ``map_key`` the key of a map entry.
    """
    field: FieldDescriptor
    index: Optional[int] = None
    new_index: Optional[int] = None
    map_key: Any = None


def _all_fields_scope() -> FieldScope:
    from .scope import FieldScopes
    return FieldScopes.all()


@dataclass(frozen=True)
class ComparisonConfig:
    """
    Immutable equivalence relation used for one comparison.

    Builder methods return updated copies; a config handed to a
    differencer is never mutated afterwards.
    """
    field_presence: FieldPresence = FieldPresence.EQUAL
    repeated_field_comparison: RepeatedFieldComparison = RepeatedFieldComparison.AS_LIST
    report_matches: bool = True
    field_scope: FieldScope = field(default_factory=_all_fields_scope)

    def ignoring_field_absence(self) -> ComparisonConfig:
        return replace(self, field_presence=FieldPresence.EQUIVALENT)

    def ignoring_repeated_field_order(self) -> ComparisonConfig:
        return replace(self, repeated_field_comparison=RepeatedFieldComparison.AS_SET)

    def reporting_mismatches_only(self) -> ComparisonConfig:
        return replace(self, report_matches=False)

    def with_partial_scope(self, scope: FieldScope) -> ComparisonConfig:
        from .scope import and_scopes
        return replace(self, field_scope=and_scopes(self.field_scope, _require_scope(scope)))

    def ignoring_fields(self, *field_numbers: int) -> ComparisonConfig:
        return replace(self, field_scope=self.field_scope.ignoring_fields(*field_numbers))

    def ignoring_field_descriptors(self, *descriptors: FieldDescriptor) -> ComparisonConfig:
        return replace(
            self, field_scope=self.field_scope.ignoring_field_descriptors(*descriptors)
        )

    def ignoring_field_scope(self, scope: FieldScope) -> ComparisonConfig:
        return replace(
            self, field_scope=self.field_scope.ignoring_field_scope(_require_scope(scope))
        )


def _require_scope(scope):
    if scope is None:
        raise TypeError("field scope must not be None")
    return scope


@dataclass
class Summary:
    """Summary statistics of one comparison."""
    fields_compared: int = 0
    mismatches_found: int = 0
    matches_found: int = 0
    fields_ignored: int = 0

    def to_dict(self) -> dict:
        return {
            "fields_compared": self.fields_compared,
            "mismatches_found": self.mismatches_found,
            "matches_found": self.matches_found,
            "fields_ignored": self.fields_ignored,
        }


@dataclass
class DiffReport:
    """Complete comparison report."""
    is_match: bool
    message_type: str
    summary: Summary
    records: list = field(default_factory=list)
    rendered: list[str] = field(default_factory=list)

    @property
    def failures(self) -> list:
        return [r for r in self.records if r.is_failure]

    def to_dict(self) -> dict:
        return {
            "is_match": self.is_match,
            "message_type": self.message_type,
            "summary": self.summary.to_dict(),
            "diffs": [r.to_dict() for r in self.records],
        }
