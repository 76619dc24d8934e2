"""Fluent assertions about messages."""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, runtime_checkable

from .differ import MessageDifferencer
from .exceptions import ComparisonFailure, ValidationError
from .models import ComparisonConfig
from .reporter import RecordingReporter
from .schema import FieldDescriptor, Message
from .scope import FieldScope

FailureStrategy = Callable[[str], None]


def raise_failure(narrative: str) -> None:
    """Default failure strategy: raise ComparisonFailure."""
    raise ComparisonFailure(narrative)


@runtime_checkable
class FluentEquality(Protocol):
    """Configurable message equality, as offered by MessageSubject."""

    def ignoring_field_absence(self) -> FluentEquality: ...

    def ignoring_repeated_field_order(self) -> FluentEquality: ...

    def with_partial_scope(self, scope: FieldScope) -> FluentEquality: ...

    def ignoring_fields(self, *field_numbers: int) -> FluentEquality: ...

    def ignoring_field_descriptors(self, *descriptors: FieldDescriptor) -> FluentEquality: ...

    def ignoring_field_scope(self, scope: FieldScope) -> FluentEquality: ...

    def reporting_mismatches_only(self) -> FluentEquality: ...

    def is_equal_to(self, expected: Any) -> None: ...

    def is_not_equal_to(self, expected: Any) -> None: ...


class MessageSubject:
    """
    Assertions about one message value.

    ``assert_that(actual).is_equal_to(expected)`` checks the same thing as
    ``actual == expected``, but failures explain which fields differ. The
    comparison is strict by default; configuration methods such as
    ``ignoring_repeated_field_order()`` return a new subject with a relaxed
    equivalence relation and leave the receiver untouched.

    Every comparison builds its differencer and reporter from a snapshot
    of the subject's ComparisonConfig, so a subject may be reused.
    """

    def __init__(
        self,
        actual: Any,
        config: Optional[ComparisonConfig] = None,
        failure_strategy: FailureStrategy = raise_failure,
        custom_name: Optional[str] = None
    ):
        self.actual = actual
        self.config = config or ComparisonConfig()
        self.failure_strategy = failure_strategy
        self.custom_name = custom_name

    def _with_config(self, config: ComparisonConfig) -> MessageSubject:
        if isinstance(self.actual, Message):
            # Surface unknown fields now rather than when comparing
            config.field_scope.to_ignore_criteria(self.actual.descriptor)
        return MessageSubject(self.actual, config, self.failure_strategy, self.custom_name)

    def named(self, name: str) -> MessageSubject:
        return MessageSubject(self.actual, self.config, self.failure_strategy, name)

    def ignoring_field_absence(self) -> MessageSubject:
        """Treat unset fields as equal to fields set to their default value."""
        return self._with_config(self.config.ignoring_field_absence())

    def ignoring_repeated_field_order(self) -> MessageSubject:
        """Compare repeated fields as multisets."""
        return self._with_config(self.config.ignoring_repeated_field_order())

    def with_partial_scope(self, scope: FieldScope) -> MessageSubject:
        """Only compare fields inside scope (and the current scope)."""
        return self._with_config(self.config.with_partial_scope(scope))

    def ignoring_fields(self, *field_numbers: int) -> MessageSubject:
        return self._with_config(self.config.ignoring_fields(*field_numbers))

    def ignoring_field_descriptors(self, *descriptors: FieldDescriptor) -> MessageSubject:
        return self._with_config(self.config.ignoring_field_descriptors(*descriptors))

    def ignoring_field_scope(self, scope: FieldScope) -> MessageSubject:
        """Exclude every field inside scope from the comparison."""
        return self._with_config(self.config.ignoring_field_scope(scope))

    def reporting_mismatches_only(self) -> MessageSubject:
        """Leave matched and ignored fields out of failure messages."""
        return self._with_config(self.config.reporting_mismatches_only())

    def is_equal_to(self, expected: Any) -> None:
        actual = self.actual
        if not _comparable(actual, expected):
            if actual != expected:
                self._fail(f"Not true that {self._display()} is equal to <{expected!r}>")
            return

        reporter = self._make_reporter()
        if not self._make_differencer().compare(expected, actual, reporter):
            self._fail(reporter.fail_equal(expected, actual))

    def is_not_equal_to(self, expected: Any) -> None:
        actual = self.actual
        if not _comparable(actual, expected):
            if actual == expected:
                self._fail(f"Not true that {self._display()} is not equal to <{expected!r}>")
            return

        reporter = self._make_reporter()
        if self._make_differencer().compare(expected, actual, reporter):
            self._fail(reporter.fail_not_equal(expected, actual))

    def has_all_required_fields(self) -> None:
        if not isinstance(self.actual, Message):
            raise ValidationError(
                "has_all_required_fields() needs a message",
                {"type": type(self.actual).__name__}
            )
        if not self.actual.is_initialized():
            self._fail(
                f"Not true that {self._display()} has all required fields set. "
                f"Missing: {self.actual.find_initialization_errors()}"
            )

    def _make_differencer(self) -> MessageDifferencer:
        return MessageDifferencer(
            self.config,
            ignore_criteria=self.config.field_scope.to_ignore_criteria(self.actual.descriptor),
        )

    def _make_reporter(self) -> RecordingReporter:
        return RecordingReporter(
            custom_name=self.custom_name,
            report_mismatches_only=not self.config.report_matches,
        )

    def _display(self) -> str:
        if self.custom_name is not None:
            return f"{self.custom_name} (<{self.actual!r}>)"
        return f"<{self.actual!r}>"

    def _fail(self, narrative: str) -> None:
        self.failure_strategy(narrative)


def _comparable(actual: Any, expected: Any) -> bool:
    return (
        isinstance(actual, Message)
        and isinstance(expected, Message)
        and actual.descriptor is expected.descriptor
    )


def assert_that(
    actual: Any,
    failure_strategy: FailureStrategy = raise_failure
) -> MessageSubject:
    """
    Start an assertion about a message.

    Args:
        actual: The message under test
        failure_strategy: Receives the failure message; raises by default

    Returns:
        MessageSubject with the strict default configuration
    """
    return MessageSubject(actual, failure_strategy=failure_strategy)
