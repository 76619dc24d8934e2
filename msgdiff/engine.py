"""Main comparison engine for msgdiff."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .differ import MessageDifferencer
from .exceptions import ValidationError
from .models import (
    ComparisonConfig,
    DiffReport,
    EngineConfig,
    LogLevel,
    ReportType,
    Summary,
)
from .reporter import RecordingReporter

logger = logging.getLogger(__name__)

_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


def configure_logging(level: LogLevel) -> None:
    """Set the level of the msgdiff package logger."""
    logging.getLogger("msgdiff").setLevel(_LEVELS[level])


class MessageDiffEngine:
    """
    Runs one comparison and collects its events into a DiffReport.

    The pipeline is:

    1. Input validation: both messages present and of the same type
    2. Scope compilation: the config's field scope is bound to the type
    3. Differencing: recursive field-by-field comparison
    4. Summary: event counts and a rendered line per event
    """

    VERSION = "1.0.0"

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Initialize the engine.

        Args:
            config: Engine configuration (uses defaults if not provided)
        """
        self.config = config or EngineConfig()
        if self.config.log_level is not None:
            configure_logging(self.config.log_level)

    def compare(
        self,
        expected: Any,
        actual: Any,
        comparison: Optional[ComparisonConfig] = None
    ) -> DiffReport:
        """
        Compare two messages.

        Args:
            expected: The expected message
            actual: The message under test
            comparison: Equivalence relation to apply (strict if not provided)

        Returns:
            DiffReport with every event of the comparison

        Raises:
            ValidationError: If an input is missing or the types differ
            UnknownFieldError: If the field scope names an unknown field
        """
        comparison = comparison or ComparisonConfig()
        self._validate_inputs(expected, actual)

        criteria = comparison.field_scope.to_ignore_criteria(expected.descriptor)
        differ = MessageDifferencer(
            comparison,
            ignore_criteria=criteria,
            trace_scope=self.config.trace_scope_decisions
        )

        reporter = RecordingReporter(report_mismatches_only=not comparison.report_matches)
        is_match = differ.compare(expected, actual, reporter)

        report = DiffReport(
            is_match=is_match,
            message_type=expected.descriptor.name,
            summary=self._summarize(reporter),
            records=list(reporter.records),
            rendered=reporter.render().splitlines(),
        )
        logger.info(
            "Compared %s: match=%s, %d mismatches",
            report.message_type, is_match, report.summary.mismatches_found
        )
        return report

    def _validate_inputs(self, expected: Any, actual: Any):
        """Validate input parameters."""
        # Check for None values
        if expected is None:
            raise ValidationError("expected is required")
        if actual is None:
            raise ValidationError("actual is required")

        descriptor = getattr(expected, "descriptor", None)
        if descriptor is None or getattr(actual, "descriptor", None) is not descriptor:
            raise ValidationError(
                "expected and actual must be messages of the same type",
                {"expected": type(expected).__name__, "actual": type(actual).__name__}
            )

    def _summarize(self, reporter: RecordingReporter) -> Summary:
        summary = Summary()
        for record in reporter.records:
            if record.is_failure:
                summary.mismatches_found += 1
            elif record.type == ReportType.MATCHED:
                summary.matches_found += 1
            elif record.type == ReportType.IGNORED:
                summary.fields_ignored += 1
        summary.fields_compared = summary.mismatches_found + summary.matches_found
        return summary


def diff(
    expected: Any,
    actual: Any,
    comparison: Optional[ComparisonConfig] = None,
    config: Optional[EngineConfig] = None
) -> DiffReport:
    """
    Convenience function to compare two messages.

    Args:
        expected: The expected message
        actual: The message under test
        comparison: Optional equivalence relation
        config: Optional engine configuration

    Returns:
        DiffReport
    """
    engine = MessageDiffEngine(config)
    return engine.compare(expected, actual, comparison)
