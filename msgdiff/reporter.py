"""Aggregation of comparison events into failure narratives."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Any, Optional, TextIO

from .models import ReportType
from .schema import Message
from .scope import format_path
from .text_format import print_to_string, print_value


@dataclass(frozen=True)
class ReporterRecord:
    """One comparison event: what happened, where, between which messages."""
    type: ReportType
    message1: Message
    message2: Message
    path: tuple

    @property
    def is_failure(self) -> bool:
        """Whether this record is an actionable difference."""
        return self.type.is_failure

    @property
    def old_value(self) -> Any:
        if self.type == ReportType.ADDED:
            return None
        return _value_at(self.message1, self.path[-1], self.path[-1].index)

    @property
    def new_value(self) -> Any:
        if self.type == ReportType.DELETED:
            return None
        return _value_at(self.message2, self.path[-1], self.path[-1].new_index)

    def to_dict(self) -> dict:
        return {
            "path": format_path(self.path),
            "type": self.type.value,
            "old_value": _printable(self.old_value),
            "new_value": _printable(self.new_value),
        }


def _value_at(message: Message, segment, position: Optional[int]) -> Any:
    """Value of the field occurrence a path segment points at."""
    value = message.get_field(segment.field)
    if segment.map_key is not None:
        return value.get(segment.map_key)
    if segment.field.is_repeated:
        if position is None or position >= len(value):
            return None
        return value[position]
    return value


def _printable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return print_value(value)


class StreamReporter:
    """Writes one line per event to a text stream."""

    def __init__(self, stream: TextIO):
        self.stream = stream

    def report(
        self,
        report_type: ReportType,
        message1: Message,
        message2: Message,
        path: tuple
    ) -> None:
        self.report_record(ReporterRecord(report_type, message1, message2, path))

    def report_record(self, record: ReporterRecord) -> None:
        location = format_path(record.path)
        if record.type == ReportType.ADDED:
            line = f"added: {location}: {print_value(record.new_value)}"
        elif record.type == ReportType.DELETED:
            line = f"deleted: {location}: {print_value(record.old_value)}"
        elif record.type == ReportType.MODIFIED:
            line = (
                f"modified: {location}: "
                f"{print_value(record.old_value)} -> {print_value(record.new_value)}"
            )
        elif record.type == ReportType.MATCHED:
            line = f"matched: {location}: {print_value(record.new_value)}"
        else:
            line = f"ignored: {location}"
        self.stream.write(line + "\n")


class RecordingReporter:
    """
    Buffers every event of one comparison and renders the failure message.

    Rendering needs the whole stream: whether any failure or any notice
    (MATCHED, IGNORED) was seen decides which sections are printed.
    """

    def __init__(self, custom_name: Optional[str] = None, report_mismatches_only: bool = False):
        self.custom_name = custom_name
        self.report_mismatches_only = report_mismatches_only
        self.records: list[ReporterRecord] = []
        self.any_failures = False
        self.any_notices = False

    def report(
        self,
        report_type: ReportType,
        message1: Message,
        message2: Message,
        path: tuple
    ) -> None:
        record = ReporterRecord(report_type, message1, message2, path)
        self.any_failures |= record.is_failure
        self.any_notices |= not record.is_failure
        self.records.append(record)

    def render(self, failures_only: bool = False) -> str:
        out = io.StringIO()
        stream_reporter = StreamReporter(out)
        for record in self.records:
            if record.is_failure or not failures_only:
                stream_reporter.report_record(record)
        return out.getvalue()

    def fail_equal(self, expected: Message, actual: Message) -> str:
        """
        Narrative for an equality assertion that did not hold.

        Args:
            expected: The expected message
            actual: The message under test

        Returns:
            The failure message
        """
        out = io.StringIO()
        out.write("Not true that ")
        if self.custom_name is not None:
            out.write(f"{self.custom_name} compares equal. ")
        else:
            out.write("messages compare equal. ")

        if self.any_failures:
            out.write("Differences were found:\n")
            out.write(self.render(failures_only=True))

            if self.any_notices and not self.report_mismatches_only:
                out.write("\nFull diff:\n")
                out.write(self.render())
        else:
            out.write("No differences were reported.")
            if not self.report_mismatches_only:
                if self.any_notices:
                    out.write("\nFull diff:\n")
                    out.write(self.render())
                else:
                    # Nothing was compared; print both values instead
                    _write_values(out, expected, actual)

        return out.getvalue()

    def fail_not_equal(self, expected: Message, actual: Message) -> str:
        """Narrative for an inequality assertion that did not hold."""
        out = io.StringIO()
        out.write("Not true that ")
        if self.custom_name is not None:
            out.write(f"{self.custom_name} compares not equal. ")
        else:
            out.write("messages compare not equal. ")

        if self.records and not self.report_mismatches_only:
            out.write("Only ignorable differences were found:\n")
            out.write(self.render())
        else:
            out.write("No differences were found.")
            if not self.report_mismatches_only:
                _write_values(out, expected, actual)

        return out.getvalue()


def _write_values(out: io.StringIO, expected: Message, actual: Message):
    out.write("\nActual:\n")
    out.write(print_to_string(actual))
    out.write("Expected:\n")
    out.write(print_to_string(expected))
