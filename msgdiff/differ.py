"""Recursive, schema-driven comparison of two messages."""

from __future__ import annotations

import logging
import math
from typing import Any, Optional, Protocol

from .exceptions import ValidationError
from .matcher import match_repeated_elements
from .models import (
    ComparisonConfig,
    FieldPresence,
    RepeatedFieldComparison,
    ReportType,
    SpecificField,
)
from .schema import FieldDescriptor, FieldType, Message
from .scope import IgnoreCriteria, format_path

logger = logging.getLogger(__name__)


class Reporter(Protocol):
    """Receives one event per compared field occurrence."""

    def report(
        self,
        report_type: ReportType,
        message1: Message,
        message2: Message,
        path: tuple
    ) -> None:
        ...


class MessageDifferencer:
    """
    Compares two messages of the same type under a ComparisonConfig.

    Handles:
    - Presence-sensitive (EQUAL) and default-insensitive (EQUIVALENT) fields
    - Repeated fields as ordered lists or unordered sets
    - Map fields keyed by their entry keys
    - Field scopes, reporting out-of-scope fields as IGNORED

    ``message1`` of every event is the expected side, ``message2`` the
    actual side.
    """

    def __init__(
        self,
        config: Optional[ComparisonConfig] = None,
        ignore_criteria: Optional[IgnoreCriteria] = None,
        trace_scope: bool = False
    ):
        self.config = config or ComparisonConfig()
        self.ignore_criteria = ignore_criteria
        self.trace_scope = trace_scope

    def compare(
        self,
        expected: Message,
        actual: Message,
        reporter: Optional[Reporter] = None
    ) -> bool:
        """
        Compare two messages, streaming events to reporter.

        Args:
            expected: The expected message
            actual: The message under test
            reporter: Event sink; None compares silently

        Returns:
            True if no ADDED, DELETED or MODIFIED event was produced
        """
        self._validate_inputs(expected, actual)

        criteria = self.ignore_criteria
        if criteria is None or criteria.root is not expected.descriptor:
            criteria = self.config.field_scope.to_ignore_criteria(expected.descriptor)

        logger.debug(
            "Comparing %s messages (presence=%s, repeated=%s)",
            expected.descriptor.name,
            self.config.field_presence.value,
            self.config.repeated_field_comparison.value
        )
        result = self._compare_messages(expected, actual, (), reporter, criteria)
        logger.debug("Comparison of %s finished: equal=%s", expected.descriptor.name, result)
        return result

    def _validate_inputs(self, expected: Any, actual: Any):
        """Validate input parameters."""
        if expected is None:
            raise ValidationError("expected message is required")
        if actual is None:
            raise ValidationError("actual message is required")
        if not isinstance(expected, Message) or not isinstance(actual, Message):
            raise ValidationError(
                "both values must be messages",
                {"expected": type(expected).__name__, "actual": type(actual).__name__}
            )
        if expected.descriptor is not actual.descriptor:
            raise ValidationError(
                "messages have different types",
                {"expected": expected.descriptor.name, "actual": actual.descriptor.name}
            )

    def _compare_messages(
        self,
        message1: Message,
        message2: Message,
        path: tuple,
        reporter: Optional[Reporter],
        criteria: IgnoreCriteria
    ) -> bool:
        """Compare every declared field of two messages of one type."""
        all_match = True

        for field in message1.descriptor.fields:
            field_path = path + (SpecificField(field),)

            if criteria.is_ignored(field_path):
                if message1.has_field(field) or message2.has_field(field):
                    if self.trace_scope:
                        logger.debug("Ignoring %s", format_path(field_path))
                    self._report(reporter, ReportType.IGNORED, message1, message2, field_path)
                continue

            if field.is_map:
                matched = self._compare_maps(message1, message2, field, path, reporter, criteria)
            elif field.is_repeated:
                matched = self._compare_repeated(message1, message2, field, path, reporter, criteria)
            else:
                matched = self._compare_singular(
                    message1, message2, field, field_path, reporter, criteria
                )

            if not matched:
                all_match = False
                if reporter is None:
                    return False

        return all_match

    def _compare_singular(
        self,
        message1: Message,
        message2: Message,
        field: FieldDescriptor,
        field_path: tuple,
        reporter: Optional[Reporter],
        criteria: IgnoreCriteria
    ) -> bool:
        present1 = message1.has_field(field)
        present2 = message2.has_field(field)

        if not present1 and not present2:
            return True

        if self.config.field_presence == FieldPresence.EQUAL and present1 != present2:
            report_type = ReportType.DELETED if present1 else ReportType.ADDED
            self._report(reporter, report_type, message1, message2, field_path)
            return False

        # EQUIVALENT: the unset side reads as the default value or an empty message
        return self._compare_values(
            message1, message2, field,
            message1.get_field(field), message2.get_field(field),
            field_path, reporter, criteria
        )

    def _compare_values(
        self,
        message1: Message,
        message2: Message,
        field: FieldDescriptor,
        value1: Any,
        value2: Any,
        path: tuple,
        reporter: Optional[Reporter],
        criteria: IgnoreCriteria
    ) -> bool:
        """Compare one pair of values at the same position or key."""
        if field.value_type == FieldType.MESSAGE:
            is_match = self._compare_messages(value1, value2, path, reporter, criteria)
        else:
            is_match = _scalars_equal(value1, value2)
            if not is_match:
                self._report(reporter, ReportType.MODIFIED, message1, message2, path)

        if is_match:
            self._report(reporter, ReportType.MATCHED, message1, message2, path)
        return is_match

    def _compare_repeated(
        self,
        message1: Message,
        message2: Message,
        field: FieldDescriptor,
        path: tuple,
        reporter: Optional[Reporter],
        criteria: IgnoreCriteria
    ) -> bool:
        """Compare a repeated field based on the repeated-field mode."""
        list1 = message1.get_field(field)
        list2 = message2.get_field(field)

        if not list1 and not list2:
            return True

        if self.config.repeated_field_comparison == RepeatedFieldComparison.AS_SET:
            return self._compare_as_set(message1, message2, field, list1, list2, path, reporter, criteria)
        return self._compare_as_list(message1, message2, field, list1, list2, path, reporter, criteria)

    def _compare_as_list(
        self,
        message1: Message,
        message2: Message,
        field: FieldDescriptor,
        list1: tuple,
        list2: tuple,
        path: tuple,
        reporter: Optional[Reporter],
        criteria: IgnoreCriteria
    ) -> bool:
        """Compare elements index-by-index (order matters)."""
        all_match = True

        # Common indices come first, then the tail of the longer side
        for i in range(max(len(list1), len(list2))):
            if i < len(list1) and i < len(list2):
                element_path = path + (SpecificField(field, index=i, new_index=i),)
            elif i < len(list1):
                element_path = path + (SpecificField(field, index=i),)
            else:
                element_path = path + (SpecificField(field, new_index=i),)

            if criteria.is_ignored(element_path):
                self._report(reporter, ReportType.IGNORED, message1, message2, element_path)
                continue

            if i >= len(list2):
                self._report(reporter, ReportType.DELETED, message1, message2, element_path)
                matched = False
            elif i >= len(list1):
                self._report(reporter, ReportType.ADDED, message1, message2, element_path)
                matched = False
            else:
                matched = self._compare_values(
                    message1, message2, field, list1[i], list2[i], element_path, reporter, criteria
                )

            if not matched:
                all_match = False
                if reporter is None:
                    return False

        return all_match

    def _compare_as_set(
        self,
        message1: Message,
        message2: Message,
        field: FieldDescriptor,
        list1: tuple,
        list2: tuple,
        path: tuple,
        reporter: Optional[Reporter],
        criteria: IgnoreCriteria
    ) -> bool:
        """Compare elements as a multiset (order ignored, duplicates matter)."""
        is_message = field.value_type == FieldType.MESSAGE

        def equals(i: int, j: int) -> bool:
            # Probe silently so that failed pairings leave no events behind
            probe_path = path + (SpecificField(field, index=i, new_index=j),)
            return self._compare_values(
                message1, message2, field, list1[i], list2[j], probe_path, None, criteria
            )

        match = match_repeated_elements(list1, list2, equals, hashable=not is_message)

        if reporter is None:
            return match.is_complete

        for i in range(len(list1)):
            j = match.pairs.get(i)
            if j is None:
                self._report(
                    reporter, ReportType.DELETED, message1, message2,
                    path + (SpecificField(field, index=i),)
                )
                continue
            # Replays the pair to surface IGNORED and MATCHED events
            self._compare_values(
                message1, message2, field, list1[i], list2[j],
                path + (SpecificField(field, index=i, new_index=j),), reporter, criteria
            )

        for j in match.unmatched_actual:
            self._report(
                reporter, ReportType.ADDED, message1, message2,
                path + (SpecificField(field, new_index=j),)
            )

        return match.is_complete

    def _compare_maps(
        self,
        message1: Message,
        message2: Message,
        field: FieldDescriptor,
        path: tuple,
        reporter: Optional[Reporter],
        criteria: IgnoreCriteria
    ) -> bool:
        """Compare map entries by key."""
        map1 = message1.get_field(field)
        map2 = message2.get_field(field)
        all_match = True

        for key in sorted(set(map1) | set(map2)):
            entry_path = path + (SpecificField(field, map_key=key),)

            if criteria.is_ignored(entry_path):
                self._report(reporter, ReportType.IGNORED, message1, message2, entry_path)
                continue

            if key not in map2:
                self._report(reporter, ReportType.DELETED, message1, message2, entry_path)
                matched = False
            elif key not in map1:
                self._report(reporter, ReportType.ADDED, message1, message2, entry_path)
                matched = False
            else:
                matched = self._compare_values(
                    message1, message2, field, map1[key], map2[key], entry_path, reporter, criteria
                )

            if not matched:
                all_match = False
                if reporter is None:
                    return False

        return all_match

    def _report(
        self,
        reporter: Optional[Reporter],
        report_type: ReportType,
        message1: Message,
        message2: Message,
        path: tuple
    ):
        """Forward an event to the reporter, if there is one."""
        if reporter is None:
            return
        if report_type == ReportType.MATCHED and not self.config.report_matches:
            return
        reporter.report(report_type, message1, message2, path)


def _scalars_equal(value1: Any, value2: Any) -> bool:
    if value1 == value2:
        return True
    # NaN is reflexively equal to NaN so a message always equals itself
    return (
        isinstance(value1, float) and isinstance(value2, float)
        and math.isnan(value1) and math.isnan(value2)
    )
