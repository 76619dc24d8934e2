"""Tests for the msgdiff differencer, matcher and engine."""

import math

import pytest
from msgdiff import (
    ComparisonConfig,
    EngineConfig,
    FieldScopes,
    MessageDiffEngine,
    MessageDifferencer,
    RecordingReporter,
    ReportType,
    SchemaRegistry,
    UnknownFieldError,
    ValidationError,
    diff,
    format_path,
)
from msgdiff.matcher import match_repeated_elements


SCHEMA = {
    "enums": {"Status": ["UNKNOWN", "ACTIVE", "CLOSED"]},
    "messages": {
        "Order": {
            "fields": [
                {"number": 1, "name": "a", "type": "int32"},
                {"number": 2, "name": "b", "type": "int32", "label": "repeated"},
                {"number": 3, "name": "name", "type": "string"},
                {"number": 4, "name": "lines", "type": "message", "message_type": "Line",
                 "label": "repeated"},
                {"number": 5, "name": "customer", "type": "message", "message_type": "Customer"},
                {"number": 6, "name": "labels", "type": "map", "key_type": "string",
                 "value_type": "string"},
                {"number": 7, "name": "status", "type": "enum", "enum_type": "Status"},
                {"number": 8, "name": "ratio", "type": "double"},
                {"number": 9, "name": "count", "type": "int32"},
            ]
        },
        "Line": {
            "fields": [
                {"number": 1, "name": "sku", "type": "string"},
                {"number": 2, "name": "qty", "type": "int32"},
            ]
        },
        "Customer": {
            "fields": [
                {"number": 1, "name": "id", "type": "string", "label": "required"},
                {"number": 2, "name": "email", "type": "string"},
            ]
        },
    },
}


def events(reporter, failures_only=False):
    """(type, path) pairs of the recorded events, in order."""
    return [
        (r.type, format_path(r.path))
        for r in reporter.records
        if r.is_failure or not failures_only
    ]


class DiffTestCase:
    def setup_method(self):
        self.registry = SchemaRegistry.from_dict(SCHEMA)
        self.order = self.registry["Order"]

    def compare(self, expected, actual, config=None):
        reporter = RecordingReporter()
        differ = MessageDifferencer(config or ComparisonConfig())
        result = differ.compare(
            self.order.new_message(expected), self.order.new_message(actual), reporter
        )
        return result, reporter


class TestBasicComparison(DiffTestCase):
    """Test basic comparison functionality."""

    def test_identical_messages(self):
        """Test that identical messages match."""
        data = {"a": 1, "name": "test", "b": [1, 2]}
        result, reporter = self.compare(data, data)

        assert result is True
        assert reporter.any_failures is False
        assert (ReportType.MATCHED, "$.a") in events(reporter)

    def test_different_values(self):
        """Test that different scalar values are reported as MODIFIED."""
        result, reporter = self.compare({"a": 1}, {"a": 2})

        assert result is False
        assert events(reporter, failures_only=True) == [(ReportType.MODIFIED, "$.a")]
        record = reporter.records[0]
        assert record.old_value == 1
        assert record.new_value == 2

    def test_unset_on_both_sides_produces_no_event(self):
        """Test that fields absent from both messages are not reported."""
        result, reporter = self.compare({"a": 1}, {"a": 1})

        assert result is True
        assert events(reporter) == [(ReportType.MATCHED, "$.a")]

    def test_events_follow_field_number_order(self):
        """Test that events are emitted in schema field order."""
        result, reporter = self.compare(
            {"count": 1, "name": "x", "a": 1},
            {"count": 2, "name": "y", "a": 2},
        )

        assert result is False
        assert [p for _, p in events(reporter)] == ["$.a", "$.name", "$.count"]

    def test_matches_not_reported_when_mismatches_only(self):
        """Test that MATCHED events are suppressed by reporting_mismatches_only."""
        config = ComparisonConfig().reporting_mismatches_only()
        result, reporter = self.compare({"a": 1, "name": "x"}, {"a": 2, "name": "x"}, config)

        assert result is False
        assert events(reporter) == [(ReportType.MODIFIED, "$.a")]

    def test_missing_input_fails_fast(self):
        """Test that a None message is a caller error, not an equal result."""
        differ = MessageDifferencer()
        message = self.order.new_message({"a": 1})

        with pytest.raises(ValidationError):
            differ.compare(None, message)
        with pytest.raises(ValidationError):
            differ.compare(message, None)

    def test_different_types_rejected(self):
        """Test that messages of different types cannot be compared."""
        differ = MessageDifferencer()
        line = self.registry["Line"].new_message({"sku": "x"})

        with pytest.raises(ValidationError):
            differ.compare(self.order.new_message({}), line)

    def test_compare_without_reporter(self):
        """Test that a silent comparison returns the same verdict."""
        differ = MessageDifferencer()
        assert differ.compare(self.order.new_message({"a": 1}), self.order.new_message({"a": 1}))
        assert not differ.compare(self.order.new_message({"a": 1}), self.order.new_message({"a": 2}))


class TestFieldPresence(DiffTestCase):
    """Test EQUAL and EQUIVALENT field presence modes."""

    def test_explicit_default_differs_from_unset(self):
        """Test that an explicit zero and an unset field differ by default."""
        result, reporter = self.compare({"a": 1}, {"a": 1, "count": 0})

        assert result is False
        assert events(reporter, failures_only=True) == [(ReportType.ADDED, "$.count")]

    def test_deleted_when_only_expected_has_field(self):
        """Test that a field set only on the expected side is DELETED."""
        result, reporter = self.compare({"a": 1, "count": 0}, {"a": 1})

        assert result is False
        assert events(reporter, failures_only=True) == [(ReportType.DELETED, "$.count")]

    def test_ignoring_field_absence(self):
        """Test that EQUIVALENT treats unset as the default value."""
        config = ComparisonConfig().ignoring_field_absence()
        result, reporter = self.compare({"a": 1}, {"a": 1, "count": 0}, config)

        assert result is True
        assert reporter.any_failures is False

    def test_equivalent_still_detects_real_changes(self):
        """Test that EQUIVALENT compares the default against a non-default value."""
        config = ComparisonConfig().ignoring_field_absence()
        result, reporter = self.compare({"a": 1}, {"a": 1, "count": 5}, config)

        assert result is False
        assert events(reporter, failures_only=True) == [(ReportType.MODIFIED, "$.count")]
        assert reporter.records[-1].old_value == 0
        assert reporter.records[-1].new_value == 5

    def test_equivalent_enum_default(self):
        """Test that the first enum value is the default."""
        config = ComparisonConfig().ignoring_field_absence()
        result, _ = self.compare({}, {"status": "UNKNOWN"}, config)

        assert result is True

    def test_unset_message_equivalent_to_empty_message(self):
        """Test that an unset sub-message equals an empty one under EQUIVALENT."""
        strict, _ = self.compare({}, {"customer": {}})
        relaxed, _ = self.compare({}, {"customer": {}}, ComparisonConfig().ignoring_field_absence())

        assert strict is False
        assert relaxed is True


class TestRepeatedFields(DiffTestCase):
    """Test AS_LIST and AS_SET repeated field comparison."""

    def test_list_order_matters(self):
        """Test that reordered elements are MODIFIED at their positions."""
        result, reporter = self.compare({"a": 1, "b": [1, 2, 3]}, {"a": 1, "b": [3, 2, 1]})

        assert result is False
        assert events(reporter, failures_only=True) == [
            (ReportType.MODIFIED, "$.b[0]"),
            (ReportType.MODIFIED, "$.b[2]"),
        ]

    def test_set_ignores_order(self):
        """Test that AS_SET accepts reordered elements."""
        config = ComparisonConfig().ignoring_repeated_field_order()
        result, reporter = self.compare({"a": 1, "b": [1, 2, 3]}, {"a": 1, "b": [3, 2, 1]}, config)

        assert result is True
        assert reporter.any_failures is False

    def test_list_extra_elements_added(self):
        """Test trailing elements of a longer actual list."""
        result, reporter = self.compare({"b": [1, 2]}, {"b": [1, 2, 3, 4]})

        assert result is False
        assert events(reporter, failures_only=True) == [
            (ReportType.ADDED, "$.b[2]"),
            (ReportType.ADDED, "$.b[3]"),
        ]
        assert reporter.records[-1].new_value == 4

    def test_list_missing_elements_deleted(self):
        """Test trailing elements of a longer expected list."""
        result, reporter = self.compare({"b": [1, 2, 3]}, {"b": [1]})

        assert result is False
        assert events(reporter, failures_only=True) == [
            (ReportType.DELETED, "$.b[1]"),
            (ReportType.DELETED, "$.b[2]"),
        ]
        assert reporter.records[-1].old_value == 3

    def test_set_duplicates_matter(self):
        """Test that AS_SET compares multisets."""
        config = ComparisonConfig().ignoring_repeated_field_order()
        result, reporter = self.compare({"b": [1, 1, 2]}, {"b": [1, 2, 2]}, config)

        assert result is False
        assert events(reporter, failures_only=True) == [
            (ReportType.DELETED, "$.b[1]"),
            (ReportType.ADDED, "$.b[2]"),
        ]

    def test_set_of_messages(self):
        """Test unordered comparison of message elements."""
        config = ComparisonConfig().ignoring_repeated_field_order()
        lines = [{"sku": "a", "qty": 1}, {"sku": "b", "qty": 2}]
        result, reporter = self.compare({"lines": lines}, {"lines": lines[::-1]}, config)

        assert result is True
        paths = [p for t, p in events(reporter) if t == ReportType.MATCHED]
        assert "$.lines[0 -> 1]" in paths
        assert "$.lines[1 -> 0].sku" in paths

    def test_set_of_messages_reports_unmatched(self):
        """Test that message elements without an equal partner are ADDED/DELETED."""
        config = ComparisonConfig().ignoring_repeated_field_order()
        result, reporter = self.compare(
            {"lines": [{"sku": "a", "qty": 1}, {"sku": "b", "qty": 2}]},
            {"lines": [{"sku": "b", "qty": 2}, {"sku": "a", "qty": 5}]},
            config,
        )

        assert result is False
        assert events(reporter, failures_only=True) == [
            (ReportType.DELETED, "$.lines[0]"),
            (ReportType.ADDED, "$.lines[1]"),
        ]

    def test_set_matching_is_deterministic(self):
        """Test that repeated AS_SET runs yield the same event stream."""
        config = ComparisonConfig().ignoring_repeated_field_order()
        expected = {"lines": [{"sku": "x"}, {"sku": "y"}, {"sku": "x"}], "b": [3, 1, 3, 2]}
        actual = {"lines": [{"sku": "x"}, {"sku": "z"}, {"sku": "x"}], "b": [1, 3, 3, 4]}

        first = events(self.compare(expected, actual, config)[1])
        for _ in range(5):
            assert events(self.compare(expected, actual, config)[1]) == first

    def test_set_respects_scope_inside_elements(self):
        """Test that elements equal within the scope are matched."""
        line_qty = self.registry["Line"].find_field_by_name("qty")
        config = (
            ComparisonConfig()
            .ignoring_repeated_field_order()
            .ignoring_field_descriptors(line_qty)
        )
        result, reporter = self.compare(
            {"lines": [{"sku": "a", "qty": 1}, {"sku": "b", "qty": 2}]},
            {"lines": [{"sku": "b", "qty": 7}, {"sku": "a", "qty": 9}]},
            config,
        )

        assert result is True
        assert (ReportType.IGNORED, "$.lines[0 -> 1].qty") in events(reporter)


class TestMatcher:
    """Test the repeated element matcher directly."""

    def test_lowest_actual_index_wins(self):
        """Test lexicographic tie-breaking by (expected, actual) index."""
        expected = ["x", "x"]
        actual = ["x", "x", "x"]

        for hashable in (True, False):
            match = match_repeated_elements(
                expected, actual, lambda i, j: expected[i] == actual[j], hashable=hashable
            )
            assert match.pairs == {0: 0, 1: 1}
            assert match.unmatched_actual == [2]

    def test_adding_identical_pair_keeps_other_matches(self):
        """Test that the matching is monotonic."""
        for hashable in (True, False):
            expected, actual = ["x", "y"], ["y", "z"]
            before = match_repeated_elements(
                expected, actual, lambda i, j: expected[i] == actual[j], hashable=hashable
            )
            expected, actual = expected + ["w"], actual + ["w"]
            after = match_repeated_elements(
                expected, actual, lambda i, j: expected[i] == actual[j], hashable=hashable
            )

            assert before.pairs == {1: 0}
            assert after.pairs == {1: 0, 2: 2}
            assert after.unmatched_expected == before.unmatched_expected == [0]

    def test_nan_elements_pair_up(self):
        """Test that NaN values are matched by value."""
        nan = float("nan")
        match = match_repeated_elements([nan, 1.0], [1.0, nan], lambda i, j: False, hashable=True)

        assert match.is_complete


class TestNestedMessages(DiffTestCase):
    """Test recursion into singular message fields."""

    def test_nested_difference_keeps_full_path(self):
        """Test that nested differences are reported with the extended path."""
        result, reporter = self.compare(
            {"customer": {"id": "c1", "email": "a@example.com"}},
            {"customer": {"id": "c1", "email": "b@example.com"}},
        )

        assert result is False
        assert events(reporter, failures_only=True) == [
            (ReportType.MODIFIED, "$.customer.email")
        ]

    def test_whole_subtree_added(self):
        """Test that a message present on one side is ADDED as a whole."""
        result, reporter = self.compare({}, {"customer": {"id": "c1"}})

        assert result is False
        assert events(reporter) == [(ReportType.ADDED, "$.customer")]
        assert reporter.records[0].new_value.to_dict() == {"id": "c1"}

    def test_equal_nested_message_matched(self):
        """Test that an equal sub-message is MATCHED after its fields."""
        result, reporter = self.compare({"customer": {"id": "c1"}}, {"customer": {"id": "c1"}})

        assert result is True
        assert events(reporter) == [
            (ReportType.MATCHED, "$.customer.id"),
            (ReportType.MATCHED, "$.customer"),
        ]


class TestMapFields(DiffTestCase):
    """Test map field comparison."""

    def test_map_entries(self):
        """Test added, deleted and modified map keys."""
        result, reporter = self.compare(
            {"labels": {"env": "prod", "team": "core"}},
            {"labels": {"env": "dev", "owner": "ana"}},
        )

        assert result is False
        assert events(reporter, failures_only=True) == [
            (ReportType.MODIFIED, "$.labels['env']"),
            (ReportType.ADDED, "$.labels['owner']"),
            (ReportType.DELETED, "$.labels['team']"),
        ]

    def test_map_order_irrelevant(self):
        """Test that map insertion order does not matter."""
        result, _ = self.compare(
            {"labels": {"a": "1", "b": "2"}},
            {"labels": {"b": "2", "a": "1"}},
        )

        assert result is True


class TestFieldScopes(DiffTestCase):
    """Test scoped comparisons."""

    def test_ignoring_fields(self):
        """Test that an ignored field may change freely."""
        config = ComparisonConfig().ignoring_fields(1)
        result, reporter = self.compare({"a": 1, "name": "x"}, {"a": 2, "name": "x"}, config)

        assert result is True
        assert (ReportType.IGNORED, "$.a") in events(reporter)

    def test_ignoring_nested_descriptor(self):
        """Test ignoring a field of a nested message type."""
        email = self.registry["Customer"].find_field_by_name("email")
        config = ComparisonConfig().ignoring_field_descriptors(email)
        result, _ = self.compare(
            {"customer": {"id": "c1", "email": "a@example.com"}},
            {"customer": {"id": "c1", "email": "b@example.com"}},
            config,
        )

        assert result is True

    def test_unknown_field_number(self):
        """Test that an unknown field number is a configuration error."""
        config = ComparisonConfig().ignoring_fields(99)

        with pytest.raises(UnknownFieldError):
            self.compare({"a": 1}, {"a": 1}, config)

    def test_unknown_path_field(self):
        """Test that a misspelled pattern does not make different messages equal."""
        config = ComparisonConfig().with_partial_scope(FieldScopes.from_paths("$.typo"))

        with pytest.raises(UnknownFieldError):
            self.compare({"a": 1}, {"a": 2}, config)

    def test_partial_scope(self):
        """Test that only fields inside a partial scope are compared."""
        config = ComparisonConfig().with_partial_scope(FieldScopes.from_paths("$.customer.email"))

        result, _ = self.compare(
            {"a": 1, "customer": {"id": "c1", "email": "x"}},
            {"a": 2, "customer": {"id": "c2", "email": "x"}},
            config,
        )
        assert result is True

        result, reporter = self.compare(
            {"customer": {"email": "x"}}, {"customer": {"email": "y"}}, config
        )
        assert result is False
        assert events(reporter, failures_only=True) == [
            (ReportType.MODIFIED, "$.customer.email")
        ]

    def test_scope_selecting_list_elements(self):
        """Test that element patterns ignore the other positions."""
        config = ComparisonConfig().with_partial_scope(FieldScopes.from_paths("$.b[1]"))
        result, reporter = self.compare({"b": [1, 2, 3]}, {"b": [9, 2, 9]}, config)

        assert result is True
        assert events(reporter) == [
            (ReportType.IGNORED, "$.b[0]"),
            (ReportType.MATCHED, "$.b[1]"),
            (ReportType.IGNORED, "$.b[2]"),
        ]

    def test_scope_selecting_map_entries(self):
        """Test that key patterns ignore the other map entries."""
        config = ComparisonConfig().with_partial_scope(FieldScopes.from_paths("$.labels['env']"))
        result, _ = self.compare(
            {"labels": {"env": "prod", "team": "a"}},
            {"labels": {"env": "prod", "team": "b"}},
            config,
        )

        assert result is True

    def test_ignoring_scope_keeps_siblings(self):
        """Test that ignoring a nested path still compares its siblings."""
        config = ComparisonConfig().ignoring_field_scope(FieldScopes.from_paths("$..email"))
        expected = {"customer": {"id": "c1", "email": "a@example.com"}}

        result, _ = self.compare(expected, {"customer": {"id": "c1", "email": "b@example.com"}}, config)
        assert result is True

        result, reporter = self.compare(expected, {"customer": {"id": "c2", "email": "a@example.com"}}, config)
        assert result is False
        assert events(reporter, failures_only=True) == [(ReportType.MODIFIED, "$.customer.id")]

    def test_empty_scope_compares_nothing(self):
        """Test that the empty scope makes any two messages equal."""
        config = ComparisonConfig().with_partial_scope(FieldScopes.none())
        result, reporter = self.compare({"a": 1}, {"a": 2, "name": "n"}, config)

        assert result is True
        assert all(r.type == ReportType.IGNORED for r in reporter.records)


class TestReflexivity(DiffTestCase):
    """Test that every message equals itself under every configuration."""

    CONFIGS = [
        ComparisonConfig(),
        ComparisonConfig().ignoring_field_absence(),
        ComparisonConfig().ignoring_repeated_field_order(),
        ComparisonConfig().ignoring_field_absence().ignoring_repeated_field_order(),
        ComparisonConfig().reporting_mismatches_only().ignoring_fields(3),
    ]

    @pytest.mark.parametrize("config", CONFIGS)
    def test_message_equals_itself(self, config):
        """Test compare(v, v) for a fully populated message."""
        data = {
            "a": 1,
            "b": [3, 1, 3],
            "name": "n",
            "lines": [{"sku": "a", "qty": 1}, {"sku": "a", "qty": 1}],
            "customer": {"id": "c", "email": "e"},
            "labels": {"k": "v"},
            "status": "ACTIVE",
            "ratio": math.nan,
            "count": 0,
        }
        result, reporter = self.compare(data, data, config)

        assert result is True
        assert reporter.any_failures is False


class TestEngine(DiffTestCase):
    """Test the DiffReport produced by the engine."""

    def test_report_summary(self):
        """Test summary counts and serialization."""
        report = diff(
            self.order.new_message({"a": 1, "name": "x", "count": 3}),
            self.order.new_message({"a": 2, "name": "x", "count": 4}),
            ComparisonConfig().ignoring_fields(9),
        )

        assert report.is_match is False
        assert report.message_type == "Order"
        assert report.summary.mismatches_found == 1
        assert report.summary.matches_found == 1
        assert report.summary.fields_ignored == 1
        assert report.summary.fields_compared == 2

        data = report.to_dict()
        assert data["diffs"][0] == {
            "path": "$.a",
            "type": "MODIFIED",
            "old_value": 1,
            "new_value": 2,
        }
        assert report.rendered[0] == "modified: $.a: 1 -> 2"
        assert len(report.failures) == 1

    def test_engine_config(self):
        """Test the engine with tracing enabled."""
        engine = MessageDiffEngine(EngineConfig(trace_scope_decisions=True))
        report = engine.compare(
            self.order.new_message({"a": 1}),
            self.order.new_message({"a": 1}),
        )

        assert report.is_match is True
        assert report.failures == []

    def test_engine_rejects_non_messages(self):
        """Test that plain dicts are not accepted by the engine."""
        with pytest.raises(ValidationError):
            diff({"a": 1}, {"a": 1})
