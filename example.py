"""Example usage of the msgdiff comparison engine."""

import json
import logging

from msgdiff import (
    ComparisonConfig,
    ComparisonFailure,
    EngineConfig,
    FieldScopes,
    LogLevel,
    MessageDiffEngine,
    SchemaRegistry,
    assert_that,
)

# Sample schema: an invoice with nested customer, line items and labels
SCHEMA = """
enums:
  InvoiceStatus: [DRAFT, PENDING, PAID]
messages:
  Invoice:
    fields:
      - {number: 1, name: id, type: string, label: required}
      - {number: 2, name: status, type: enum, enum_type: InvoiceStatus}
      - {number: 3, name: total, type: double}
      - {number: 4, name: customer, type: message, message_type: Customer}
      - {number: 5, name: line_items, type: message, message_type: LineItem, label: repeated}
      - {number: 6, name: labels, type: map, key_type: string, value_type: string}
      - {number: 7, name: updated_at, type: int64}
  Customer:
    fields:
      - {number: 1, name: id, type: string, label: required}
      - {number: 2, name: email, type: string}
      - {number: 3, name: updated_at, type: int64}
  LineItem:
    fields:
      - {number: 1, name: sku, type: string}
      - {number: 2, name: quantity, type: int32}
      - {number: 3, name: unit_price, type: double}
"""

registry = SchemaRegistry.from_yaml_string(SCHEMA)
Invoice = registry["Invoice"]

# Invoice as stored by the legacy system
old_invoice = Invoice.new_message({
    "id": "INV-001",
    "status": "PAID",
    "total": 100.0,
    "customer": {"id": "C-1", "email": "billing@example.com", "updated_at": 1700000000},
    "line_items": [
        {"sku": "WIDGET-001", "quantity": 5, "unit_price": 10.0},
        {"sku": "GADGET-002", "quantity": 2, "unit_price": 25.0},
    ],
    "labels": {"region": "eu"},
    "updated_at": 1700000000,
})

# Same invoice from the new system: reordered items, fresh timestamps
new_invoice = Invoice.new_message({
    "id": "INV-001",
    "status": "PAID",
    "total": 100.0,
    "customer": {"id": "C-1", "email": "billing@example.com", "updated_at": 1700000042},
    "line_items": [
        {"sku": "GADGET-002", "quantity": 2, "unit_price": 25.0},
        {"sku": "WIDGET-001", "quantity": 5, "unit_price": 10.0},
    ],
    "labels": {"region": "eu"},
    "updated_at": 1700000042,
})

# Tolerates item order and timestamps
RELAXED = (
    ComparisonConfig()
    .ignoring_repeated_field_order()
    .ignoring_field_scope(FieldScopes.from_paths("$..updated_at"))
)


def main():
    print("=" * 60)
    print("msgdiff Comparison Engine - Example")
    print("=" * 60)

    engine = MessageDiffEngine()
    report = engine.compare(old_invoice, new_invoice, RELAXED)

    print(f"\nMatch: {report.is_match}")
    print(f"\nSummary:")
    print(f"  Fields Compared: {report.summary.fields_compared}")
    print(f"  Mismatches: {report.summary.mismatches_found}")
    print(f"  Ignored: {report.summary.fields_ignored}")

    print("\n" + "-" * 60)
    print("Full JSON Report:")
    print(json.dumps(report.to_dict(), indent=2))


def example_with_mismatch():
    """Example that demonstrates a mismatch."""
    print("\n" + "=" * 60)
    print("Example with Mismatch")
    print("=" * 60)

    mismatched = Invoice.new_message({
        "id": "INV-001",
        "status": "PENDING",
        "total": 100.0,
        "customer": {"id": "C-1", "email": "billing@example.com"},
        "line_items": [
            {"sku": "GADGET-002", "quantity": 2, "unit_price": 25.0},
            {"sku": "WIDGET-001", "quantity": 4, "unit_price": 10.0},  # Quantity changed
        ],
        "labels": {"region": "us"},
    })

    engine = MessageDiffEngine()
    report = engine.compare(old_invoice, mismatched, RELAXED.reporting_mismatches_only())

    print(f"\nMatch: {report.is_match}")
    print(f"Mismatches found: {report.summary.mismatches_found}")

    if report.failures:
        print(f"\nDifferences:")
        for line in report.rendered:
            print(f"  - {line}")


def example_with_assertion():
    """Example of a fluent assertion failure message."""
    print("\n" + "=" * 60)
    print("Example with Assertion")
    print("=" * 60)

    try:
        assert_that(new_invoice).named("migrated invoice").is_equal_to(old_invoice)
    except ComparisonFailure as e:
        print(e.narrative)


def example_with_tracing():
    """Example with scope tracing enabled."""
    print("\n" + "=" * 60)
    print("Example with Scope Tracing")
    print("=" * 60)

    logging.basicConfig(format="%(name)s: %(message)s")
    engine = MessageDiffEngine(EngineConfig(log_level=LogLevel.DEBUG, trace_scope_decisions=True))
    engine.compare(old_invoice, new_invoice, RELAXED)


if __name__ == "__main__":
    main()
    example_with_mismatch()
    example_with_assertion()
    example_with_tracing()
