"""Human-readable rendering of messages and field values."""

from __future__ import annotations

import json
from typing import Any

import yaml

from .schema import Message


def print_to_string(message: Message) -> str:
    """
    Render a whole message as a YAML block, fields in schema order.

    Args:
        message: The message to render

    Returns:
        Multi-line text ending with a newline
    """
    return yaml.safe_dump(
        message.to_dict(),
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )


def print_value(value: Any) -> str:
    """Render a single field value on one line."""
    if isinstance(value, Message):
        data = value.to_dict()
        if not data:
            return "{}"
        return yaml.safe_dump(
            data,
            default_flow_style=True,
            sort_keys=False,
            allow_unicode=True,
            width=float("inf"),
        ).strip()
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (tuple, list)):
        return "[" + ", ".join(print_value(v) for v in value) + "]"
    if isinstance(value, dict):
        items = ", ".join(f"{print_value(k)}: {print_value(v)}" for k, v in value.items())
        return "{" + items + "}"
    return repr(value)
