"""Pairing of repeated-field elements compared as sets."""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

logger = logging.getLogger(__name__)


@dataclass
class RepeatedMatch:
    """Result of matching two repeated fields."""
    pairs: dict[int, int] = field(default_factory=dict)
    unmatched_expected: list[int] = field(default_factory=list)
    unmatched_actual: list[int] = field(default_factory=list)
    probes: int = 0

    @property
    def is_complete(self) -> bool:
        return not self.unmatched_expected and not self.unmatched_actual


def match_repeated_elements(
    expected: Sequence[Any],
    actual: Sequence[Any],
    equals: Callable[[int, int], bool],
    hashable: bool = False
) -> RepeatedMatch:
    """
    Pair equal elements of two repeated fields.

    Each expected index, in ascending order, takes the lowest unmatched
    actual index whose element compares equal. Element equality under a
    fixed configuration is an equivalence relation, so this yields a
    maximum number of equal pairs, and ties always resolve the same way
    for the same input.

    Args:
        expected: Elements on the expected side
        actual: Elements on the actual side
        equals: equals(i, j) compares expected[i] with actual[j]
        hashable: Elements are plain scalars that can be bucketed by value
            instead of probed pairwise

    Returns:
        RepeatedMatch with the pairing and the unmatched indices
    """
    if hashable:
        result = _match_by_value(expected, actual)
    else:
        result = _match_by_probe(len(expected), len(actual), equals)

    logger.debug(
        "Matched %d of %d/%d repeated elements (%d probes)",
        len(result.pairs), len(expected), len(actual), result.probes
    )
    return result


def _match_by_probe(
    expected_len: int,
    actual_len: int,
    equals: Callable[[int, int], bool]
) -> RepeatedMatch:
    # O(m * n) element comparisons in the worst case
    result = RepeatedMatch()
    actual_matched = [False] * actual_len

    for i in range(expected_len):
        for j in range(actual_len):
            if actual_matched[j]:
                continue
            result.probes += 1
            if equals(i, j):
                result.pairs[i] = j
                actual_matched[j] = True
                break
        else:
            result.unmatched_expected.append(i)

    result.unmatched_actual = [j for j, matched in enumerate(actual_matched) if not matched]
    return result


def _match_by_value(expected: Sequence[Any], actual: Sequence[Any]) -> RepeatedMatch:
    result = RepeatedMatch()
    buckets: dict[Any, deque] = defaultdict(deque)
    for j, value in enumerate(actual):
        buckets[_bucket_key(value)].append(j)

    for i, value in enumerate(expected):
        candidates = buckets.get(_bucket_key(value))
        if candidates:
            result.pairs[i] = candidates.popleft()
        else:
            result.unmatched_expected.append(i)

    matched = set(result.pairs.values())
    result.unmatched_actual = [j for j in range(len(actual)) if j not in matched]
    return result


def _bucket_key(value: Any) -> Any:
    # NaN never equals itself, but two NaN elements still pair up
    if isinstance(value, float) and value != value:
        return ("nan",)
    return value
