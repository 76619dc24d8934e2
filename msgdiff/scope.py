"""Field scopes: predicates over field paths that select what gets compared."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable

from jsonpath_ng import parse as jsonpath_parse
from jsonpath_ng.exceptions import JsonPathLexerError, JsonPathParserError

from .exceptions import InvalidPathError, UnknownFieldError
from .models import SpecificField
from .schema import FieldDescriptor, FieldType, MessageDescriptor

logger = logging.getLogger(__name__)


class ScopeResult(Enum):
    """Decision of a scope for one field occurrence and its subtree."""
    INCLUDED = "included"
    EXCLUDED = "excluded"
    # Not selected itself, but some descendants are
    PARTIAL = "partial"


_NEGATED = {
    ScopeResult.INCLUDED: ScopeResult.EXCLUDED,
    ScopeResult.EXCLUDED: ScopeResult.INCLUDED,
    ScopeResult.PARTIAL: ScopeResult.PARTIAL,
}

PathPredicate = Callable[[tuple], ScopeResult]


_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def format_path(path: tuple) -> str:
    """
    Render a field path as JSONPath.

    Unordered matches whose positions differ render as ``[i -> j]``.
    """
    result = "$"
    for segment in path:
        name = segment.field.name
        result += f".{name}" if _IDENTIFIER.match(name) else f"['{name}']"
        if segment.map_key is not None:
            result += f"[{segment.map_key!r}]"
        elif segment.index is not None and segment.new_index is not None \
                and segment.index != segment.new_index:
            result += f"[{segment.index} -> {segment.new_index}]"
        elif segment.index is not None:
            result += f"[{segment.index}]"
        elif segment.new_index is not None:
            result += f"[{segment.new_index}]"
    return result


class FieldScope(ABC):
    """
    A predicate over field paths.

    Scopes are immutable and schema independent until compiled with
    to_ignore_criteria(), which binds them to one root message type and
    validates every field they reference.
    """

    @abstractmethod
    def _compile(self, root: MessageDescriptor) -> PathPredicate:
        """Return a function deciding the ScopeResult of a path."""

    def ignoring_fields(self, *field_numbers: int) -> FieldScope:
        """Exclude the top-level fields with these numbers, and all beneath them."""
        return _IgnoringFieldNumbers(self, field_numbers)

    def ignoring_field_descriptors(self, *descriptors: FieldDescriptor) -> FieldScope:
        """Exclude these fields wherever they occur in a path."""
        return _IgnoringFieldDescriptors(self, descriptors)

    def ignoring_field_scope(self, scope: FieldScope) -> FieldScope:
        return and_scopes(self, not_scope(scope))

    def to_ignore_criteria(self, root: MessageDescriptor) -> IgnoreCriteria:
        """
        Compile this scope against a message type.

        Args:
            root: Type of the messages the criteria will be applied to

        Returns:
            IgnoreCriteria bound to root

        Raises:
            UnknownFieldError: If the scope names a field the schema lacks
        """
        predicate = self._compile(root)
        logger.debug("Compiled field scope %r for %s", self, root.name)
        return IgnoreCriteria(root, predicate)


class IgnoreCriteria:
    """Compiled membership test of a scope, bound to one root type."""

    def __init__(self, root: MessageDescriptor, predicate: PathPredicate):
        self.root = root
        self._predicate = predicate
        self._cache: dict[tuple, bool] = {}

    def is_ignored(self, path: tuple) -> bool:
        """
        True if the field occurrence at path is outside the scope.

        A partially selected occurrence is not ignored: it is compared,
        and its children are checked one by one.
        """
        cached = self._cache.get(path)
        if cached is None:
            cached = self._predicate(path) == ScopeResult.EXCLUDED
            self._cache[path] = cached
        return cached


class _AllScope(FieldScope):
    def _compile(self, root):
        return lambda path: ScopeResult.INCLUDED

    def __repr__(self):
        return "all()"


class _AndScope(FieldScope):
    def __init__(self, left: FieldScope, right: FieldScope):
        self.left = left
        self.right = right

    def _compile(self, root):
        left = self.left._compile(root)
        right = self.right._compile(root)

        def decide(path: tuple) -> ScopeResult:
            first = left(path)
            if first == ScopeResult.EXCLUDED:
                return first
            second = right(path)
            if second == ScopeResult.EXCLUDED:
                return second
            if first == second == ScopeResult.INCLUDED:
                return ScopeResult.INCLUDED
            return ScopeResult.PARTIAL

        return decide

    def __repr__(self):
        return f"and({self.left!r}, {self.right!r})"


class _NotScope(FieldScope):
    # Complement over every path of the schema, not over the domain of
    # whatever scope this one is later combined with. Partial stays partial.
    def __init__(self, inner: FieldScope):
        self.inner = inner

    def _compile(self, root):
        inner = self.inner._compile(root)
        return lambda path: _NEGATED[inner(path)]

    def __repr__(self):
        return f"not({self.inner!r})"


class _IgnoringFieldNumbers(FieldScope):
    def __init__(self, base: FieldScope, field_numbers: tuple):
        self.base = base
        self.field_numbers = tuple(field_numbers)

    def _compile(self, root):
        base = self.base._compile(root)
        excluded = set()
        for number in self.field_numbers:
            field = root.find_field_by_number(number)
            if field is None:
                raise UnknownFieldError(root.name, number)
            excluded.add(field)
        return lambda path: ScopeResult.EXCLUDED if path[0].field in excluded else base(path)

    def __repr__(self):
        return f"{self.base!r}.ignoring_fields{self.field_numbers!r}"


class _IgnoringFieldDescriptors(FieldScope):
    def __init__(self, base: FieldScope, descriptors: tuple):
        self.base = base
        self.descriptors = tuple(descriptors)

    def _compile(self, root):
        base = self.base._compile(root)
        reachable = list(root.reachable_types())
        for descriptor in self.descriptors:
            if not isinstance(descriptor, FieldDescriptor) or \
                    not any(t.owns(descriptor) for t in reachable):
                raise UnknownFieldError(root.name, descriptor)
        excluded = set(self.descriptors)

        def decide(path: tuple) -> ScopeResult:
            if any(s.field in excluded for s in path):
                return ScopeResult.EXCLUDED
            return base(path)

        return decide

    def __repr__(self):
        names = ", ".join(d.full_name for d in self.descriptors)
        return f"{self.base!r}.ignoring_field_descriptors({names})"


# Pattern tokens
_DESCEND = ("descend",)
_ANY_NAME = ("any_name",)
_ANY_INDEX = ("any_index",)

_PATTERN_TOKEN = re.compile(
    r"\.\.(?P<descend>[A-Za-z_][A-Za-z0-9_]*|\*)"
    r"|\.(?P<name>[A-Za-z_][A-Za-z0-9_]*|\*)"
    r"|\[(?P<index>\d+|\*)\]"
    r"|\['(?P<squoted>[^']*)'\]"
    r'|\["(?P<dquoted>[^"]*)"\]'
)


def _tokenize_pattern(pattern: str) -> list[tuple]:
    if not pattern.startswith("$"):
        raise InvalidPathError(pattern, "field paths start at the root '$'")

    tokens = []
    pos = 1
    while pos < len(pattern):
        match = _PATTERN_TOKEN.match(pattern, pos)
        if match is None:
            raise InvalidPathError(pattern, f"unsupported syntax at offset {pos}")
        if match.group("descend") is not None:
            tokens.append(_DESCEND)
            name = match.group("descend")
            tokens.append(_ANY_NAME if name == "*" else ("name", name))
        elif match.group("name") is not None:
            name = match.group("name")
            tokens.append(_ANY_NAME if name == "*" else ("name", name))
        elif match.group("index") is not None:
            index = match.group("index")
            tokens.append(_ANY_INDEX if index == "*" else ("index", int(index)))
        else:
            key = match.group("squoted")
            if key is None:
                key = match.group("dquoted")
            tokens.append(("key", key))
        pos = match.end()

    if not tokens:
        raise InvalidPathError(pattern, "pattern selects no field")
    return tokens


def _path_tokens(path: tuple) -> list[tuple]:
    tokens = []
    for segment in path:
        tokens.append(("name", segment.field.name))
        if segment.map_key is not None:
            tokens.append(("key", segment.map_key))
        else:
            position = segment.index if segment.index is not None else segment.new_index
            if position is not None:
                tokens.append(("index", position))
    return tokens


def _token_matches(pattern_token: tuple, token: tuple) -> bool:
    if pattern_token == _ANY_NAME:
        return token[0] == "name"
    if pattern_token == _ANY_INDEX:
        return token[0] in ("index", "key")
    if pattern_token[0] == "key":
        return token[0] == "key" and str(token[1]) == pattern_token[1]
    return pattern_token == token


def _match_tokens(pattern: list, concrete: list, partial: bool) -> bool:
    """
    Match concrete path tokens against pattern tokens.

    With partial=True the concrete path only has to be a prefix of some
    path the pattern matches.
    """
    def match(i: int, j: int) -> bool:
        if j == len(concrete):
            return i == len(pattern) or partial
        if i == len(pattern):
            return False
        if pattern[i] == _DESCEND:
            # Zero or more concrete tokens, then the following pattern token
            return any(match(i + 1, k) for k in range(j, len(concrete) + 1))
        return _token_matches(pattern[i], concrete[j]) and match(i + 1, j + 1)

    return match(0, 0)


class _PathScope(FieldScope):
    """Fields selected by JSONPath patterns and their subtrees; ancestors are partial."""

    def __init__(self, patterns: tuple):
        self.patterns = tuple(patterns)
        self._tokens = []
        for pattern in self.patterns:
            try:
                jsonpath_parse(pattern)
            except (JsonPathLexerError, JsonPathParserError) as e:
                raise InvalidPathError(pattern, str(e)) from e
            self._tokens.append(_tokenize_pattern(pattern))

    def _compile(self, root):
        for tokens in self._tokens:
            _check_pattern_fields(root, tokens)

        def decide(path: tuple) -> ScopeResult:
            concrete = _path_tokens(path)
            result = ScopeResult.EXCLUDED
            for tokens in self._tokens:
                # The occurrence itself, or one of its ancestors, is selected
                for end in range(1, len(concrete) + 1):
                    if _match_tokens(tokens, concrete[:end], partial=False):
                        return ScopeResult.INCLUDED
                # The occurrence contains a selected field
                if _has_children(path[-1]) and _match_tokens(tokens, concrete, partial=True):
                    result = ScopeResult.PARTIAL
            return result

        return decide

    def __repr__(self):
        return f"from_paths{self.patterns!r}"


def _check_pattern_fields(root: MessageDescriptor, tokens: list):
    """
    Resolve every field name of a pattern against the schema.

    Raises:
        UnknownFieldError: If no candidate message type declares a name
    """
    current = [root]
    descend = False

    for token in tokens:
        if token == _DESCEND:
            descend = True
            continue
        if token[0] not in ("name", "any_name"):
            continue

        candidates = current
        if descend:
            candidates = _reachable_from(current)
            descend = False

        if token == _ANY_NAME:
            fields = [f for t in candidates for f in t.fields]
        else:
            fields = [
                f for t in candidates
                for f in [t.find_field_by_name(token[1])] if f is not None
            ]
            if not fields:
                raise UnknownFieldError(root.name, token[1])

        current = _unique(
            root.registry[f.message_type] for f in fields if f.message_type is not None
        )


def _reachable_from(types: list) -> list:
    """Message types reachable from types, the types themselves included."""
    seen = []
    for t in types:
        for reachable in t.reachable_types():
            if reachable not in seen:
                seen.append(reachable)
    return seen


def _unique(types) -> list:
    result = []
    for t in types:
        if t not in result:
            result.append(t)
    return result


def _has_children(segment: SpecificField) -> bool:
    if segment.field.value_type == FieldType.MESSAGE:
        return True
    # A whole repeated or map field contains its elements
    field = segment.field
    return (field.is_repeated or field.is_map) and segment.index is None \
        and segment.new_index is None and segment.map_key is None


def and_scopes(left: FieldScope, right: FieldScope) -> FieldScope:
    """Paths included by both scopes."""
    return _AndScope(left, right)


def not_scope(scope: FieldScope) -> FieldScope:
    """Every path of the schema that scope does not include."""
    return _NotScope(scope)


class FieldScopes:
    """Factory methods for common field scopes."""

    _ALL = _AllScope()

    @staticmethod
    def all() -> FieldScope:
        return FieldScopes._ALL

    @staticmethod
    def none() -> FieldScope:
        return not_scope(FieldScopes._ALL)

    @staticmethod
    def ignoring_fields(*field_numbers: int) -> FieldScope:
        return FieldScopes._ALL.ignoring_fields(*field_numbers)

    @staticmethod
    def ignoring_field_descriptors(*descriptors: FieldDescriptor) -> FieldScope:
        return FieldScopes._ALL.ignoring_field_descriptors(*descriptors)

    @staticmethod
    def from_paths(*patterns: str) -> FieldScope:
        """
        Scope of the fields matched by JSONPath patterns.

        Supports:
        - Exact paths: $.order.id
        - Wildcards: $.lines[*].sku, $.order.*
        - Recursive descent: $..timestamp
        - Map keys: $.labels['env']

        Raises:
            InvalidPathError: If a pattern cannot be parsed
        """
        return _PathScope(patterns)
