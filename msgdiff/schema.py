"""Schema descriptors and message values for msgdiff."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Optional

import yaml

from .exceptions import SchemaParseError, ValidationError


class FieldType(Enum):
    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT = "float"
    DOUBLE = "double"
    BOOL = "bool"
    STRING = "string"
    BYTES = "bytes"
    ENUM = "enum"
    MESSAGE = "message"
    MAP = "map"


class Label(Enum):
    OPTIONAL = "optional"
    REQUIRED = "required"
    REPEATED = "repeated"


_INTEGER_TYPES = (FieldType.INT32, FieldType.INT64, FieldType.UINT32, FieldType.UINT64)
_FLOAT_TYPES = (FieldType.FLOAT, FieldType.DOUBLE)
_MAP_KEY_TYPES = _INTEGER_TYPES + (FieldType.BOOL, FieldType.STRING)

_ZERO_VALUES = {
    FieldType.INT32: 0,
    FieldType.INT64: 0,
    FieldType.UINT32: 0,
    FieldType.UINT64: 0,
    FieldType.FLOAT: 0.0,
    FieldType.DOUBLE: 0.0,
    FieldType.BOOL: False,
    FieldType.STRING: "",
    FieldType.BYTES: b"",
}


@dataclass(frozen=True, eq=False)
class FieldDescriptor:
    """
    Static metadata of one field.

    Descriptors are compared by identity: two descriptors are the same
    field only if they come from the same registry entry.
    """
    number: int
    name: str
    type: FieldType
    label: Label = Label.OPTIONAL
    containing_type: str = ""
    message_type: Optional[str] = None
    map_key_type: Optional[FieldType] = None
    map_value_type: Optional[FieldType] = None
    enum_values: tuple = ()
    default: Any = None

    @property
    def is_repeated(self) -> bool:
        return self.label == Label.REPEATED

    @property
    def is_required(self) -> bool:
        return self.label == Label.REQUIRED

    @property
    def is_map(self) -> bool:
        return self.type == FieldType.MAP

    @property
    def is_message(self) -> bool:
        return self.type == FieldType.MESSAGE

    @property
    def value_type(self) -> FieldType:
        """Type of a single value: the element type, or the value type for maps."""
        return self.map_value_type if self.is_map else self.type

    @property
    def full_name(self) -> str:
        return f"{self.containing_type}.{self.name}"

    @property
    def default_value(self) -> Any:
        """Declared default, or the zero value of a scalar type."""
        if self.default is not None:
            return self.default
        if self.value_type == FieldType.ENUM:
            return self.enum_values[0] if self.enum_values else None
        return _ZERO_VALUES.get(self.value_type)

    def __repr__(self) -> str:
        return f"FieldDescriptor({self.full_name}={self.number})"


class MessageDescriptor:
    """Ordered field set of one message type."""

    def __init__(self, name: str, fields: list[FieldDescriptor], registry: SchemaRegistry = None):
        self.name = name
        self.fields = sorted(fields, key=lambda f: f.number)
        self.registry = registry
        self._by_number = {f.number: f for f in self.fields}
        self._by_name = {f.name: f for f in self.fields}

    def find_field_by_number(self, number: int) -> Optional[FieldDescriptor]:
        return self._by_number.get(number)

    def find_field_by_name(self, name: str) -> Optional[FieldDescriptor]:
        return self._by_name.get(name)

    def owns(self, field: FieldDescriptor) -> bool:
        return self._by_number.get(field.number) is field

    def resolve_field(self, ref: FieldDescriptor | str | int) -> FieldDescriptor:
        """
        Resolve a field reference of this type.

        Args:
            ref: A descriptor of this type, a field name or a field number

        Returns:
            The matching FieldDescriptor
        """
        if isinstance(ref, FieldDescriptor):
            found = ref if self.owns(ref) else None
        elif isinstance(ref, int) and not isinstance(ref, bool):
            found = self._by_number.get(ref)
        else:
            found = self._by_name.get(ref)

        if found is None:
            raise ValidationError(
                f"Message type '{self.name}' has no field {ref!r}",
                {"message_type": self.name}
            )
        return found

    def message_type_of(self, field: FieldDescriptor) -> MessageDescriptor:
        """Descriptor of a message field, or of a map field's message values."""
        if field.message_type is None:
            raise ValidationError(f"Field {field.full_name} does not hold messages")
        return self.registry[field.message_type]

    def reachable_types(self) -> Iterator[MessageDescriptor]:
        """Yield this type and every message type reachable through its fields."""
        seen = set()
        stack = [self]
        while stack:
            current = stack.pop()
            if current.name in seen:
                continue
            seen.add(current.name)
            yield current
            for f in current.fields:
                if f.message_type is not None:
                    stack.append(current.message_type_of(f))

    def new_message(self, data: Optional[dict] = None, **values) -> Message:
        merged = dict(data or {})
        merged.update(values)
        return Message.from_dict(self, merged)

    def __repr__(self) -> str:
        return f"MessageDescriptor({self.name})"


class SchemaRegistry:
    """
    Resolves message types declared in a schema document.

    Document shape::

        enums:
          Status: [UNKNOWN, ACTIVE]
        messages:
          Order:
            fields:
              - {number: 1, name: id, type: string}
              - {number: 2, name: status, type: enum, enum_type: Status}
              - {number: 3, name: lines, type: message, message_type: Line, label: repeated}
              - {number: 4, name: tags, type: map, key_type: string, value_type: int32}
    """

    def __init__(self):
        self._types: dict[str, MessageDescriptor] = {}

    def __getitem__(self, name: str) -> MessageDescriptor:
        try:
            return self._types[name]
        except KeyError:
            raise KeyError(f"Unknown message type: {name}") from None

    def __contains__(self, name: str) -> bool:
        return name in self._types

    def get(self, name: str) -> Optional[MessageDescriptor]:
        return self._types.get(name)

    @property
    def message_types(self) -> list[str]:
        return list(self._types)

    @classmethod
    def from_dict(cls, document: dict) -> SchemaRegistry:
        """
        Build a registry from a parsed schema document.

        Args:
            document: Mapping with a 'messages' section and optional 'enums'

        Returns:
            SchemaRegistry with every declared type resolved
        """
        if not isinstance(document, dict):
            raise SchemaParseError(
                "Schema document must be a mapping",
                reason=f"got {type(document).__name__}"
            )

        messages = document.get('messages')
        if not isinstance(messages, dict) or not messages:
            raise SchemaParseError(
                "Schema document has no message types",
                reason="'messages' must be a non-empty mapping"
            )

        enums = document.get('enums') or {}
        registry = cls()
        for type_name, type_node in messages.items():
            fields = _parse_fields(type_name, type_node, enums)
            registry._types[type_name] = MessageDescriptor(type_name, fields, registry)

        registry._check_references()
        return registry

    @classmethod
    def from_yaml_string(cls, text: str) -> SchemaRegistry:
        try:
            return cls.from_dict(yaml.safe_load(text))
        except yaml.YAMLError as e:
            raise SchemaParseError(f"Failed to parse schema: {e}", reason=str(e))

    @classmethod
    def from_yaml(cls, path: str | Path) -> SchemaRegistry:
        """Load a schema from a YAML (or JSON) file."""
        schema_path = Path(path)
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema file not found: {schema_path}")

        with open(schema_path, 'r') as f:
            content = f.read()

        return cls.from_yaml_string(content)

    def _check_references(self):
        for descriptor in self._types.values():
            for f in descriptor.fields:
                if f.message_type is not None and f.message_type not in self._types:
                    raise SchemaParseError(
                        f"Cannot resolve message type '{f.message_type}'",
                        reason=f"referenced by {f.full_name}"
                    )


def _parse_fields(type_name: str, type_node: Any, enums: dict) -> list[FieldDescriptor]:
    """Parse the field list of one message type."""
    if type_node is None:
        return []
    if not isinstance(type_node, dict):
        raise SchemaParseError(
            f"Message type '{type_name}' must be a mapping",
            reason=f"got {type(type_node).__name__}"
        )

    fields = []
    numbers = set()
    names = set()

    for node in type_node.get('fields') or []:
        field = _parse_field(type_name, node, enums)
        if field.number in numbers:
            raise SchemaParseError(
                f"Duplicate field number {field.number} in '{type_name}'",
                reason="field numbers must be unique"
            )
        if field.name in names:
            raise SchemaParseError(
                f"Duplicate field name '{field.name}' in '{type_name}'",
                reason="field names must be unique"
            )
        numbers.add(field.number)
        names.add(field.name)
        fields.append(field)

    return fields


def _parse_type(type_name: str, value: Any, where: str) -> FieldType:
    try:
        return FieldType(value)
    except ValueError:
        raise SchemaParseError(
            f"Unknown field type '{value}' for {type_name}.{where}",
            reason=f"expected one of {[t.value for t in FieldType]}"
        ) from None


def _parse_field(type_name: str, node: Any, enums: dict) -> FieldDescriptor:
    if not isinstance(node, dict) or 'name' not in node or 'number' not in node:
        raise SchemaParseError(
            f"Invalid field declaration in '{type_name}'",
            reason="each field needs 'number' and 'name'"
        )

    name = node['name']
    number = node['number']
    if not isinstance(number, int) or isinstance(number, bool) or number < 1:
        raise SchemaParseError(
            f"Invalid field number for {type_name}.{name}: {number!r}",
            reason="field numbers are positive integers"
        )

    field_type = _parse_type(type_name, node.get('type'), name)

    label_value = node.get('label', 'optional')
    try:
        label = Label(label_value)
    except ValueError:
        raise SchemaParseError(
            f"Unknown label '{label_value}' for {type_name}.{name}",
            reason=f"expected one of {[l.value for l in Label]}"
        ) from None

    message_type = node.get('message_type')
    key_type = None
    value_type = None
    value_node_type = field_type

    if field_type == FieldType.MAP:
        if label != Label.OPTIONAL:
            raise SchemaParseError(
                f"Map field {type_name}.{name} cannot be {label.value}",
                reason="map fields are implicitly repeated"
            )
        key_type = _parse_type(type_name, node.get('key_type'), name)
        if key_type not in _MAP_KEY_TYPES:
            raise SchemaParseError(
                f"Invalid map key type '{key_type.value}' for {type_name}.{name}",
                reason="map keys must be integral, bool or string"
            )
        value_type = _parse_type(type_name, node.get('value_type'), name)
        if value_type == FieldType.MAP:
            raise SchemaParseError(
                f"Map field {type_name}.{name} cannot hold maps",
                reason="nested maps must be wrapped in a message"
            )
        value_node_type = value_type

    if value_node_type == FieldType.MESSAGE and not message_type:
        raise SchemaParseError(
            f"Field {type_name}.{name} needs a 'message_type'",
            reason="message fields reference a declared type"
        )
    if value_node_type != FieldType.MESSAGE:
        message_type = None

    enum_values = ()
    if value_node_type == FieldType.ENUM:
        if 'enum_type' in node:
            if node['enum_type'] not in enums:
                raise SchemaParseError(
                    f"Cannot resolve enum type '{node['enum_type']}'",
                    reason=f"referenced by {type_name}.{name}"
                )
            enum_values = tuple(enums[node['enum_type']])
        else:
            enum_values = tuple(node.get('values') or ())
        if not enum_values:
            raise SchemaParseError(
                f"Enum field {type_name}.{name} declares no values",
                reason="use 'values' or 'enum_type'"
            )

    return FieldDescriptor(
        number=number,
        name=name,
        type=field_type,
        label=label,
        containing_type=type_name,
        message_type=message_type,
        map_key_type=key_type,
        map_value_type=value_type,
        enum_values=enum_values,
        default=node.get('default'),
    )


class Message:
    """
    Read-only value of one message type.

    Only present fields are stored. Repeated and map fields are present
    when non-empty; singular fields are present when explicitly set, even
    to their default value.
    """

    __slots__ = ('descriptor', '_values')

    def __init__(self, descriptor: MessageDescriptor, values: Optional[dict] = None):
        self.descriptor = descriptor
        self._values: dict[int, Any] = dict(values or {})

    @classmethod
    def from_dict(cls, descriptor: MessageDescriptor, data: dict) -> Message:
        """
        Build a message from plain Python data.

        Args:
            descriptor: Message type of the result
            data: Field name to value mapping; nested messages as dicts

        Returns:
            Message with every value checked against the schema
        """
        if isinstance(data, Message):
            if data.descriptor is not descriptor:
                raise ValidationError(
                    f"Expected a {descriptor.name} message, got {data.descriptor.name}"
                )
            return data
        if not isinstance(data, dict):
            raise ValidationError(
                f"Expected a mapping for message type '{descriptor.name}'",
                {"type": type(data).__name__}
            )

        values = {}
        for name, value in data.items():
            field = descriptor.find_field_by_name(name)
            if field is None:
                raise ValidationError(
                    f"Unknown field '{name}' for message type '{descriptor.name}'",
                    {"field": name}
                )
            if value is None:
                continue

            converted = _convert_field(descriptor, field, value)
            if field.is_repeated or field.is_map:
                if not converted:
                    continue
            values[field.number] = converted

        return cls(descriptor, values)

    def has_field(self, field: FieldDescriptor | str | int) -> bool:
        return self.descriptor.resolve_field(field).number in self._values

    def get_field(self, field: FieldDescriptor | str | int) -> Any:
        """Value of a field, or its default when unset."""
        fd = self.descriptor.resolve_field(field)
        if fd.number in self._values:
            return self._values[fd.number]
        if fd.is_map:
            return {}
        if fd.is_repeated:
            return ()
        if fd.is_message:
            return Message(self.descriptor.message_type_of(fd))
        return fd.default_value

    def list_fields(self) -> list[tuple[FieldDescriptor, Any]]:
        return [
            (f, self._values[f.number])
            for f in self.descriptor.fields
            if f.number in self._values
        ]

    def to_dict(self) -> dict:
        result = {}
        for f, value in self.list_fields():
            result[f.name] = _plain(value)
        return result

    def is_initialized(self) -> bool:
        return not self.find_initialization_errors()

    def find_initialization_errors(self, prefix: str = "") -> list[str]:
        """Dotted paths of required fields that are not set."""
        errors = []
        for f in self.descriptor.fields:
            if f.is_required and f.number not in self._values:
                errors.append(f"{prefix}{f.name}")

        for f, value in self.list_fields():
            if f.is_map:
                for key, item in value.items():
                    if isinstance(item, Message):
                        errors.extend(
                            item.find_initialization_errors(f"{prefix}{f.name}[{key!r}].")
                        )
            elif f.is_repeated:
                for i, item in enumerate(value):
                    if isinstance(item, Message):
                        errors.extend(
                            item.find_initialization_errors(f"{prefix}{f.name}[{i}].")
                        )
            elif isinstance(value, Message):
                errors.extend(value.find_initialization_errors(f"{prefix}{f.name}."))

        return errors

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return self.descriptor is other.descriptor and self._values == other._values

    __hash__ = None

    def __repr__(self) -> str:
        from .text_format import print_value
        return f"{self.descriptor.name}{print_value(self)}"


def _plain(value: Any) -> Any:
    if isinstance(value, Message):
        return value.to_dict()
    if isinstance(value, tuple):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def _convert_field(descriptor: MessageDescriptor, field: FieldDescriptor, value: Any) -> Any:
    """Check and convert one field value against its descriptor."""
    if field.is_map:
        if not isinstance(value, dict):
            raise ValidationError(
                f"Map field {field.full_name} expects a mapping",
                {"type": type(value).__name__}
            )
        return {
            _convert_scalar(field, field.map_key_type, k): _convert_value(descriptor, field, v)
            for k, v in value.items()
        }

    if field.is_repeated:
        if not isinstance(value, (list, tuple)):
            raise ValidationError(
                f"Repeated field {field.full_name} expects a list",
                {"type": type(value).__name__}
            )
        return tuple(_convert_value(descriptor, field, item) for item in value)

    return _convert_value(descriptor, field, value)


def _convert_value(descriptor: MessageDescriptor, field: FieldDescriptor, value: Any) -> Any:
    if field.value_type == FieldType.MESSAGE:
        return Message.from_dict(descriptor.message_type_of(field), value)
    return _convert_scalar(field, field.value_type, value)


def _convert_scalar(field: FieldDescriptor, field_type: FieldType, value: Any) -> Any:
    def mismatch():
        return ValidationError(
            f"Field {field.full_name} expects {field_type.value}, got {value!r}",
            {"field": field.full_name, "type": type(value).__name__}
        )

    if field_type in _INTEGER_TYPES:
        if not isinstance(value, int) or isinstance(value, bool):
            raise mismatch()
        if field_type in (FieldType.UINT32, FieldType.UINT64) and value < 0:
            raise mismatch()
        return value

    if field_type in _FLOAT_TYPES:
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            raise mismatch()
        return float(value)

    if field_type == FieldType.BOOL:
        if not isinstance(value, bool):
            raise mismatch()
        return value

    if field_type == FieldType.STRING:
        if not isinstance(value, str):
            raise mismatch()
        return value

    if field_type == FieldType.BYTES:
        if not isinstance(value, (bytes, bytearray)):
            raise mismatch()
        return bytes(value)

    if field_type == FieldType.ENUM:
        if value not in field.enum_values:
            raise mismatch()
        return value

    raise mismatch()
