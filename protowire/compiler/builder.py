"""Build message and enum descriptors from a parsed schema."""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from typing import Any

from ..proto.descriptor import Descriptor, MessageDescriptor
from ..proto.errors import StructuralError
from ..proto.registry import DescriptorRegistry
from ..proto.types import EnumDescriptor, FieldType
from .parser import int_literal, parse
from .types import Schema, SchemaEnum, SchemaField, SchemaMessage, SchemaOption, is_scalar

logger = logging.getLogger(__name__)

_INT_TYPES = frozenset(
    [
        FieldType.INT32,
        FieldType.INT64,
        FieldType.UINT32,
        FieldType.UINT64,
        FieldType.SINT32,
        FieldType.SINT64,
        FieldType.FIXED32,
        FieldType.FIXED64,
        FieldType.SFIXED32,
        FieldType.SFIXED64,
    ]
)

_FLOAT_IDENTS = {"inf": math.inf, "-inf": -math.inf, "nan": math.nan, "-nan": math.nan}


@dataclass
class CompiledSchema:
    """The descriptors produced by one compilation, keyed by fully-qualified name."""

    package: str | None
    options: dict[str, str] = field(default_factory=dict)
    messages: dict[str, MessageDescriptor] = field(default_factory=dict)
    enums: dict[str, EnumDescriptor] = field(default_factory=dict)

    def _qualify(self, name: str) -> str:
        return f"{self.package}.{name}" if self.package else name

    def get(self, name: str) -> Descriptor | None:
        """Look up a type by fully-qualified name, or by name relative to the package."""
        for candidate in (name, self._qualify(name)):
            if candidate in self.messages:
                return self.messages[candidate]
            if candidate in self.enums:
                return self.enums[candidate]
        return None

    def __getitem__(self, name: str) -> Descriptor:
        descriptor = self.get(name)
        if descriptor is None:
            raise KeyError(name)
        return descriptor

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def descriptors(self) -> dict[str, Descriptor]:
        return {**self.messages, **self.enums}


def _qualified(scope: str, name: str) -> str:
    return f"{scope}.{name}" if scope else name


class _Builder:
    def __init__(self, schema: Schema) -> None:
        self.schema = schema
        self.pool: dict[str, Descriptor] = {}
        self.compiled = CompiledSchema(
            package=schema.package,
            options={opt.name: opt.value for opt in schema.options},
        )
        self._pending: list[tuple[SchemaMessage, MessageDescriptor]] = []

    def build(self) -> CompiledSchema:
        scope = self.schema.package or ""
        for enum in self.schema.enums:
            self._allocate_enum(scope, enum, None)
        for message in self.schema.messages:
            self._allocate_message(scope, message, None)

        for message, descriptor in self._pending:
            for schema_field in message.fields:
                self._define_field(descriptor, schema_field)

        for descriptor in self.compiled.messages.values():
            descriptor.seal()

        return self.compiled

    def _claim(self, full_name: str) -> None:
        if full_name in self.pool:
            raise StructuralError(f"{full_name} is already defined")

    def _allocate_enum(
        self, scope: str, enum: SchemaEnum, parent: MessageDescriptor | None
    ) -> None:
        full_name = _qualified(scope, enum.name)
        self._claim(full_name)

        descriptor = EnumDescriptor(full_name, [(v.name, v.value) for v in enum.values])
        self.pool[full_name] = descriptor
        if parent is not None:
            parent.add_nested(descriptor)
        self.compiled.enums[full_name] = descriptor

    def _allocate_message(
        self, scope: str, message: SchemaMessage, parent: MessageDescriptor | None
    ) -> None:
        full_name = _qualified(scope, message.name)
        self._claim(full_name)

        descriptor = MessageDescriptor(full_name, self.pool)
        if parent is not None:
            parent.add_nested(descriptor)
        self.compiled.messages[full_name] = descriptor
        self._pending.append((message, descriptor))

        for enum in message.enums:
            self._allocate_enum(full_name, enum, descriptor)
        for nested in message.messages:
            self._allocate_message(full_name, nested, descriptor)

    def _resolve(self, scope: str, type_name: str) -> str | None:
        """Find ``type_name`` from inside ``scope``, innermost scope first."""
        if type_name.startswith("."):
            name = type_name[1:]
            return name if name in self.pool else None

        parts = scope.split(".") if scope else []
        for depth in range(len(parts), -1, -1):
            candidate = _qualified(".".join(parts[:depth]), type_name)
            if candidate in self.pool:
                return candidate
        return None

    def _define_field(self, descriptor: MessageDescriptor, schema_field: SchemaField) -> None:
        where = f"{descriptor.full_name}.{schema_field.name}"

        if is_scalar(schema_field):
            type_ref: str = schema_field.type_name
            referenced: Descriptor | None = None
        else:
            resolved = self._resolve(descriptor.full_name, schema_field.type_name)
            if resolved is None:
                raise StructuralError(f"{where}: unknown type {schema_field.type_name}")
            type_ref = resolved
            referenced = self.pool[resolved]

        options: dict[str, Any] = {}
        for opt in schema_field.options:
            if opt.name in options:
                raise StructuralError(f"{where}: option {opt.name} given more than once")
            if opt.name == "default":
                options["default"] = _default_value(where, type_ref, referenced, opt)
            else:
                options[opt.name] = opt.value

        descriptor.define_field(
            schema_field.label, type_ref, schema_field.name, schema_field.number, options
        )


def _default_value(
    where: str, type_ref: str, referenced: Descriptor | None, opt: SchemaOption
) -> Any:
    """Interpret a ``default`` option's literal for the field's type."""
    if isinstance(referenced, EnumDescriptor):
        value = referenced.value_for_name(opt.value) if opt.kind == "ident" else None
        if value is None:
            raise StructuralError(f"{where}: {opt.value} is not a value of {referenced.full_name}")
        return value
    if referenced is not None:
        raise StructuralError(f"{where}: message fields cannot declare a default")

    field_type = FieldType(type_ref)
    if field_type in _INT_TYPES and opt.kind == "int":
        return int_literal(opt.value)
    if field_type in (FieldType.FLOAT, FieldType.DOUBLE):
        if opt.kind in ("int", "float"):
            return float(int_literal(opt.value)) if opt.kind == "int" else float(opt.value)
        if opt.kind == "ident" and opt.value.lower() in _FLOAT_IDENTS:
            return _FLOAT_IDENTS[opt.value.lower()]
    if field_type is FieldType.BOOL and opt.kind == "ident" and opt.value in ("true", "false"):
        return opt.value == "true"
    if field_type is FieldType.STRING and opt.kind == "string":
        return opt.value
    if field_type is FieldType.BYTES and opt.kind == "string":
        try:
            return opt.value.encode("latin-1")
        except UnicodeEncodeError:
            return opt.value.encode("utf-8")

    raise StructuralError(f"{where}: invalid default {opt.value!r} for {field_type.value}")


def build(schema: Schema, registry: DescriptorRegistry | None = None) -> CompiledSchema:
    """Turn a parsed schema into sealed descriptors.

    Every message and enum is allocated before any field is defined, so
    fields may refer to types declared later in the schema, to their own
    message, or to each other in cycles. Nothing is installed into
    ``registry`` unless the whole schema builds.

    Raises:
        StructuralError: Duplicate names or numbers, unknown types, or
            invalid defaults.
    """
    compiled = _Builder(schema).build()

    if registry is not None:
        registry.install(compiled.descriptors())

    logger.debug(
        "Compiled %d messages and %d enums%s",
        len(compiled.messages),
        len(compiled.enums),
        f" in package {compiled.package}" if compiled.package else "",
    )
    return compiled


def compile_schema(text: str, registry: DescriptorRegistry | None = None) -> CompiledSchema:
    """Parse and build schema text in one step."""
    return build(parse(text), registry)


def compile_file(
    path: str | os.PathLike[str], registry: DescriptorRegistry | None = None
) -> CompiledSchema:
    """Read a schema file and compile it."""
    with open(path, encoding="utf-8") as f:
        return compile_schema(f.read(), registry)

