"""Type definitions for parsed schema files."""

from dataclasses import dataclass, field

from dataclasses_json import DataClassJsonMixin

from ..proto.types import is_scalar_type_name


@dataclass
class SchemaOption(DataClassJsonMixin):
    """Represents an option, either a statement or a bracketed field option.

    ``value`` keeps the literal's source text; the builder interprets it
    against the field it applies to.
    """

    name: str
    value: str
    kind: str = "ident"  # ident, int, float or string


@dataclass
class SchemaEnumValue(DataClassJsonMixin):
    """Represents a single enum value."""

    name: str
    value: int
    options: list[SchemaOption] = field(default_factory=list)


@dataclass
class SchemaEnum(DataClassJsonMixin):
    """Represents an enum type definition."""

    name: str
    values: list[SchemaEnumValue]
    options: list[SchemaOption] = field(default_factory=list)


@dataclass
class SchemaField(DataClassJsonMixin):
    """Represents a field declaration.

    ``type_name`` is either a scalar keyword or a reference to a message or
    enum, absolute when it starts with a dot.
    """

    label: str
    type_name: str
    name: str
    number: int
    options: list[SchemaOption] = field(default_factory=list)

    def option(self, name: str) -> SchemaOption | None:
        for opt in self.options:
            if opt.name == name:
                return opt
        return None


@dataclass
class SchemaMessage(DataClassJsonMixin):
    """Represents a message type definition and the types nested in it."""

    name: str
    fields: list[SchemaField] = field(default_factory=list)
    messages: list["SchemaMessage"] = field(default_factory=list)
    enums: list[SchemaEnum] = field(default_factory=list)
    options: list[SchemaOption] = field(default_factory=list)


@dataclass
class Schema(DataClassJsonMixin):
    """Represents a complete schema file."""

    package: str | None = None
    syntax: str | None = None
    messages: list[SchemaMessage] = field(default_factory=list)
    enums: list[SchemaEnum] = field(default_factory=list)
    options: list[SchemaOption] = field(default_factory=list)


def is_scalar(t: SchemaField) -> bool:
    """Check if a field has a scalar type."""
    return is_scalar_type_name(t.type_name)
