"""Exception types raised by the protowire runtime and compiler."""


class ProtobufError(RuntimeError):
    """Base exception for all protowire errors."""


class StructuralError(ProtobufError):
    """Raised when a schema or descriptor definition is invalid.

    Covers duplicate field numbers or names, unresolved type references,
    malformed schema text and mutation of a sealed descriptor.
    """


class SchemaSyntaxError(StructuralError):
    """Raised when schema text cannot be parsed."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None) -> None:
        if line is not None:
            message = f"line {line}, column {column}: {message}"
        super().__init__(message)
        self.line = line
        self.column = column


class FieldTypeError(ProtobufError, TypeError):
    """Raised when a value's runtime type does not match the field's declared type."""


class FieldValueError(ProtobufError, ValueError):
    """Raised when a value has the right type but is not acceptable for the field.

    Enum fields raise this for integers that are not defined enum values;
    integer fields raise it for values outside the declared width.
    """


class EncodeError(ProtobufError):
    """Raised when a message cannot be encoded."""


class DecodeError(ProtobufError):
    """Raised when wire bytes cannot be decoded into a message."""
