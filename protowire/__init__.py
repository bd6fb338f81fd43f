"""Protowire - Protocol Buffers schema compiler and wire-format runtime."""

from importlib.metadata import PackageNotFoundError, version

from .compiler import CompiledSchema as CompiledSchema
from .compiler import compile_file as compile_file
from .compiler import compile_schema as compile_schema
from .proto import *

try:
    __version__ = version("protowire")
except PackageNotFoundError:
    __version__ = "(local)"
