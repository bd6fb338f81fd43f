"""Protowire schema compiler."""

from .builder import CompiledSchema as CompiledSchema
from .builder import build as build
from .builder import compile_file as compile_file
from .builder import compile_schema as compile_schema
from .parser import parse as parse
from .types import *
