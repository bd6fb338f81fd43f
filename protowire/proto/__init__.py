"""Protowire runtime: wire codec, descriptors and message instances."""

from .descriptor import MessageDescriptor as MessageDescriptor
from .errors import DecodeError as DecodeError
from .errors import EncodeError as EncodeError
from .errors import FieldTypeError as FieldTypeError
from .errors import FieldValueError as FieldValueError
from .errors import ProtobufError as ProtobufError
from .errors import SchemaSyntaxError as SchemaSyntaxError
from .errors import StructuralError as StructuralError
from .message import Message as Message
from .message import RepeatedField as RepeatedField
from .registry import DescriptorRegistry as DescriptorRegistry
from .types import EnumDescriptor as EnumDescriptor
from .types import FieldDescriptor as FieldDescriptor
from .types import FieldType as FieldType
from .types import Label as Label
from .wire import WireType as WireType
