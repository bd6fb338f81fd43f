"""Named registry of compiled descriptors."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Mapping
from types import MappingProxyType

from .descriptor import Descriptor, MessageDescriptor
from .errors import StructuralError
from .types import EnumDescriptor

logger = logging.getLogger(__name__)


class DescriptorRegistry:
    """Maps fully-qualified names to message and enum descriptors.

    A registry is populated by schema compilations and only emptied by an
    explicit :meth:`clear`. Updates replace the whole mapping in one
    assignment, so readers on other threads see either the state before an
    installation or the state after it, never part of one.

    Replacing a name does not affect instances built from the previous
    descriptor; they keep their reference to it.

    Example:
        registry = DescriptorRegistry()
        compile_schema(text, registry=registry)
        MyResult = registry.message("tehUnknown.MyResult")
    """

    def __init__(self, allow_replace: bool = True) -> None:
        self.allow_replace = allow_replace
        self._lock = threading.Lock()
        self._descriptors: Mapping[str, Descriptor] = MappingProxyType({})

    def install(self, descriptors: Mapping[str, Descriptor]) -> None:
        """Add descriptors keyed by fully-qualified name, all or nothing.

        Raises:
            StructuralError: A name is already registered and replacement is
                not allowed.
        """
        with self._lock:
            current = self._descriptors
            replaced = [name for name, d in descriptors.items() if current.get(name, d) is not d]

            if replaced and not self.allow_replace:
                raise StructuralError(f"Already registered: {', '.join(sorted(replaced))}")

            updated = dict(current)
            updated.update(descriptors)
            self._descriptors = MappingProxyType(updated)

        for name in replaced:
            logger.info("Replaced registered descriptor %s", name)
        logger.debug("Installed %d descriptors", len(descriptors))

    def get(self, name: str) -> Descriptor | None:
        return self._descriptors.get(name.lstrip("."))

    def message(self, name: str) -> MessageDescriptor:
        descriptor = self.get(name)
        if not isinstance(descriptor, MessageDescriptor):
            raise KeyError(f"No message type named {name}")
        return descriptor

    def enum(self, name: str) -> EnumDescriptor:
        descriptor = self.get(name)
        if not isinstance(descriptor, EnumDescriptor):
            raise KeyError(f"No enum type named {name}")
        return descriptor

    def names(self) -> list[str]:
        return sorted(self._descriptors)

    def snapshot(self) -> Mapping[str, Descriptor]:
        """The current mapping; later installations do not change it."""
        return self._descriptors

    def clear(self) -> None:
        with self._lock:
            self._descriptors = MappingProxyType({})

    def __getitem__(self, name: str) -> Descriptor:
        descriptor = self.get(name)
        if descriptor is None:
            raise KeyError(name)
        return descriptor

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._descriptors)

    def __repr__(self) -> str:
        return f"<DescriptorRegistry {len(self)} types>"
