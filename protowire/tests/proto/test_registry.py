"""Tests for the named descriptor registry."""

import threading

from pytest import raises

from protowire.compiler import compile_schema
from protowire.proto import DescriptorRegistry, MessageDescriptor, StructuralError

_RESULT = """
package tehUnknown;
message MyResult {
  enum Kind { A = 0; B = 1; }
  optional string field_1 = 1;
  optional Kind kind = 2;
}
"""


def describe_registry():
    def it_starts_empty(expect, registry):
        expect(len(registry)) == 0
        expect(registry.names()) == []
        expect(registry.get("tehUnknown.MyResult") is None) == True

    def it_installs_every_compiled_type(expect, registry):
        compile_schema(_RESULT, registry=registry)

        expect(registry.names()) == ["tehUnknown.MyResult", "tehUnknown.MyResult.Kind"]
        expect("tehUnknown.MyResult" in registry) == True
        expect(list(registry)) == registry.names()
        expect(repr(registry)) == "<DescriptorRegistry 2 types>"

    def it_looks_up_by_kind(expect, registry):
        compile_schema(_RESULT, registry=registry)

        expect(registry.message("tehUnknown.MyResult").full_name) == "tehUnknown.MyResult"
        expect(registry.enum("tehUnknown.MyResult.Kind").B) == 1
        with raises(KeyError):
            registry.message("tehUnknown.MyResult.Kind")
        with raises(KeyError):
            registry.enum("tehUnknown.MyResult")
        with raises(KeyError):
            registry["tehUnknown.Missing"]

    def it_accepts_a_leading_dot(expect, registry):
        compile_schema(_RESULT, registry=registry)

        expect(registry[".tehUnknown.MyResult"] is registry["tehUnknown.MyResult"]) == True

    def it_replaces_types_without_disturbing_old_instances(expect, registry):
        compile_schema(_RESULT, registry=registry)
        old_type = registry.message("tehUnknown.MyResult")
        old = old_type(field_1="kept")

        compile_schema(
            "package tehUnknown; message MyResult { required int32 field_1 = 1; }",
            registry=registry,
        )
        new_type = registry.message("tehUnknown.MyResult")

        expect(new_type is old_type) == False
        expect(old.descriptor is old_type) == True
        expect(old.field_1) == "kept"
        expect(old_type.decode(old.encode())) == old
        expect(new_type(field_1=3).field_1) == 3

    def it_can_refuse_replacement(expect):
        registry = DescriptorRegistry(allow_replace=False)
        compile_schema(_RESULT, registry=registry)
        original = registry.message("tehUnknown.MyResult")

        with raises(StructuralError, match="Already registered"):
            compile_schema(_RESULT, registry=registry)
        expect(registry.message("tehUnknown.MyResult") is original) == True

    def it_allows_reinstalling_the_same_descriptor(expect):
        registry = DescriptorRegistry(allow_replace=False)
        descriptor = MessageDescriptor("pkg.M")
        registry.install({"pkg.M": descriptor})
        registry.install({"pkg.M": descriptor})

        expect(registry["pkg.M"] is descriptor) == True

    def it_installs_nothing_when_compilation_fails(expect, registry):
        with raises(StructuralError):
            compile_schema(
                """
                package broken;
                message Good { optional int32 a = 1; }
                message Bad { optional Missing m = 1; }
                """,
                registry=registry,
            )

        expect(len(registry)) == 0

    def it_keeps_snapshots_stable(expect, registry):
        compile_schema(_RESULT, registry=registry)
        snapshot = registry.snapshot()

        compile_schema("package other; message X { optional int32 a = 1; }", registry=registry)

        expect("other.X" in snapshot) == False
        expect("other.X" in registry) == True

    def it_is_only_emptied_by_clear(expect, registry):
        compile_schema(_RESULT, registry=registry)
        compile_schema("package other; message X { optional int32 a = 1; }", registry=registry)

        expect(len(registry)) == 3

        registry.clear()

        expect(len(registry)) == 0

    def it_handles_concurrent_installs(expect, registry):
        def compile_package(n):
            compile_schema(
                f"package p{n}; message M {{ optional int32 a = 1; }}", registry=registry
            )

        threads = [threading.Thread(target=compile_package, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        expect(registry.names()) == sorted(f"p{n}.M" for n in range(8))
