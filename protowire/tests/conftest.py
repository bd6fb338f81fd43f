"""Unit tests configuration file."""

import os

import pytest

from protowire.compiler import compile_file
from protowire.proto import DescriptorRegistry

TESTS_DIR = os.path.dirname(os.path.realpath(__file__))


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


@pytest.fixture
def registry():
    registry = DescriptorRegistry()
    yield registry
    registry.clear()


@pytest.fixture(scope="session")
def featureful():
    return compile_file(os.path.join(TESTS_DIR, "proto", "featureful.proto"))


@pytest.fixture(scope="session")
def simple():
    return compile_file(os.path.join(TESTS_DIR, "proto", "simple.proto"))
