#!/usr/bin/env python3
"""
Pytest configuration and shared fixtures for the compile-args test suite.

This module provides pytest fixtures that can be used across all test modules.
"""

import io
import os
import shutil
import tempfile
from pathlib import Path
import pytest

# Add the project root to the path
import sys
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from compile_args_mcp import diagnostics, server


# ============================================================================
# Function-scoped Fixtures (Created for each test function)
# ============================================================================

@pytest.fixture
def temp_dir():
    """
    Create a temporary directory for a single test.

    Yields:
        Path: Path to temporary directory

    Cleanup: Automatically removed after test completes
    """
    temp_path = tempfile.mkdtemp(prefix="test_")
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def temp_project_dir(temp_dir):
    """
    Create a temporary project directory with standard structure.

    Yields:
        Path: Path to project root with src/ and include/ subdirectories

    Example:
        def test_project(temp_project_dir):
            (temp_project_dir / "src" / "main.cc").write_text("int main() {}")
    """
    project_root = temp_dir / "project"
    project_root.mkdir()
    (project_root / "src").mkdir()
    (project_root / "include").mkdir()
    yield project_root


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """
    Keep tests independent of the developer's environment and of each other.

    Config discovery honours COMPILE_ARGS_CONFIG, loading a config file
    reconfigures the shared logger, and the MCP server keeps the loaded
    project in a module global.
    """
    monkeypatch.delenv("COMPILE_ARGS_CONFIG", raising=False)
    logger = diagnostics.get_logger()
    level, enabled = logger.level, logger.enabled
    monkeypatch.setattr(server, "holder", None)
    yield
    logger.set_level(level)
    logger.set_enabled(enabled)


@pytest.fixture
def diagnostic_output():
    """
    Capture diagnostic lines at DEBUG level.

    Yields:
        io.StringIO: Stream receiving everything the global logger writes
    """
    logger = diagnostics.get_logger()
    previous_stream = logger.output_stream
    stream = io.StringIO()
    logger.set_output_stream(stream)
    logger.set_level(diagnostics.DiagnosticLevel.DEBUG)
    logger.set_enabled(True)
    yield stream
    logger.set_output_stream(previous_stream)


# ============================================================================
# Pytest Hooks and Configuration
# ============================================================================

def pytest_configure(config):
    """
    Pytest configuration hook.

    Registers custom markers.
    """
    config.addinivalue_line(
        "markers", "compile_commands: compilation database ingestion"
    )
    config.addinivalue_line(
        "markers", "directory_listing: fallback loading from a directory tree"
    )
    config.addinivalue_line(
        "markers", "inference: argument inference for unknown files"
    )
    config.addinivalue_line(
        "markers", "integration: end-to-end loading and MCP tool handlers"
    )


def pytest_collection_modifyitems(config, items):
    """
    Pytest hook to modify test collection.

    Automatically marks tests based on their file name.
    """
    for item in items:
        test_file = str(item.fspath)

        if test_file.endswith("test_compilation_database.py"):
            item.add_marker(pytest.mark.compile_commands)
        elif test_file.endswith("test_directory_listing.py"):
            item.add_marker(pytest.mark.directory_listing)
        elif test_file.endswith("test_server.py"):
            item.add_marker(pytest.mark.integration)
