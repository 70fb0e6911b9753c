"""
Compilation database ingestion.

Turns the text of a compile_commands.json file into resolved entries. Each
command is tokenized and cleaned against its own build directory, and the
include directories seen along the way are collected for the whole project.

Performance note:
- Uses orjson for faster JSON parsing when it is installed
"""

import json
from typing import Any, Dict, List, Sequence

# Try to import orjson for faster JSON parsing (optional)
try:
    import orjson
    HAS_ORJSON = True
except ImportError:
    HAS_ORJSON = False

from . import diagnostics
from .argument_cleanup import ArgumentCleaner, tokenize_command
from .errors import CompilationDatabaseError
from .models import Entry, LoadResult
from .path_utils import ensure_ends_in_slash, is_absolute


def parse_json(content: str) -> Any:
    """Parse JSON text, raising CompilationDatabaseError on invalid input."""
    try:
        if HAS_ORJSON:
            return orjson.loads(content)
        return json.loads(content)
    except ValueError as e:
        # orjson.JSONDecodeError and json.JSONDecodeError are both ValueErrors.
        raise CompilationDatabaseError(f"Unable to parse json: {e}") from e


def _require_string(entry: Dict[str, Any], key: str, index: int) -> str:
    value = entry.get(key)
    if not isinstance(value, str):
        raise CompilationDatabaseError(f"'{key}' must be a string", entry_index=index)
    return value


def _arguments_from_array(value: Any, index: int) -> List[str]:
    """
    Pre-tokenized form. The first element is always the executable and is
    dropped whatever its name; the rest is copied so cleanup never aliases
    the document.
    """
    if not isinstance(value, list):
        raise CompilationDatabaseError("'arguments' must be an array", entry_index=index)
    if not all(isinstance(arg, str) for arg in value):
        raise CompilationDatabaseError(
            "'arguments' must contain only strings", entry_index=index
        )
    return list(value[1:])


def _arguments_from_command(value: Any, index: int) -> List[str]:
    if not isinstance(value, str):
        raise CompilationDatabaseError("'command' must be a string", entry_index=index)
    return tokenize_command(value)


def resolve_filename(directory: str, file: str, normalizer) -> str:
    """Absolute path of an entry's file; relative files are based on directory."""
    if is_absolute(file):
        return normalizer(file)
    return normalizer(ensure_ends_in_slash(directory) + file)


def load_compilation_database(
    content: str,
    project_directory: str,
    cleaner: ArgumentCleaner,
    extra_flags: Sequence[str] = (),
) -> LoadResult:
    """
    Ingest the text of a compilation database.

    Args:
        content: Raw JSON text
        project_directory: Project root; only used for diagnostics since
            every entry carries its own build directory
        cleaner: Cleanup engine applied to every entry
        extra_flags: User flags appended to every entry before cleanup

    Returns:
        LoadResult with entries in document order (duplicates preserved)

    Raises:
        CompilationDatabaseError: If the document or any entry is malformed
    """
    project_directory = ensure_ends_in_slash(project_directory)
    document = parse_json(content)

    if not isinstance(document, list):
        raise CompilationDatabaseError("compile_commands.json must be an array")

    result = LoadResult()
    for index, raw_entry in enumerate(document):
        if not isinstance(raw_entry, dict):
            raise CompilationDatabaseError(
                "top-level array entry must be an object", entry_index=index
            )

        directory = ensure_ends_in_slash(_require_string(raw_entry, "directory", index))
        file = _require_string(raw_entry, "file", index)
        filename = resolve_filename(directory, file, cleaner.normalizer)

        if "arguments" in raw_entry:
            args = _arguments_from_array(raw_entry["arguments"], index)
        elif "command" in raw_entry:
            args = _arguments_from_command(raw_entry["command"], index)
        else:
            raise CompilationDatabaseError(
                "entry has neither 'command' nor 'arguments'", entry_index=index
            )

        args.extend(extra_flags)
        args = cleaner.cleanup(
            directory, file, args, result.quote_includes, result.angle_includes
        )
        result.entries.append(Entry(filename=filename, args=args))

    diagnostics.debug(
        f"Ingested {len(result.entries)} compilation database entries for {project_directory}"
    )
    return result
