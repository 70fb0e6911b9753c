"""Fallback project loading for trees without a compilation database."""

import os
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence

from . import diagnostics
from .argument_cleanup import ArgumentCleaner
from .models import Entry, LoadResult
from .path_utils import ensure_ends_in_slash, has_extension

DEFAULT_FLAGS_FILE = "clang_args"
DEFAULT_SOURCE_EXTENSIONS = (".cc", ".cpp", ".c")


def read_flags_file(path: Path) -> List[str]:
    """Read one argument per line, skipping blank lines and '#' comments.

    A missing or unreadable file yields no arguments.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            # Universal newlines already turned "\r\n" into "\n".
            lines = f.read().split("\n")
    except (OSError, UnicodeDecodeError) as e:
        diagnostics.info(f"No usable flags file at {path}: {e}")
        return []

    return [line for line in lines if line and not line.startswith("#")]


def iter_source_files(
    project_directory: str,
    source_extensions: Iterable[str] = DEFAULT_SOURCE_EXTENSIONS,
    exclude_directories: Iterable[str] = (),
) -> Iterator[str]:
    """Yield source files under project_directory in a stable, sorted order."""
    extensions = tuple(source_extensions)
    excluded = set(exclude_directories)

    def on_error(error: OSError):
        diagnostics.debug(f"Skipping unreadable directory: {error}")

    for root, dirs, files in os.walk(project_directory, onerror=on_error):
        dirs[:] = sorted(d for d in dirs if d not in excluded)
        for name in sorted(files):
            if has_extension(name, extensions):
                yield os.path.join(root, name)


def load_from_directory_listing(
    project_directory: str,
    cleaner: ArgumentCleaner,
    flags_file: str = DEFAULT_FLAGS_FILE,
    source_extensions: Sequence[str] = DEFAULT_SOURCE_EXTENSIONS,
    exclude_directories: Sequence[str] = (),
    extra_flags: Sequence[str] = (),
) -> LoadResult:
    """
    Build an entry for every source file using a shared flag template.

    Args:
        project_directory: Project root, also used as the cleanup base
        cleaner: Cleanup engine applied to each file's copy of the template
        flags_file: Template file, relative to the project root
        source_extensions: File endings that count as translation units
        exclude_directories: Directory names not descended into
        extra_flags: User flags appended to the template

    Returns:
        LoadResult; empty when the tree has no sources. Never raises for
        missing inputs.
    """
    project_directory = ensure_ends_in_slash(project_directory)

    template = read_flags_file(Path(project_directory) / flags_file)
    template.extend(extra_flags)
    diagnostics.info(f"Using arguments {' '.join(template)}")

    result = LoadResult()
    for path in iter_source_files(project_directory, source_extensions, exclude_directories):
        filename = cleaner.normalizer(path)
        # TODO: the cleaned template only depends on the extension; clean it
        # once per extension instead of once per file.
        args = cleaner.cleanup(
            project_directory,
            filename,
            list(template),
            result.quote_includes,
            result.angle_includes,
        )
        result.entries.append(Entry(filename=filename, args=args))

    diagnostics.debug(f"Directory listing found {len(result.entries)} source files")
    return result
