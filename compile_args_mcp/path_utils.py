"""Path helpers shared by the loaders and the cleanup engine."""

import os
from typing import Callable

# Strategy used to turn "<build dir>/<relative path>" into a canonical path.
Normalizer = Callable[[str], str]


def normalize_path(path: str) -> str:
    """Collapse '.' and '..' segments and make the path absolute.

    Symlinks are not resolved; two spellings of the same file only compare
    equal after this normalization when they differ in dot segments.
    """
    normalized = os.path.abspath(path)
    if os.sep != "/":
        normalized = normalized.replace(os.sep, "/")
    # POSIX keeps a leading '//' as implementation defined; fold it.
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def identity_normalizer(path: str) -> str:
    """Normalizer that returns the path untouched (used by tests)."""
    return path


def ensure_ends_in_slash(path: str) -> str:
    if not path.endswith("/"):
        path += "/"
    return path


def is_absolute(path: str) -> bool:
    return path.startswith("/") or os.path.isabs(path)


def has_extension(path: str, extensions) -> bool:
    return any(path.endswith(ext) for ext in extensions)
