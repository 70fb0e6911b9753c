"""Exceptions raised by the compile arguments resolver."""

from typing import Optional


class CompileArgsError(Exception):
    """Base class for resolver errors."""

    pass


class CompilationDatabaseError(CompileArgsError):
    """Raised when a compilation database cannot be ingested.

    Project loading catches this and falls back to the directory listing.
    """

    def __init__(self, message: str, entry_index: Optional[int] = None):
        self.entry_index = entry_index
        if entry_index is not None:
            message = f"entry {entry_index}: {message}"
        super().__init__(message)


class CleanupRulesError(CompileArgsError):
    """Raised when a cleanup rules file has an invalid structure."""

    pass
