"""Resolve the compiler arguments needed to parse any file of a C/C++ project."""

from .argument_cleanup import ArgumentCleaner, tokenize_command
from .compilation_database import load_compilation_database
from .config import ProjectConfig
from .directory_listing import load_from_directory_listing
from .errors import CleanupRulesError, CompilationDatabaseError, CompileArgsError
from .models import Entry, LoadResult
from .path_matcher import PathMatcher
from .project import Project, ProjectHolder, compute_guess_score

__version__ = "0.1.0"

__all__ = [
    "ArgumentCleaner",
    "CleanupRulesError",
    "CompilationDatabaseError",
    "CompileArgsError",
    "Entry",
    "LoadResult",
    "PathMatcher",
    "Project",
    "ProjectConfig",
    "ProjectHolder",
    "compute_guess_score",
    "load_compilation_database",
    "load_from_directory_listing",
    "tokenize_command",
]
