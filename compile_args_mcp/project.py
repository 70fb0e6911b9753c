"""
Project store: resolved compilation entries for a whole source tree.

A Project is loaded once, from compile_commands.json when it can be ingested
and from a directory listing otherwise. After loading it only answers
queries; a reload builds a new Project which ProjectHolder swaps in.
"""

import threading
from collections import OrderedDict
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from . import diagnostics
from .argument_cleanup import ArgumentCleaner
from .compilation_database import load_compilation_database
from .config import ProjectConfig
from .directory_listing import load_from_directory_listing
from .errors import CompilationDatabaseError
from .models import Entry, LoadResult
from .path_matcher import PathMatcher
from .path_utils import Normalizer, ensure_ends_in_slash, normalize_path

MATCH_PREFIX_WEIGHT = 100
MISMATCH_DIRECTORY_WEIGHT = 100
MATCH_POSTFIX_WEIGHT = 1

# Most recently used inferred entries kept per project.
INFERRED_CACHE_SIZE = 4096


def compute_guess_score(a: str, b: str) -> int:
    """Score how well path b stands in for path a when guessing arguments.

    A shared prefix dominates, every directory separator past the shared
    prefix is a penalty, and a shared ending (e.g. "_unittest.cc") breaks ties
    between candidates at the same directory distance.
    """
    prefix = 0
    for char_a, char_b in zip(a, b):
        if char_a != char_b:
            break
        prefix += 1

    score = prefix * MATCH_PREFIX_WEIGHT
    score -= a.count("/", prefix) * MISMATCH_DIRECTORY_WEIGHT
    score -= b.count("/", prefix) * MISMATCH_DIRECTORY_WEIGHT

    # Scanned independently of the prefix, so short strings may overlap.
    for char_a, char_b in zip(reversed(a), reversed(b)):
        if char_a != char_b:
            break
        score += MATCH_POSTFIX_WEIGHT

    return score


def _read_database(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        diagnostics.info(f"compile_commands.json not found at: {path} - using directory listing")
    except (OSError, UnicodeDecodeError) as e:
        diagnostics.warning(f"Unable to read {path}: {e} - using directory listing")
    return None


class Project:
    """Resolved compiler arguments for every known file of a project."""

    def __init__(
        self,
        entries: Optional[List[Entry]] = None,
        quote_include_directories: Iterable[str] = (),
        angle_include_directories: Iterable[str] = (),
        loaded_from_compile_commands: bool = False,
        project_directory: str = "",
    ):
        self.entries: List[Entry] = list(entries or [])
        self.quote_include_directories: List[str] = sorted(
            {ensure_ends_in_slash(path) for path in quote_include_directories}
        )
        self.angle_include_directories: List[str] = sorted(
            {ensure_ends_in_slash(path) for path in angle_include_directories}
        )
        self.loaded_from_compile_commands = loaded_from_compile_commands
        self.project_directory = project_directory

        # Last write wins for files listed more than once.
        self.filename_index: Dict[str, int] = {}
        for index, entry in enumerate(self.entries):
            if entry.filename in self.filename_index:
                diagnostics.debug(f"Duplicate entry for {entry.filename}; keeping the last one")
            self.filename_index[entry.filename] = index

        self._inferred_cache: "OrderedDict[str, Entry]" = OrderedDict()
        self._inferred_lock = threading.Lock()

    @classmethod
    def load(
        cls,
        project_directory: str,
        extra_flags: Optional[Sequence[str]] = None,
        config: Optional[ProjectConfig] = None,
        normalizer: Normalizer = normalize_path,
    ) -> "Project":
        """
        Load a project from compile_commands.json, or from a directory listing.

        Args:
            project_directory: Project root
            extra_flags: User flags appended to every entry before cleanup
            config: Project configuration (read from the project root if None)
            normalizer: Path canonicalization used by the loaders

        Returns:
            A fully built, read-only Project
        """
        project_directory = ensure_ends_in_slash(str(project_directory))
        if config is None:
            config = ProjectConfig(Path(project_directory))

        cleaner = ArgumentCleaner(
            custom_rules_file=config.get_cleanup_rules_file(), normalizer=normalizer
        )
        all_extra_flags = config.get_extra_flags() + list(extra_flags or [])

        result: Optional[LoadResult] = None
        database_path = config.get_compile_commands_path()
        content = _read_database(database_path)
        if content is not None:
            try:
                result = load_compilation_database(
                    content, project_directory, cleaner, all_extra_flags
                )
            except CompilationDatabaseError as e:
                diagnostics.warning(
                    f"Unable to load {database_path}: {e} - using directory listing"
                )

        loaded_from_compile_commands = result is not None
        if result is None:
            result = load_from_directory_listing(
                project_directory,
                cleaner,
                flags_file=config.get_flags_file(),
                source_extensions=config.get_source_extensions(),
                exclude_directories=config.get_exclude_directories(),
                extra_flags=all_extra_flags,
            )

        diagnostics.info(
            f"Finished loading project (used compile_commands={loaded_from_compile_commands}); "
            f"got {len(result.entries)} entries"
        )

        project = cls(
            entries=result.entries,
            quote_include_directories=result.quote_includes,
            angle_include_directories=result.angle_includes,
            loaded_from_compile_commands=loaded_from_compile_commands,
            project_directory=project_directory,
        )
        for path in project.quote_include_directories:
            diagnostics.debug(f"quote_include_dir: {path}")
        for path in project.angle_include_directories:
            diagnostics.debug(f"angle_include_dir: {path}")
        return project

    def _infer(self, filename: str) -> Entry:
        best_entry: Optional[Entry] = None
        best_score = None
        for entry in self.entries:
            score = compute_guess_score(filename, entry.filename)
            if best_score is None or score > best_score:
                best_score = score
                best_entry = entry

        args = list(best_entry.args) if best_entry is not None else []
        return Entry(filename=filename, args=args, is_inferred=True)

    def find(self, filename: str) -> Entry:
        """
        Arguments for filename.

        Returns a copy of the exact entry when the file is known. Otherwise
        the arguments of the closest known file are reused and the returned
        Entry has is_inferred set; callers should treat it as a guess.
        """
        index = self.filename_index.get(filename)
        if index is not None:
            return self.entries[index].copy()

        with self._inferred_lock:
            inferred = self._inferred_cache.get(filename)
            if inferred is not None:
                self._inferred_cache.move_to_end(filename)
        if inferred is None:
            inferred = self._infer(filename)
            with self._inferred_lock:
                self._inferred_cache[filename] = inferred
                self._inferred_cache.move_to_end(filename)
                while len(self._inferred_cache) > INFERRED_CACHE_SIZE:
                    self._inferred_cache.popitem(last=False)
        return inferred.copy()

    def for_each_filtered(
        self,
        matcher: PathMatcher,
        action: Callable[[int, Entry], None],
        log_skipped: bool = False,
    ):
        """Call action(index, entry) for every entry the matcher accepts."""
        total = len(self.entries)
        for index, entry in enumerate(self.entries):
            accepted, reason = matcher.is_match(entry.filename)
            if accepted:
                action(index, entry)
            elif log_skipped:
                diagnostics.info(
                    f"[{index + 1}/{total}]: Failed {reason}; skipping {entry.filename}"
                )

    def get_stats(self) -> Dict[str, object]:
        with self._inferred_lock:
            inferred_count = len(self._inferred_cache)
        return {
            "project_directory": self.project_directory,
            "loaded_from_compile_commands": self.loaded_from_compile_commands,
            "entry_count": len(self.entries),
            "unique_file_count": len(self.filename_index),
            "quote_include_directory_count": len(self.quote_include_directories),
            "angle_include_directory_count": len(self.angle_include_directories),
            "inferred_cache_size": inferred_count,
        }


class ProjectHolder:
    """
    Owns the current Project and replaces it wholesale on reload.

    Readers take a reference through the project property; a reload builds
    the new Project first and then swaps the reference, so no reader ever
    sees a partially built store.
    """

    def __init__(
        self,
        project_directory: str,
        extra_flags: Optional[Sequence[str]] = None,
        config_file: Optional[Path] = None,
        normalizer: Normalizer = normalize_path,
    ):
        self.project_directory = ensure_ends_in_slash(str(project_directory))
        self.extra_flags = list(extra_flags or [])
        self.config_file = config_file
        self.normalizer = normalizer
        self._lock = threading.Lock()
        self._project: Optional[Project] = None
        self.config: Optional[ProjectConfig] = None
        self._database_mtime: Optional[float] = None
        self.reload()

    @property
    def project(self) -> Project:
        with self._lock:
            return self._project

    def _database_state(self, config: ProjectConfig) -> Optional[float]:
        try:
            return config.get_compile_commands_path().stat().st_mtime
        except OSError:
            return None

    def reload(self) -> Project:
        config = ProjectConfig(Path(self.project_directory), config_file=self.config_file)
        database_mtime = self._database_state(config)
        project = Project.load(
            self.project_directory,
            extra_flags=self.extra_flags,
            config=config,
            normalizer=self.normalizer,
        )
        with self._lock:
            self._project = project
            self.config = config
            self._database_mtime = database_mtime
        return project

    def refresh_if_needed(self) -> bool:
        """Reload if compile_commands.json appeared, vanished or was modified."""
        config = ProjectConfig(Path(self.project_directory), config_file=self.config_file)
        with self._lock:
            previous = self._database_mtime
        if self._database_state(config) == previous:
            return False

        self.reload()
        diagnostics.info("Reloaded project after compile_commands.json changed")
        return True
