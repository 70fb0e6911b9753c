"""
Argument Cleanup - Rule-based rewriting of compiler command lines.

Raw compile commands carry flags that libclang-based tooling cannot use
(dependency file generation, compiler wrappers, target tuning) and paths that
are only meaningful relative to the build directory. The cleaner removes the
former, absolutizes the latter, records include directories on the way, and
finally makes the language and standard explicit.
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

from . import diagnostics
from .errors import CleanupRulesError
from .path_utils import Normalizer, ensure_ends_in_slash, is_absolute, normalize_path

DEFAULT_RULES_FILE = Path(__file__).parent / "cleanup_rules.json"

RULE_TYPES = ("multi_token", "exact_match", "prefix_match", "compiler_executable")

# Flags followed by a potentially relative path, either joined ("-I../x") or
# as the next token ("-I ../x"). "-iquote" and "-isystem" must not be shadowed
# by "-I": they start with a lowercase 'i'.
PATH_FLAGS = ("-I", "-iquote", "-isystem", "--sysroot=")
QUOTE_INCLUDE_FLAGS = ("-iquote",)
ANGLE_INCLUDE_FLAGS = ("-I", "-isystem")

# "-12", "-17.0.1"
VERSION_SUFFIX = re.compile(r"-[0-9][0-9.]*$")

# Other Unicode whitespace (e.g. U+00A0) stays inside a token.
ASCII_WHITESPACE = re.compile(r"[ \t\n\r\f\v]+")


def tokenize_command(command: str) -> List[str]:
    """Split a command line on runs of ASCII whitespace.

    No quoting, escaping or expansion is performed; compilation databases
    produced by the common generators already hold expanded command lines.
    """
    return [token for token in ASCII_WHITESPACE.split(command) if token]


def is_c_file(path: str) -> bool:
    """Returns True if the C, not C++, language should be used for path."""
    return path.endswith(".c")


def add_heuristic_args(filename: str, args: List[str]) -> List[str]:
    """Append an explicit language and standard unless already present.

    Clang's own guess is based on the driver name, which is gone by now.
    """
    if not any(arg.startswith("-x") for arg in args):
        args.append("-xc" if is_c_file(filename) else "-xc++")
    if not any(arg.startswith("-std=") for arg in args):
        args.append("-std=c11" if is_c_file(filename) else "-std=c++11")
    return args


class CleanupRules:
    """Denylist rules grouped by how they match."""

    def __init__(self):
        self.multi_token: Set[str] = set()
        self.exact_match: Set[str] = set()
        self.prefix_match: List[str] = []
        self.compiler_executables: Set[str] = set()
        self.rule_ids: List[Dict[str, str]] = []
        self.version = "unknown"

    def extend(self, rules: Iterable[Dict[str, Any]], source: str):
        for position, rule in enumerate(rules):
            if not isinstance(rule, dict):
                raise CleanupRulesError(f"{source}: rule {position} must be an object")

            rule_type = rule.get("type")
            patterns = rule.get("patterns", [])
            if rule_type not in RULE_TYPES:
                raise CleanupRulesError(
                    f"{source}: rule {position} has unknown type {rule_type!r}"
                )
            if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
                raise CleanupRulesError(
                    f"{source}: rule {position} patterns must be a list of strings"
                )

            if rule_type == "multi_token":
                self.multi_token.update(patterns)
            elif rule_type == "exact_match":
                self.exact_match.update(patterns)
            elif rule_type == "compiler_executable":
                self.compiler_executables.update(p.lower() for p in patterns)
            else:
                self.prefix_match.extend(p for p in patterns if p not in self.prefix_match)

            self.rule_ids.append(
                {
                    "id": rule.get("id", "unknown"),
                    "type": rule_type,
                    "description": rule.get("description", ""),
                }
            )

    def is_compiler_executable(self, arg: str) -> bool:
        """
        Match by basename so '/usr/bin/c++' and 'C:\\LLVM\\clang.exe' both count.

        Versioned ('g++-12') and target-prefixed ('x86_64-linux-gnu-gcc')
        driver names match their plain spelling.
        """
        if arg.startswith("-"):
            return False
        basename = arg.replace("\\", "/").rsplit("/", 1)[-1].lower()
        if basename.endswith(".exe"):
            basename = basename[:-4]
        basename = VERSION_SUFFIX.sub("", basename)
        if basename in self.compiler_executables:
            return True
        return any(basename.endswith("-" + name) for name in self.compiler_executables)

    def removal_span(self, arg: str) -> int:
        """
        Number of tokens to drop starting at arg.

        Returns:
            2 for a flag that consumes its value, 1 for a single denylisted
            token, 0 when the token is kept.
        """
        if arg in self.multi_token:
            return 2
        if arg in self.exact_match:
            return 1
        for prefix in self.prefix_match:
            if arg.startswith(prefix):
                return 1
        return 0


def _read_rules_file(rules_file: Path) -> Dict[str, Any]:
    try:
        with open(rules_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise CleanupRulesError(f"Cannot read cleanup rules from {rules_file}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("rules", []), list):
        raise CleanupRulesError(
            f"{rules_file}: expected an object with a 'rules' list"
        )
    return data


class ArgumentCleaner:
    """Rewrites raw compiler arguments into a form suitable for parsing."""

    def __init__(
        self,
        rules_file: Optional[Path] = None,
        custom_rules_file: Optional[Path] = None,
        normalizer: Normalizer = normalize_path,
    ):
        """
        Initialize the cleaner.

        Args:
            rules_file: Path to the default rules JSON file (built-in if None)
            custom_rules_file: Optional rules file extending the defaults
            normalizer: Callable that canonicalizes "<build dir><relative path>"

        Raises:
            CleanupRulesError: If the default rules file is missing or invalid.
                A broken custom rules file is reported and ignored.
        """
        self.normalizer = normalizer
        self.rules = CleanupRules()

        rules_file = rules_file or DEFAULT_RULES_FILE
        data = _read_rules_file(rules_file)
        self.rules.version = data.get("version", "unknown")
        self.rules.extend(data.get("rules", []), str(rules_file))
        diagnostics.debug(f"Loaded {len(self.rules.rule_ids)} cleanup rules from {rules_file}")

        if custom_rules_file is not None:
            self._load_custom_rules(Path(custom_rules_file))

    def _load_custom_rules(self, custom_rules_file: Path):
        if not custom_rules_file.exists():
            diagnostics.warning(f"Custom cleanup rules file not found: {custom_rules_file}")
            return

        try:
            data = _read_rules_file(custom_rules_file)
            staged = CleanupRules()
            staged.extend(data.get("rules", []), str(custom_rules_file))
        except CleanupRulesError as e:
            diagnostics.error(f"Ignoring custom cleanup rules: {e}")
            return

        self.rules.extend(data.get("rules", []), str(custom_rules_file))
        diagnostics.debug(
            f"Appended {len(staged.rule_ids)} custom cleanup rules from {custom_rules_file}"
        )

    def get_rules_info(self) -> Dict[str, Any]:
        return {
            "version": self.rules.version,
            "rule_count": len(self.rules.rule_ids),
            "rules": list(self.rules.rule_ids),
        }

    def _absolutize(self, build_directory: str, path: str) -> str:
        # The tool's working directory is unrelated to the build, so relative
        # paths are rebased on the build directory rather than resolved.
        if not path or is_absolute(path) or not build_directory:
            return path
        return self.normalizer(build_directory + path)

    @staticmethod
    def _record_include(
        flag: str, path: str, quote_includes: Set[str], angle_includes: Set[str]
    ):
        if flag in QUOTE_INCLUDE_FLAGS:
            quote_includes.add(path)
        elif flag in ANGLE_INCLUDE_FLAGS:
            angle_includes.add(path)

    def cleanup(
        self,
        build_directory: str,
        filename: str,
        args: List[str],
        quote_includes: Set[str],
        angle_includes: Set[str],
    ) -> List[str]:
        """
        Clean one entry's arguments.

        Args:
            build_directory: Directory the command was run from
            filename: Source file, used for the language heuristics
            args: Raw argument tokens (not modified)
            quote_includes: Receives directories given with -iquote
            angle_includes: Receives directories given with -I and -isystem

        Returns:
            The cleaned argument list, with heuristic flags appended last
        """
        if build_directory:
            build_directory = ensure_ends_in_slash(build_directory)

        cleaned: List[str] = []
        pending_flag: Optional[str] = None
        i = 0

        while i < len(args):
            arg = args[i]

            # Compilers and wrappers are dropped until the first kept token, so
            # a second pass never sees a compiler in first position.
            if not cleaned and self.rules.is_compiler_executable(arg):
                i += 1
                continue

            # Denylist wins over path handling.
            span = self.rules.removal_span(arg)
            if span:
                i += span
                continue
            i += 1

            if pending_flag is not None:
                arg = self._absolutize(build_directory, arg)
                self._record_include(pending_flag, arg, quote_includes, angle_includes)
                pending_flag = None

            for flag in PATH_FLAGS:
                if arg == flag:
                    pending_flag = flag
                    break
                if arg.startswith(flag):
                    path = self._absolutize(build_directory, arg[len(flag):])
                    arg = flag + path
                    self._record_include(flag, path, quote_includes, angle_includes)
                    break

            cleaned.append(arg)

        return add_heuristic_args(filename, cleaned)
