"""Configuration loader for project argument resolution."""

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from . import diagnostics


class ProjectConfig:
    """Loads and manages per-project configuration."""

    CONFIG_FILENAME = ".compile-args-config.json"
    ENV_CONFIG_VARIABLE = "COMPILE_ARGS_CONFIG"

    DEFAULT_CONFIG = {
        "compile_commands_path": "compile_commands.json",
        "flags_file": "clang_args",
        "source_extensions": [".cc", ".cpp", ".c"],
        "exclude_directories": [".git", ".svn", ".hg"],
        "extra_flags": [],
        "index_whitelist": [],
        "index_blacklist": [],
        "log_skipped_paths": False,
        "cleanup_rules_file": None,
        # "level" (debug, info, warning, error, fatal) overrides COMPILE_ARGS_DIAGNOSTIC_LEVEL
        "diagnostics": {"enabled": True},
    }

    def __init__(self, project_root: Path, config_file: Optional[Path] = None):
        self.project_root = Path(project_root)
        self.config_path: Optional[Path] = None
        self._explicit_config_file = Path(config_file) if config_file else None
        self.config = self._load_config()

    def _find_config_file(self) -> Tuple[Optional[Path], Optional[str]]:
        """Find config file by checking multiple locations in priority order.

        Priority order:
        1. Explicit config_file argument
        2. Environment variable COMPILE_ARGS_CONFIG
        3. Project root (.compile-args-config.json)

        Returns tuple of (config_path, source_description) or (None, None) if not found.
        """
        if self._explicit_config_file is not None:
            if self._explicit_config_file.exists():
                return (self._explicit_config_file, "explicit config file")
            diagnostics.warning(f"Config file does not exist: {self._explicit_config_file}")

        env_config = os.environ.get(self.ENV_CONFIG_VARIABLE)
        if env_config:
            env_path = Path(env_config)
            if env_path.exists():
                diagnostics.debug(f"Using config from {self.ENV_CONFIG_VARIABLE}: {env_path}")
                return (env_path, f"environment variable {self.ENV_CONFIG_VARIABLE}")
            diagnostics.warning(
                f"{self.ENV_CONFIG_VARIABLE} points to non-existent file: {env_path}"
            )

        project_config = self.project_root / self.CONFIG_FILENAME
        if project_config.exists():
            diagnostics.debug(f"Using config from project root: {project_config}")
            return (project_config, "project root directory")

        return (None, None)

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file or use defaults."""
        config = copy.deepcopy(self.DEFAULT_CONFIG)
        config_file, config_source = self._find_config_file()

        if config_file is None:
            diagnostics.configure_from_config(config)
            diagnostics.debug("No config file found, using defaults")
            return config

        self.config_path = config_file
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                user_config = json.load(f)
        except (OSError, ValueError) as e:
            diagnostics.error(f"Error loading config from {config_file}: {e}")
            diagnostics.warning("Using default configuration")
            return config

        if not isinstance(user_config, dict):
            diagnostics.error(
                f"Invalid config file format at {config_file}: expected a JSON object, "
                f"got {type(user_config).__name__}"
            )
            diagnostics.warning("Using default configuration")
            return config

        # User values take precedence over defaults.
        config.update(user_config)
        diagnostics.configure_from_config(config)
        diagnostics.debug(f"Configuration loaded from {config_source}: {config_file}")
        return config

    def _get_list(self, key: str) -> List[str]:
        value = self.config.get(key, self.DEFAULT_CONFIG[key])
        if not isinstance(value, list):
            diagnostics.warning(f"Config key '{key}' must be a list; using default")
            return list(self.DEFAULT_CONFIG[key])
        return [str(item) for item in value]

    def _get_string(self, key: str) -> Optional[str]:
        value = self.config.get(key, self.DEFAULT_CONFIG[key])
        if value is None or isinstance(value, str):
            return value or self.DEFAULT_CONFIG[key]
        diagnostics.warning(f"Config key '{key}' must be a string; using default")
        return self.DEFAULT_CONFIG[key]

    def get_compile_commands_path(self) -> Path:
        path = Path(self._get_string("compile_commands_path"))
        return path if path.is_absolute() else self.project_root / path

    def get_flags_file(self) -> str:
        return self._get_string("flags_file")

    def get_source_extensions(self) -> List[str]:
        return self._get_list("source_extensions")

    def get_exclude_directories(self) -> List[str]:
        return self._get_list("exclude_directories")

    def get_extra_flags(self) -> List[str]:
        return self._get_list("extra_flags")

    def get_index_whitelist(self) -> List[str]:
        return self._get_list("index_whitelist")

    def get_index_blacklist(self) -> List[str]:
        return self._get_list("index_blacklist")

    def get_log_skipped_paths(self) -> bool:
        return bool(self.config.get("log_skipped_paths", False))

    def get_cleanup_rules_file(self) -> Optional[Path]:
        """Custom cleanup rules file; relative paths are based on the project root."""
        rules_file = self._get_string("cleanup_rules_file")
        if not rules_file:
            return None
        rules_path = Path(rules_file)
        if not rules_path.is_absolute():
            rules_path = self.project_root / rules_path
        return rules_path
