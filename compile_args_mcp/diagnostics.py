"""Diagnostic logging for the compile arguments resolver.

Messages go to stderr by default so they never mix with MCP traffic on stdout.
"""

import os
import sys
from enum import IntEnum
from typing import Optional, TextIO


class DiagnosticLevel(IntEnum):
    """Diagnostic message levels in order of severity."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    FATAL = 4


LEVEL_NAMES = {level.name: level for level in DiagnosticLevel}

ENV_LEVEL_VARIABLE = "COMPILE_ARGS_DIAGNOSTIC_LEVEL"


def parse_level(name: str, default: DiagnosticLevel = DiagnosticLevel.INFO) -> DiagnosticLevel:
    """Map a case-insensitive level name to a DiagnosticLevel."""
    return LEVEL_NAMES.get(str(name).upper(), default)


class DiagnosticLogger:
    """Writes leveled diagnostic lines to a text stream."""

    def __init__(
        self, level: DiagnosticLevel = DiagnosticLevel.INFO, output_stream: TextIO = sys.stderr
    ):
        self.level = level
        self.output_stream = output_stream
        self._enabled = True

    def set_level(self, level: DiagnosticLevel):
        self.level = level

    def set_output_stream(self, stream: TextIO):
        self.output_stream = stream

    def set_enabled(self, enabled: bool):
        """Enable or disable all diagnostic output."""
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def is_enabled_for(self, level: DiagnosticLevel) -> bool:
        return self._enabled and level >= self.level

    def log(self, level: DiagnosticLevel, message: str):
        if self.is_enabled_for(level):
            print(f"[{level.name}] {message}", file=self.output_stream, flush=True)

    def debug(self, message: str):
        self.log(DiagnosticLevel.DEBUG, message)

    def info(self, message: str):
        self.log(DiagnosticLevel.INFO, message)

    def warning(self, message: str):
        self.log(DiagnosticLevel.WARNING, message)

    def error(self, message: str):
        self.log(DiagnosticLevel.ERROR, message)

    def fatal(self, message: str):
        self.log(DiagnosticLevel.FATAL, message)


_global_logger: Optional[DiagnosticLogger] = None


def get_logger() -> DiagnosticLogger:
    """Get the global diagnostic logger instance."""
    global _global_logger
    if _global_logger is None:
        _global_logger = _create_default_logger()
    return _global_logger


def _create_default_logger() -> DiagnosticLogger:
    level = parse_level(os.environ.get(ENV_LEVEL_VARIABLE, "INFO"))
    return DiagnosticLogger(level=level, output_stream=sys.stderr)


def configure_from_config(config: dict):
    """Configure the global logger from a configuration dictionary.

    Expected config format:
    {
        "diagnostics": {
            "level": "info",  # debug, info, warning, error, fatal
            "enabled": true
        }
    }
    """
    diag_config = config.get("diagnostics") or {}
    if not isinstance(diag_config, dict):
        diag_config = {}
    logger = get_logger()

    # Without an explicit level the environment (or earlier) setting stays.
    if "level" in diag_config:
        level_name = str(diag_config["level"]).upper()
        if level_name in LEVEL_NAMES:
            logger.set_level(LEVEL_NAMES[level_name])
        else:
            logger.warning(f"Unknown diagnostic level '{diag_config['level']}'; keeping current level")

    logger.set_enabled(bool(diag_config.get("enabled", True)))


def debug(message: str):
    get_logger().debug(message)


def info(message: str):
    get_logger().info(message)


def warning(message: str):
    get_logger().warning(message)


def error(message: str):
    get_logger().error(message)


def fatal(message: str):
    get_logger().fatal(message)
