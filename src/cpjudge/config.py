"""
Run configuration for the harness.

The configuration lives in a JSON file (``atcodertoolsconfig.json`` by
default) with the keys ``main``, ``build``, ``run`` and an optional
``autointerval`` in milliseconds. Templates are validated when the file is
loaded so that a malformed run command never reaches the judge.
"""
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict

from .errors import ConfigError

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "atcodertoolsconfig.json"
MAIN_FILE_PLACEHOLDER = "{MAIN_FILE}"
INPUT_FILE_PLACEHOLDER = "{INPUT_FILE}"
DEFAULT_WATCH_INTERVAL_MS = 500
JUDGE_TIMEOUT_MS = 6000


@dataclass(frozen=True)
class RunConfiguration:
    """Configuration shared read-only by every judging component."""
    main_file: str
    build_command: str
    run_command: str
    watch_interval_ms: int = DEFAULT_WATCH_INTERVAL_MS
    timeout_ms: int = JUDGE_TIMEOUT_MS

    def command_for(self, input_file: str) -> str:
        """Run command with both placeholders substituted."""
        return substitute(self.run_command, main_file=self.main_file, input_file=input_file)

    def to_json(self) -> Dict[str, Any]:
        return {
            "main": self.main_file,
            "build": self.build_command,
            "run": self.run_command,
            "autointerval": self.watch_interval_ms,
        }


def substitute(template: str, main_file: str, input_file: str = None) -> str:
    """Replace the placeholders of a command template."""
    command = template.replace(MAIN_FILE_PLACEHOLDER, str(main_file))
    if input_file is not None:
        command = command.replace(INPUT_FILE_PLACEHOLDER, str(input_file))
    return command


def _require_text(raw: Dict[str, Any], key: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{key}' must be a non-empty string")
    return value


def config_from_mapping(raw: Dict[str, Any]) -> RunConfiguration:
    """
    Validate a raw configuration mapping and build a RunConfiguration.

    The build template gets ``{MAIN_FILE}`` substituted here; the run
    template keeps its placeholders and must contain ``{INPUT_FILE}``.

    Raises:
        ConfigError: when a key is missing, empty or malformed
    """
    if not isinstance(raw, dict):
        raise ConfigError("Configuration must be a JSON object")

    main_file = _require_text(raw, "main")
    build = _require_text(raw, "build")
    run = _require_text(raw, "run")

    if INPUT_FILE_PLACEHOLDER not in run:
        raise ConfigError(f"'run' must contain the {INPUT_FILE_PLACEHOLDER} placeholder")

    interval = raw.get("autointerval", DEFAULT_WATCH_INTERVAL_MS)
    if isinstance(interval, bool) or not isinstance(interval, int) or interval <= 0:
        raise ConfigError("'autointerval' must be a positive integer (milliseconds)")

    return RunConfiguration(
        main_file=main_file,
        build_command=substitute(build, main_file=main_file),
        run_command=run,
        watch_interval_ms=interval,
    )


def load_config(path: str = DEFAULT_CONFIG_FILE) -> RunConfiguration:
    """Load and validate the configuration file at ``path``."""
    if not os.path.exists(path):
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc

    config = config_from_mapping(raw)
    LOGGER.info("Loaded config from %s: %s", path, config)
    return config


def save_config(raw: Dict[str, Any], path: str = DEFAULT_CONFIG_FILE) -> RunConfiguration:
    """Validate ``raw`` and write it to ``path`` unchanged."""
    config = config_from_mapping(raw)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(raw, handle, indent=2)
    return config
