"""
Settings for the auditor.

Values are resolved in this order, later sources winning: built-in defaults,
the ``~/.bib-auditor/config`` key=value file, ``BIB_AUDITOR_*`` environment
variables, and finally explicit overrides such as CLI options.
"""

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 2_000_000
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class AuditorSettings:
    """Resource limits and context window sizes."""
    max_chars: int = DEFAULT_MAX_CHARS
    timeout: float = DEFAULT_TIMEOUT
    context_before_words: int = 100
    context_after_words: int = 50
    max_workers: int = 4

    def with_overrides(self, **overrides) -> "AuditorSettings":
        """Return a copy with every non-None override applied and validated."""
        changes = {}
        for key, value in overrides.items():
            if value is None:
                continue
            if key not in _CONVERTERS:
                raise ConfigurationError(key, value, "unknown setting")
            changes[key] = convert_value(key, value)
        return replace(self, **changes)


def _positive_int(value) -> int:
    number = int(value)
    if number <= 0:
        raise ValueError("must be positive")
    return number


def _non_negative_int(value) -> int:
    number = int(value)
    if number < 0:
        raise ValueError("must not be negative")
    return number


def _non_negative_float(value) -> float:
    number = float(value)
    if number < 0:
        raise ValueError("must not be negative")
    return number


_CONVERTERS: Dict[str, Callable] = {
    "max_chars": _positive_int,
    "timeout": _non_negative_float,
    "context_before_words": _non_negative_int,
    "context_after_words": _non_negative_int,
    "max_workers": _positive_int,
}

ENV_VARS = {
    "max_chars": "BIB_AUDITOR_MAX_CHARS",
    "timeout": "BIB_AUDITOR_TIMEOUT",
    "context_before_words": "BIB_AUDITOR_CONTEXT_BEFORE",
    "context_after_words": "BIB_AUDITOR_CONTEXT_AFTER",
    "max_workers": "BIB_AUDITOR_MAX_WORKERS",
}


def convert_value(key: str, value):
    """Convert a raw setting value, raising ``ConfigurationError`` on bad input."""
    try:
        return _CONVERTERS[key](value)
    except KeyError:
        raise ConfigurationError(key, value, "unknown setting")
    except (TypeError, ValueError) as e:
        raise ConfigurationError(key, value, str(e))


def default_config_path() -> Path:
    return Path.home() / '.bib-auditor' / 'config'


def read_config_file(path: Optional[Path] = None) -> Dict[str, str]:
    """Read the simple key=value config file; a missing file is empty."""
    config_file = Path(path) if path else default_config_path()
    configs = {}
    if config_file.exists():
        with open(config_file, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#') or '=' not in line:
                    continue
                key, value = line.split('=', 1)
                configs[key.strip()] = value.strip()
    return configs


def write_config_value(key: str, value: str, path: Optional[Path] = None) -> Path:
    """Validate and persist one setting, keeping the others in the file."""
    convert_value(key, value)
    config_file = Path(path) if path else default_config_path()
    config_file.parent.mkdir(parents=True, exist_ok=True)

    configs = read_config_file(config_file)
    configs[key] = value

    with open(config_file, 'w', encoding='utf-8') as f:
        for name, setting in configs.items():
            f.write(f"{name}={setting}\n")
    logger.debug(f"Wrote {key} to {config_file}")
    return config_file


def load_settings(path: Optional[Path] = None,
                  environ: Optional[Mapping[str, str]] = None,
                  **overrides) -> AuditorSettings:
    """Resolve settings from defaults, config file, environment and overrides."""
    environ = os.environ if environ is None else environ
    values = {}

    for key, value in read_config_file(path).items():
        if key not in _CONVERTERS:
            logger.warning(f"Ignoring unknown config key '{key}'")
            continue
        values[key] = value

    for key, env_var in ENV_VARS.items():
        if environ.get(env_var):
            values[key] = environ[env_var]

    settings = AuditorSettings().with_overrides(**values)
    return settings.with_overrides(**overrides)
