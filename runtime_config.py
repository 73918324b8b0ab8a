"""
Configuration for the Lambda runtime bump tool.
Options are built once from the command line (and an optional YAML file)
and passed read-only into every component.
"""

import logging
import math
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_RUNTIME = 'python3.9'
DEFAULT_TARGET_RUNTIME = 'python3.12'
DEFAULT_WAIT_TIMEOUT = 300.0
DEFAULT_WAIT_INTERVAL = 5.0

_DURATION_UNITS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'ms': 1e-3,
    's': 1.0,
    'm': 60.0,
    'h': 3600.0,
}
_DURATION_PART = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)')

STRING_KEYS = {'profile', 'function', 'source_runtime', 'target_runtime'}
BOOL_KEYS = {'all', 'show_profile'}
DURATION_KEYS = {'wait_timeout', 'wait_interval'}
CONFIG_KEYS = STRING_KEYS | BOOL_KEYS | DURATION_KEYS | {'regions'}


def parse_duration(value: Any) -> float:
    """Parse a duration such as '5m', '1m30s', '200ms' or a bare number of seconds."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        if not text:
            raise ValueError("invalid duration: empty string")
        try:
            seconds = float(text)
        except ValueError:
            pos = 0
            seconds = 0.0
            for match in _DURATION_PART.finditer(text):
                if match.start() != pos:
                    break
                seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
                pos = match.end()
            if pos != len(text):
                raise ValueError(f"invalid duration: {text!r}")
    if not math.isfinite(seconds):
        raise ValueError(f"invalid duration: {value!r}")
    if seconds < 0:
        raise ValueError(f"duration must not be negative: {value!r}")
    if seconds > threading.TIMEOUT_MAX:
        raise ValueError(f"duration too large: {value!r}")
    return seconds


def split_regions(values) -> Tuple[str, ...]:
    """Flatten repeated and comma-separated region values, dropping blanks."""
    if not values:
        return ()
    if isinstance(values, str):
        values = [values]
    regions = []
    for value in values:
        regions.extend(r.strip() for r in str(value).split(',') if r.strip())
    return tuple(regions)


@dataclass(frozen=True)
class WaitPolicy:
    """How long to wait for an update to settle, and how often to poll."""

    timeout: float = DEFAULT_WAIT_TIMEOUT
    interval: float = DEFAULT_WAIT_INTERVAL


@dataclass(frozen=True)
class RuntimeOptions:
    """Which functions to act on and how."""

    profile: str = ''
    regions: Tuple[str, ...] = ()
    function_name: str = ''
    all_functions: bool = False
    source_runtime: str = DEFAULT_SOURCE_RUNTIME
    target_runtime: str = DEFAULT_TARGET_RUNTIME
    wait: WaitPolicy = field(default_factory=WaitPolicy)
    show_profile: bool = False
    dry_run: bool = False
    verbose: bool = False

    def validate(self) -> None:
        """Raise ValueError unless a profile, regions and a target are set."""
        if not self.profile or not self.regions:
            raise ValueError("--profile and --regions are required")
        if not self.function_name and not self.all_functions:
            raise ValueError("specify --function or --all")

    @classmethod
    def from_args(cls, args) -> "RuntimeOptions":
        """
        Build options from parsed arguments, layered over an optional YAML file.

        Values given on the command line win over the file; the file wins over
        the built-in defaults.
        """
        file_values: Dict[str, Any] = {}
        config_path = getattr(args, 'config', None)
        if config_path:
            file_values = load_config_file(config_path)

        def pick(arg_name: str, key: str, default=None):
            value = getattr(args, arg_name, None)
            if value is not None and value is not False:
                return value
            return file_values.get(key, default)

        return cls(
            profile=pick('profile', 'profile', '') or '',
            regions=split_regions(pick('regions', 'regions')),
            function_name=pick('function', 'function', '') or '',
            all_functions=bool(pick('all', 'all', False)),
            source_runtime=pick('source_runtime', 'source_runtime', DEFAULT_SOURCE_RUNTIME),
            target_runtime=pick('target_runtime', 'target_runtime', DEFAULT_TARGET_RUNTIME),
            wait=WaitPolicy(
                timeout=parse_duration(pick('wait_timeout', 'wait_timeout', DEFAULT_WAIT_TIMEOUT)),
                interval=parse_duration(pick('wait_interval', 'wait_interval', DEFAULT_WAIT_INTERVAL)),
            ),
            show_profile=bool(pick('show_profile', 'show_profile', False)),
            dry_run=bool(getattr(args, 'dry_run', False)),
            verbose=bool(getattr(args, 'verbose', False)),
        )


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Load option defaults from a YAML file."""
    path = Path(config_path)
    try:
        with path.open('r', encoding='utf-8') as handle:
            config = yaml.safe_load(handle) or {}
    except FileNotFoundError:
        raise ValueError(f"configuration file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ValueError(f"error parsing YAML configuration {config_path}: {e}")

    if not isinstance(config, dict):
        raise ValueError(f"configuration file {config_path} must contain a mapping")

    unknown = sorted(set(config) - CONFIG_KEYS)
    if unknown:
        raise ValueError(f"unknown configuration keys in {config_path}: {', '.join(unknown)}")

    _validate_config_types(config, config_path)
    logger.info(f"Loaded configuration from {config_path}")
    return config


def _validate_config_types(config: Dict[str, Any], config_path: str) -> None:
    """Reject values whose YAML type does not match the option they set."""
    for key, value in config.items():
        if key in STRING_KEYS:
            valid = isinstance(value, str) and bool(value.strip())
            expected = 'a non-empty string'
        elif key in BOOL_KEYS:
            valid = isinstance(value, bool)
            expected = 'true or false'
        elif key in DURATION_KEYS:
            valid = isinstance(value, (str, int, float)) and not isinstance(value, bool)
            expected = 'a duration such as 5m or 30s'
        else:
            valid = isinstance(value, str) or (
                isinstance(value, list) and bool(value) and all(isinstance(v, str) for v in value)
            )
            expected = 'a region or a list of regions'
        if not valid:
            raise ValueError(f"invalid value for '{key}' in {config_path}: {value!r} (expected {expected})")


def describe(options: RuntimeOptions) -> str:
    """Short human description of the selection, used in debug logs."""
    target = options.function_name or 'all functions'
    return (
        f"profile={options.profile} regions={','.join(options.regions)} target={target} "
        f"{options.source_runtime}->{options.target_runtime} "
        f"timeout={options.wait.timeout}s interval={options.wait.interval}s"
    )
