# pingmany/configuration.py

"""
Configuration loader for pingmany.

Settings come from built-in defaults, optionally overridden by a YAML file
and then by command line options.
"""

import os
import re
import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import yaml

# Defaults for every recognized setting. Durations use Go-style strings
# ("100ms", "3s", "1m30s") or plain numbers of seconds.
DEFAULT_CONFIG: Dict[str, Any] = {
    'delay': '100ms',
    'timeout': '3s',
    'show_reachable': False,
    'show_unreachable': False,
    # Capacity of the reply channel between listeners and the sweep loop.
    'reply_queue_size': 5,
    # Largest number of addresses a single prefix or range may expand to.
    'max_expansion': 65536,
    'log_level': 'WARNING',
}

DEFAULT_CONFIG_PATH = "pingmany.yaml"

_DURATION_PART = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ms|us|µs|ns|s|m|h)')
_UNIT_SECONDS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'ms': 1e-3,
    's': 1.0,
    'm': 60.0,
    'h': 3600.0,
}


def parse_duration(value: Union[str, int, float]) -> float:
    """
    Converts a duration to seconds.

    Accepts numbers (seconds) and strings such as "250ms", "2s" or "1m30s".

    Raises:
        ValueError: if the value is negative or not a recognizable duration.
    """
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        s = value.strip()
        try:
            seconds = float(s)
        except ValueError:
            pos, seconds = 0, 0.0
            for match in _DURATION_PART.finditer(s):
                if match.start() != pos:
                    break
                seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
                pos = match.end()
            if not s or pos != len(s):
                raise ValueError(f"Invalid duration: {value!r}")
    if seconds < 0:
        raise ValueError(f"Duration must not be negative: {value!r}")
    return seconds


@dataclass
class SweepSettings:
    """Values the sweep engine needs, in seconds."""
    delay: float = 0.1
    timeout: float = 3.0
    reply_queue_size: int = 5
    debug: bool = False

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "SweepSettings":
        """
        Builds settings from a merged configuration dictionary.

        Raises:
            ValueError: on an invalid duration or queue size.
        """
        queue_size = int(config.get('reply_queue_size', DEFAULT_CONFIG['reply_queue_size']))
        if queue_size < 1:
            raise ValueError(f"reply_queue_size must be at least 1, got {queue_size}")
        return cls(
            delay=parse_duration(config.get('delay', DEFAULT_CONFIG['delay'])),
            timeout=parse_duration(config.get('timeout', DEFAULT_CONFIG['timeout'])),
            reply_queue_size=queue_size,
            debug=str(config.get('log_level', '')).upper() == 'DEBUG',
        )


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Loads configuration from a YAML file and merges it over the defaults.

    Without an explicit path, pingmany.yaml in the working directory is used
    if it exists. A missing explicit file or invalid YAML is fatal.
    """
    config = DEFAULT_CONFIG.copy()
    if path is None:
        if not os.path.exists(DEFAULT_CONFIG_PATH):
            return config
        path = DEFAULT_CONFIG_PATH

    try:
        with open(path, 'r') as f:
            user_config = yaml.safe_load(f)
    except OSError as e:
        print(f"FATAL: Could not read config file '{path}': {e}", file=sys.stderr)
        sys.exit(1)
    except yaml.YAMLError as e:
        print(f"FATAL: Error parsing '{path}': {e}", file=sys.stderr)
        sys.exit(1)

    if user_config:
        if not isinstance(user_config, dict):
            print(f"FATAL: '{path}' must contain a mapping of settings.", file=sys.stderr)
            sys.exit(1)
        config.update(user_config)
    return config
