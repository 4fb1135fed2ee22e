"""
Runtime configuration.

Environment variables are parsed and validated here; other modules take a TzConfig.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from errors import TzConfigError

DEFAULT_ZIC = 'zic'
DEFAULT_ZDUMP = 'zdump'
# Simultaneous zdump processes
DEFAULT_MAX_DUMPS = 10
DEFAULT_BUILD_DIR = 'build'
DEFAULT_LOG_LEVEL = 'INFO'
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')


@dataclass(frozen=True)
class TzConfig:
    """Validated runtime configuration.

    Attributes:
        zic: Zone compiler executable.
        zdump: Transition dump executable.
        max_dumps: Upper bound on concurrent zdump invocations.
        build_dir: Directory receiving packed store files.
        log_level: Minimum level of logged events.
    """

    zic: str = DEFAULT_ZIC
    zdump: str = DEFAULT_ZDUMP
    max_dumps: int = DEFAULT_MAX_DUMPS
    build_dir: Path = Path(DEFAULT_BUILD_DIR)
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> TzConfig:
        """Build config from process environment variables.

        Raises:
            TzConfigError: If environment values are invalid.
        """
        return cls(
            zic=os.getenv('TZPACK_ZIC', DEFAULT_ZIC),
            zdump=os.getenv('TZPACK_ZDUMP', DEFAULT_ZDUMP),
            max_dumps=_parse_max_dumps(os.getenv('TZPACK_MAX_DUMPS', str(DEFAULT_MAX_DUMPS))),
            build_dir=Path(os.getenv('TZPACK_BUILD_DIR', DEFAULT_BUILD_DIR)).expanduser(),
            log_level=parse_log_level(os.getenv('TZPACK_LOG_LEVEL', DEFAULT_LOG_LEVEL)),
        )


def _parse_max_dumps(raw_value: str) -> int:
    try:
        value = int(raw_value)
    except ValueError as error:
        raise TzConfigError(
            f"Invalid TZPACK_MAX_DUMPS value: expected integer, got '{raw_value}'"
        ) from error
    if value < 1:
        raise TzConfigError(f'Invalid TZPACK_MAX_DUMPS value: {value} must be at least 1')
    return value


def parse_log_level(raw_value: str) -> str:
    level = raw_value.upper()
    if level not in LOG_LEVELS:
        raise TzConfigError(
            f"Invalid log level '{raw_value}': expected one of {', '.join(LOG_LEVELS)}"
        )
    return level
