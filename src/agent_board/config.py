"""Load optional board configuration from `<data_dir>/board.yaml`."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

from .constants import (
    CONFIG_FILE,
    DATA_DIR_ENV,
    DEFAULT_AUDIT_LIMIT,
    DEFAULT_DATA_DIR,
    DEFAULT_MAX_RETRIES,
    MAX_BACKUPS,
    MAX_BACKUPS_ENV,
    MISSING_DEPENDENCY_POLICIES,
    MISSING_DEPS_IGNORE,
)
from .io_utils import _load_yaml_with_error


@dataclass
class BoardConfig:
    max_backups: int = MAX_BACKUPS
    default_max_retries: int = DEFAULT_MAX_RETRIES
    audit_limit: int = DEFAULT_AUDIT_LIMIT
    # "ignore" keeps deleted dependencies from blocking; "block" reports them.
    missing_dependencies: str = MISSING_DEPS_IGNORE

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BoardConfig":
        policy = str(data.get("missing_dependencies") or MISSING_DEPS_IGNORE)
        if policy not in MISSING_DEPENDENCY_POLICIES:
            policy = MISSING_DEPS_IGNORE
        return cls(
            max_backups=_positive_int(data.get("max_backups"), MAX_BACKUPS),
            default_max_retries=_non_negative_int(data.get("default_max_retries"), DEFAULT_MAX_RETRIES),
            audit_limit=_positive_int(data.get("audit_limit"), DEFAULT_AUDIT_LIMIT),
            missing_dependencies=policy,
        )


def _positive_int(raw: Any, default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def _non_negative_int(raw: Any, default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value >= 0 else default


def resolve_data_dir(data_dir: Optional[str] = None) -> Path:
    """Pick the data directory: explicit argument, then environment, then ``./data``."""
    raw = data_dir or os.environ.get(DATA_DIR_ENV) or DEFAULT_DATA_DIR
    return Path(raw).expanduser().resolve()


def load_board_config(data_dir: Path) -> tuple[BoardConfig, str | None]:
    """Load the optional board config file.

    Args:
        data_dir: Board data directory.

    Returns:
        A tuple of `(config, error_message)`. A missing file yields defaults and
        no error; a damaged file yields defaults and the parse error.
    """
    path = Path(data_dir) / CONFIG_FILE
    data, err = _load_yaml_with_error(path, {})
    config = BoardConfig.from_dict(data)
    env_backups = os.environ.get(MAX_BACKUPS_ENV)
    if env_backups:
        config.max_backups = _positive_int(env_backups, config.max_backups)
    return config, err
