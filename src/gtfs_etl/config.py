"""gtfs_etl.config

YAML loader settings.

Responsibilities:
  - Load and validate config/loader.yml
  - Provide defaults for every setting so the file is optional
  - Let CLI flags override individual values (with_overrides)

Usage:
    from pathlib import Path
    from gtfs_etl.config import load_loader_config

    config = load_loader_config(Path("config/loader.yml"))
    config.write_mode   # 'copy'
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VALID_WRITE_MODES = ("copy", "insert")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
KNOWN_KEYS = frozenset({"write_mode", "batch_size", "create_indexes", "report_dir", "log_level"})


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConfigValidationError(ValueError):
    """Raised when a loader config file fails validation."""


# ---------------------------------------------------------------------------
# LoaderConfig dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LoaderConfig:
    write_mode: str = "copy"
    batch_size: int = 500
    create_indexes: bool = True
    report_dir: str = "./artifacts/reports"
    log_level: str = "INFO"

    def with_overrides(self, **overrides: Any) -> LoaderConfig:
        """Return a copy with every non-None override applied, then validated."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        updated = replace(self, **changes)
        validate_loader_config(updated.__dict__)
        return updated


# ---------------------------------------------------------------------------
# Loader + validator
# ---------------------------------------------------------------------------

def load_loader_config(yaml_path: Path) -> LoaderConfig:
    """Load, validate, and return a LoaderConfig from a YAML file.

    Args:
        yaml_path: Path to the YAML file. Missing keys take defaults.

    Returns:
        A validated LoaderConfig instance.

    Raises:
        ConfigValidationError: If a key is unknown or a value is invalid.
        FileNotFoundError: If the YAML file does not exist.
    """
    raw = Path(yaml_path).read_text(encoding="utf-8")
    data = yaml.safe_load(raw)
    if data is None:
        data = {}
    validate_loader_config(data)
    defaults = LoaderConfig()
    return LoaderConfig(
        write_mode=str(data.get("write_mode", defaults.write_mode)),
        batch_size=int(data.get("batch_size", defaults.batch_size)),
        create_indexes=bool(data.get("create_indexes", defaults.create_indexes)),
        report_dir=str(data.get("report_dir", defaults.report_dir)),
        log_level=str(data.get("log_level", defaults.log_level)).upper(),
    )


def validate_loader_config(data: dict[str, Any]) -> None:
    """Raise ConfigValidationError if data does not match the config schema.

    Validates:
      - root is a mapping with no unknown keys
      - write_mode is 'copy' or 'insert'
      - batch_size is a positive integer
      - create_indexes is a boolean
      - log_level is a standard logging level name
    """
    if not isinstance(data, dict):
        raise ConfigValidationError("YAML root must be a mapping.")

    unknown = set(data.keys()) - KNOWN_KEYS
    if unknown:
        raise ConfigValidationError(f"Unknown config keys: {sorted(unknown)}")

    write_mode = data.get("write_mode", "copy")
    if write_mode not in VALID_WRITE_MODES:
        raise ConfigValidationError(
            f"Invalid write_mode '{write_mode}'. Must be one of {list(VALID_WRITE_MODES)}."
        )

    batch_size = data.get("batch_size", 500)
    if isinstance(batch_size, bool) or not isinstance(batch_size, int):
        raise ConfigValidationError(f"batch_size '{batch_size}' is not an integer.")
    if batch_size < 1:
        raise ConfigValidationError(f"batch_size {batch_size} must be >= 1.")

    if not isinstance(data.get("create_indexes", True), bool):
        raise ConfigValidationError("create_indexes must be true or false.")

    log_level = str(data.get("log_level", "INFO")).upper()
    if log_level not in VALID_LOG_LEVELS:
        raise ConfigValidationError(
            f"Invalid log_level '{log_level}'. Must be one of {list(VALID_LOG_LEVELS)}."
        )
