"""Configuration system for cpu-ledger."""

from dataclasses import dataclass, field
from pathlib import Path

import tomlkit

VALID_LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass
class SamplingConfig:
    """Tick scheduling."""

    interval: float = 1.0  # Seconds between ticks


@dataclass
class SourceConfig:
    """Where the process table is read from."""

    proc_root: str = "/proc"


@dataclass
class LoggingConfig:
    """Diagnostic output on stderr and an optional JSON log file."""

    level: str = "warning"
    file: str = ""  # Empty disables the JSON file log
    max_bytes: int = 1_048_576
    backup_count: int = 3

    @property
    def file_path(self) -> Path | None:
        """JSON log path, or None when file logging is off."""
        return Path(self.file).expanduser() if self.file else None


@dataclass
class Config:
    """Main configuration container."""

    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "cpu-ledger"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() on a missing file are identical.

        Raises:
            ValueError: If the file cannot be parsed or holds invalid values.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            sampling=_load_sampling_config(data.get("sampling", {})),
            source=_load_source_config(data.get("source", {})),
            logging=_load_logging_config(data.get("logging", {})),
        )


def _load_sampling_config(data: dict) -> SamplingConfig:
    """Load sampling config; sub-second ticks are not supported."""
    defaults = SamplingConfig()
    interval = float(data.get("interval", defaults.interval))
    if interval < 1.0:
        raise ValueError(f"Invalid sampling.interval: {interval!r}. Must be >= 1.0")
    return SamplingConfig(interval=interval)


def _load_source_config(data: dict) -> SourceConfig:
    """Load source config from TOML data."""
    defaults = SourceConfig()
    return SourceConfig(proc_root=str(data.get("proc_root", defaults.proc_root)))


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config, using dataclass defaults for missing fields."""
    defaults = LoggingConfig()
    level = str(data.get("level", defaults.level)).lower()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid logging.level: {level!r}. Must be one of {VALID_LOG_LEVELS}")
    return LoggingConfig(
        level=level,
        file=str(data.get("file", defaults.file)),
        max_bytes=int(data.get("max_bytes", defaults.max_bytes)),
        backup_count=int(data.get("backup_count", defaults.backup_count)),
    )
