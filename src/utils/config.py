"""
Environment-driven configuration for the streaming tutorial.

Every setting can be overridden through an environment variable; the
defaults point at the sample data shipped in ``data/`` and a local
Spark master, so the lessons run out of the box.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

# Repository root: src/utils/config.py -> parents[2]
PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_DATA_DIR = str(PROJECT_ROOT / "data")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def get_env_str(name: str, default: str) -> str:
    """Read a string variable, falling back to ``default`` when unset."""
    return os.environ.get(name, default)


def get_env_int(name: str, default: int) -> int:
    """Read an integer variable.

    Raises:
        ValueError: If the variable is set but is not an integer.
    """
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def get_env_float(name: str, default: float) -> float:
    """Read a float variable.

    Raises:
        ValueError: If the variable is set but is not a number.
    """
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def get_env_bool(name: str, default: bool) -> bool:
    """Read a boolean variable (1/0, true/false, yes/no, on/off)."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def get_env_list(name: str, default: List[str]) -> List[str]:
    """Read a comma-separated list, ignoring blank items."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class SparkConfig:
    """Spark session settings."""

    master: str = "local[2]"
    app_name: str = "StructuredStreamingTutorial"
    shuffle_partitions: int = 2
    checkpoint_root: str = "/tmp/streaming-tutorial/checkpoints"
    log_level: str = "WARN"

    @classmethod
    def from_env(cls, app_name: Optional[str] = None) -> "SparkConfig":
        return cls(
            master=get_env_str("SPARK_MASTER", cls.master),
            app_name=get_env_str("SPARK_APP_NAME", app_name or cls.app_name),
            shuffle_partitions=get_env_int("SPARK_SHUFFLE_PARTITIONS", cls.shuffle_partitions),
            checkpoint_root=get_env_str("SPARK_CHECKPOINT_ROOT", cls.checkpoint_root),
            log_level=get_env_str("SPARK_LOG_LEVEL", cls.log_level),
        )


@dataclass
class BroadcasterConfig:
    """Settings for the line-by-line TCP broadcaster."""

    host: str = "localhost"
    port: int = 9999
    source_path: str = str(Path(DEFAULT_DATA_DIR) / "people.txt")
    delay_seconds: float = 1.0
    loop: bool = True

    @classmethod
    def from_env(cls) -> "BroadcasterConfig":
        return cls(
            host=get_env_str("BROADCASTER_HOST", cls.host),
            port=get_env_int("BROADCASTER_PORT", cls.port),
            source_path=get_env_str("BROADCASTER_SOURCE", cls.source_path),
            delay_seconds=get_env_float("BROADCASTER_DELAY_SECONDS", cls.delay_seconds),
            loop=get_env_bool("BROADCASTER_LOOP", cls.loop),
        )


@dataclass
class DataConfig:
    """Locations of the sample files read by the file-based lessons."""

    data_dir: str = DEFAULT_DATA_DIR
    transactions_dir: str = str(Path(DEFAULT_DATA_DIR) / "transactions")
    users_path: str = str(Path(DEFAULT_DATA_DIR) / "users.csv")
    max_files_per_trigger: int = 1

    @classmethod
    def from_env(cls) -> "DataConfig":
        data_dir = get_env_str("TUTORIAL_DATA_DIR", DEFAULT_DATA_DIR)
        return cls(
            data_dir=data_dir,
            transactions_dir=get_env_str(
                "TUTORIAL_TRANSACTIONS_DIR", str(Path(data_dir) / "transactions")
            ),
            users_path=get_env_str("TUTORIAL_USERS_PATH", str(Path(data_dir) / "users.csv")),
            max_files_per_trigger=get_env_int("TUTORIAL_MAX_FILES_PER_TRIGGER", cls.max_files_per_trigger),
        )


@dataclass
class Config:
    """Top-level configuration for a tutorial job."""

    job_name: str = "StreamingTutorial"
    log_level: str = "INFO"
    max_runtime_seconds: int = 60
    trigger_interval: Optional[str] = None
    spark: SparkConfig = field(default_factory=SparkConfig)
    broadcaster: BroadcasterConfig = field(default_factory=BroadcasterConfig)
    data: DataConfig = field(default_factory=DataConfig)

    @classmethod
    def from_env(cls, job_name: str = "StreamingTutorial") -> "Config":
        """Load configuration from environment variables and validate it."""
        trigger = get_env_str("TRIGGER_INTERVAL", "")
        config = cls(
            job_name=job_name,
            log_level=get_env_str("LOG_LEVEL", cls.log_level),
            max_runtime_seconds=get_env_int("MAX_RUNTIME_SECONDS", cls.max_runtime_seconds),
            trigger_interval=trigger or None,
            spark=SparkConfig.from_env(app_name=job_name),
            broadcaster=BroadcasterConfig.from_env(),
            data=DataConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate settings.

        Raises:
            ValueError: If any setting is out of range.
        """
        if not 1 <= self.broadcaster.port <= 65535:
            raise ValueError("BROADCASTER_PORT must be between 1 and 65535")

        if self.broadcaster.delay_seconds < 0:
            raise ValueError("BROADCASTER_DELAY_SECONDS must not be negative")

        if self.data.max_files_per_trigger < 1:
            raise ValueError("TUTORIAL_MAX_FILES_PER_TRIGGER must be at least 1")

        if self.spark.shuffle_partitions < 1:
            raise ValueError("SPARK_SHUFFLE_PARTITIONS must be at least 1")

        if self.max_runtime_seconds <= 0:
            raise ValueError("MAX_RUNTIME_SECONDS must be positive")
