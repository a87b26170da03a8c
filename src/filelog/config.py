"""
Configuration for the rotating file logger
"""

import os
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union


class AgeType(IntEnum):
    """Unit used for the backup age threshold"""

    DAYS = 0
    MONTHS = 1
    YEARS = 2


_AGE_TYPE_NAMES = {
    "days": AgeType.DAYS,
    "months": AgeType.MONTHS,
    "years": AgeType.YEARS,
}


@dataclass
class LoggerConfig:
    """Configuration for the file logger"""

    # Location
    directory: str = "logs"
    filename: str = "app.log"

    # Rotation settings
    max_size_bytes: int = 64 * 1024  # 64KB default
    backup_enabled: bool = True

    # Compression settings
    compress_backups: bool = False
    compression_level: int = 6

    # Cleanup settings
    delete_old_enabled: bool = True
    max_age: int = 1
    # Not validated: unknown values are treated as years
    age_type: Union[AgeType, int] = AgeType.MONTHS

    # Performance settings
    flush_interval: float = 2.0  # seconds

    def __post_init__(self):
        """Validate configuration values"""
        if self.max_size_bytes <= 0:
            raise ValueError("max_size_bytes must be positive")
        if self.max_age < 0:
            raise ValueError("max_age must not be negative")
        if self.flush_interval <= 0:
            raise ValueError("flush_interval must be positive")
        if not 0 <= self.compression_level <= 9:
            raise ValueError("compression_level must be between 0 and 9")

    @property
    def log_path(self) -> str:
        return os.path.join(self.directory, self.filename)

    @classmethod
    def _parse_bool_env(cls, key: str, default: str = "false") -> bool:
        """Parse boolean from environment variable"""
        return os.getenv(key, default).lower() == "true"

    @classmethod
    def _parse_age_type_env(cls, key: str, default: str = "months") -> Union[AgeType, int]:
        """Parse an age unit given either by name or by number"""
        value = os.getenv(key, default).strip().lower()
        if value in _AGE_TYPE_NAMES:
            return _AGE_TYPE_NAMES[value]
        return int(value)

    @classmethod
    def from_env(cls) -> "LoggerConfig":
        """Create configuration from environment variables"""
        return cls(
            directory=os.getenv("FILELOG_DIR", "logs"),
            filename=os.getenv("FILELOG_FILENAME", "app.log"),
            max_size_bytes=int(os.getenv("FILELOG_MAX_SIZE", str(64 * 1024))),
            backup_enabled=cls._parse_bool_env("FILELOG_BACKUP", "true"),
            compress_backups=cls._parse_bool_env("FILELOG_COMPRESS"),
            delete_old_enabled=cls._parse_bool_env("FILELOG_DELETE_OLD", "true"),
            max_age=int(os.getenv("FILELOG_AGE", "1")),
            age_type=cls._parse_age_type_env("FILELOG_AGE_TYPE"),
            flush_interval=float(os.getenv("FILELOG_FLUSH_INTERVAL", "2.0")),
        )


_default_config: Optional[LoggerConfig] = None


def get_default_config() -> LoggerConfig:
    """Get the default configuration instance"""
    global _default_config
    if _default_config is None:
        _default_config = LoggerConfig.from_env()
    return _default_config


def set_default_config(config: LoggerConfig) -> None:
    """Set the default configuration instance"""
    global _default_config
    _default_config = config
