"""
Configuration management.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List


def _split_origins(value: str) -> List[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    allowed_origins: List[str] = field(
        default_factory=lambda: _split_origins(os.getenv("ALLOWED_ORIGINS", ""))
    )
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    # Data
    data_path: str = field(default_factory=lambda: os.getenv("DATA_PATH", ""))
    reports_dir: str = field(default_factory=lambda: os.getenv("REPORTS_DIR", "./data/reports"))

    # Engine
    assessment_ratio: float = field(
        default_factory=lambda: float(os.getenv("ASSESSMENT_RATIO", "0.8"))
    )
    default_millage_rate: float = field(
        default_factory=lambda: float(os.getenv("DEFAULT_MILLAGE_RATE", "10.0"))
    )
    comparable_count: int = field(
        default_factory=lambda: int(os.getenv("COMPARABLE_COUNT", "5"))
    )

    def __post_init__(self):
        """Validate engine settings after initialization."""
        if not 0 < self.assessment_ratio <= 1:
            raise ValueError("assessment_ratio must be in (0, 1]")
        if self.default_millage_rate < 0:
            raise ValueError("default_millage_rate must be non-negative")
        if self.comparable_count < 1:
            raise ValueError("comparable_count must be at least 1")

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "allowed_origins": list(self.allowed_origins),
            "log_level": self.log_level,
            "data_path": self.data_path,
            "reports_dir": self.reports_dir,
            "assessment_ratio": self.assessment_ratio,
            "default_millage_rate": self.default_millage_rate,
            "comparable_count": self.comparable_count,
        }


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for an entrypoint."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
