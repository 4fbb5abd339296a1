"""
Bracketry Configuration

Centralized settings, paths, and constants for the bracket engine.
"""

import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Optional
import appdirs


# Application info
APP_NAME = "Bracketry"
APP_AUTHOR = "Bracketry"
APP_VERSION = "1.0.0"


@dataclass(frozen=True)
class Paths:
    """Application paths."""
    # Data directory (stores database)
    data_dir: Path = Path(appdirs.user_data_dir(APP_NAME, APP_AUTHOR))

    # Config directory (stores user preferences)
    config_dir: Path = Path(appdirs.user_config_dir(APP_NAME, APP_AUTHOR))

    # Log directory
    log_dir: Path = Path(appdirs.user_log_dir(APP_NAME, APP_AUTHOR))

    @property
    def database(self) -> Path:
        return self.data_dir / "bracketry.db"

    @property
    def log_file(self) -> Path:
        return self.log_dir / "bracketry.log"

    def ensure_directories(self) -> None:
        """Create all required directories."""
        for dir_path in [self.data_dir, self.config_dir, self.log_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)


@dataclass(frozen=True)
class BracketSettings:
    """Bracket generation and scoring settings."""
    # Confirmed participants required before a bracket can be built
    min_participants: int = 16

    # Largest field a tournament may register
    max_participants: int = 128

    # Highest score a single set may record
    max_set_score: int = 11


@dataclass(frozen=True)
class LogSettings:
    """Logging settings."""
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    # Also write to PATHS.log_file
    log_to_file: bool = True


# Singleton instances
PATHS = Paths()
BRACKET_SETTINGS = BracketSettings()
LOG_SETTINGS = LogSettings()


def configure_logging(
    level: Optional[str] = None,
    log_file: Optional[Path] = None,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Level name, defaults to LOG_SETTINGS.level
        log_file: File to append to in addition to stderr
    """
    root = logging.getLogger()
    root.setLevel(level or LOG_SETTINGS.level)

    formatter = logging.Formatter(LOG_SETTINGS.format, LOG_SETTINGS.date_format)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)


def init_config(level: Optional[str] = None) -> None:
    """Initialize configuration, create required directories and set up logging."""
    PATHS.ensure_directories()
    configure_logging(
        level=level,
        log_file=PATHS.log_file if LOG_SETTINGS.log_to_file else None,
    )
