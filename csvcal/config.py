"""
Configuration parser for csvcal.

Handles TOML file parsing and XDG default locations.
"""

import tomllib
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from .series import DEFAULT_MAX_OCCURRENCES


@dataclass
class StorageConfig:
    """Where events and recurrence rules are stored."""
    data_dir: Optional[Path] = None  # None means the XDG data directory
    events_file: str = "events.csv"
    rules_file: str = "recurrent.csv"
    additional_file: str = "additional.csv"  # Location, category, attendees


@dataclass
class SeriesConfig:
    """Limits for recurring series generation."""
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES


@dataclass
class ReminderConfig:
    """Reminder and upcoming-event queries."""
    upcoming_window_hours: int = 24  # How far ahead upcoming_events() looks


@dataclass
class Config:
    """Main configuration container for csvcal."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    series: SeriesConfig = field(default_factory=SeriesConfig)
    reminders: ReminderConfig = field(default_factory=ReminderConfig)

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Get the default configuration file path."""
        xdg_config = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
        return Path(xdg_config) / 'csvcal' / 'csvcal.toml'

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> 'Config':
        """Load configuration from TOML file."""
        if config_path is None:
            config_path = cls.get_default_config_path()

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'rb') as f:
            data = tomllib.load(f)

        return cls.from_dict(data)

    @classmethod
    def load_or_default(cls, config_path: Optional[Path] = None) -> 'Config':
        """Load configuration, falling back to defaults when no file exists."""
        try:
            return cls.load(config_path)
        except FileNotFoundError:
            return cls()

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        # Parse Storage section
        storage_data = data.get('Storage', {})
        data_dir_str = storage_data.get('data_dir')
        storage = StorageConfig(
            data_dir=Path(os.path.expanduser(data_dir_str)) if data_dir_str else None,
            events_file=storage_data.get('events_file', StorageConfig.events_file),
            rules_file=storage_data.get('rules_file', StorageConfig.rules_file),
            additional_file=storage_data.get('additional_file', StorageConfig.additional_file),
        )

        # Parse Series section
        series_data = data.get('Series', {})
        max_occurrences = series_data.get('max_occurrences', SeriesConfig.max_occurrences)
        if not isinstance(max_occurrences, int) or max_occurrences < 1:
            raise ValueError(f"Series.max_occurrences must be a positive integer, got {max_occurrences!r}")
        series = SeriesConfig(max_occurrences=max_occurrences)

        # Parse Reminders section
        reminders_data = data.get('Reminders', {})
        reminders = ReminderConfig(
            upcoming_window_hours=reminders_data.get(
                'upcoming_window_hours', ReminderConfig.upcoming_window_hours
            ),
        )

        return cls(
            storage=storage,
            series=series,
            reminders=reminders,
        )
