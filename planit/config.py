"""
Configuration for the PlanIt tools.

This module centralizes configuration values: where data is stored, the
optional remote sync endpoint, and CLI options.
"""

import os
from dataclasses import dataclass
from typing import List, Optional

from .sql_store import SQLStore, normalize_database_url
from .store import JSONFileStore

DEFAULT_STORE_PATH = 'planit-data.json'


@dataclass
class Config:
    """
    Application configuration.

    Attributes:
        store_path: JSON file used when no database URL is given
        database_url: SQLAlchemy URL of the relational store (optional)
        sync_url: Remote data endpoint to push to after changes (optional)
        sync_timeout: Timeout for remote sync requests (seconds)
        dry_run: Parse and report without writing anything
        verbose: Whether to enable verbose logging
        csv_path: Path to the CSV file to import or export
        weeks: ISO week numbers to show (optional)
        year: ISO year (optional)
    """
    store_path: str = DEFAULT_STORE_PATH
    database_url: Optional[str] = None
    sync_url: Optional[str] = None
    sync_timeout: int = 3

    # CLI options
    dry_run: bool = False
    verbose: bool = False

    # Data options
    csv_path: Optional[str] = None
    weeks: Optional[List[int]] = None
    year: Optional[int] = None

    def __post_init__(self):
        if self.database_url:
            self.database_url = normalize_database_url(self.database_url)

    @classmethod
    def from_env(cls, **overrides) -> 'Config':
        """
        Build a configuration from PLANIT_* environment variables.

        Keyword arguments that are not None take precedence.
        """
        values = {
            'store_path': os.getenv('PLANIT_STORE', DEFAULT_STORE_PATH),
            'database_url': os.getenv('PLANIT_DATABASE_URL') or None,
            'sync_url': os.getenv('PLANIT_SYNC_URL') or None,
        }
        timeout = os.getenv('PLANIT_SYNC_TIMEOUT')
        if timeout:
            try:
                values['sync_timeout'] = int(timeout)
            except ValueError:
                raise ValueError(f"PLANIT_SYNC_TIMEOUT must be an integer, got: {timeout}")
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def validate(self):
        """
        Validate configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        if not self.database_url and not self.store_path:
            raise ValueError("A store path or a database URL is required")

        if self.sync_timeout <= 0:
            raise ValueError(f"Sync timeout must be positive, got: {self.sync_timeout}")

        if self.year is not None and not (2000 <= self.year <= 2100):
            raise ValueError(f"Year must be between 2000 and 2100, got: {self.year}")

        if self.weeks is not None:
            if len(self.weeks) == 0:
                raise ValueError("weeks list cannot be empty")
            for w in self.weeks:
                if not (1 <= w <= 53):
                    raise ValueError(f"Week number {w} out of range (must be 1-53)")

    def open_store(self):
        """Open the store this configuration points at."""
        if self.database_url:
            return SQLStore(self.database_url)
        return JSONFileStore(self.store_path)
