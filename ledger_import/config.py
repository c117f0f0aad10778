"""Environment-driven settings."""

import os
from dataclasses import dataclass

DEFAULT_DATABASE_URL = "sqlite:///ledger.db"


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the import pipeline and CLI."""
    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = "INFO"
    sample_rows: int = 10


def load_settings() -> Settings:
    """
    Read settings from the environment.

    Variables:
        DATABASE_URL: SQLAlchemy URL of the ledger database.
        LEDGER_IMPORT_LOG_LEVEL: Logging level name (default INFO).
        LEDGER_IMPORT_SAMPLE_ROWS: Data rows used for column detection (default 10).

    Raises:
        ValueError: If LEDGER_IMPORT_SAMPLE_ROWS is not a positive integer.
    """
    raw_sample = os.getenv("LEDGER_IMPORT_SAMPLE_ROWS", "10").strip()
    try:
        sample_rows = int(raw_sample)
    except ValueError:
        raise ValueError(f"LEDGER_IMPORT_SAMPLE_ROWS must be an integer, got {raw_sample!r}")
    if sample_rows < 1:
        raise ValueError("LEDGER_IMPORT_SAMPLE_ROWS must be at least 1")

    return Settings(
        database_url=os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL,
        log_level=(os.getenv("LEDGER_IMPORT_LOG_LEVEL") or "INFO").strip().upper(),
        sample_rows=sample_rows,
    )
