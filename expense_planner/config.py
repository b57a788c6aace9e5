"""Configuration management for the expense planner.

This module centralizes filesystem locations used by the persistence
adapters, with environment variable overrides.  Calculation thresholds live
in :mod:`expense_planner.settings`.
"""

from __future__ import annotations

import os
from pathlib import Path

# Base project root - assumes this file is in expense_planner/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("EXPENSE_PLANNER_DATA_DIR", _PROJECT_ROOT / "data"))

# Payment ledger database
DB_PATH = Path(
    os.getenv("EXPENSE_PLANNER_DB_PATH", DATA_DIR / "expense_planner.db")
).resolve()

# Plans and income plans
PLANS_FILE = Path(
    os.getenv("EXPENSE_PLANNER_PLANS_FILE", DATA_DIR / "plans.json")
).resolve()


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    for directory in {DATA_DIR, DB_PATH.parent, PLANS_FILE.parent}:
        directory.mkdir(parents=True, exist_ok=True)


def get_db_path() -> str:
    """Get the database path as a string."""
    return str(DB_PATH)
