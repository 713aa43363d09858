"""Centralized path definitions for the rutt application.

This module provides a single source of truth for all application paths.
"""

from pathlib import Path

# Base application directory
RUTT_DIR = Path.home() / ".rutt"

# Subdirectories
LOGS_DIR = RUTT_DIR / "logs"

# Specific files
CONFIG_PATH = RUTT_DIR / "config.json"
