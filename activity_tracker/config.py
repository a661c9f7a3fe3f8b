"""
Configuration Module

This module contains configuration settings for the application.
"""
import os
from pathlib import Path

# Load environment variables from .env file
from dotenv import load_dotenv

# Base directory - one level up from this file
BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env file from BASE_DIR (adjust path if your .env is elsewhere)
load_dotenv(BASE_DIR / ".env")

# Local data paths (fallback sink and legacy files)
DATA_DIR = Path(os.getenv("DATA_DIR", BASE_DIR / "data"))
FALLBACK_DIR = Path(os.getenv("FALLBACK_DIR", DATA_DIR / "fallback"))

# Primary database settings
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = int(os.getenv("DB_PORT", "5432"))
DB_USERNAME = os.getenv("DB_USERNAME", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "postgres")
DB_DATABASE = os.getenv("DB_DATABASE", "coding_tracker")
DB_SSL = os.getenv("DB_SSL", "false").lower() == "true"
DB_LOGGING = os.getenv("DB_LOGGING", "false").lower() == "true"
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+psycopg2://{DB_USERNAME}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_DATABASE}",
)

# Skip the primary database entirely and write to the local sink
USE_FILE_STORAGE_FALLBACK = (
    os.getenv("USE_FILE_STORAGE_FALLBACK", "false").lower() == "true"
)

# Write queue settings
RETRY_BACKOFF_BASE_SECONDS = float(os.getenv("RETRY_BACKOFF_BASE_SECONDS", "0.5"))
RETRY_BACKOFF_CAP_SECONDS = float(os.getenv("RETRY_BACKOFF_CAP_SECONDS", "30"))
QUEUE_DEPTH_WARNING = int(os.getenv("QUEUE_DEPTH_WARNING", "1000"))
SHUTDOWN_DRAIN_TIMEOUT_SECONDS = float(
    os.getenv("SHUTDOWN_DRAIN_TIMEOUT_SECONDS", "10")
)

# Report settings
DEFAULT_REPORT_DAYS = int(os.getenv("DEFAULT_REPORT_DAYS", "7"))
TOP_GROUP_LIMIT = int(os.getenv("TOP_GROUP_LIMIT", "10"))

# API settings
API_PREFIX = os.getenv("API_PREFIX", "")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
