"""Runtime settings read from the environment (and a local .env file)."""

import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


LOG_LEVEL = os.getenv("KINTREE_LOG_LEVEL", "INFO").upper()

# JSON snapshot loaded into the in-memory store at startup (optional)
SNAPSHOT_PATH = os.getenv("KINTREE_SNAPSHOT_PATH")

# PostgREST-style record store; when set it replaces the in-memory store
RECORD_STORE_URL = os.getenv("KINTREE_RECORD_STORE_URL")
RECORD_STORE_API_KEY = os.getenv("KINTREE_RECORD_STORE_API_KEY")
RECORD_STORE_TIMEOUT = _get_float("KINTREE_RECORD_STORE_TIMEOUT", 30.0)

DEFAULT_MIN_CONFIDENCE = _get_int("KINTREE_MIN_CONFIDENCE", 50)
SCAN_TIMEOUT_SECONDS = _get_float("KINTREE_SCAN_TIMEOUT", 120.0)

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "KINTREE_CORS_ORIGINS",
        "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173",
    ).split(",")
    if origin.strip()
]
