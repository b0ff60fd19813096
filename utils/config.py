"""Environment-driven configuration for the submission service"""
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _int_env(name: str, default: int, minimum: Optional[int] = None) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    value = int(raw)
    if minimum is not None and value < minimum:
        raise ValueError(f"{name} must be at least {minimum}, got {value}")
    return value


# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017').strip()
DB_NAME = os.environ.get('DB_NAME', 'workbook_submissions')

# Matching policy
SIMILARITY_THRESHOLD = _float_env('SIMILARITY_THRESHOLD', 0.7)
SEQUENTIAL_MATCH_THRESHOLD = _float_env('SEQUENTIAL_MATCH_THRESHOLD', 0.5)
HASH_BITS = _int_env('HASH_BITS', 64, minimum=1)  # 8x8 grayscale fingerprint

# Request limits
MAX_BATCH_IMAGES = _int_env('MAX_BATCH_IMAGES', 50, minimum=1)

# Server
CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
PORT = _int_env('PORT', 8080)
