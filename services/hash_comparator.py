"""Perceptual hash comparison

Fingerprints are computed client-side and arrive as hex strings. Nothing here
raises on malformed input.
"""
import math
import string
from typing import Optional

from utils.config import HASH_BITS, SIMILARITY_THRESHOLD


def normalize_fingerprint(value: Optional[str]) -> Optional[str]:
    """Trim, drop an optional 0x prefix and lower-case; empty becomes None"""
    if value is None:
        return None
    cleaned = str(value).strip().lower()
    if cleaned.startswith("0x"):
        cleaned = cleaned[2:]
    return cleaned or None


def _nibble(digit: str) -> int:
    # int(x, 16) also accepts non-ASCII decimal digits
    return int(digit, 16) if digit in string.hexdigits else 0


def bit_distance(hash1: Optional[str], hash2: Optional[str]) -> float:
    """
    Hamming distance between two hex hashes.

    Shorter input is left-padded with '0'. Returns math.inf when either hash
    is missing. Non-hex digits count as 0.
    """
    if not hash1 or not hash2:
        return math.inf

    length = max(len(hash1), len(hash2))
    h1 = hash1.rjust(length, "0")
    h2 = hash2.rjust(length, "0")

    distance = 0
    for d1, d2 in zip(h1, h2):
        distance += bin(_nibble(d1) ^ _nibble(d2)).count("1")
    return distance


def calculate_similarity(hash1: Optional[str], hash2: Optional[str], hash_bits: int = HASH_BITS) -> float:
    """Similarity in [0, 1]: 1 - distance / hash_bits, 0 when either hash is missing or hash_bits is not positive"""
    if not hash1 or not hash2 or hash_bits <= 0:
        return 0.0

    similarity = 1 - (bit_distance(hash1, hash2) / hash_bits)
    return max(0.0, min(1.0, similarity))


def is_similar(hash1: Optional[str], hash2: Optional[str], threshold: float = SIMILARITY_THRESHOLD) -> bool:
    return calculate_similarity(hash1, hash2) >= threshold
