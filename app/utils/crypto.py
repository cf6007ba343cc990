"""Cryptography utilities"""

import hashlib
import secrets


def generate_api_key(prefix: str = "dak_", length: int = 32) -> str:
    """
    Generate a cryptographically secure delegate API key

    Args:
        prefix: Marker prepended to the random part
        length: Number of random bytes

    Returns:
        URL-safe key string
    """
    return f"{prefix}{secrets.token_urlsafe(length)}"


def hash_api_key(raw_key: str) -> str:
    """
    Hash an API key using SHA-256

    The hash doubles as the lookup index for authentication.

    Args:
        raw_key: Raw API key

    Returns:
        Hexadecimal hash string (64 characters)
    """
    return hashlib.sha256(raw_key.encode()).hexdigest()


def constant_time_compare(a: str, b: str) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks

    Args:
        a: First string
        b: Second string

    Returns:
        True if strings are equal, False otherwise
    """
    return secrets.compare_digest(a.encode(), b.encode())
