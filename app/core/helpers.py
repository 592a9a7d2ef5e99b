"""
Helper functions shared by the marketplace services.

This module provides small, pure utilities for:
- Human-readable unique references (PAY-, TXN-, REF-, WTH-, SUB-)
- Referral code generation
- Great-circle distance between two coordinates

Usage:
    from core.helpers import generate_reference, haversine_km

    reference = generate_reference("PAY")  # "PAY-1718000000000-9f3c2a1b"
    distance = haversine_km(6.5244, 3.3792, 6.6018, 3.3515)
"""

from __future__ import annotations

import math
import secrets
import string
import time

EARTH_RADIUS_KM = 6371


def generate_token(length: int = 4) -> str:
    """
    Generate a cryptographically secure random hex token.

    Args:
        length: Number of random bytes (resulting string is 2x length)

    Returns:
        Lowercase hexadecimal string
    """
    return secrets.token_hex(length)


def generate_reference(prefix: str) -> str:
    """
    Build a globally unique, sortable reference for ledger and gateway records.

    Format: ``{PREFIX}-{epoch milliseconds}-{8 hex chars}``. The timestamp
    keeps references roughly time-ordered; the random suffix removes
    collisions between references minted in the same millisecond.

    Args:
        prefix: Record family (PAY, TXN, REF, WTH, SUB)

    Returns:
        Reference string
    """
    return f"{prefix}-{int(time.time() * 1000)}-{generate_token(4)}"


def generate_referral_code(length: int = 8) -> str:
    """Generate an uppercase alphanumeric referral code."""
    alphabet = string.ascii_uppercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in kilometres.

    Args:
        lat1, lon1: First point in decimal degrees
        lat2, lon2: Second point in decimal degrees

    Returns:
        Distance rounded to 2 decimal places
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_KM * c, 2)
