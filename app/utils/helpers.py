"""
Helper utilities
"""
import secrets
import string
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

_ID_ALPHABET = string.ascii_lowercase + string.digits


def clamp(value: float, lower: float, upper: float) -> float:
    """Force value into [lower, upper]"""
    return max(lower, min(upper, value))


def safe_float(value, default: float) -> float:
    """Coerce an LLM-supplied value to float, or return default"""
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if result != result:  # NaN
        return default
    return result


def round_currency(amount: float) -> float:
    """Round half-up to cents"""
    return float(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def calculate_percentage_change(current: float, previous: float) -> Optional[float]:
    """Calculate percentage change between two values"""
    if previous == 0:
        return None
    return ((current - previous) / previous) * 100


def now_ms() -> int:
    return int(time.time() * 1000)


def random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def generate_id(prefix: str) -> str:
    """e.g. viral_1718031234567_k3j9x0abc"""
    return f"{prefix}_{now_ms()}_{random_suffix()}"
