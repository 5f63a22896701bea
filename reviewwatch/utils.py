"""Small coercion helpers shared by the normalizer, connector and routers."""


def safe_float(v):
    """Convert to float, returning None for None/unparseable values."""
    if v is None:
        return None
    try:
        return float(v)
    except (ValueError, TypeError):
        return None


def clamp_int(v, low: int, high: int, default: int) -> int:
    """Coerce v to int and clamp it into [low, high]; default when unparseable."""
    try:
        n = int(v)
    except (ValueError, TypeError):
        n = default
    return max(low, min(high, n))
