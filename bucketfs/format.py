"""Human-readable formatting of byte counts, rates and durations."""

_KIB = 1 << 10
_MIB = 1 << 20
_GIB = 1 << 30

_NANOS_PER_MICRO = 1_000
_NANOS_PER_MILLI = 1_000_000
_NANOS_PER_SECOND = 1_000_000_000


def format_bytes(value: float) -> str:
    """Present a number of bytes using binary units."""
    if value >= _GIB:
        return f"{value / _GIB:.2f} GiB"
    if value >= _MIB:
        return f"{value / _MIB:.2f} MiB"
    if value >= _KIB:
        return f"{value / _KIB:.2f} KiB"
    return f"{value:.2f} bytes"


def format_hertz(value: float) -> str:
    """Present a rate in Hz using decimal units."""
    if value >= 1e9:
        return f"{value / 1e9:.2f} GHz"
    if value >= 1e6:
        return f"{value / 1e6:.2f} MHz"
    if value >= 1e3:
        return f"{value / 1e3:.2f} KHz"
    return f"{value:.2f} Hz"


def _with_fraction(amount: int, unit: int) -> str:
    whole, rest = divmod(amount, unit)
    if not rest:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{rest:0{digits}d}".rstrip("0")


def format_duration(nanoseconds: int) -> str:
    """Present a duration given in nanoseconds, e.g. ``1m17s`` or ``1.5ms``."""
    amount = int(nanoseconds)
    sign = "-" if amount < 0 else ""
    amount = abs(amount)

    if amount == 0:
        return "0s"

    if amount < _NANOS_PER_MICRO:
        text = f"{amount}ns"
    elif amount < _NANOS_PER_MILLI:
        text = _with_fraction(amount, _NANOS_PER_MICRO) + "µs"
    elif amount < _NANOS_PER_SECOND:
        text = _with_fraction(amount, _NANOS_PER_MILLI) + "ms"
    else:
        seconds, fraction = divmod(amount, _NANOS_PER_SECOND)
        minutes, seconds = divmod(seconds, 60)
        hours, minutes = divmod(minutes, 60)
        second_text = str(seconds)
        if fraction:
            second_text += "." + f"{fraction:09d}".rstrip("0")
        if hours:
            text = f"{hours}h{minutes}m{second_text}s"
        elif minutes:
            text = f"{minutes}m{second_text}s"
        else:
            text = f"{second_text}s"

    return sign + text