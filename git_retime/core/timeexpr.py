"""Time expression engine: parse, render and sequence commit timestamps.

All values are integer epoch seconds. Calendar strings only appear at the
edges (``parse*`` in, ``format_*`` out). Hour-of-day logic uses local time,
matching how git renders author dates.
"""

import logging
import random
import re
import time
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from .errors import TimeParseError
from .models import Epoch, Precision


logger = logging.getLogger(__name__)

UNIT_SECONDS = {
    's': 1,
    'm': 60,
    'h': 3600,
    'd': 86400,
    'w': 604800,
    'M': 2592000,    # ~30 days
    'y': 31536000,   # ~365 days
}

ONE_DAY = 86400
HALF_DAY = 43200
ONE_YEAR = UNIT_SECONDS['y']
DEFAULT_MIN_GAP = 60

_RELATIVE_RE = re.compile(r'^([+-]?)((?:\d+[smhdwMy])+)$')
_RELATIVE_PREFIX_RE = re.compile(r'^[+-]?\d+[smhdwMy]')
_COMPONENT_RE = re.compile(r'(\d+)([smhdwMy])')
_TIME_ONLY_RE = re.compile(r'^(\d{1,2}):(\d{2})(?::(\d{2}))?$')

_ABSOLUTE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
)


def _now() -> Epoch:
    return int(time.time())


def _rng(rng: Optional[random.Random]):
    return rng if rng is not None else random


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def looks_relative(text: str) -> bool:
    """Return True if ``text`` starts like a relative offset (``+30m``, ``2h``)."""
    return bool(_RELATIVE_PREFIX_RE.match(text.strip()))


def parse_relative(text: str) -> int:
    """Parse a relative offset such as ``+1h30m`` or ``-2d`` to seconds.

    Args:
        text: Optional sign followed by one or more ``<n><unit>`` pairs

    Returns:
        Signed number of seconds

    Raises:
        TimeParseError: If the text is not a relative expression, or the
            offset is too large to apply to any date
    """
    match = _RELATIVE_RE.match(text.strip())
    if not match:
        raise TimeParseError(f"Invalid relative time: {text!r}")

    sign, body = match.groups()
    total = sum(int(num) * UNIT_SECONDS[unit] for num, unit in _COMPONENT_RE.findall(body))
    # An offset no calendar date can express can never be applied to one
    _representable(abs(total), text)
    return -total if sign == '-' else total


def parse_absolute(text: str, now: Optional[Epoch] = None) -> Epoch:
    """Parse a keyword, date/time or bare time of day to an epoch.

    Args:
        text: ``now``/``yesterday``/``tomorrow``, ``YYYY-MM-DD[ HH:MM[:SS]]``
            or ``HH:MM[:SS]`` (today)
        now: Reference "now" (defaults to the current time)

    Returns:
        Epoch seconds

    Raises:
        TimeParseError: If nothing matches
    """
    value = text.strip()
    current = _now() if now is None else now

    keywords = {
        'now': current,
        'yesterday': current - ONE_DAY,
        'tomorrow': current + ONE_DAY,
    }
    if value.lower() in keywords:
        return keywords[value.lower()]

    for fmt in _ABSOLUTE_FORMATS:
        try:
            moment = datetime.strptime(value, fmt)
        except ValueError:
            continue
        return _to_epoch(moment, text)

    match = _TIME_ONLY_RE.match(value)
    if match:
        hour, minute, second = int(match.group(1)), int(match.group(2)), int(match.group(3) or 0)
        if hour < 24 and minute < 60 and second < 60:
            today = datetime.fromtimestamp(current)
            moment = today.replace(hour=hour, minute=minute, second=second, microsecond=0)
            return _to_epoch(moment, text)

    raise TimeParseError(f"Unrecognized time: {text!r}")


def _to_epoch(moment: datetime, text: str) -> Epoch:
    try:
        epoch = int(moment.timestamp())
    except (OverflowError, ValueError, OSError):
        raise TimeParseError(f"Time out of range: {text!r}")
    return _representable(epoch, text)


def _representable(epoch: int, text: str) -> Epoch:
    """Return ``epoch`` unchanged if it maps to a local calendar date.

    Raises:
        TimeParseError: If the value is outside what dates can represent
    """
    try:
        datetime.fromtimestamp(epoch)
    except (OverflowError, ValueError, OSError):
        raise TimeParseError(f"Time out of range: {text!r}")
    return epoch


def parse(text: str, base: Optional[Epoch] = None) -> Epoch:
    """Parse any supported time expression.

    Empty text yields ``base``; relative text is applied to ``base``; anything
    else is parsed as an absolute time.

    Raises:
        TimeParseError: If the text cannot be parsed
    """
    base_epoch = _now() if base is None else base
    value = (text or "").strip()

    if not value:
        return base_epoch
    if looks_relative(value):
        return _representable(base_epoch + parse_relative(value), text)
    return parse_absolute(value)


def detect_precision(text: str) -> Precision:
    """Work out how precisely a time expression was written.

    The smallest unit in a relative expression decides: seconds mean the value
    is exact, minutes leave seconds open, anything coarser leaves minutes and
    seconds open. Absolute expressions are always exact.
    """
    value = (text or "").strip()
    if not looks_relative(value):
        return Precision.FULL

    units = {unit for _, unit in _COMPONENT_RE.findall(value)}
    if 's' in units:
        return Precision.FULL
    if 'm' in units:
        return Precision.MINUTE
    if units & set('hdwMy'):
        return Precision.HOUR
    return Precision.FULL


# ---------------------------------------------------------------------------
# Randomization and ordering
# ---------------------------------------------------------------------------

def randomize_seconds(epoch: Epoch, rng: Optional[random.Random] = None) -> Epoch:
    return epoch - epoch % 60 + _rng(rng).randint(0, 59)


def randomize_minutes(epoch: Epoch, rng: Optional[random.Random] = None) -> Epoch:
    r = _rng(rng)
    hour_epoch = epoch - epoch % 3600
    return hour_epoch + r.randint(0, 59) * 60 + r.randint(0, 59)


def randomize(epoch: Epoch, precision: Precision = Precision.SECOND,
              rng: Optional[random.Random] = None) -> Epoch:
    """Re-roll the components of ``epoch`` finer than ``precision``.

    Args:
        epoch: Parsed timestamp
        precision: FULL leaves it untouched; SECOND and MINUTE re-roll the
            seconds; HOUR re-rolls minutes and seconds within the hour
        rng: Optional random source

    Returns:
        Randomized epoch
    """
    if precision is Precision.FULL:
        return epoch
    if precision is Precision.HOUR:
        return randomize_minutes(epoch, rng)
    return randomize_seconds(epoch, rng)


def jitter(epoch: Epoch, precision: Precision = Precision.SECOND,
           rng: Optional[random.Random] = None) -> Epoch:
    """Add the units ``precision`` left unspecified, counting forward from ``epoch``.

    Unlike ``randomize`` the result never falls before ``epoch``: ``+15m``
    from ``T`` lands in ``[T+900, T+959]`` whatever second ``T`` is on.
    """
    if precision is Precision.FULL:
        return epoch
    if precision is Precision.HOUR:
        return epoch + _rng(rng).randint(0, 3599)
    return epoch + _rng(rng).randint(0, 59)


def ensure_after(proposed: Epoch, min_epoch: Epoch, min_gap: int = DEFAULT_MIN_GAP,
                 rng: Optional[random.Random] = None) -> Epoch:
    """Keep ``proposed`` at least ``min_gap`` seconds after ``min_epoch``.

    Too-early values become ``min_epoch + min_gap`` plus a random jitter in
    ``[0, min_gap]``; values already late enough are returned unchanged.
    """
    required = min_epoch + min_gap
    if proposed < required:
        return required + _rng(rng).randint(0, max(min_gap, 0))
    return proposed


def in_hour_window(hour: int, start_hour: int, end_hour: int) -> bool:
    if end_hour < start_hour:
        return hour >= start_hour or hour < end_hour
    return start_hour <= hour < end_hour


def clamp_to_hour_window(epoch: Epoch, start_hour: int, end_hour: int,
                         rng: Optional[random.Random] = None) -> Epoch:
    """Move ``epoch`` into a local hour window.

    Values already inside the window are returned unchanged. Otherwise the
    value moves to the window start on the nearer day (at most 12 hours away)
    plus a random offset within the window's first hour.
    """
    moment = datetime.fromtimestamp(epoch)
    if in_hour_window(moment.hour, start_hour, end_hour):
        return epoch

    adjust = (start_hour - moment.hour) * 3600 - moment.minute * 60 - moment.second
    if adjust < -HALF_DAY:
        adjust += ONE_DAY
    elif adjust > HALF_DAY:
        adjust -= ONE_DAY

    return epoch + adjust + _rng(rng).randint(0, 3599)


def batch_offset(text: str, epochs: Iterable[Epoch]) -> List[Epoch]:
    """Shift every epoch by the same relative offset.

    Raises:
        TimeParseError: If the offset is malformed or moves any epoch out of range
    """
    offset = parse_relative(text)
    return [_representable(epoch + offset, text) for epoch in epochs]


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def format_git(epoch: Epoch) -> str:
    """Render as ``YYYY-MM-DD HH:MM:SS +ZZZZ`` in local time (git date format)."""
    return datetime.fromtimestamp(epoch).astimezone().strftime("%Y-%m-%d %H:%M:%S %z")


def format_display(epoch: Epoch) -> str:
    return datetime.fromtimestamp(epoch).strftime("%a %b %d %H:%M:%S %Y")


def relative_phrase(epoch: Epoch, now: Optional[Epoch] = None) -> str:
    """Describe ``epoch`` relative to now, e.g. ``2 hours ago`` or ``in 30 minutes``."""
    current = _now() if now is None else now
    diff = current - epoch
    distance = abs(diff)

    for limit, size, unit in ((60, 1, "second"), (3600, 60, "minute"),
                              (ONE_DAY, 3600, "hour"), (604800, ONE_DAY, "day")):
        if distance < limit:
            amount = distance // size
            break
    else:
        amount, unit = distance // 604800, "week"

    label = f"{amount} {unit}{'' if amount == 1 else 's'}"
    return f"{label} ago" if diff >= 0 else f"in {label}"


def is_plausible(epoch: Epoch, now: Optional[Epoch] = None) -> bool:
    """Return False for timestamps more than a year away from now."""
    current = _now() if now is None else now
    return current - ONE_YEAR <= epoch <= current + ONE_YEAR


def describe_delta(seconds: int) -> str:
    """Render a signed duration compactly, e.g. ``-2h``, ``+1h30m``, ``0s``."""
    if seconds == 0:
        return "0s"
    sign = '-' if seconds < 0 else '+'
    remaining = abs(seconds)
    parts = []
    for unit, size in (('d', ONE_DAY), ('h', 3600), ('m', 60), ('s', 1)):
        amount, remaining = divmod(remaining, size)
        if amount:
            parts.append(f"{amount}{unit}")
    return sign + "".join(parts)


def day_after(epoch: Epoch) -> Epoch:
    return int((datetime.fromtimestamp(epoch) + timedelta(days=1)).timestamp())
