"""
Shared scoring / statistics helpers used by grading, progress and dashboards.

All percentages are rounded half-up (12.5 -> 13) with exact integer
arithmetic, so 1/8 and 7/8 of the work never drift through float error.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from dateutil import parser

DEFAULT_POINTS = 1

# (minimum score, stars), highest threshold first
STAR_THRESHOLDS = ((90, 3), (75, 2), (60, 1))
STARS_PER_LEVEL = 10


def points_value(points: Optional[int]) -> int:
    """Point value of a question; unset means the default of 1."""
    return DEFAULT_POINTS if points is None else int(points)


def round_half_up(numerator: int, denominator: int) -> int:
    """round(numerator / denominator) with halves rounded up, for non-negative ints."""
    if denominator <= 0:
        return 0
    return (2 * numerator + denominator) // (2 * denominator)


def percentage(part: int, whole: int) -> int:
    """Integer percentage in [0, 100]; 0 when `whole` is 0."""
    if whole <= 0:
        return 0
    return max(0, min(100, round_half_up(100 * part, whole)))


def average_score(scores: Iterable[Optional[int]]) -> int:
    values = [s or 0 for s in scores]
    if not values:
        return 0
    return round_half_up(sum(values), len(values))


def average_stars(stars: Iterable[Optional[int]]) -> float:
    values = [s or 0 for s in stars]
    if not values:
        return 0.0
    avg = Decimal(sum(values)) / Decimal(len(values))
    return float(avg.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def stars_for_score(score: Optional[int]) -> int:
    score = score or 0
    for minimum, stars in STAR_THRESHOLDS:
        if score >= minimum:
            return stars
    return 0


def level_for_stars(total_stars: int) -> int:
    return total_stars // STARS_PER_LEVEL + 1


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO timestamp from the store into an aware datetime (UTC if naive)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        ts = parser.isoparse(str(value))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def within_window(value, since: Optional[datetime] = None, until: Optional[datetime] = None) -> bool:
    """True when `value` falls in [since, until]; open bounds are ignored."""
    ts = parse_timestamp(value)
    if ts is None:
        return since is None and until is None
    if since is not None and ts < parse_timestamp(since):
        return False
    if until is not None and ts > parse_timestamp(until):
        return False
    return True


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
