"""Day-seeded selection of today's words."""
from datetime import datetime
from typing import Callable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from dailyvocab.config import settings
from dailyvocab.models.word_models import WordEntry

MASK_32 = 0xFFFFFFFF
MIX_MULTIPLIER = 0x45D9F3B


def day_key(now: Optional[datetime] = None, timezone: Optional[str] = None) -> str:
    """Calendar day of `now` in the practice time zone, as YYYY-MM-DD."""
    tz = ZoneInfo(timezone or settings.learning.day_timezone)
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return now.astimezone(tz).strftime("%Y-%m-%d")


def seed_hash(seed: str) -> int:
    """32-bit string hash (h = 31*h + code unit)."""
    h = 0
    for unit in _utf16_units(seed):
        h = (31 * h + unit) & MASK_32
    return h


def seeded_random(seed: str) -> Callable[[], float]:
    """Deterministic generator of floats in [0, 1) keyed by `seed`.

    The mixing constants are fixed: changing them changes every day's words.
    """
    h = seed_hash(seed)

    def next_float() -> float:
        nonlocal h
        h = ((h ^ (h >> 16)) * MIX_MULTIPLIER) & MASK_32
        h = ((h ^ (h >> 13)) * MIX_MULTIPLIER) & MASK_32
        h = h ^ (h >> 16)
        return h / 4294967296

    return next_float


def shuffled(items: Sequence, rng: Callable[[], float]) -> list:
    """Fisher-Yates permutation of `items` driven by `rng`."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = int(rng() * (i + 1))
        result[i], result[j] = result[j], result[i]
    return result


def select_daily(bank: Sequence[WordEntry], day: str, count: int) -> List[WordEntry]:
    """Today's ordered words: the first `count` of the day-seeded permutation.

    `count` larger than the bank is clamped to the bank size.
    """
    if count < 1:
        raise ValueError("count must be positive")
    count = min(count, len(bank))
    return shuffled(bank, seeded_random(day))[:count]


def _utf16_units(text: str):
    for char in text:
        code = ord(char)
        if code > 0xFFFF:
            code -= 0x10000
            yield 0xD800 + (code >> 10)
            yield 0xDC00 + (code & 0x3FF)
        else:
            yield code
