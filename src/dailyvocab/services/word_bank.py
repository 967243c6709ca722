"""Service for loading the fixed word bank."""
import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

from dailyvocab.config import settings
from dailyvocab.exceptions import WordBankError
from dailyvocab.models.word_models import TIER_LABELS, WordEntry

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("word", "definition", "connotation", "roots")


def parse_word_bank(raw: Any) -> List[WordEntry]:
    """Build an ordered list of entries from decoded word bank JSON."""
    if not isinstance(raw, list):
        raise WordBankError("Word bank must be a JSON array")

    entries: List[WordEntry] = []
    seen = set()
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise WordBankError(f"Entry {index} is not an object")
        for name in REQUIRED_FIELDS:
            if not isinstance(item.get(name), str) or not item[name].strip():
                raise WordBankError(f"Entry {index} has no '{name}'")
        tier = item.get("tier")
        if isinstance(tier, bool) or tier not in TIER_LABELS:
            raise WordBankError(f"Entry {index} ({item['word']}) has invalid tier {tier!r}")

        entry = WordEntry.from_dict(item)
        if entry.term in seen:
            raise WordBankError(f"Duplicate word '{entry.term}' in word bank")
        seen.add(entry.term)
        entries.append(entry)

    return entries


def load_word_bank(path: Optional[Union[str, Path]] = None) -> List[WordEntry]:
    """Load the word bank from disk. Raises WordBankError if unusable."""
    path = Path(path) if path is not None else settings.paths.word_bank
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise WordBankError(f"Could not read word bank {path}: {e}") from e

    entries = parse_word_bank(raw)
    logger.info(f"Loaded {len(entries)} words from {path}")
    return entries


def index_by_term(bank: Iterable[WordEntry]) -> dict:
    """Map each term to its entry."""
    return {entry.term: entry for entry in bank}
