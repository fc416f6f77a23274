from __future__ import annotations

import re
import unicodedata
from difflib import SequenceMatcher
from typing import List, Optional

TITLE_WEIGHT = 0.7
AUTHOR_WEIGHT = 0.3

# "(Unabridged)", "[Dramatized Adaptation]", ": A Novel", ", Book 3"
EDITION_NOISE = re.compile(
    r"\s*[\(\[][^\)\]]*(abridged|unabridged|dramati[sz]ed|edition|audio ?book)[^\)\]]*[\)\]]"
    r"|\s*[:,-]\s*(a novel|book \d+|volume \d+|vol\.? \d+)\s*$",
    re.IGNORECASE,
)
PERSON_SEPARATORS = re.compile(r"\s*(?:;|&|\band\b|\s/\s)\s*", re.IGNORECASE)


def normalize_match_text(value: str) -> str:
    cleaned = unicodedata.normalize("NFKD", value)
    cleaned = cleaned.encode("ascii", "ignore").decode("ascii")
    cleaned = cleaned.lower()
    cleaned = re.sub(r"[^a-z0-9]+", " ", cleaned)
    return cleaned.strip()


def normalize_title_for_match(value: str) -> str:
    return normalize_match_text(EDITION_NOISE.sub("", value))


def split_people(value: str) -> List[str]:
    """Split a credit line into names, turning "Herbert, Frank" into "frank herbert"."""
    people: List[str] = []
    for part in PERSON_SEPARATORS.split(value):
        if not part or not part.strip():
            continue
        if part.count(",") == 1:
            last, first = (piece.strip() for piece in part.split(","))
            part = f"{first} {last}"
        name = normalize_match_text(part)
        if name:
            people.append(name)
    return people


def title_similarity(a: Optional[str], b: Optional[str]) -> Optional[float]:
    if not a or not b:
        return None
    norm_a = normalize_title_for_match(a)
    norm_b = normalize_title_for_match(b)
    if not norm_a or not norm_b:
        return None
    return SequenceMatcher(None, norm_a, norm_b).ratio()


def author_similarity(a: Optional[str], b: Optional[str]) -> Optional[float]:
    """Best ratio between any two credited names, ignoring word order."""
    if not a or not b:
        return None
    people_a = [" ".join(sorted(name.split())) for name in split_people(a)]
    people_b = [" ".join(sorted(name.split())) for name in split_people(b)]
    if not people_a or not people_b:
        return None
    return max(SequenceMatcher(None, x, y).ratio() for x in people_a for y in people_b)


def combine_similarity(title_ratio: Optional[float], author_ratio: Optional[float]) -> Optional[float]:
    score = 0.0
    weight = 0.0
    if title_ratio is not None:
        score += title_ratio * TITLE_WEIGHT
        weight += TITLE_WEIGHT
    if author_ratio is not None:
        score += author_ratio * AUTHOR_WEIGHT
        weight += AUTHOR_WEIGHT
    if weight == 0.0:
        return None
    return score / weight
