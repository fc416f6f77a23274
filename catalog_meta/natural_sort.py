from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Any, Callable, Iterable, List, Optional, TypeVar

T = TypeVar("T")

# ASCII digits only; other Unicode digits sort as text.
RUN_PATTERN = re.compile(r"[0-9]+|[^0-9]+")
DIGIT_RUN = re.compile(r"[0-9]+")


def natural_split(value: str) -> List[str]:
    return RUN_PATTERN.findall(value.lower())


def natural_compare(a: str, b: str) -> int:
    """Compare two names so that "ch2" sorts before "ch10".

    Digit runs compare numerically, other runs lexicographically without
    case; when all shared parts are equal the name with fewer parts wins.
    Remaining ties fall back to the lowercased and then the raw name so the
    ordering stays total.
    """
    a_parts = natural_split(a)
    b_parts = natural_split(b)
    for a_part, b_part in zip(a_parts, b_parts):
        if DIGIT_RUN.fullmatch(a_part) and DIGIT_RUN.fullmatch(b_part):
            a_num, b_num = int(a_part), int(b_part)
            if a_num != b_num:
                return -1 if a_num < b_num else 1
        elif a_part != b_part:
            return -1 if a_part < b_part else 1
    if len(a_parts) != len(b_parts):
        return -1 if len(a_parts) < len(b_parts) else 1
    for left, right in ((a.lower(), b.lower()), (a, b)):
        if left != right:
            return -1 if left < right else 1
    return 0


def natural_less(a: str, b: str) -> bool:
    return natural_compare(a, b) < 0


def natural_key(value: str) -> Any:
    return cmp_to_key(natural_compare)(value)


def natural_sorted(items: Iterable[T], key: Optional[Callable[[T], str]] = None) -> List[T]:
    if key is None:
        return sorted(items, key=lambda item: natural_key(item))  # type: ignore[arg-type]
    return sorted(items, key=lambda item: natural_key(key(item)))
