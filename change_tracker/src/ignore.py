from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Pattern


ANY_INDEX = re.escape("[*]")


@lru_cache(maxsize=256)
def _compile(pattern: str) -> Pattern[str]:
    return re.compile(re.escape(pattern).replace(ANY_INDEX, r"\[\d+\]"))


def matches_pattern(path: str, pattern: str) -> bool:
    if pattern == path:
        return True
    if "**" in pattern:
        prefix, _, suffix = pattern.partition("**")
        return path.startswith(prefix) and path.endswith(suffix)
    return _compile(pattern).fullmatch(path) is not None


def should_ignore(path: str, patterns: Iterable[str]) -> bool:
    for pattern in patterns:
        if matches_pattern(path, pattern):
            return True
    return False
