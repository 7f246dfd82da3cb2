from __future__ import annotations

import json
import re
from typing import Any, List, Union


SPECIAL_CHARACTERS = set(".[]()*?+\\^$|")
INDEX_TOKEN = re.compile(r"^\[\d+\]$")


def index_token(index: int) -> str:
    return f"[{index}]"


def is_index_token(segment: str) -> bool:
    return bool(INDEX_TOKEN.match(segment))


def _needs_quoting(key: str) -> bool:
    return key == "" or any(ch in SPECIAL_CHARACTERS for ch in key)


def join_path(base: str, key: Union[str, int]) -> str:
    if isinstance(key, int):
        return f"{base}{index_token(key)}"
    if is_index_token(key):
        return f"{base}{key}"
    if _needs_quoting(key):
        return f"{base}[{json.dumps(key, ensure_ascii=False)}]"
    if not base:
        return key
    return f"{base}.{key}"


def path_segments(path: str) -> List[str]:
    """Split a path into object keys and ``[n]`` index tokens.

    Quoted accessors (``["a.b"]``) come back as the bare key, so every path
    built with :func:`join_path` tokenizes into the keys that produced it.
    """
    segments: List[str] = []
    current = ""
    pos = 0
    while pos < len(path):
        ch = path[pos]
        if ch == "[":
            if current:
                segments.append(current)
                current = ""
            if pos + 1 < len(path) and path[pos + 1] == '"':
                key, end = json.JSONDecoder().raw_decode(path, pos + 1)
                segments.append(key)
                pos = end + 1
                continue
            end = path.find("]", pos)
            if end == -1:
                segments.append(path[pos:])
                break
            segments.append(path[pos : end + 1])
            pos = end + 1
            continue
        if ch == ".":
            if current:
                segments.append(current)
                current = ""
        else:
            current += ch
        pos += 1
    if current:
        segments.append(current)
    return segments


def value_at_path(document: Any, path: str, skip_if_missing: bool = False) -> Any:
    current = document
    for segment in path_segments(path):
        if isinstance(current, dict) and segment in current and not is_index_token(segment):
            current = current[segment]
            continue
        if isinstance(current, list) and is_index_token(segment):
            index = int(segment[1:-1])
            if index < len(current):
                current = current[index]
                continue
        if skip_if_missing:
            return None
        raise LookupError(f"path {path!r} cannot be resolved at segment {segment!r}")
    return current
