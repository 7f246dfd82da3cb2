from __future__ import annotations

from typing import Any, Dict, List, Tuple

from change_tracker.src.paths import path_segments


LIST_CONTAINERS = {"item"}


def is_identity_array(path: str) -> bool:
    segments = path_segments(path)
    return bool(segments) and segments[-1] in LIST_CONTAINERS


def _request_locator(element: Dict[str, Any]) -> str:
    request = element.get("request")
    method = ""
    url: Any = element.get("url")
    if isinstance(request, dict):
        if isinstance(request.get("method"), str):
            method = request["method"]
        url = request.get("url", url)
    elif isinstance(request, str):
        url = request
    if isinstance(url, dict):
        url = url.get("raw")
    if not isinstance(url, str) or not url:
        return ""
    return f"{method.upper()} {url}".strip()


def item_key(element: Any) -> str:
    if not isinstance(element, dict):
        return ""
    locator = _request_locator(element)
    if locator:
        return f"request:{locator}"
    name = element.get("name")
    if isinstance(name, str) and name:
        return f"name:{name}"
    return ""


def keyed_items(items: List[Any]) -> Tuple[Dict[str, Tuple[int, Any]], List[int]]:
    """Map identity keys to ``(index, element)``; also return keyless indices.

    Repeated keys inside one array get an occurrence suffix so two entries
    pointing at the same request still pair up in order.
    """
    keyed: Dict[str, Tuple[int, Any]] = {}
    keyless: List[int] = []
    seen: Dict[str, int] = {}
    for index, element in enumerate(items):
        key = item_key(element)
        if not key:
            keyless.append(index)
            continue
        seen[key] = seen.get(key, 0) + 1
        if seen[key] > 1:
            key = f"{key}#{seen[key]}"
        keyed[key] = (index, element)
    return keyed, keyless
