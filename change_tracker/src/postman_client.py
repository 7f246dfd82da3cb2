from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests


LOGGER = logging.getLogger("api-change-tracker")

RETRY_STATUSES = {429, 500, 502, 503, 504}


@dataclass
class PostmanClient:
    api_key: str
    session: requests.Session
    base_url: str = "https://api.getpostman.com"
    timeout_seconds: int = 30
    max_retries: int = 5

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        url = f"{self.base_url.rstrip('/')}{path}"
        headers = {"X-Api-Key": self.api_key, "Accept": "application/json"}
        response = None
        for attempt in range(self.max_retries):
            response = self.session.get(url, headers=headers, params=params, timeout=self.timeout_seconds)
            if response.status_code not in RETRY_STATUSES:
                break
            backoff = 2**attempt
            LOGGER.info("Retrying %s after %ss due to %s", url, backoff, response.status_code)
            time.sleep(backoff)
        if response is None:
            raise requests.RequestException(f"no request made to {url}")
        response.raise_for_status()
        return response

    def list_collections(self) -> List[Dict[str, Any]]:
        return self._get("/collections").json().get("collections", [])

    def get_collection(self, collection_id: str) -> str:
        return self._get(f"/collections/{collection_id}").text
