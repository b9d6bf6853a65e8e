from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from requests.exceptions import ConnectionError, ReadTimeout


@dataclass
class HTTPClient:
    user_agent: str
    timeout_s: float = 10
    tries: int = 3
    backoff_s: float = 0.5

    def __post_init__(self) -> None:
        self.s = requests.Session()
        self.s.headers.update(
            {
                "User-Agent": self.user_agent,
                "Accept": "application/json, text/plain;q=0.9, */*;q=0.8",
            }
        )

    def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        timeout_s: Optional[float] = None,
        tries: Optional[int] = None,
    ) -> Any:
        """GET and decode JSON, retrying timeouts/connection drops with exponential backoff."""
        timeout = timeout_s if timeout_s is not None else self.timeout_s
        attempts = tries if tries is not None else self.tries
        last_err: Optional[Exception] = None
        for attempt in range(max(1, attempts)):
            try:
                r = self.s.get(url, params=params, timeout=timeout)
                r.raise_for_status()
                return r.json()
            except (ReadTimeout, ConnectionError) as e:
                last_err = e
                if attempt < attempts - 1:
                    time.sleep(self.backoff_s * (2**attempt))
        raise last_err if last_err else RuntimeError("HTTP get_json failed")
