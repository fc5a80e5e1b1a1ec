# app/services/common_fetch.py
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

T = TypeVar("T")

log = logging.getLogger("fetch")


def fetch_with_retry(
    fetch: Callable[[], T],
    *,
    retries: int = 0,
    delay: float = 0.0,
    label: str = "fetch",
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> tuple[T | None, str | None]:
    """Call `fetch` up to 1 + retries times; returns (data, None) or (None, last_error)."""
    last_error: str | None = None
    for i in range(1 + max(0, retries)):
        try:
            return fetch(), None
        except retry_on as e:
            last_error = f"{label}_exc: {e}"
            log.debug("%s attempt %d failed: %s", label, i + 1, e)
        if i < retries and delay > 0:
            time.sleep(delay)
    return None, last_error
