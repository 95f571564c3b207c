from __future__ import annotations
from typing import Any, Dict, Optional

import requests  # type: ignore

from pricescan.settings.db_settings import settings

# Failures a single lookup source may raise; callers log them and move on.
SOURCE_ERRORS = (requests.RequestException, ValueError, KeyError, TypeError, AttributeError)


def default_headers(extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    headers = {"Accept": "application/json", "User-Agent": settings.USER_AGENT}
    if extra:
        headers.update(extra)
    return headers


def get_json(
    address: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    resp = requests.get(
        address, params=params, headers=default_headers(headers), timeout=settings.HTTP_TIMEOUT
    )
    resp.raise_for_status()
    return resp.json()


def post_json(
    address: str,
    payload: Dict[str, Any],
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    resp = requests.post(
        address, json=payload, headers=default_headers(headers), timeout=settings.HTTP_TIMEOUT
    )
    resp.raise_for_status()
    return resp.json()
