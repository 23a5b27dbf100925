from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx
import requests

from ..config import USER_AGENT

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"User-Agent": USER_AGENT, "Accept": "application/json"}


@dataclass
class HttpResult:
    url: str
    status_code: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        return json.loads(self.text)


def _headers(extra: Optional[Mapping[str, str]]) -> Dict[str, str]:
    headers = dict(DEFAULT_HEADERS)
    if extra:
        headers.update(extra)
    return headers


def http_get(
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
    timeout_s: float = 30,
) -> HttpResult:
    """Blocking GET, used by the event feed before the async batch starts."""
    logger.debug("http_get(): url=%s params=%s", url, params)
    r = requests.get(url, params=params, headers=_headers(headers), timeout=timeout_s)
    return HttpResult(url=r.url, status_code=r.status_code, text=r.text)


async def http_get_async(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
    timeout_s: Optional[float] = None,
) -> HttpResult:
    """
    GET through the run's shared AsyncClient.

    timeout_s=None keeps the client's default; adapters that need a hard
    deadline per fetch pass their own.
    """
    logger.debug("http_get_async(): url=%s params=%s", url, params)
    kwargs: Dict[str, Any] = {
        "params": params,
        "headers": _headers(headers),
        "follow_redirects": True,
    }
    if timeout_s is not None:
        kwargs["timeout"] = timeout_s
    r = await client.get(url, **kwargs)
    return HttpResult(url=str(r.url), status_code=r.status_code, text=r.text)
