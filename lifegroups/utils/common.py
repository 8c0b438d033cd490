from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Generator, Optional
import logging
import time

import requests
from requests.auth import HTTPBasicAuth

log = logging.getLogger(__name__)

# ─────────────────────────────
# Time helpers
# ─────────────────────────────
def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)

def start_of_year_utc(now: datetime) -> datetime:
    return datetime(now.year, 1, 1, tzinfo=timezone.utc)

def end_of_day_utc(now: datetime) -> datetime:
    return now.astimezone(timezone.utc).replace(hour=23, minute=59, second=59, microsecond=999000)

def iso_z(dt: datetime) -> str:
    """PCO-style timestamp: 2025-01-01T00:00:00Z"""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

# ─────────────────────────────
# HTTP / pagination helpers
# ─────────────────────────────
def _retry_after_seconds(resp: Optional[requests.Response]) -> Optional[float]:
    if resp is None:
        return None
    raw = resp.headers.get("Retry-After")
    try:
        return float(raw) if raw else None
    except ValueError:
        return None

def request_json(method: str, url: str, *, headers=None, params=None, json_body=None, auth=None,
                 timeout: int = 30, retries: int = 4, backoff: float = 1.0) -> Dict[str, Any]:
    """
    Small wrapper with retries + exponential backoff.
    Honors Retry-After on 429; a 404 is never retried.
    """
    attempt = 0
    while True:
        resp = None
        try:
            resp = requests.request(method.upper(), url, headers=headers, params=params,
                                    json=json_body, auth=auth, timeout=timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            status = getattr(getattr(e, "response", None), "status_code", None)
            if status == 404 or attempt >= retries:
                raise
            wait = _retry_after_seconds(getattr(e, "response", None)) if status == 429 else None
            wait = wait or backoff * (2 ** attempt)
            log.warning("[http] %s %s failed (%s); retrying in %.1fs (%d left)",
                        method.upper(), url, status or e.__class__.__name__, wait, retries - attempt)
            time.sleep(wait)
            attempt += 1

def paginate_next_links(url: str, *, headers=None, params=None, auth=None,
                        timeout: int = 30) -> Generator[Dict[str, Any], None, None]:
    """
    Yield successive JSON pages for APIs that provide `links.next` (e.g., Planning Center).
    First call passes `params`, subsequent calls rely on the `next` URL.
    """
    first = True
    while url:
        data = request_json("GET", url, headers=headers, params=(params if first else None),
                            auth=auth, timeout=timeout)
        yield data
        url = (data.get("links") or {}).get("next")
        first = False

# ─────────────────────────────
# Planning Center auth helper (Basic)
# ─────────────────────────────
def pco_auth(app_id: str, secret: str) -> HTTPBasicAuth:
    # Personal access token: application id as user, secret as password
    return HTTPBasicAuth(app_id, secret)
