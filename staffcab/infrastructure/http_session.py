"""
Shared requests session with retries for outbound HTTP (Autocab, Orion).
"""

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

_TRANSIENT_STATUS = (429, 500, 502, 503, 504)


def build_session(retries: int = 2, backoff: float = 0.5) -> requests.Session:
    # Only idempotent methods are retried; POST failures surface to the caller.
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        backoff_factor=backoff,
        status_forcelist=_TRANSIENT_STATUS,
        allowed_methods=("GET",),
        raise_on_status=False,
        respect_retry_after_header=True,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=4, pool_maxsize=8)
    session = requests.Session()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session
