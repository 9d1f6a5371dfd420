# writerproxy/core/api_helpers.py
import logging
from typing import Any, Dict, Optional

import httpx

from .configmanager import config

logger = logging.getLogger(__name__)


def post_api(url: str, payload: Dict[str, Any], timeout: float = 5.0) -> Optional[httpx.Response]:
    """
    POST a JSON payload to a controller endpoint.

    Delivery is best effort: network failures are logged and swallowed so a
    slow or missing controller never breaks a running write.
    """
    auth = None
    username = config.get("auth", "username")
    password = config.get("auth", "password")
    if username and password:
        auth = (str(username), str(password))
    try:
        r = httpx.post(url, json=payload, auth=auth, timeout=timeout)
        r.raise_for_status()
        return r
    except httpx.HTTPError as e:
        logger.warning(f"⚠️ Could not notify {url}: {e}")
        return None
