#!/usr/bin/env python3
"""
Outbound HTTP helper shared by the generation and embedding clients.

Retries connection errors, timeouts, rate limits and 5xx responses with a
linear backoff, then gives up with UpstreamUnavailable.
"""

import time
from typing import Any, Dict, Optional

import requests

from .config import Config
from .errors import UpstreamUnavailable
from ..utils.logger import get_logger

logger = get_logger()

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def post_json(
    url: str,
    payload: Dict[str, Any],
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    max_retries: Optional[int] = None,
    backoff: Optional[float] = None,
) -> Dict[str, Any]:
    """
    POST a JSON payload and return the decoded JSON body.

    Args:
        url: Endpoint URL
        payload: JSON body
        headers: Extra request headers
        params: Query string parameters
        timeout: Per-attempt timeout in seconds
        max_retries: Total attempts before giving up
        backoff: Base backoff in seconds, multiplied by the attempt number

    Returns:
        Parsed JSON response

    Raises:
        UpstreamUnavailable: when every attempt failed or a non-retryable error occurred
    """
    timeout = timeout if timeout is not None else Config.REQUEST_TIMEOUT
    max_retries = max(1, max_retries if max_retries is not None else Config.NETWORK_RETRIES)
    backoff = backoff if backoff is not None else Config.RETRY_BACKOFF_SECONDS
    headers = {"Content-Type": "application/json", **(headers or {})}

    last_err = None
    last_status = None
    for attempt in range(1, max_retries + 1):
        sleep_s = backoff * attempt
        try:
            logger.debug(f"[HTTP] POST {url} (attempt {attempt}/{max_retries})")
            response = requests.post(url, headers=headers, params=params, json=payload, timeout=timeout)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            last_err = str(e)
            logger.warning(f"[HTTP] attempt {attempt} failed: {e}")
        else:
            if response.status_code == 200:
                try:
                    return response.json()
                except ValueError as e:
                    raise UpstreamUnavailable(f"Invalid JSON from upstream: {e}", status_code=200)
            last_status = response.status_code
            last_err = f"HTTP {response.status_code}: {response.text[:300]}"
            if response.status_code not in RETRYABLE_STATUS:
                logger.error(f"[HTTP] non-retryable response: {last_err}")
                raise UpstreamUnavailable(last_err, status_code=response.status_code)
            if response.status_code == 429:
                # Rate limited: observe Retry-After if present
                try:
                    sleep_s = float(response.headers.get("Retry-After", sleep_s))
                except (TypeError, ValueError):
                    pass
            logger.warning(f"[HTTP] attempt {attempt} got {last_err}")

        if attempt < max_retries:
            logger.debug(f"[HTTP] backing off for {sleep_s}s before retry")
            time.sleep(sleep_s)

    logger.error(f"[HTTP] exhausted {max_retries} attempts for {url}")
    raise UpstreamUnavailable(f"Upstream call failed after {max_retries} attempts: {last_err}", status_code=last_status)
