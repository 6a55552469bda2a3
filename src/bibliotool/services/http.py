"""
Shared HTTP plumbing for the external service clients.

Layered timeouts and a retry loop for the failures worth retrying:
timeouts, network errors, 429 (honouring Retry-After) and 503.
Everything else is raised to the caller as the client's own error type.
"""

import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# Default timeout configuration (in seconds)
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 60.0
DEFAULT_WRITE_TIMEOUT = 30.0
DEFAULT_POOL_TIMEOUT = 10.0

# Retry configuration
DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_DELAY = 2.0


class ServiceError(Exception):
    """Error talking to an external service."""
    pass


def default_timeout(read: float = DEFAULT_READ_TIMEOUT) -> httpx.Timeout:
    return httpx.Timeout(
        connect=DEFAULT_CONNECT_TIMEOUT,
        read=read,
        write=DEFAULT_WRITE_TIMEOUT,
        pool=DEFAULT_POOL_TIMEOUT,
    )


def _retry_after(response: httpx.Response, fallback: float) -> float:
    header = response.headers.get("Retry-After")
    if header:
        try:
            return float(header)
        except ValueError:
            pass
    return fallback


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    error_cls: type[ServiceError] = ServiceError,
    max_retries: int = DEFAULT_MAX_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send a request, retrying transient failures.

    Raises:
        error_cls: If all retries are exhausted or a non-retryable error occurs
    """
    last_error: Exception | None = None
    wait_time = retry_delay

    for attempt in range(max_retries + 1):
        if attempt > 0:
            logger.info(f"Retry attempt {attempt}/{max_retries} for {method} {url} after {wait_time}s")
            await asyncio.sleep(wait_time)
            wait_time = retry_delay

        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response

        except httpx.TimeoutException as e:
            logger.warning(f"Request timed out (attempt {attempt + 1}): {e}")
            last_error = e

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429:
                wait_time = _retry_after(e.response, retry_delay)
                logger.warning(f"Rate limited. Waiting {wait_time}s")
                last_error = e
                continue
            if status == 503:
                logger.warning(f"Service unavailable (attempt {attempt + 1}): {e}")
                last_error = e
                continue
            logger.error(f"HTTP error: {status} - {e.response.text}")
            raise error_cls(f"HTTP {status}: {e.response.text}") from e

        except httpx.RequestError as e:
            logger.warning(f"Request error (attempt {attempt + 1}): {e}")
            last_error = e

    logger.error(f"All {max_retries + 1} attempts failed. Last error: {last_error}")
    raise error_cls(f"Request failed after {max_retries + 1} attempts: {last_error}") from last_error


def json_body(response: httpx.Response, error_cls: type[ServiceError] = ServiceError) -> Any:
    """
    Decode a response body as JSON.

    Raises:
        error_cls: If the body is not JSON (e.g. a proxy's HTML error page)
    """
    try:
        return response.json()
    except ValueError as e:
        logger.error(f"Non-JSON response body: {response.text[:200]}")
        raise error_cls(f"Invalid JSON response (HTTP {response.status_code})") from e
