"""
Shared HTTP plumbing for connectors.

Maps httpx failures and provider status codes onto the connector error
taxonomy. Connectors do not retry; the error's ``retryable`` flag tells
the caller whether trying again later makes sense.
"""

import httpx
from typing import Any, Dict, Optional
from core.exceptions import (
    ConnectorError,
    NetworkError,
    ConnectorTimeoutError,
    RateLimitError,
    AuthenticationError,
    MalformedResponseError,
)
import logging

logger = logging.getLogger(__name__)

USER_AGENT = "covid19-kms-etl/1.0"


def rapidapi_client(
    host: str,
    api_key: Optional[str],
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> httpx.AsyncClient:
    """Client preconfigured with RapidAPI headers for one provider host."""
    headers = {
        "x-rapidapi-key": api_key or "",
        "x-rapidapi-host": host,
        "User-Agent": USER_AGENT,
    }
    return httpx.AsyncClient(
        base_url=f"https://{host}",
        headers=headers,
        timeout=timeout,
        transport=transport,
    )


def _retry_after(response: httpx.Response) -> Optional[int]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


async def get_response(
    client: httpx.AsyncClient,
    url: str,
    source: str,
    params: Optional[Dict[str, Any]] = None
) -> httpx.Response:
    """
    GET a URL and map failures to ConnectorError subclasses.

    Raises:
        ConnectorTimeoutError: Request did not complete within the client timeout
        NetworkError: Transport failure
        AuthenticationError: HTTP 401/403
        RateLimitError: HTTP 429
        ConnectorError: Any other HTTP status >= 400
    """
    context = {"source": source, "url": url}

    try:
        response = await client.get(url, params=params)
    except httpx.TimeoutException as e:
        raise ConnectorTimeoutError(
            f"Request to {url} timed out",
            context=context,
            original_exception=e
        )
    except httpx.TransportError as e:
        raise NetworkError(
            f"Network error calling {url}",
            context=context,
            original_exception=e
        )

    status = response.status_code
    if status in (401, 403):
        raise AuthenticationError(
            f"Authentication failed for {url}",
            context={**context, "status_code": status}
        )

    if status == 429:
        retry_after = _retry_after(response)
        logger.warning(f"Rate limited by {source} (retry after {retry_after}s)")
        raise RateLimitError(
            f"Rate limit exceeded for {url}",
            context={**context, "status_code": status},
            retry_after=retry_after
        )

    if status >= 400:
        raise ConnectorError(
            f"HTTP {status} from {url}",
            context={**context, "status_code": status, "response_body": response.text[:500]}
        )

    return response


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    source: str,
    params: Optional[Dict[str, Any]] = None
) -> Any:
    """GET a URL and decode the JSON body."""
    response = await get_response(client, url, source, params=params)

    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponseError(
            "Failed to parse JSON response",
            context={"source": source, "url": url, "response_body": response.text[:500]},
            original_exception=e
        )


def expect_list(data: Any, source: str, *keys: str) -> list:
    """
    Pull the document list out of a provider response.

    Providers wrap lists under different keys; the first key present wins.
    A bare list is accepted as-is.
    """
    if isinstance(data, list):
        return data

    if isinstance(data, dict):
        for key in keys:
            if key in data:
                value = data[key]
                if value is None:
                    return []
                if isinstance(value, list):
                    return value
                raise MalformedResponseError(
                    f"Expected a list under '{key}'",
                    context={"source": source, "type": type(value).__name__}
                )
        return []

    raise MalformedResponseError(
        "Unexpected response shape",
        context={"source": source, "type": type(data).__name__}
    )
