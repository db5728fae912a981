"""
Low-level request helpers shared by the session manager and the executor.

Every call goes out under a hard deadline and every failure is mapped onto
the package error taxonomy before it leaves this module.
"""

import asyncio
from typing import Any

import httpx

from taimail.core.exceptions import ApiError, TransportError


async def send(
    client: httpx.AsyncClient,
    method: str,
    path: str,
    *,
    timeout: float,
    headers: dict[str, str] | None = None,
    json: Any = None,
    params: dict[str, Any] | None = None,
) -> httpx.Response:
    """
    Issue one HTTP request with a hard overall deadline.

    Args:
        client: Shared async client (base URL already configured)
        method: HTTP method
        path: Path relative to the API base URL
        timeout: Deadline in seconds for the whole exchange
        headers: Extra request headers
        json: JSON request body
        params: Query parameters; None values are dropped

    Returns:
        The raw response, whatever its status

    Raises:
        TransportError: On timeout or network failure
    """
    if params:
        params = {k: v for k, v in params.items() if v is not None}
    try:
        return await asyncio.wait_for(
            client.request(method, path, headers=headers, json=json, params=params or None),
            timeout=timeout,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise TransportError(f"{method} {path} timed out after {timeout:g}s") from e
    except httpx.RequestError as e:
        raise TransportError(f"{method} {path} failed: {e}") from e


def read_json(response: httpx.Response) -> Any:
    """Decode a JSON body, or None when there is none."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def unwrap(response: httpx.Response) -> Any:
    """
    Turn a response into the `data` of its `{success, data, error}` envelope.

    Raises:
        ApiError: On a non-2xx status or an envelope with `success: false`
    """
    payload = read_json(response)
    error = payload.get("error") if isinstance(payload, dict) else None
    error = error if isinstance(error, dict) else {}

    if not response.is_success:
        raise ApiError(
            error.get("message") or response.reason_phrase or "Request failed",
            status=response.status_code,
            code=error.get("code"),
        )

    if isinstance(payload, dict) and "success" in payload:
        if not payload["success"]:
            raise ApiError(
                error.get("message") or "Unknown error",
                status=response.status_code,
                code=error.get("code"),
            )
        return payload.get("data")

    if payload is None and response.content:
        raise ApiError(
            "Response body is not valid JSON",
            status=response.status_code,
            code="INVALID_RESPONSE",
        )
    return payload
