"""
Resilient request execution on top of the session manager.

A logical call gets at most two attempts, and only a 401 earns the second
one. Everything else is reported to the caller as-is so non-idempotent
endpoints (send-email) never run twice.
"""

from typing import Any

import httpx

from taimail.core.exceptions import AuthError
from taimail.core.logging import get_logger
from taimail.services.auth import SessionManager
from taimail.services.transport import send, unwrap


class RequestExecutor:
    """Runs authenticated requests with a single re-login on 401."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        sessions: SessionManager,
        timeout: float = 30.0,
        log=None,
    ):
        self._client = client
        self.sessions = sessions
        self.timeout = timeout
        self.log = log or get_logger(__name__)

    async def execute(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Issue an authenticated request.

        Args:
            method: HTTP method
            path: Path relative to the API base URL
            body: JSON body, if any
            params: Query parameters, if any

        Returns:
            The `data` part of the response envelope

        Raises:
            AuthError: Login failed, or the retry after re-login was also rejected
            TransportError: Network failure or timeout (not retried)
            ApiError: Any other error status (not retried)
        """
        await self.sessions.ensure_valid()
        response = await self._attempt(method, path, body, params)

        if response.status_code == 401:
            self.log.warning("request_unauthorized_relogin", method=method, path=path)
            # The server just rejected this token, so skip the expiry check
            await self.sessions.login()
            response = await self._attempt(method, path, body, params)

            if response.status_code == 401:
                self.sessions.clear()
                self.log.error("request_unauthorized_after_relogin", method=method, path=path)
                raise AuthError(f"{method} {path} rejected after re-authentication (401)")

        return self._result(response, method, path)

    async def execute_public(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Issue a request that needs no session (e.g. unread counts)."""
        response = await send(self._client, method, path, timeout=self.timeout, params=params)
        if response.status_code == 401:
            raise AuthError(f"{method} {path} requires authentication (401)")
        return self._result(response, method, path)

    async def _attempt(
        self,
        method: str,
        path: str,
        body: Any,
        params: dict[str, Any] | None,
    ) -> httpx.Response:
        return await send(
            self._client,
            method,
            path,
            timeout=self.timeout,
            headers=self.sessions.auth_header(),
            json=body,
            params=params,
        )

    def _result(self, response: httpx.Response, method: str, path: str) -> Any:
        if not response.is_success:
            self.log.error(
                "api_request_failed",
                method=method,
                path=path,
                status=response.status_code,
            )
        return unwrap(response)
