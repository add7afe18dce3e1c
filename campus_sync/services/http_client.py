# campus_sync/services/http_client.py
"""Authenticated JSON client for the campus API."""
import logging
import time
from typing import Any, Collection, Dict, Optional

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import (
    AuthError, NetworkError, SchemaError, error_for_status,
)
from ..core.performance_monitor import monitor_performance
from ..core.session import SessionManager
from ..schemas.sync import ErrorBody, LoginRequest, LoginResponse

logger = logging.getLogger(__name__)

UNSPECIFIED_ERROR = "The server returned an unspecified error."


class ApiClient:
    def __init__(
        self,
        session: SessionManager,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session = session
        self.settings = settings or default_settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def open(self):
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.api_base_url,
                timeout=self.settings.request_timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # --- public calls ---

    async def login(self, credentials: LoginRequest) -> LoginResponse:
        """The only call made without a bearer token."""
        return await self.request(
            "POST", "/auth/login",
            json=credentials.to_wire(),
            schema=LoginResponse,
            authenticated=False,
        )

    @monitor_performance("api.request")
    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        schema: Any = None,
        ok_statuses: Collection[int] = (),
        authenticated: bool = True,
    ) -> Any:
        """Send one request and return the parsed (and validated) body.

        ``ok_statuses`` lists non-2xx codes the caller treats as success;
        for those the body is ignored and ``None`` is returned.
        """
        headers = {}
        if authenticated:
            token = self.session.get_token()
            if not token:
                # protected calls wait for a new login
                raise AuthError("Not authenticated. Please log in.")
            headers["Authorization"] = f"Bearer {token}"

        response = await self._send_with_retry(method, path, json=json, params=params, headers=headers)

        if authenticated and response.status_code in (401, 403):
            logger.warning(f"{method} {path} rejected with {response.status_code}, ending session")
            self.session.invalidate()
            raise AuthError(status_code=response.status_code)

        if response.status_code in ok_statuses:
            return None

        if not response.is_success:
            raise self._error_from_response(response)

        return self._parse_body(response, schema, f"{method} {path}")

    # --- internals ---

    async def _send_with_retry(self, method: str, path: str, **kwargs) -> httpx.Response:
        if self._client is None:
            await self.open()

        def log_retry(retry_state):
            logger.warning(
                f"{method} {path} transport failure ({retry_state.outcome.exception()!r}), retrying once"
            )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(2),
                wait=wait_fixed(self.settings.retry_delay_seconds),
                retry=retry_if_exception_type(httpx.TransportError),
                before_sleep=log_retry,
                reraise=True,
            ):
                with attempt:
                    return await self._send(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.error(f"{method} {path} failed after retry: {e!r}")
            raise NetworkError(f"Network error while calling {path}: {e}") from e

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        start_time = time.monotonic()
        response = await self._client.request(method, path, **kwargs)
        logger.info(f"{method} {path} -> {response.status_code} - {time.monotonic() - start_time:.3f}s")
        return response

    def _error_from_response(self, response: httpx.Response):
        status = response.status_code
        try:
            body = ErrorBody.model_validate(response.json())
        except (ValueError, PydanticValidationError):
            message = f"Server responded with status: {status}"
            logger.error(message)
            return error_for_status(status, message)

        message = body.message or UNSPECIFIED_ERROR
        logger.error(f"{message} (status {status})")
        return error_for_status(status, message, body.errors)

    def _parse_body(self, response: httpx.Response, schema: Any, label: str) -> Any:
        if response.status_code == 204 or not response.content:
            payload = None
        else:
            try:
                payload = response.json()
            except ValueError as e:
                raise SchemaError(f"{label} returned a non-JSON body") from e

        if schema is None:
            return payload
        try:
            return TypeAdapter(schema).validate_python(payload)
        except PydanticValidationError as e:
            logger.error(f"{label} response failed validation: {e}")
            raise SchemaError(f"{label} returned an unexpected payload", e.errors()) from e
