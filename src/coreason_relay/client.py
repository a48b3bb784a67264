# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_relay

import json
from collections.abc import AsyncIterator, Mapping
from typing import Any

import httpx
from loguru import logger

from coreason_relay.config import RelayConfig

ORGANIZATION_HEADER = "X-Daytona-Organization-ID"


class UpstreamError(Exception):
    """Base class for failures talking to the upstream sandbox API."""


class UpstreamResponseError(UpstreamError):
    """The upstream answered with a non-success status."""

    def __init__(self, status_code: int, body: Any):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Upstream responded with status {status_code}: {self.detail}")

    @property
    def detail(self) -> str:
        if isinstance(self.body, dict) and self.body.get("message"):
            return str(self.body["message"])
        if isinstance(self.body, str):
            return self.body
        return json.dumps(self.body)


class UpstreamConnectionError(UpstreamError):
    """The request was sent but no response arrived."""


class UpstreamProtocolError(UpstreamError):
    """A response arrived but could not be read, e.g. a corrupt encoded body."""


class UpstreamRequestError(UpstreamError):
    """The request could not be built locally."""


def format_upstream_error(exc: BaseException, default_message: str = "API request failed") -> str:
    """Render an upstream failure as a single human-readable line."""
    if isinstance(exc, UpstreamResponseError):
        return f"{default_message}: {exc.status_code} - {exc.detail}"
    if isinstance(exc, UpstreamConnectionError):
        return f"{default_message}: No response received"
    return f"{default_message}: {exc}"


def organization_headers(organization_id: str | None) -> dict[str, str]:
    return {ORGANIZATION_HEADER: organization_id} if organization_id else {}


def _clean(values: Mapping[str, Any] | None) -> dict[str, Any] | None:
    # Unset optional arguments are never sent upstream
    if values is None:
        return None
    return {key: value for key, value in values.items() if value is not None}


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class UpstreamStream:
    """A live chunked response from the upstream API.

    Must be closed by its owner; a partially read response otherwise holds its connection.
    """

    def __init__(self, response: httpx.Response):
        self._response = response

    @property
    def closed(self) -> bool:
        return self._response.is_closed

    async def iter_text(self) -> AsyncIterator[str]:
        """Yield decoded chunks as they arrive.

        Chunks are not aligned to lines. A multi-byte character split across
        two network chunks is held back until it is complete.

        Raises:
            UpstreamConnectionError: If the stream breaks before it ends.
            UpstreamProtocolError: If a chunk cannot be decoded.
        """
        try:
            async for chunk in self._response.aiter_text():
                if chunk:
                    yield chunk
        except httpx.TransportError as e:
            raise UpstreamConnectionError(str(e) or type(e).__name__) from e
        except httpx.HTTPError as e:
            raise UpstreamProtocolError(str(e) or type(e).__name__) from e

    async def aclose(self) -> None:
        await self._response.aclose()


class UpstreamClient:
    """Authenticated client for the upstream sandbox API."""

    def __init__(self, config: RelayConfig, client: httpx.AsyncClient | None = None):
        """Initializes the UpstreamClient.

        Args:
            config: Process-wide relay configuration.
            client: Optional pre-built httpx.AsyncClient. When given, its base URL
                and headers are used as-is.
        """
        self.config = config
        self._internal_client = client is None
        if client is None:
            headers = {"Content-Type": "application/json"}
            if config.api_key:
                headers["Authorization"] = f"Bearer {config.api_key}"
            else:
                logger.warning("No upstream API key configured. Requests will be sent unauthenticated.")
            client = httpx.AsyncClient(
                base_url=config.api_url,
                headers=headers,
                timeout=config.request_timeout,
            )
        self._client = client

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._internal_client:
            await self._client.aclose()

    def _build(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | None,
        headers: Mapping[str, str] | None,
        json_body: Any,
    ) -> httpx.Request:
        try:
            return self._client.build_request(
                method,
                path,
                params=_clean(params),
                headers=dict(headers) if headers else None,
                json=json_body,
            )
        except (httpx.InvalidURL, TypeError, ValueError) as e:
            raise UpstreamRequestError(str(e)) from e

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the decoded response body.

        Returns:
            Any: Parsed JSON, raw text for non-JSON bodies, or None for an empty body.

        Raises:
            UpstreamResponseError: On a non-2xx response.
            UpstreamConnectionError: If no response was received.
            UpstreamProtocolError: If the response body could not be decoded.
            UpstreamRequestError: If the request could not be built.
        """
        request = self._build(method, path, params, headers, json)
        try:
            response = await self._client.send(request)
        except httpx.TransportError as e:
            logger.error(f"Upstream {method} {path} failed without response: {e!r}")
            raise UpstreamConnectionError(str(e) or type(e).__name__) from e
        except httpx.RequestError as e:
            logger.error(f"Upstream {method} {path} returned an unreadable response: {e!r}")
            raise UpstreamProtocolError(str(e) or type(e).__name__) from e

        body = _decode_body(response)
        if response.is_error:
            logger.error(f"Upstream {method} {path} returned {response.status_code}")
            raise UpstreamResponseError(response.status_code, body)
        return body

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def open_stream(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> UpstreamStream:
        """Open a chunked GET and return once the response headers have arrived.

        Raises:
            UpstreamResponseError: On a non-2xx response. The response is closed first.
            UpstreamConnectionError: If no response was received.
            UpstreamProtocolError: If the response body could not be decoded.
            UpstreamRequestError: If the request could not be built.
        """
        request = self._build("GET", path, params, headers, None)
        # Live streams must not be cut by the read timeout
        request.extensions["timeout"] = httpx.Timeout(self.config.request_timeout, read=None).as_dict()
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TransportError as e:
            logger.error(f"Upstream stream {path} failed to open: {e!r}")
            raise UpstreamConnectionError(str(e) or type(e).__name__) from e
        except httpx.RequestError as e:
            logger.error(f"Upstream stream {path} failed to open: {e!r}")
            raise UpstreamProtocolError(str(e) or type(e).__name__) from e

        if response.is_error:
            try:
                await response.aread()
                body = _decode_body(response)
            except httpx.RequestError as e:
                raise UpstreamProtocolError(str(e) or type(e).__name__) from e
            finally:
                await response.aclose()
            raise UpstreamResponseError(response.status_code, body)

        return UpstreamStream(response)
