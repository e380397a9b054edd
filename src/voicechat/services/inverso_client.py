"""Streaming client for the secondary (Inverso) chat backend."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

import httpx
from fastapi import status

from ..bridge import TextDelta, UpstreamProtocol, normalize_stream
from ..config import Settings
from .errors import UpstreamError, extract_error_detail

logger = logging.getLogger(__name__)


class InversoClient:
    """
    Client for the secondary chat backend's event stream.

    The backend answers ``POST {base_url}/chat/stream`` with frames of the
    form ``event: <name>`` / ``data: <json>``; only ``ai_message_chunk``
    frames carry text. Responses are translated into canonical
    :class:`TextDelta` objects by the protocol bridge.
    """

    _client_lock: asyncio.Lock = asyncio.Lock()
    _client_pool: dict[float, httpx.AsyncClient] = {}

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._http_client = http_client

    @property
    def configured(self) -> bool:
        return self._settings.inverso_configured

    @property
    def _base_url(self) -> str:
        return str(self._settings.inverso_base_url or "").rstrip("/")

    @property
    def _headers(self) -> dict[str, str]:
        api_key = self._settings.inverso_api_key
        return {
            "Authorization": f"Bearer {api_key.get_secret_value() if api_key else ''}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client

        key = float(self._settings.request_timeout)
        client = self.__class__._client_pool.get(key)
        if client is not None:
            return client

        async with self.__class__._client_lock:
            client = self.__class__._client_pool.get(key)
            if client is None:
                client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self._settings.request_timeout, connect=10.0)
                )
                self.__class__._client_pool[key] = client
        return client

    async def open_stream(self, message: str) -> AsyncIterator[TextDelta]:
        """
        Send ``message`` and return the normalized delta stream.

        The upstream status is checked before returning: a non-2xx answer
        raises :class:`UpstreamError` carrying the upstream status text and
        no stream is started.
        """

        if not self.configured:
            raise UpstreamError(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "INVERSO_API_KEY or INVERSO_BASE_URL is not configured",
            )

        client = await self._get_http_client()
        request = client.build_request(
            "POST",
            f"{self._base_url}/chat/stream",
            headers=self._headers,
            json={"message": message},
        )
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            logger.error("Inverso request failed: %s", exc)
            raise UpstreamError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        if response.status_code >= 400:
            body = await response.aread()
            await response.aclose()
            reason = response.reason_phrase or str(response.status_code)
            logger.error(
                "Inverso API error %s: %s",
                response.status_code,
                extract_error_detail(body, reason),
            )
            raise UpstreamError(response.status_code, f"Inverso API error: {reason}")

        logger.debug("Inverso stream opened (status %s)", response.status_code)
        return self._deltas(response)

    async def _deltas(self, response: httpx.Response) -> AsyncIterator[TextDelta]:
        try:
            async for delta in normalize_stream(
                response.aiter_bytes(), UpstreamProtocol.INVERSO
            ):
                yield delta
        except httpx.HTTPError as exc:
            logger.error("Inverso stream interrupted: %s", exc)
            raise UpstreamError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc
        finally:
            await response.aclose()

    @classmethod
    async def aclose_shared(cls) -> None:
        async with cls._client_lock:
            clients = list(cls._client_pool.values())
            cls._client_pool.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception:  # pragma: no cover - best effort cleanup
                logger.debug("Ignoring error while closing Inverso client", exc_info=True)


__all__ = ["InversoClient"]
