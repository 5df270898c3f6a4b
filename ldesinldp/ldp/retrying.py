from typing import Dict, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import HTTPSettings
from .communication import Communication


class RetryingCommunication(Communication):
    """
    Wraps a Communication with exponential backoff on transport errors.

    Only idempotent verbs are retried; a POST is sent exactly once since
    a retried create could append the same member twice.
    """

    def __init__(self, inner: Communication, settings: Optional[HTTPSettings] = None):
        self.inner = inner
        self.settings = settings or HTTPSettings()

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.settings.retry_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self.settings.retry_min_wait,
                max=self.settings.retry_max_wait
            ),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True
        )

    async def _call(self, method, *args, **kwargs) -> httpx.Response:
        async for attempt in self._retrying():
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    print(f"Retrying {method.__name__.upper()} {args[0]} (attempt {attempt.retry_state.attempt_number})")
                return await method(*args, **kwargs)

    async def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        return await self._call(self.inner.get, url, headers)

    async def head(self, url: str) -> httpx.Response:
        return await self._call(self.inner.head, url)

    async def post(self, url: str, body: str = "", headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        return await self.inner.post(url, body, headers)

    async def put(self, url: str, body: str = "", headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        return await self._call(self.inner.put, url, body, headers)

    async def patch(self, url: str, body: str = "", headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        return await self._call(self.inner.patch, url, body, headers)

    async def delete(self, url: str) -> httpx.Response:
        return await self._call(self.inner.delete, url)

    async def aclose(self) -> None:
        await self.inner.aclose()
