from abc import ABC, abstractmethod
from typing import Dict, Optional

import httpx

from ..config import HTTPSettings
from ..vocabulary import SPARQL_UPDATE, TURTLE


class Communication(ABC):
    """
    The six HTTP verbs the LDES in LDP protocol needs.

    Every variant answers with an httpx.Response so status, headers
    (Link, Location, Content-Type) and body are read the same way.
    """

    @abstractmethod
    async def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        ...

    @abstractmethod
    async def head(self, url: str) -> httpx.Response:
        ...

    @abstractmethod
    async def post(self, url: str, body: str = "", headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        ...

    @abstractmethod
    async def put(self, url: str, body: str = "", headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        ...

    @abstractmethod
    async def patch(self, url: str, body: str = "", headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        ...

    @abstractmethod
    async def delete(self, url: str) -> httpx.Response:
        ...

    async def aclose(self) -> None:
        """Release transport resources"""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()


class LDPCommunication(Communication):
    """
    Communication with an LDP server over httpx.

    A pre-configured (e.g. authenticated) AsyncClient may be passed in;
    otherwise one is created from the HTTP settings and owned by this instance.
    """

    def __init__(self, settings: Optional[HTTPSettings] = None, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings or HTTPSettings()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=self.settings.timeout,
            follow_redirects=self.settings.follow_redirects
        )

    async def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        headers = headers or {"Accept": TURTLE}
        return await self.client.get(url, headers=headers)

    async def head(self, url: str) -> httpx.Response:
        return await self.client.head(url)

    async def post(self, url: str, body: str = "", headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        headers = headers or {"Content-Type": TURTLE}
        return await self.client.post(url, content=body, headers=headers)

    async def put(self, url: str, body: str = "", headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        headers = headers or {"Content-Type": TURTLE}
        return await self.client.put(url, content=body, headers=headers)

    async def patch(self, url: str, body: str = "", headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        headers = headers or {"Content-Type": SPARQL_UPDATE}
        return await self.client.patch(url, content=body, headers=headers)

    async def delete(self, url: str) -> httpx.Response:
        return await self.client.delete(url)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
