"""
In-process LDP server implementing Communication.

Mirrors what the LDES in LDP protocol expects from a Solid/CSS style server:
- containers (IRIs ending in '/') list their children with ldp:contains
- `<resource>.meta` is an auxiliary metadata graph, merged into GET
- HEAD advertises ldp:inbox and the container type as Link headers
- PATCH applies SPARQL Update (INSERT DATA / DELETE DATA)
- POST creates a child and answers 201 with a Location header
"""
import uuid
from typing import Dict, Optional, Set

import httpx
from rdflib import Graph, URIRef

from ..util.conversion import graph_to_turtle
from ..util.identifiers import is_container_identifier
from ..vocabulary import LDP, RDF, TURTLE
from .communication import Communication


def parent_identifier(identifier: str) -> Optional[str]:
    """Container holding `identifier`, None for the server root"""
    trimmed = identifier[:-1] if identifier.endswith('/') else identifier
    scheme_end = trimmed.find('://') + 3
    if '/' not in trimmed[scheme_end:]:
        return None
    return trimmed[:trimmed.rfind('/') + 1]


class InMemoryLDP(Communication):
    """LDP server double keeping every resource as an rdflib Graph"""

    def __init__(
        self,
        metadata_suffix: str = ".meta",
        wac_allow: str = 'user="read write append control",public="read"'
    ):
        self.metadata_suffix = metadata_suffix
        self.wac_allow = wac_allow
        self.graphs: Dict[str, Graph] = {}
        self.metadata: Dict[str, Graph] = {}
        self.raw: Dict[str, tuple] = {}
        self.containers: Set[str] = set()
        self.requests: list = []

    # -- inspection helpers ---------------------------------------------------

    def exists(self, identifier: str) -> bool:
        return identifier in self.graphs or identifier in self.raw

    def children(self, container: str):
        # creation order
        return [
            identifier for identifier in list(self.graphs) + list(self.raw)
            if identifier != container and parent_identifier(identifier) == container
        ]

    def add_raw(self, identifier: str, text: str, content_type: str) -> None:
        """Store a non-RDF resource"""
        self._ensure_parents(identifier)
        self.raw[identifier] = (text, content_type)

    def count(self, method: str) -> int:
        return sum(1 for request_method, _ in self.requests if request_method == method)

    # -- Communication ----------------------------------------------------------

    async def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        self.requests.append(("GET", url))
        if url in self.raw:
            text, content_type = self.raw[url]
            return self._response("GET", url, 200, text, {"Content-Type": content_type})
        if url not in self.graphs:
            return self._response("GET", url, 404)
        return self._response(
            "GET", url, 200, graph_to_turtle(self._representation(url)), {"Content-Type": TURTLE}
        )

    async def head(self, url: str) -> httpx.Response:
        self.requests.append(("HEAD", url))
        if not self.exists(url):
            return self._response("HEAD", url, 404)

        links = []
        if url in self.containers:
            links.append(f'<{LDP.BasicContainer}>; rel="type"')
        metadata = self.metadata.get(url, Graph())
        for inbox in metadata.objects(URIRef(url), LDP.inbox):
            links.append(f'<{inbox}>; rel="{LDP.inbox}"')

        headers = {"WAC-Allow": self.wac_allow}
        if links:
            headers["Link"] = ", ".join(links)
        return self._response("HEAD", url, 200, headers=headers)

    async def post(self, url: str, body: str = "", headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        self.requests.append(("POST", url))
        if url not in self.containers:
            return self._response("POST", url, 404)

        child = f"{url}{uuid.uuid4()}"
        graph = Graph()
        try:
            graph.parse(data=body, format='turtle', publicID=child)
        except Exception as e:
            return self._response("POST", url, 400, str(e))
        self.graphs[child] = graph
        return self._response("POST", url, 201, headers={"Location": child})

    async def put(self, url: str, body: str = "", headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        self.requests.append(("PUT", url))
        if is_container_identifier(url):
            if url in self.containers:
                return self._response("PUT", url, 409)
            self._ensure_parents(url)
            self.containers.add(url)
            self.graphs[url] = Graph()
            return self._response("PUT", url, 201)

        existed = url in self.graphs
        graph = Graph()
        graph.parse(data=body, format='turtle', publicID=url)
        self._ensure_parents(url)
        self.graphs[url] = graph
        return self._response("PUT", url, 205 if existed else 201)

    async def patch(self, url: str, body: str = "", headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        self.requests.append(("PATCH", url))
        if url.endswith(self.metadata_suffix):
            target = url[:-len(self.metadata_suffix)]
            if not self.exists(target):
                return self._response("PATCH", url, 404)
            graph = self.metadata.setdefault(target, Graph())
        elif url in self.graphs:
            graph = self.graphs[url]
        else:
            return self._response("PATCH", url, 404)

        try:
            graph.update(body)
        except Exception as e:
            return self._response("PATCH", url, 400, str(e))
        return self._response("PATCH", url, 205)

    async def delete(self, url: str) -> httpx.Response:
        self.requests.append(("DELETE", url))
        if not self.exists(url):
            return self._response("DELETE", url, 404)
        for identifier in list(self.graphs) + list(self.raw):
            if identifier == url or (url in self.containers and identifier.startswith(url)):
                self.graphs.pop(identifier, None)
                self.raw.pop(identifier, None)
                self.metadata.pop(identifier, None)
                self.containers.discard(identifier)
        return self._response("DELETE", url, 205)

    # -- internals --------------------------------------------------------------

    def _ensure_parents(self, identifier: str) -> None:
        parent = parent_identifier(identifier)
        while parent and parent not in self.containers:
            self.containers.add(parent)
            self.graphs[parent] = Graph()
            parent = parent_identifier(parent)

    def _representation(self, url: str) -> Graph:
        graph = Graph()
        graph += self.graphs[url]
        graph += self.metadata.get(url, Graph())
        if url in self.containers:
            subject = URIRef(url)
            graph.add((subject, RDF.type, LDP.Container))
            graph.add((subject, RDF.type, LDP.BasicContainer))
            for child in self.children(url):
                graph.add((subject, LDP.contains, URIRef(child)))
        return graph

    @staticmethod
    def _response(
        method: str,
        url: str,
        status_code: int,
        text: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        return httpx.Response(
            status_code,
            headers=headers or {},
            text=text,
            request=httpx.Request(method, url)
        )
