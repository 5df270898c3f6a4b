"""
Tests for the helpers around the protocol: SPARQL Update bodies, date
conversion, identifiers, WAC-Allow parsing and the HTTP communication layers.
"""
from datetime import datetime, timezone

import httpx
import pytest
from rdflib import Graph, Literal, URIRef

from ldesinldp.config import HTTPSettings
from ldesinldp.ldes.status import is_writable, parse_wac_allow
from ldesinldp.ldp.communication import LDPCommunication
from ldesinldp.ldp.memory import InMemoryLDP, parent_identifier
from ldesinldp.ldp.retrying import RetryingCommunication
from ldesinldp.util.conversion import datetime_to_iso, literal_to_datetime, parse_datetime, turtle_to_graph
from ldesinldp.util.identifiers import is_container_identifier, relation_identifier, strip_fragment
from ldesinldp.util.patch import sparql_update_delete, sparql_update_delete_insert, sparql_update_insert
from ldesinldp.vocabulary import DCT, SPARQL_UPDATE, TURTLE

EX = "http://example.org/"
NO_WAIT = HTTPSettings(retry_attempts=3, retry_min_wait=0, retry_max_wait=0)


def small_graph() -> Graph:
    graph = Graph()
    graph.add((URIRef(f"{EX}a"), DCT.title, Literal("A")))
    return graph


class FlakyLDP(InMemoryLDP):
    """Fails the first `failures` requests with a transport error"""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    def _maybe_fail(self, method, url):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise httpx.ConnectError("connection reset", request=httpx.Request(method, url))

    async def get(self, url, headers=None):
        self._maybe_fail("GET", url)
        return await super().get(url, headers)

    async def post(self, url, body="", headers=None):
        self._maybe_fail("POST", url)
        return await super().post(url, body, headers)


# ============================================================================
# SPARQL Update
# ============================================================================

def test_sparql_update_bodies():
    insert = sparql_update_insert(small_graph())
    delete = sparql_update_delete(small_graph())

    assert insert.startswith("INSERT DATA {")
    assert delete.startswith("DELETE DATA {")
    assert f"<{EX}a>" in insert and '"A"' in insert

    combined = sparql_update_delete_insert(small_graph(), small_graph())
    assert combined.index("DELETE DATA") < combined.index("INSERT DATA")


def test_sparql_update_applies_to_graph():
    graph = Graph()
    graph.update(sparql_update_insert(small_graph()))
    assert len(graph) == 1

    graph.update(sparql_update_delete(small_graph()))
    assert len(graph) == 0


# ============================================================================
# Conversion and identifiers
# ============================================================================

def test_datetime_conversion():
    date = datetime(2022, 3, 28, 14, 53, 28, 841000, tzinfo=timezone.utc)

    assert datetime_to_iso(date) == "2022-03-28T14:53:28.841Z"
    assert parse_datetime("2022-03-28T14:53:28.841Z") == date
    # naive values are UTC
    assert parse_datetime("2022-03-28T14:53:28.841") == date
    with pytest.raises(ValueError):
        parse_datetime("yesterday")

    assert literal_to_datetime(Literal("2022-03-28T14:53:28.841Z")) == date
    assert literal_to_datetime(URIRef(EX)) is None
    assert literal_to_datetime(None) is None


def test_turtle_relative_iris_resolve_against_base():
    graph = turtle_to_graph('<#me> <http://purl.org/dc/terms/title> "me" .', f"{EX}profile")
    assert (URIRef(f"{EX}profile#me"), DCT.title, Literal("me")) in graph


def test_identifiers():
    assert is_container_identifier(f"{EX}container/")
    assert not is_container_identifier(f"{EX}resource")
    assert strip_fragment(f"{EX}ldes/#EventStream") == f"{EX}ldes/"
    assert strip_fragment(f"{EX}ldes/") == f"{EX}ldes/"

    date = datetime(2022, 1, 1, tzinfo=timezone.utc)
    assert relation_identifier(f"{EX}ldes/", date) == f"{EX}ldes/1640995200000/"


def test_parent_identifier():
    assert parent_identifier(f"{EX}ldes/1/resource") == f"{EX}ldes/1/"
    assert parent_identifier(f"{EX}ldes/1/") == f"{EX}ldes/"
    assert parent_identifier("http://example.org/") is None


# ============================================================================
# WAC-Allow
# ============================================================================

def test_parse_wac_allow():
    permissions = parse_wac_allow('user="read write append control",public="read"')

    assert permissions == {"user": {"read", "write", "append", "control"}, "public": {"read"}}
    assert parse_wac_allow(None) == {}


def test_is_writable():
    assert is_writable('user="read write",public="read"')
    assert is_writable('user="read",public="read write"')
    assert not is_writable('user="read append",public="read"')
    assert not is_writable(None)


# ============================================================================
# Communication
# ============================================================================

@pytest.mark.asyncio
async def test_ldp_communication_default_headers():
    """Turtle is requested and sent, PATCH bodies are SPARQL Update"""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen[request.method] = request.headers
        return httpx.Response(200, headers={"Link": f'<{EX}ldes/1/>; rel="http://www.w3.org/ns/ldp#inbox"'})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    async with LDPCommunication(client=client) as communication:
        await communication.get(f"{EX}ldes/")
        await communication.post(f"{EX}ldes/1/", "<#a> <#b> <#c> .")
        await communication.put(f"{EX}ldes/2/")
        await communication.patch(f"{EX}ldes/.meta", "INSERT DATA {}")
        response = await communication.head(f"{EX}ldes/")

    assert seen["GET"]["accept"] == TURTLE
    assert seen["POST"]["content-type"] == TURTLE
    assert seen["PUT"]["content-type"] == TURTLE
    assert seen["PATCH"]["content-type"] == SPARQL_UPDATE
    assert response.links["http://www.w3.org/ns/ldp#inbox"]["url"] == f"{EX}ldes/1/"

    # a client that was passed in stays open
    assert not client.is_closed
    await client.aclose()


@pytest.mark.asyncio
async def test_retrying_communication_retries_get():
    inner = FlakyLDP(failures=2)
    await inner.put(f"{EX}ldes/")
    communication = RetryingCommunication(inner, NO_WAIT)

    response = await communication.get(f"{EX}ldes/")

    assert response.status_code == 200
    assert inner.attempts == 3


@pytest.mark.asyncio
async def test_retrying_communication_gives_up():
    inner = FlakyLDP(failures=5)
    communication = RetryingCommunication(inner, NO_WAIT)

    with pytest.raises(httpx.ConnectError):
        await communication.get(f"{EX}ldes/")
    assert inner.attempts == NO_WAIT.retry_attempts


@pytest.mark.asyncio
async def test_retrying_communication_never_retries_post():
    inner = FlakyLDP(failures=1)
    await inner.put(f"{EX}ldes/")
    communication = RetryingCommunication(inner, NO_WAIT)

    with pytest.raises(httpx.ConnectError):
        await communication.post(f"{EX}ldes/", "<#a> <#b> <#c> .")
    assert inner.attempts == 1
    assert inner.children(f"{EX}ldes/") == []
