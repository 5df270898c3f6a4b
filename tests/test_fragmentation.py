"""
Tests for the write location protocol: inbox discovery, container creation
and fragment rotation, against the in-memory LDP server.
"""
import time
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from rdflib import Graph, Literal, URIRef

from ldesinldp.config import LDESSettings
from ldesinldp.errors import ProtocolViolation, WriteFailure
from ldesinldp.ldes.event_log import LDESinLDP
from ldesinldp.ldes.fragmentation import create_container, retrieve_write_location
from ldesinldp.ldp.memory import InMemoryLDP
from ldesinldp.metadata.initializer import VLILConfig
from ldesinldp.util.conversion import date_to_literal
from ldesinldp.util.identifiers import relation_identifier
from ldesinldp.vocabulary import DCT

ROOT = "http://example.org/ldesinldp/"
START = datetime(2022, 1, 1, tzinfo=timezone.utc)


class FailingMetadataLDP(InMemoryLDP):
    """Server refusing metadata updates once `fail` is set"""

    def __init__(self):
        super().__init__()
        self.fail = False

    async def patch(self, url, body="", headers=None):
        if self.fail and url.endswith(self.metadata_suffix):
            self.requests.append(("PATCH", url))
            return httpx.Response(409, text="conflict", request=httpx.Request("PATCH", url))
        return await super().patch(url, body, headers)


class FailingCleanupLDP(FailingMetadataLDP):
    """Metadata updates fail and so does removing the new fragment"""

    def __init__(self, delete_error=None):
        super().__init__()
        self.delete_error = delete_error

    async def delete(self, url):
        self.requests.append(("DELETE", url))
        if self.delete_error is not None:
            raise self.delete_error
        return httpx.Response(500, request=httpx.Request("DELETE", url))


def resource(index: int) -> Graph:
    graph = Graph()
    subject = URIRef(f"http://example.org/resource{index}")
    graph.add((subject, DCT.title, Literal(f"resource {index}")))
    graph.add((subject, DCT.created, date_to_literal(START + timedelta(days=index))))
    return graph


async def initialised(ldp: InMemoryLDP, page_size=None) -> LDESinLDP:
    ldes = LDESinLDP(ROOT, ldp, LDESSettings())
    await ldes.initialise(VLILConfig(page_size=page_size), date=START)
    return ldes


@pytest.mark.asyncio
async def test_retrieve_write_location():
    ldp = InMemoryLDP()
    await initialised(ldp)

    assert await retrieve_write_location(ROOT, ldp) == relation_identifier(ROOT, START)


@pytest.mark.asyncio
async def test_retrieve_write_location_without_inbox():
    """A container without metadata does not advertise an inbox"""
    ldp = InMemoryLDP()
    await ldp.put(ROOT)

    with pytest.raises(ProtocolViolation, match="inbox"):
        await retrieve_write_location(ROOT, ldp)


@pytest.mark.asyncio
async def test_retrieve_write_location_without_link_header():
    ldp = InMemoryLDP()
    ldp.add_raw(f"{ROOT}file.txt", "hello", "text/plain")

    with pytest.raises(ProtocolViolation, match="Link"):
        await retrieve_write_location(f"{ROOT}file.txt", ldp)


@pytest.mark.asyncio
async def test_create_container():
    ldp = InMemoryLDP()

    await create_container(ROOT, ldp)
    assert ROOT in ldp.containers

    with pytest.raises(WriteFailure) as error:
        await create_container(ROOT, ldp)
    assert error.value.status_code == 409

    with pytest.raises(ValueError):
        await create_container(f"{ROOT}resource", ldp)


@pytest.mark.asyncio
async def test_rotation_after_page_size():
    """With pageSize N, only append N+1 opens a new fragment"""
    print("\n" + "=" * 80)
    print("FRAGMENT ROTATION (pageSize = 2)")
    print("=" * 80)

    ldp = InMemoryLDP()
    ldes = await initialised(ldp, page_size=2)
    first_inbox = relation_identifier(ROOT, START)

    first = await ldes.append(resource(1))
    second = await ldes.append(resource(2))
    assert first.startswith(first_inbox) and second.startswith(first_inbox)
    assert len((await ldes.metadata()).view.relations) == 1

    third = await ldes.append(resource(3))
    metadata = await ldes.metadata()
    print(f"  relations: {[relation.node for relation in metadata.view.relations]}")
    print(f"  inbox: {metadata.inbox}")

    assert len(metadata.view.relations) == 2
    assert metadata.inbox != first_inbox
    assert metadata.inbox == metadata.view.relations[-1].node
    assert third.startswith(metadata.inbox)
    assert len(ldp.children(first_inbox)) == 2
    assert len(ldp.children(metadata.inbox)) == 1

    # subsequent writes target the new fragment without another rotation
    fourth = await ldes.append(resource(4))
    assert fourth.startswith(metadata.inbox)
    assert len((await ldes.metadata()).view.relations) == 2


@pytest.mark.asyncio
async def test_no_rotation_without_page_size():
    ldp = InMemoryLDP()
    ldes = await initialised(ldp)

    for index in range(5):
        await ldes.append(resource(index))

    metadata = await ldes.metadata()
    assert len(metadata.view.relations) == 1
    assert len(ldp.children(metadata.inbox)) == 5


@pytest.mark.asyncio
async def test_new_fragment_moves_inbox_forward():
    ldp = InMemoryLDP()
    ldes = await initialised(ldp)
    later = START + timedelta(days=30)

    fragment = await ldes.new_fragment(later)

    metadata = await ldes.metadata()
    assert fragment == relation_identifier(ROOT, later)
    assert metadata.inbox == fragment
    assert await retrieve_write_location(ROOT, ldp) == fragment
    assert ldes.cache.cached.inbox == fragment


@pytest.mark.asyncio
async def test_new_fragment_never_moves_inbox_backwards():
    """An older fragment gets a relation but does not become the inbox"""
    ldp = InMemoryLDP()
    ldes = await initialised(ldp)
    earlier = START - timedelta(days=30)

    fragment = await ldes.new_fragment(earlier)

    metadata = await ldes.metadata()
    assert fragment in ldp.containers
    assert [relation.node for relation in metadata.view.relations] == [fragment, relation_identifier(ROOT, START)]
    assert metadata.inbox == relation_identifier(ROOT, START)


@pytest.mark.asyncio
async def test_failed_metadata_update_removes_fragment():
    """A fragment without relation is never left behind"""
    ldp = FailingMetadataLDP()
    ldes = await initialised(ldp)
    later = START + timedelta(days=30)
    fragment = relation_identifier(ROOT, later)

    ldp.fail = True
    with pytest.raises(WriteFailure) as error:
        await ldes.new_fragment(later)

    assert error.value.status_code == 409
    assert ("DELETE", fragment) in ldp.requests
    assert fragment not in ldp.containers

    # stale after a failed update
    assert ldes.cache.cached is None

    ldp.fail = False
    metadata = await ldes.metadata()
    assert len(metadata.view.relations) == 1
    assert metadata.inbox == relation_identifier(ROOT, START)


@pytest.mark.asyncio
async def test_writer_follows_rotation_of_other_writer():
    """An inbox that differs from the cache forces a metadata refresh"""
    ldp = InMemoryLDP()
    writer = await initialised(ldp)
    other = LDESinLDP(ROOT, ldp, LDESSettings())
    await other.append(resource(1))
    assert other.cache.cached.inbox == relation_identifier(ROOT, START)

    later = START + timedelta(days=30)
    await writer.new_fragment(later)

    location = await other.append(resource(2))
    assert location.startswith(relation_identifier(ROOT, later))
    assert other.cache.cached.inbox == relation_identifier(ROOT, later)
    assert len(other.cache.cached.view.relations) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("delete_error", [
    None,
    httpx.ConnectError("connection refused", request=httpx.Request("DELETE", ROOT)),
])
async def test_failed_cleanup_keeps_original_failure(delete_error):
    """Removing the orphan fragment may fail too; the caller sees the metadata failure"""
    ldp = FailingCleanupLDP(delete_error)
    ldes = await initialised(ldp)
    later = START + timedelta(days=30)

    ldp.fail = True
    with pytest.raises(WriteFailure) as error:
        await ldes.new_fragment(later)

    assert error.value.status_code == 409
    assert error.value.identifier == f"{ROOT}.meta"
    assert ("DELETE", relation_identifier(ROOT, later)) in ldp.requests


@pytest.mark.asyncio
async def test_cache_rereads_after_invalidate():
    ldp = InMemoryLDP()
    ldes = await initialised(ldp)
    cached = await ldes.cache.get()
    reads = ldp.count("GET")

    assert await ldes.cache.get() is cached
    assert ldp.count("GET") == reads

    ldes.cache.invalidate()
    refreshed = await ldes.cache.get()
    assert refreshed is not cached
    assert refreshed.inbox == cached.inbox
    assert ldp.count("GET") == reads + 1


@pytest.mark.asyncio
async def test_naive_dates_are_utc(monkeypatch):
    """Fragment address and relation value agree whatever the local timezone"""
    if hasattr(time, "tzset"):
        monkeypatch.setenv("TZ", "Europe/Brussels")
        time.tzset()
    try:
        naive = datetime(2022, 3, 1)
        assert relation_identifier(ROOT, naive) == relation_identifier(ROOT, naive.replace(tzinfo=timezone.utc))

        ldp = InMemoryLDP()
        ldes = LDESinLDP(ROOT, ldp, LDESSettings())
        await ldes.initialise(VLILConfig(), date=datetime(2022, 1, 1))
        fragment = await ldes.new_fragment(naive)

        metadata = await ldes.metadata()
        for relation in metadata.view.relations:
            assert relation.node == relation_identifier(ROOT, relation.date)
        assert fragment in ldp.containers
        assert metadata.inbox == fragment
    finally:
        monkeypatch.undo()
        if hasattr(time, "tzset"):
            time.tzset()
