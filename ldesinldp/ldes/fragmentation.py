"""
Write location management of an LDES in LDP.

The inbox is the fragment container currently accepting members. The
engine keeps a cached copy of the metadata, re-reads it whenever the
server advertises another inbox, and opens a new fragment (container,
relation and inbox swap) once the inbox holds `pageSize` members.
"""
import math
from datetime import datetime
from typing import Awaitable, Callable, Optional

import httpx
from rdflib import BNode, Graph, URIRef

from ..errors import ProtocolViolation, WriteFailure
from ..metadata.initializer import MetadataInitializer
from ..metadata.models import LDESinLDPMetadata
from ..util.conversion import now, parse_datetime
from ..util.identifiers import is_container_identifier, relation_identifier, strip_fragment
from ..util.patch import sparql_update_delete_insert, sparql_update_insert
from ..ldp.communication import Communication
from ..vocabulary import LDP, TREE

MetadataReader = Callable[[], Awaitable[LDESinLDPMetadata]]


async def retrieve_write_location(root_identifier: str, communication: Communication) -> str:
    """Location of the inbox as advertised by the Link header of the root"""
    response = await communication.head(root_identifier)
    if "link" not in response.headers:
        raise ProtocolViolation("No Link Header present.")

    inbox_link = response.links.get(str(LDP.inbox))
    if not inbox_link:
        raise ProtocolViolation(f"No {LDP.inbox} Link Header present.")
    return inbox_link["url"]


async def create_container(identifier: str, communication: Communication) -> None:
    """PUT a new container; anything but 201 is a failure"""
    if not is_container_identifier(identifier):
        raise ValueError(
            f"Tried creating a container at URL {identifier}, however this is not a Container (due to slash semantics)."
        )
    response = await communication.put(identifier)
    if response.status_code != 201:
        raise WriteFailure(f"The container {identifier} was not created", identifier, response.status_code)
    print(f"LDP Container created: {identifier}")


class MetadataCache:
    """
    Cached metadata of one LDES in LDP.

    Owned by a single engine; `refresh()` re-reads the authoritative
    metadata, `invalidate()` forces the next `get()` to do so.
    """

    def __init__(self, reader: MetadataReader):
        self._reader = reader
        self._metadata: Optional[LDESinLDPMetadata] = None

    @property
    def cached(self) -> Optional[LDESinLDPMetadata]:
        return self._metadata

    async def get(self) -> LDESinLDPMetadata:
        if self._metadata is None:
            return await self.refresh()
        return self._metadata

    async def refresh(self) -> LDESinLDPMetadata:
        self._metadata = await self._reader()
        return self._metadata

    def invalidate(self) -> None:
        self._metadata = None

    def set(self, metadata: LDESinLDPMetadata) -> None:
        self._metadata = metadata

    def update_inbox(self, inbox: str) -> None:
        if self._metadata is not None:
            self._metadata.inbox = inbox


class FragmentationEngine:
    """Sole writer of the inbox pointer and the relations of the view"""

    def __init__(
        self,
        root_identifier: str,
        communication: Communication,
        cache: MetadataCache,
        metadata_suffix: str = ".meta"
    ):
        self.root_identifier = root_identifier
        self.communication = communication
        self.cache = cache
        self.metadata_suffix = metadata_suffix

    @property
    def metadata_identifier(self) -> str:
        return f"{self.root_identifier}{self.metadata_suffix}"

    async def resolve_write_location(self) -> str:
        """
        Inbox advertised by the server.

        When it differs from the cached inbox another writer rotated the
        fragment, so the metadata is fully re-read.
        """
        inbox = await retrieve_write_location(self.root_identifier, self.communication)
        cached = self.cache.cached
        if cached is None or cached.inbox != inbox:
            print(f"Inbox {inbox} differs from cached metadata, refreshing metadata")
            await self.cache.refresh()
        return inbox

    async def maybe_rotate(self) -> bool:
        """Open a new fragment when the inbox holds at least pageSize members"""
        metadata = await self.cache.get()
        if metadata.fragment_size == math.inf:
            return False

        response = await self.communication.get(metadata.inbox)
        if response.status_code != 200:
            raise WriteFailure(f"Could not read the inbox {metadata.inbox}", metadata.inbox, response.status_code)
        fragment = Graph()
        fragment.parse(data=response.text, format='turtle', publicID=metadata.inbox)
        number_of_children = len(list(fragment.objects(URIRef(metadata.inbox), LDP.contains)))

        if number_of_children >= metadata.fragment_size:
            await self.create_fragment()
            return True
        return False

    async def create_fragment(self, date: Optional[datetime] = None) -> str:
        """
        Create the fragment container for `date` and add its relation.

        The inbox moves to the new fragment only when the lower bound of the
        current inbox relation is before `date`. Relation and inbox swap are
        sent in one PATCH; if it fails the new container is deleted again and the
        cached metadata is dropped.

        Returns:
            Identifier of the new fragment container
        """
        date = parse_datetime(date or now())
        metadata = await self.cache.get()
        fragment_identifier = relation_identifier(self.root_identifier, date)

        await create_container(fragment_identifier, self.communication)

        relation = MetadataInitializer.create_relation(fragment_identifier, metadata.tree_path, date)
        relation_node = BNode()
        inserted = Graph()
        inserted.add((URIRef(metadata.root_node_identifier), TREE.relation, relation_node))
        inserted += relation.to_graph(relation_node)

        current_relation = metadata.view.relation_for(metadata.inbox)
        swap_inbox = current_relation is None or current_relation.date < relation.date

        container = URIRef(strip_fragment(metadata.event_stream_identifier))
        if swap_inbox:
            deleted = Graph()
            deleted.add((container, LDP.inbox, URIRef(metadata.inbox)))
            inserted.add((container, LDP.inbox, URIRef(fragment_identifier)))
            query = sparql_update_delete_insert(deleted, inserted)
        else:
            query = sparql_update_insert(inserted)

        response = await self.communication.patch(self.metadata_identifier, query)
        if not 200 <= response.status_code < 300:
            try:
                delete_response = await self.communication.delete(fragment_identifier)
                print(f"Removing container {fragment_identifier} | status code {delete_response.status_code}")
            except httpx.HTTPError as e:
                print(f"Removing container {fragment_identifier} failed: {e}")
            print(response.text)
            self.cache.invalidate()
            raise WriteFailure(
                f"The LDES metadata {metadata.event_stream_identifier} was not updated "
                f"for the new relation {fragment_identifier}",
                self.metadata_identifier,
                response.status_code
            )

        metadata.view.add_relation(relation)
        if swap_inbox:
            self.cache.update_inbox(fragment_identifier)
        print(f"New fragment {fragment_identifier} added to {self.root_identifier}")
        return fragment_identifier
