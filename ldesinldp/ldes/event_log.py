"""
LDES in LDP: an append-only event stream stored in an LDP container.

Layout on the server:
- root container, whose auxiliary metadata holds the event stream, its
  view (the root node) with GTE relations and the ldp:inbox pointer
- one container per relation (fragment) holding the member resources
"""
from datetime import datetime, timezone
from typing import AsyncIterator, Optional, Tuple

import httpx
from rdflib import Graph, URIRef

from ..config import LDESSettings, get_settings
from ..errors import LDESError, NotFound, ProtocolViolation, UnsupportedContentType, WriteFailure
from ..ldp.communication import Communication
from ..metadata.initializer import LILConfig, MetadataInitializer, VLILConfig
from ..metadata.models import LDESinLDPMetadata, VersionedLDESinLDPMetadata
from ..metadata.parser import MetadataParser
from ..util.conversion import graph_to_turtle, now, parse_datetime, turtle_to_graph
from ..util.identifiers import is_container_identifier
from ..util.patch import sparql_update_insert
from ..vocabulary import LDES, LDP, RDF, TREE, TURTLE
from .fragmentation import FragmentationEngine, MetadataCache, create_container
from .members import Member, extract_members, member_date, member_from_graph
from .relations import filter_metadata_relations
from .status import Status, is_writable

Window = Tuple[datetime, datetime]

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


class LDESinLDP:
    """
    Read and write facade of one LDES in LDP.

    Owns the metadata cache and the fragmentation engine; neither is shared
    with other instances.
    """

    def __init__(
        self,
        root_identifier: str,
        communication: Communication,
        settings: Optional[LDESSettings] = None
    ):
        if not is_container_identifier(root_identifier):
            raise ValueError(f"{root_identifier} is not a container identifier as it does not end with \"/\".")

        self.root_identifier = root_identifier
        self.communication = communication
        self.settings = settings or get_settings().ldes
        self.cache = MetadataCache(self.metadata)
        self.fragmentation = FragmentationEngine(
            root_identifier, communication, self.cache, self.settings.metadata_suffix
        )

    @property
    def event_stream_identifier(self) -> str:
        if self.cache.cached is not None:
            return self.cache.cached.event_stream_identifier
        return f"{self.root_identifier}#EventStream"

    @property
    def tree_path(self) -> str:
        if self.cache.cached is not None:
            return self.cache.cached.tree_path
        return self.settings.tree_path

    async def initialise(self, config: Optional[LILConfig] = None, date: Optional[datetime] = None) -> None:
        """
        Create the root container, its metadata and the first fragment.

        Does nothing when the root already exists. The metadata is always
        versioned: a plain LILConfig gets the default ldes:versionOfPath.
        """
        response = await self.communication.head(self.root_identifier)
        if response.status_code == 200:
            print(f"LDES in LDP {self.root_identifier} already exists.")
            return

        config = config or VLILConfig(tree_path=self.settings.tree_path, page_size=self.settings.page_size,
                                      shape=self.settings.shape, version_of_path=self.settings.version_of_path)
        if not isinstance(config, VLILConfig):
            config = VLILConfig(**config.model_dump())
        metadata = MetadataInitializer.generate_versioned_metadata(self.root_identifier, config, date)

        await create_container(self.root_identifier, self.communication)

        metadata_identifier = self.fragmentation.metadata_identifier
        response = await self.communication.patch(metadata_identifier, sparql_update_insert(metadata.to_graph()))
        if not 200 <= response.status_code < 300:
            raise WriteFailure(
                f"The container {self.root_identifier} its metadata was not updated",
                metadata_identifier,
                response.status_code
            )

        await create_container(metadata.inbox, self.communication)
        self.cache.set(metadata)
        print(f"LDES in LDP initialised at {self.root_identifier}")

    async def append(self, graph: Graph) -> str:
        """
        Add a resource to the inbox, rotating the fragment first when full.

        Returns:
            Location of the created resource
        """
        await self.fragmentation.resolve_write_location()
        await self.fragmentation.maybe_rotate()
        metadata = await self.cache.get()

        response = await self.communication.post(metadata.inbox, graph_to_turtle(graph))
        if response.status_code != 201:
            raise WriteFailure(f"The resource was not created at {metadata.inbox}", metadata.inbox, response.status_code)

        location = response.headers.get("location")
        if not location:
            raise WriteFailure("Did not receive the location of the created resource", metadata.inbox,
                               response.status_code)
        print(f"LDP Resource created at: {location}")

        if (URIRef(metadata.event_stream_identifier), TREE.member, None) not in graph:
            print(f"No tree:member triple in resource {location}")
        return location

    async def read(self, identifier: str) -> Graph:
        """GET a resource as a graph; relative IRIs resolve against `identifier`"""
        response = await self.communication.get(identifier)
        if response.status_code != 200:
            raise NotFound(f"Resource not found: {identifier}", identifier)

        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if content_type != TURTLE:
            raise UnsupportedContentType(
                f"Resource {identifier} has content type {content_type or 'none'}, only {TURTLE} is supported",
                identifier
            )
        return turtle_to_graph(response.text, identifier)

    async def read_metadata(self) -> Graph:
        return await self.read(self.root_identifier)

    async def metadata(self) -> LDESinLDPMetadata:
        """Parsed and validated metadata of the root"""
        return MetadataParser.parse(await self.read_metadata())

    async def versioned_metadata(self) -> VersionedLDESinLDPMetadata:
        return MetadataParser.parse_versioned(await self.read_metadata())

    async def new_fragment(self, date: Optional[datetime] = None) -> str:
        # authoritative state before mutating it
        await self.cache.refresh()
        return await self.fragmentation.create_fragment(date)

    async def read_all_members(
        self,
        from_date: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> AsyncIterator[Member]:
        """
        Members with a timestamp in [from_date, until].

        Ordered by fragment, then by position within the fragment. Members
        without a timestamp at the relation path are skipped.
        """
        metadata, relations, window = await self._select(from_date, until)
        for relation in relations:
            async for member in self.read_members(relation.node, window, relation.path):
                if self._in_window(member, relation.path, window):
                    yield member

    async def read_members_sorted(
        self,
        from_date: Optional[datetime] = None,
        until: Optional[datetime] = None,
        chronologically: bool = True
    ) -> AsyncIterator[Member]:
        """Same selection as read_all_members, each fragment sorted by member timestamp"""
        metadata, relations, window = await self._select(from_date, until)
        if not chronologically:
            relations = list(reversed(relations))

        for relation in relations:
            members = [
                member async for member in self.read_members(relation.node, window, relation.path)
                if self._in_window(member, relation.path, window)
            ]
            members.sort(key=lambda member: member_date(member, relation.path), reverse=not chronologically)
            for member in members:
                yield member

    async def read_page(self, container: str, window: Optional[Window] = None) -> AsyncIterator[Graph]:
        """
        Resources of a fragment container.

        Resources declaring tree:member triples are split into their members.
        A container carrying its own metadata is followed through its
        relations filtered on `window` instead of its listing.
        """
        async for member in self.read_members(container, window, self.tree_path):
            yield member.graph

    async def status(self) -> Status:
        status = Status()
        try:
            response = await self.communication.head(self.root_identifier)
        except httpx.HTTPError as e:
            print(f"Could not reach {self.root_identifier}: {e}")
            return status
        if response.status_code != 200:
            return status
        status.found = True

        try:
            metadata = await self.metadata()
        except (LDESError, ValueError, SyntaxError) as e:
            print(f"{self.root_identifier} is not a valid LDES in LDP: {e}")
            return status
        status.valid = True
        status.writable = is_writable(response.headers.get("wac-allow"))

        if len(metadata.view.relations) == 1:
            fragment = metadata.view.relations[0].node
            try:
                graph = await self.read(fragment)
            except NotFound as e:
                print(f"Could not read fragment {fragment}: {e}")
                return status
            status.empty = (URIRef(fragment), LDP.contains, None) not in graph
        return status

    async def _select(self, from_date: Optional[datetime], until: Optional[datetime]):
        window = (parse_datetime(from_date or EPOCH), parse_datetime(until or now()))
        metadata = await self.metadata()
        if self.cache.cached is None:
            self.cache.set(metadata)
        relations = filter_metadata_relations(metadata, *window)
        return metadata, relations, window

    @staticmethod
    def _in_window(member: Member, path: str, window: Window) -> bool:
        date = member_date(member, path)
        return date is not None and window[0] <= date <= window[1]

    async def read_members(
        self,
        container: str,
        window: Optional[Window] = None,
        path: Optional[str] = None
    ) -> AsyncIterator[Member]:
        """Members of a fragment container, following child containers and sub-fragmentations"""
        path = path or self.tree_path
        if not is_container_identifier(container):
            return

        graph = await self.read(container)
        if window is not None:
            sub_metadata = self._sub_metadata(graph)
            if sub_metadata is not None and sub_metadata.view.relations:
                for relation in filter_metadata_relations(sub_metadata, *window):
                    async for member in self.read_members(relation.node, window, relation.path):
                        yield member
                return

        for child in list(graph.objects(URIRef(container), LDP.contains)):
            child_identifier = str(child)
            if is_container_identifier(child_identifier):
                async for member in self.read_members(child_identifier, window, path):
                    yield member
                continue

            resource = await self.read(child_identifier)
            if (URIRef(self.event_stream_identifier), TREE.member, None) in resource:
                for member in extract_members(resource, self.event_stream_identifier):
                    yield member
            else:
                yield member_from_graph(resource, path) or Member(id=child_identifier, graph=resource)

    @staticmethod
    def _sub_metadata(graph: Graph) -> Optional[LDESinLDPMetadata]:
        if (None, RDF.type, LDES.EventStream) not in graph:
            return None
        try:
            return MetadataParser.parse(graph)
        except ProtocolViolation as e:
            print(f"Container declares an event stream that could not be parsed: {e}")
            return None
