import math
from datetime import datetime
from typing import List, Optional

from rdflib import Graph, URIRef

from ..errors import AlreadyExists, NotFound
from ..ldes.event_log import EPOCH, LDESinLDP
from ..ldes.members import Member, member_date
from ..ldes.relations import filter_metadata_relations
from ..metadata.initializer import VLILConfig
from ..metadata.models import VersionedLDESinLDPMetadata
from ..util.conversion import now, parse_datetime
from ..util.identifiers import is_container_identifier
from ..vocabulary import LDP, RDF, TREE
from .snapshot import create_snapshot, materialize, version_of
from .util import add_deleted_triple, add_version_specific_triples, is_deleted

DEFAULT_MEMBER_IDENTIFIER = "#resource"


class VersionAwareLDESinLDP:
    """
    CRUD over a versioned LDES in LDP.

    Every write appends a new version of the entity; reads reduce the
    versions to the state of the entity at a point in time. A delete
    appends a tombstone version.
    """

    def __init__(self, ldes: LDESinLDP):
        self.ldes = ldes

    async def initialise(self, config: Optional[VLILConfig] = None, date: Optional[datetime] = None) -> None:
        await self.ldes.initialise(config, date)

    async def create(
        self,
        identifier: str,
        graph: Graph,
        member_identifier: Optional[str] = None,
        date: Optional[datetime] = None
    ) -> str:
        """
        Append the first version of an entity.

        Raises:
            AlreadyExists: when the entity currently materializes
        """
        try:
            await self.read(identifier)
        except NotFound:
            pass
        else:
            raise AlreadyExists(identifier)

        return await self._append_version(identifier, graph, member_identifier, date)

    async def update(
        self,
        identifier: str,
        graph: Graph,
        member_identifier: Optional[str] = None,
        date: Optional[datetime] = None
    ) -> str:
        """Append a new version; the entity is not required to exist"""
        return await self._append_version(identifier, graph, member_identifier, date)

    async def delete(
        self,
        identifier: str,
        member_identifier: Optional[str] = None,
        date: Optional[datetime] = None
    ) -> str:
        """
        Append a tombstone holding the last state of the entity.

        Raises:
            NotFound: when the entity does not materialize
        """
        state = await self.read(identifier)
        metadata = await self.ldes.versioned_metadata()
        member_identifier = member_identifier or DEFAULT_MEMBER_IDENTIFIER

        tombstone = _resubject(state, identifier, member_identifier)
        add_deleted_triple(tombstone, member_identifier, metadata)
        return await self._append(tombstone, identifier, member_identifier, metadata, date)

    async def read(
        self,
        identifier: str,
        date: Optional[datetime] = None,
        materialized: bool = True,
        derived: bool = False
    ) -> Graph:
        """
        State of an entity at `date` (default now).

        With `materialized` the plain entity graph is returned and a tombstone
        is reported as NotFound; otherwise the latest version record itself.
        The root container read as `derived` lists every live entity.
        """
        date = parse_datetime(date or now())

        if is_container_identifier(identifier):
            if identifier == self.ldes.root_identifier and derived:
                return await self._derived_container(date, materialized)
            return await self.ldes.read(identifier)

        metadata = await self.ldes.versioned_metadata()
        snapshot = await self._snapshot(date, metadata)
        for member in snapshot:
            if version_of(member, metadata) != identifier:
                continue
            if not materialized:
                return member.graph
            if is_deleted(member, metadata):
                raise NotFound(f"Resource {identifier} is marked deleted", identifier)
            return materialize(member, metadata).graph

        raise NotFound(f"No version of {identifier} exists", identifier)

    async def extract_versions(
        self,
        identifier: str,
        chronologically: bool = True,
        amount: float = math.inf,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> List[Member]:
        """
        Version records of an entity within [start_date, end_date].

        Fragments are walked oldest first, or newest first when not
        `chronologically`, stopping once `amount` versions are found. The
        result is sorted in the requested order.
        """
        start = parse_datetime(start_date or EPOCH)
        end = parse_datetime(end_date or now())
        metadata = await self.ldes.versioned_metadata()

        relations = filter_metadata_relations(metadata, start, end)
        if not chronologically:
            relations = list(reversed(relations))

        versions = []
        for relation in relations:
            async for member in self.ldes.read_members(relation.node, (start, end), relation.path):
                if version_of(member, metadata) != identifier:
                    continue
                timestamp = member_date(member, metadata.timestamp_path)
                if timestamp is not None and start <= timestamp <= end:
                    versions.append(member)
            if len(versions) >= amount:
                break

        versions.sort(key=lambda member: member_date(member, metadata.timestamp_path), reverse=not chronologically)
        if amount != math.inf:
            versions = versions[:int(amount)]
        return versions

    async def _append_version(
        self,
        identifier: str,
        graph: Graph,
        member_identifier: Optional[str],
        date: Optional[datetime]
    ) -> str:
        metadata = await self.ldes.versioned_metadata()
        member_identifier = member_identifier or DEFAULT_MEMBER_IDENTIFIER
        version = _resubject(graph, identifier, member_identifier)
        return await self._append(version, identifier, member_identifier, metadata, date)

    async def _append(
        self,
        graph: Graph,
        identifier: str,
        member_identifier: str,
        metadata: VersionedLDESinLDPMetadata,
        date: Optional[datetime]
    ) -> str:
        add_version_specific_triples(graph, identifier, member_identifier, metadata, date)
        graph.add((URIRef(metadata.event_stream_identifier), TREE.member, URIRef(member_identifier)))
        return await self.ldes.append(graph)

    async def _snapshot(self, date: datetime, metadata: VersionedLDESinLDPMetadata) -> List[Member]:
        members = [member async for member in self.ldes.read_all_members(until=date)]
        return create_snapshot(members, date, metadata)

    async def _derived_container(self, date: datetime, materialized: bool) -> Graph:
        metadata = await self.ldes.versioned_metadata()
        root = URIRef(self.ldes.root_identifier)

        graph = Graph()
        graph.add((root, RDF.type, LDP.BasicContainer))
        for member in await self._snapshot(date, metadata):
            if is_deleted(member, metadata):
                continue
            entity = materialize(member, metadata)
            graph.add((root, LDP.contains, URIRef(entity.id)))
            if materialized:
                graph += entity.graph
        return graph


def _resubject(graph: Graph, identifier: str, member_identifier: str) -> Graph:
    """Copy of `graph` describing the version instead of the entity"""
    entity = URIRef(identifier)
    member = URIRef(member_identifier)
    version = Graph()
    for s, p, o in graph:
        version.add((member if s == entity else s, p, member if o == entity else o))
    return version
