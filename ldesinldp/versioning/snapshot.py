"""
Snapshots of a versioned event stream.

A snapshot keeps, per entity (the object of ldes:versionOfPath), the latest
version whose timestamp is not after the snapshot date. Materializing a
version rewrites it to the entity IRI and drops the version bookkeeping.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from rdflib import Graph, URIRef

from ..ldes.members import Member, member_date
from ..metadata.models import VersionedLDESinLDPMetadata
from ..util.conversion import parse_datetime
from .util import remove_version_specific_triples


def version_of(member: Member, metadata: VersionedLDESinLDPMetadata) -> Optional[str]:
    """Entity a version belongs to"""
    entity = member.graph.value(member.subject, URIRef(metadata.version_of_path))
    return str(entity) if entity is not None else None


def create_snapshot(
    members: Iterable[Member],
    date: datetime,
    metadata: VersionedLDESinLDPMetadata
) -> List[Member]:
    """Latest version at or before `date` of every entity, in order of first appearance"""
    date = parse_datetime(date)
    latest: Dict[str, Member] = {}
    latest_dates: Dict[str, datetime] = {}

    for member in members:
        entity = version_of(member, metadata)
        timestamp = member_date(member, metadata.timestamp_path)
        if entity is None or timestamp is None or timestamp > date:
            continue
        # equal timestamps: the later read version wins
        if entity not in latest or timestamp >= latest_dates[entity]:
            latest[entity] = member
            latest_dates[entity] = timestamp
    return list(latest.values())


def materialize(member: Member, metadata: VersionedLDESinLDPMetadata) -> Member:
    """Entity state described by a version"""
    entity = version_of(member, metadata)
    if entity is None:
        return member

    stripped = remove_version_specific_triples(member, metadata)
    subject = member.subject
    entity_node = URIRef(entity)

    graph = Graph()
    for s, p, o in stripped.graph:
        graph.add((entity_node if s == subject else s, p, entity_node if o == subject else o))
    return Member(id=entity, graph=graph)
