from datetime import datetime
from typing import Optional

from rdflib import Graph, URIRef

from ..ldes.members import Member
from ..metadata.models import VersionedLDESinLDPMetadata
from ..util.conversion import date_to_literal, now
from ..vocabulary import DCT, RDF


def is_deleted(member: Member, metadata: VersionedLDESinLDPMetadata) -> bool:
    """Whether the version is a tombstone"""
    return (member.subject, RDF.type, URIRef(metadata.deleted_type)) in member.graph


def add_version_specific_triples(
    graph: Graph,
    version_identifier: str,
    member_identifier: str,
    metadata: VersionedLDESinLDPMetadata,
    date: Optional[datetime] = None
) -> None:
    """Link the version to its entity and timestamp it"""
    member = URIRef(member_identifier)
    graph.add((member, URIRef(metadata.version_of_path), URIRef(version_identifier)))
    graph.add((member, URIRef(metadata.timestamp_path), date_to_literal(date or now())))


def add_deleted_triple(graph: Graph, member_identifier: str, metadata: VersionedLDESinLDPMetadata) -> None:
    graph.add((URIRef(member_identifier), RDF.type, URIRef(metadata.deleted_type)))


def remove_version_specific_triples(member: Member, metadata: VersionedLDESinLDPMetadata) -> Member:
    """Copy of the member without timestamp, version and tombstone triples"""
    graph = Graph()
    graph += member.graph
    subject = member.subject
    graph.remove((subject, URIRef(metadata.timestamp_path), None))
    graph.remove((subject, URIRef(metadata.version_of_path), None))
    graph.remove((subject, RDF.type, URIRef(metadata.deleted_type)))
    graph.remove((subject, DCT.hasVersion, None))
    return Member(id=member.id, graph=graph)
