"""
Members of an LDES in LDP.

A fragment resource declares its members with `<es> tree:member <m>`; every
member is cut out of the resource graph as a self-contained graph.
"""
from collections import deque
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from rdflib import BNode, Graph, URIRef

from ..util.conversion import literal_to_datetime
from ..vocabulary import TREE


class Member(BaseModel):
    """One self-contained record (event or version) of the event stream"""
    id: str = Field(..., description="Top subject of the member")
    graph: Graph = Field(default_factory=Graph)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def subject(self) -> URIRef | BNode:
        if self.id.startswith('_:'):
            return BNode(self.id[2:])
        return URIRef(self.id)


def extract_members(graph: Graph, event_stream_identifier: str) -> List[Member]:
    """
    Slice a graph into one member per `tree:member` object of the event stream.

    Triples reachable from the member subject are collected breadth first.
    Objects that are other declared members are never expanded and every
    object is expanded at most once, so cyclic data terminates.
    """
    member_subjects = list(graph.objects(URIRef(event_stream_identifier), TREE.member))
    main_subjects = set(member_subjects)

    members = []
    for member_subject in member_subjects:
        member_graph = Graph()
        visited = {member_subject}
        queue = deque([member_subject])

        while queue:
            subject = queue.popleft()
            for triple in graph.triples((subject, None, None)):
                member_graph.add(triple)
                obj = triple[2]
                if obj in visited or obj in main_subjects:
                    continue
                visited.add(obj)
                queue.append(obj)

        members.append(Member(id=_term_id(member_subject), graph=member_graph))
    return members


def member_from_graph(graph: Graph, timestamp_path: str) -> Optional[Member]:
    """
    Member of a resource that does not declare one.

    The member subject is the (single) subject carrying the timestamp path,
    None when no subject does.
    """
    subjects = list(dict.fromkeys(graph.subjects(URIRef(timestamp_path), None)))
    if not subjects:
        return None
    if len(subjects) > 1:
        print(f"Resource holds {len(subjects)} subjects with {timestamp_path}, using {subjects[0]}")
    return Member(id=_term_id(subjects[0]), graph=graph)


def member_date(member: Member, path: str) -> Optional[datetime]:
    """Timestamp of a member at `path`, None when absent or not a date-time"""
    return literal_to_datetime(member.graph.value(member.subject, URIRef(path)))


def _term_id(term) -> str:
    if isinstance(term, BNode):
        return f"_:{term}"
    return str(term)
