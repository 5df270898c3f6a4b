"""
Metadata of an LDES in LDP.

Graph Model (LDES in LDP Protocol):
- <es> a ldes:EventStream ; tree:view <root> [; tree:shape <shape>]
- <root> a tree:Node ; tree:relation [GTE relation]* ; tree:viewDescription <vd>
- <vd> dcat:servesDataset <es> ; dcat:endpointURL <root> ; ldes:managedBy <client>
- <client> ldes:bucketizeStrategy <bucketizer>
- <root> ldp:inbox <fragment currently accepting writes>
"""
import math
import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from rdflib import BNode, Graph, Literal, URIRef

from ..util.conversion import datetime_to_iso, parse_datetime
from ..util.identifiers import strip_fragment
from ..vocabulary import DCAT, DCT, LDES, LDP, RDF, TREE, XSD

ISO_DURATION = re.compile(
    r'^-?P(?!$)(\d+Y)?(\d+M)?(\d+W)?(\d+D)?(T(?=\d)(\d+H)?(\d+M)?(\d+(\.\d+)?S)?)?$'
)


class GreaterThanOrEqualToRelation(BaseModel):
    """
    tree:GreaterThanOrEqualToRelation.

    Every member reachable through `node` has a value at `path` that is
    greater than or equal to `value`.
    """
    node: str = Field(..., description="tree:node, the fragment container")
    path: str = Field(..., description="tree:path, the timestamp property")
    value: str = Field(..., description="tree:value, ISO-8601 date-time")

    model_config = {"frozen": True}

    @field_validator("value")
    @classmethod
    def _value_is_date_time(cls, value: str) -> str:
        try:
            date = parse_datetime(value)
        except ValueError:
            raise ValueError(f"Value can not be parsed as date time: {value}")
        # canonical lexical form, rdflib normalizes xsd:dateTime literals
        return datetime_to_iso(date)

    @property
    def type(self) -> str:
        return str(TREE.GreaterThanOrEqualToRelation)

    @property
    def date(self) -> datetime:
        return parse_datetime(self.value)

    def to_graph(self, subject: Optional[BNode] = None) -> Graph:
        graph = Graph()
        subject = subject if subject is not None else BNode()
        graph.add((subject, RDF.type, TREE.GreaterThanOrEqualToRelation))
        graph.add((subject, TREE.node, URIRef(self.node)))
        graph.add((subject, TREE.path, URIRef(self.path)))
        graph.add((subject, TREE.value, Literal(self.value, datatype=XSD.dateTime)))
        return graph


class BucketizeStrategy(BaseModel):
    """ldes:BucketizeStrategy"""
    id: str
    bucket_type: str
    path: str
    page_size: Optional[int] = Field(None, description="Members per fragment, unbounded if absent")

    def to_graph(self) -> Graph:
        graph = Graph()
        subject = URIRef(self.id)
        graph.add((subject, RDF.type, LDES.BucketizeStrategy))
        graph.add((subject, LDES.bucketType, URIRef(self.bucket_type)))
        graph.add((subject, TREE.path, URIRef(self.path)))
        if self.page_size is not None:
            graph.add((subject, LDES.pageSize, Literal(self.page_size)))
        return graph


class LDESinLDPClient(BaseModel):
    """ldes:LDESinLDPClient, the client managing a view"""
    id: str
    bucketize_strategy: BucketizeStrategy

    def to_graph(self) -> Graph:
        graph = Graph()
        subject = URIRef(self.id)
        graph.add((subject, RDF.type, LDES.LDESinLDPClient))
        graph.add((subject, LDES.bucketizeStrategy, URIRef(self.bucketize_strategy.id)))
        graph += self.bucketize_strategy.to_graph()
        return graph


class DurationAgoPolicy(BaseModel):
    """ldes:DurationAgoPolicy: members older than now minus `value` may be removed"""
    id: str
    value: str = Field(..., description="xsd:duration")

    @field_validator("value")
    @classmethod
    def _value_is_duration(cls, value: str) -> str:
        if not ISO_DURATION.match(value):
            raise ValueError(f"Value can not be parsed as duration: {value}")
        return value

    @property
    def type(self) -> str:
        return str(LDES.DurationAgoPolicy)

    def to_graph(self) -> Graph:
        graph = Graph()
        subject = URIRef(self.id)
        graph.add((subject, RDF.type, LDES.DurationAgoPolicy))
        graph.add((subject, TREE.value, Literal(self.value, datatype=XSD.duration)))
        return graph


class LatestVersionSubset(BaseModel):
    """ldes:LatestVersionSubset: only the `amount` latest versions per entity are kept"""
    id: str
    amount: int
    timestamp_path: Optional[str] = None
    version_of_path: Optional[str] = None

    @property
    def type(self) -> str:
        return str(LDES.LatestVersionSubset)

    def to_graph(self) -> Graph:
        graph = Graph()
        subject = URIRef(self.id)
        graph.add((subject, RDF.type, LDES.LatestVersionSubset))
        graph.add((subject, LDES.amount, Literal(self.amount)))
        if self.timestamp_path:
            graph.add((subject, LDES.timestampPath, URIRef(self.timestamp_path)))
        if self.version_of_path:
            graph.add((subject, LDES.versionOfPath, URIRef(self.version_of_path)))
        return graph


RetentionPolicy = DurationAgoPolicy | LatestVersionSubset


class ViewDescription(BaseModel):
    """tree:ViewDescription"""
    id: str
    managed_by: LDESinLDPClient
    serves_dataset: str = Field(..., description="Must equal the event stream identifier")
    endpoint_url: str = Field(..., description="Must equal the view (root node) identifier")
    retention_policies: List[RetentionPolicy] = Field(default_factory=list)

    @model_validator(mode="after")
    def _sort_policies(self) -> "ViewDescription":
        self.retention_policies.sort(key=lambda policy: policy.id)
        return self

    def to_graph(self) -> Graph:
        graph = Graph()
        subject = URIRef(self.id)
        graph.add((subject, RDF.type, TREE.ViewDescription))
        graph.add((subject, DCAT.servesDataset, URIRef(self.serves_dataset)))
        graph.add((subject, DCAT.endpointURL, URIRef(self.endpoint_url)))
        graph.add((subject, LDES.managedBy, URIRef(self.managed_by.id)))
        graph += self.managed_by.to_graph()
        for policy in self.retention_policies:
            graph.add((subject, LDES.retentionPolicy, URIRef(policy.id)))
            graph += policy.to_graph()
        return graph


class Node(BaseModel):
    """tree:Node acting as the view of the event stream; relations are kept ordered by value"""
    id: str
    relations: List[GreaterThanOrEqualToRelation] = Field(default_factory=list)
    view_description: Optional[ViewDescription] = None

    @model_validator(mode="after")
    def _sort_relations(self) -> "Node":
        self.relations.sort(key=lambda relation: (relation.date, relation.node))
        return self

    def add_relation(self, relation: GreaterThanOrEqualToRelation) -> None:
        self.relations.append(relation)
        self._sort_relations()

    def relation_for(self, node: str) -> Optional[GreaterThanOrEqualToRelation]:
        for relation in self.relations:
            if relation.node == node:
                return relation
        return None

    def to_graph(self) -> Graph:
        graph = Graph()
        subject = URIRef(self.id)
        graph.add((subject, RDF.type, TREE.Node))
        for relation in self.relations:
            # fresh blank node per relation
            relation_node = BNode()
            graph.add((subject, TREE.relation, relation_node))
            graph += relation.to_graph(relation_node)
        if self.view_description:
            graph.add((subject, TREE.viewDescription, URIRef(self.view_description.id)))
            graph += self.view_description.to_graph()
        return graph


class LDESinLDPMetadata(BaseModel):
    """Properties of an LDES in LDP (LDES in LDP Protocol §2)"""
    event_stream_identifier: str
    view: Node
    inbox: str
    shape: Optional[str] = None

    @property
    def root_node_identifier(self) -> str:
        return self.view.id

    @property
    def fragment_size(self) -> float:
        """Page size of the bucketizer, infinite without a view description"""
        if self.view.view_description is None:
            return math.inf
        page_size = self.view.view_description.managed_by.bucketize_strategy.page_size
        return page_size if page_size is not None else math.inf

    @property
    def tree_path(self) -> str:
        """Timestamp property the relations of the view are defined on"""
        if self.view.relations:
            return self.view.relations[0].path
        if self.view.view_description:
            return self.view.view_description.managed_by.bucketize_strategy.path
        return str(DCT.created)

    def to_graph(self) -> Graph:
        graph = Graph()
        event_stream = URIRef(self.event_stream_identifier)
        graph.add((event_stream, RDF.type, LDES.EventStream))
        graph.add((event_stream, TREE.view, URIRef(self.view.id)))
        graph += self.view.to_graph()
        if self.shape:
            graph.add((event_stream, TREE.shape, URIRef(self.shape)))
        graph.add((URIRef(strip_fragment(self.event_stream_identifier)), LDP.inbox, URIRef(self.inbox)))
        return graph


class VersionedLDESinLDPMetadata(LDESinLDPMetadata):
    """Metadata of an LDES in LDP whose members are versions of entities"""
    timestamp_path: str = Field(default=str(DCT.created))
    version_of_path: str = Field(default=str(DCT.isVersionOf))
    deleted_type: str = Field(default=str(LDES.DeletedLDPResource))

    def to_graph(self) -> Graph:
        graph = super().to_graph()
        event_stream = URIRef(self.event_stream_identifier)
        graph.add((event_stream, LDES.versionOfPath, URIRef(self.version_of_path)))
        graph.add((event_stream, LDES.timestampPath, URIRef(self.timestamp_path)))
        return graph
