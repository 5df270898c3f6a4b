from typing import List, Optional

from pydantic import ValidationError
from rdflib import Graph, Literal, URIRef
from rdflib.term import Node as Term

from ..errors import ProtocolViolation
from ..util.identifiers import strip_fragment
from ..vocabulary import DCAT, LDES, LDP, RDF, TREE, XSD
from .models import (
    BucketizeStrategy,
    DurationAgoPolicy,
    GreaterThanOrEqualToRelation,
    LatestVersionSubset,
    LDESinLDPClient,
    LDESinLDPMetadata,
    Node,
    RetentionPolicy,
    VersionedLDESinLDPMetadata,
    ViewDescription,
)


class MetadataParser:
    """
    Parse (versioned) LDES in LDP metadata from a graph.

    Every required triple is checked for cardinality; a violation raises
    ProtocolViolation naming what was missing or duplicated.
    """

    @staticmethod
    def parse(graph: Graph, event_stream_identifier: Optional[str] = None) -> LDESinLDPMetadata:
        """Parse a graph into LDESinLDPMetadata"""
        if event_stream_identifier is None:
            event_stream_identifier = MetadataParser.parse_event_stream_identifier(graph)
        event_stream = URIRef(event_stream_identifier)

        views = list(graph.objects(event_stream, TREE.view))
        if len(views) != 1:
            raise ProtocolViolation(f"Expected only one view. {len(views)} are present.")
        root_node_identifier = str(views[0])

        relations = [
            MetadataParser.parse_relation(graph, relation_node)
            for relation_node in graph.objects(views[0], TREE.relation)
        ]

        view_description = None
        view_description_nodes = list(graph.objects(views[0], TREE.viewDescription))
        if len(view_description_nodes) > 1:
            raise ProtocolViolation(
                f"Expected at most one view description. {len(view_description_nodes)} are present."
            )
        if view_description_nodes:
            view_description = MetadataParser.parse_view_description(graph, view_description_nodes[0])
            if view_description.endpoint_url != root_node_identifier:
                raise ProtocolViolation(
                    f"dcat:endpointURL ({view_description.endpoint_url}) does not match "
                    f"the view identifier of the LDES in LDP: {root_node_identifier}"
                )
            if view_description.serves_dataset != event_stream_identifier:
                raise ProtocolViolation(
                    f"dcat:servesDataset ({view_description.serves_dataset}) does not match "
                    f"the event stream identifier of the LDES in LDP: {event_stream_identifier}"
                )

        container = URIRef(strip_fragment(event_stream_identifier))
        inboxes = list(graph.objects(container, LDP.inbox))
        if len(inboxes) != 1:
            raise ProtocolViolation(f"Expected only one inbox. {len(inboxes)} are present.")

        shapes = list(graph.objects(event_stream, TREE.shape))
        if len(shapes) > 1:
            raise ProtocolViolation(f"Expected at most one shape. {len(shapes)} are present.")

        root_node = Node(id=root_node_identifier, relations=relations, view_description=view_description)
        return LDESinLDPMetadata(
            event_stream_identifier=event_stream_identifier,
            view=root_node,
            inbox=str(inboxes[0]),
            shape=str(shapes[0]) if shapes else None
        )

    @staticmethod
    def parse_versioned(graph: Graph, event_stream_identifier: Optional[str] = None) -> VersionedLDESinLDPMetadata:
        """Parse a graph into VersionedLDESinLDPMetadata"""
        metadata = MetadataParser.parse(graph, event_stream_identifier)
        event_stream_identifier = metadata.event_stream_identifier

        return VersionedLDESinLDPMetadata(
            event_stream_identifier=event_stream_identifier,
            view=metadata.view,
            inbox=metadata.inbox,
            shape=metadata.shape,
            version_of_path=MetadataParser.parse_version_of_path(graph, event_stream_identifier),
            timestamp_path=MetadataParser.parse_timestamp_path(graph, event_stream_identifier)
        )

    @staticmethod
    def parse_event_stream_identifier(graph: Graph) -> str:
        event_streams = list(graph.subjects(RDF.type, LDES.EventStream))
        if len(event_streams) != 1:
            raise ProtocolViolation(f"Expected only one Event Stream. {len(event_streams)} are present.")
        return str(event_streams[0])

    @staticmethod
    def parse_version_of_path(graph: Graph, identifier: str) -> str:
        paths = list(graph.objects(URIRef(identifier), LDES.versionOfPath))
        if len(paths) != 1:
            raise ProtocolViolation(f"Expected only one versionOfPath. {len(paths)} are present.")
        return str(paths[0])

    @staticmethod
    def parse_timestamp_path(graph: Graph, identifier: str) -> str:
        paths = list(graph.objects(URIRef(identifier), LDES.timestampPath))
        if len(paths) != 1:
            raise ProtocolViolation(f"Expected only one timestampPath. {len(paths)} are present.")
        return str(paths[0])

    @staticmethod
    def parse_relation(graph: Graph, relation_node: Term) -> GreaterThanOrEqualToRelation:
        """Parse the triples of one relation node into a GTE relation"""
        types = list(graph.objects(relation_node, RDF.type))
        nodes = list(graph.objects(relation_node, TREE.node))
        paths = list(graph.objects(relation_node, TREE.path))
        values = list(graph.objects(relation_node, TREE.value))

        if len(nodes) != 1:
            raise ProtocolViolation(
                f"Could not parse relation as the expected amount of tree nodes is 1 | received: {len(nodes)}"
            )
        if len(paths) != 1:
            raise ProtocolViolation(
                f"Could not parse relation as the expected amount of tree paths is 1 | received: {len(paths)}"
            )
        if len(values) != 1:
            raise ProtocolViolation(
                f"Could not parse relation as the expected amount of tree values is 1 | received: {len(values)}"
            )
        if len(types) != 1:
            raise ProtocolViolation(
                f"Could not parse relation as the expected amount of types is 1 | received: {len(types)}"
            )
        if types[0] != TREE.GreaterThanOrEqualToRelation:
            raise ProtocolViolation(
                f"LDES in LDP expected relation type {TREE.GreaterThanOrEqualToRelation} | received: {types[0]}"
            )

        try:
            return GreaterThanOrEqualToRelation(node=str(nodes[0]), path=str(paths[0]), value=str(values[0]))
        except ValidationError as e:
            raise ProtocolViolation(f"Could not parse relation value {values[0]}: {e}") from e

    @staticmethod
    def parse_view_description(graph: Graph, view_description_node: Term) -> ViewDescription:
        """Parse a tree:ViewDescription together with its client and bucketizer"""
        event_stream_ids = list(graph.objects(view_description_node, DCAT.servesDataset))
        root_node_ids = list(graph.objects(view_description_node, DCAT.endpointURL))
        managed_by_ids = list(graph.objects(view_description_node, LDES.managedBy))

        if len(event_stream_ids) != 1:
            raise ProtocolViolation(
                "Could not parse view description as the expected amount of serve dataset "
                f"identifiers is 1 | received: {len(event_stream_ids)}"
            )
        if len(root_node_ids) != 1:
            raise ProtocolViolation(
                "Could not parse view description as the expected amount of endpoint URLs "
                f"is 1 | received: {len(root_node_ids)}"
            )
        if len(managed_by_ids) != 1:
            raise ProtocolViolation(
                "Could not parse view description as the expected amount of managed by "
                f"identifiers is 1 | received: {len(managed_by_ids)}"
            )

        managed_by_node = managed_by_ids[0]
        bucketizers = list(graph.objects(managed_by_node, LDES.bucketizeStrategy))
        if len(bucketizers) != 1:
            raise ProtocolViolation(
                "Could not parse view description as the expected amount of bucketizers "
                f"is 1 | received: {len(bucketizers)}"
            )

        retention_policies = MetadataParser.parse_retention_policies(
            graph, list(graph.objects(view_description_node, LDES.retentionPolicy))
        )
        bucketize_strategy = MetadataParser.parse_bucketize_strategy(graph, bucketizers[0])

        return ViewDescription(
            id=str(view_description_node),
            managed_by=LDESinLDPClient(id=str(managed_by_node), bucketize_strategy=bucketize_strategy),
            serves_dataset=str(event_stream_ids[0]),
            endpoint_url=str(root_node_ids[0]),
            retention_policies=retention_policies
        )

    @staticmethod
    def parse_bucketize_strategy(graph: Graph, bucketizer_node: Term) -> BucketizeStrategy:
        bucket_types = list(graph.objects(bucketizer_node, LDES.bucketType))
        paths = list(graph.objects(bucketizer_node, TREE.path))
        page_sizes = list(graph.objects(bucketizer_node, LDES.pageSize))

        if len(bucket_types) != 1:
            raise ProtocolViolation(
                "Could not parse bucketizer in view description as the expected amount of "
                f"bucket types is 1 | received: {len(bucket_types)}"
            )
        if len(paths) != 1:
            raise ProtocolViolation(
                "Could not parse bucketizer in view description as the expected amount of "
                f"paths is 1 | received: {len(paths)}"
            )

        page_size = None
        if len(page_sizes) == 1:
            try:
                page_size = int(str(page_sizes[0]))
            except ValueError:
                raise ProtocolViolation(
                    "Could not parse bucketizer in view description as the page size is not a number."
                )
        elif len(page_sizes) > 1:
            raise ProtocolViolation(
                f"Expected at most one page size. {len(page_sizes)} are present."
            )

        return BucketizeStrategy(
            id=str(bucketizer_node),
            bucket_type=str(bucket_types[0]),
            path=str(paths[0]),
            page_size=page_size
        )

    @staticmethod
    def parse_retention_policies(graph: Graph, policy_nodes: List[Term]) -> List[RetentionPolicy]:
        """Parse the retention policies of a view description; unknown policy types are skipped"""
        policies: List[RetentionPolicy] = []
        for policy_node in policy_nodes:
            types = list(graph.objects(policy_node, RDF.type))
            policy_type = types[0] if len(types) == 1 else None

            if policy_type == LDES.DurationAgoPolicy:
                policies.append(MetadataParser._parse_duration_ago_policy(graph, policy_node))
            elif policy_type == LDES.LatestVersionSubset:
                policies.append(MetadataParser._parse_latest_version_subset(graph, policy_node))
            else:
                print(f"Could not parse the retention policy for identifier {policy_node}.")
        return policies

    @staticmethod
    def _parse_duration_ago_policy(graph: Graph, policy_node: Term) -> DurationAgoPolicy:
        durations = list(graph.objects(policy_node, TREE.value))
        if len(durations) != 1:
            raise ProtocolViolation(
                f"Could not parse the value for Duration Ago Policy ({policy_node}) as the "
                f"expected amount of values is 1 | received: {len(durations)}"
            )
        duration = durations[0]
        if not isinstance(duration, Literal) or duration.datatype != XSD.duration:
            raise ProtocolViolation(
                f"Could not parse the value for Duration Ago Policy ({policy_node}) as the "
                f"expected data type is {XSD.duration}"
            )
        try:
            return DurationAgoPolicy(id=str(policy_node), value=str(duration))
        except ValidationError as e:
            raise ProtocolViolation(str(e)) from e

    @staticmethod
    def _parse_latest_version_subset(graph: Graph, policy_node: Term) -> LatestVersionSubset:
        amounts = list(graph.objects(policy_node, LDES.amount))
        if len(amounts) != 1:
            raise ProtocolViolation(
                f"Could not parse the amount for Latest Version Subset ({policy_node}) as the "
                f"expected amount of amount is 1 | received: {len(amounts)}"
            )
        try:
            amount = int(str(amounts[0]))
        except ValueError:
            raise ProtocolViolation("Could not parse amount in Latest Version Subset as it is not a number.")

        # both paths are optional on a policy
        timestamp_paths = list(graph.objects(policy_node, LDES.timestampPath))
        version_of_paths = list(graph.objects(policy_node, LDES.versionOfPath))
        return LatestVersionSubset(
            id=str(policy_node),
            amount=amount,
            timestamp_path=str(timestamp_paths[0]) if len(timestamp_paths) == 1 else None,
            version_of_path=str(version_of_paths[0]) if len(version_of_paths) == 1 else None
        )
