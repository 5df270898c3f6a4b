from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..util.conversion import datetime_to_iso, now
from ..util.identifiers import relation_identifier
from ..vocabulary import DCT, LDES
from .models import (
    BucketizeStrategy,
    GreaterThanOrEqualToRelation,
    LDESinLDPClient,
    LDESinLDPMetadata,
    Node,
    VersionedLDESinLDPMetadata,
    ViewDescription,
)


class LILConfig(BaseModel):
    """Configuration used to initialise an LDES in LDP"""
    tree_path: str = Field(default=str(DCT.created), description="Member property the relations apply to")
    shape: Optional[str] = Field(None, description="Shape every member must conform to")
    page_size: Optional[int] = Field(None, description="Members per fragment before a new relation is added")
    date: Optional[datetime] = Field(None, description="tree:value of the first relation")


class VLILConfig(LILConfig):
    """Configuration of a versioned LDES in LDP; tree_path doubles as ldes:timestampPath"""
    version_of_path: str = Field(default=str(DCT.isVersionOf))


class MetadataInitializer:
    """Generates metadata for a new (versioned) LDES in LDP"""

    @staticmethod
    def generate_metadata(
        root_identifier: str,
        config: Optional[LILConfig] = None,
        date: Optional[datetime] = None
    ) -> LDESinLDPMetadata:
        """
        Generate LDES in LDP metadata with one relation and a view description.

        Args:
            root_identifier: Container of the LDES in LDP
            config: Tree path, shape and page size
            date: Value of the first relation (falls back to config.date, then now)

        Returns:
            Metadata whose inbox is the node of the first relation
        """
        config = config or LILConfig()
        date = date or config.date or now()

        event_stream_identifier = f"{root_identifier}#EventStream"
        relation = MetadataInitializer.create_relation(
            relation_identifier(root_identifier, date), config.tree_path, date
        )
        view_description = MetadataInitializer.create_view_description(
            event_stream_identifier, root_identifier, config.page_size, config.tree_path
        )

        view = Node(id=root_identifier, relations=[relation], view_description=view_description)
        return LDESinLDPMetadata(
            event_stream_identifier=event_stream_identifier,
            view=view,
            inbox=relation.node,
            shape=config.shape
        )

    @staticmethod
    def generate_versioned_metadata(
        root_identifier: str,
        config: Optional[VLILConfig] = None,
        date: Optional[datetime] = None
    ) -> VersionedLDESinLDPMetadata:
        """Same as generate_metadata, adding ldes:versionOfPath and ldes:timestampPath"""
        config = config or VLILConfig()
        metadata = MetadataInitializer.generate_metadata(root_identifier, config, date)

        return VersionedLDESinLDPMetadata(
            event_stream_identifier=metadata.event_stream_identifier,
            view=metadata.view,
            inbox=metadata.inbox,
            shape=metadata.shape,
            timestamp_path=config.tree_path,
            version_of_path=config.version_of_path
        )

    @staticmethod
    def create_relation(
        node: str,
        path: Optional[str] = None,
        date: Optional[datetime] = None
    ) -> GreaterThanOrEqualToRelation:
        date = date or now()
        path = path or str(DCT.created)
        return GreaterThanOrEqualToRelation(node=node, path=path, value=datetime_to_iso(date))

    @staticmethod
    def create_view_description(
        event_stream_identifier: str,
        root_identifier: str,
        page_size: Optional[int] = None,
        path: Optional[str] = None
    ) -> ViewDescription:
        path = path or str(DCT.created)

        bucketize_strategy = BucketizeStrategy(
            id=f"{root_identifier}#BucketizeStrategy",
            bucket_type=str(LDES.timestampFragmentation),
            path=path,
            page_size=page_size
        )
        client = LDESinLDPClient(id=f"{root_identifier}#LDESinLDPClient", bucketize_strategy=bucketize_strategy)
        return ViewDescription(
            id=f"{root_identifier}#ViewDescription",
            managed_by=client,
            serves_dataset=event_stream_identifier,
            endpoint_url=root_identifier
        )
