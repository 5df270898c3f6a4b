from datetime import datetime
from typing import List

from ..metadata.models import GreaterThanOrEqualToRelation, LDESinLDPMetadata
from ..util.conversion import parse_datetime


def filter_relations(
    relations: List[GreaterThanOrEqualToRelation],
    start: datetime,
    end: datetime
) -> List[GreaterThanOrEqualToRelation]:
    """
    Select the relations whose fragment may hold members within [start, end].

    A fragment covers [value_i, value_i+1); the last one is open to the right
    and is only kept when its value is not after `end`.

    Raises:
        ValueError: when there are no relations
    """
    if not relations:
        raise ValueError("no view")

    start = parse_datetime(start)
    end = parse_datetime(end)
    ordered = sorted(relations, key=lambda relation: relation.date)

    filtered = []
    for current, following in zip(ordered, ordered[1:]):
        if not (start > following.date or end < current.date):
            filtered.append(current)

    last = ordered[-1]
    if last.date <= end:
        filtered.append(last)
    return filtered


def filter_metadata_relations(
    metadata: LDESinLDPMetadata,
    start: datetime,
    end: datetime
) -> List[GreaterThanOrEqualToRelation]:
    """filter_relations over the relations of the view"""
    return filter_relations(metadata.view.relations, start, end)
