"""
Tests for filtering GTE relations on a time window.

A relation covers [its value, next value); the last relation is open to the right.
"""
from datetime import datetime, timedelta, timezone

import pytest

from ldesinldp.ldes.relations import filter_metadata_relations, filter_relations
from ldesinldp.metadata.initializer import MetadataInitializer
from ldesinldp.vocabulary import DCT

ROOT = "http://example.org/ldesinldp/"

FIRST = datetime(2022, 1, 1, tzinfo=timezone.utc)
SECOND = datetime(2022, 2, 1, tzinfo=timezone.utc)
THIRD = datetime(2022, 3, 1, tzinfo=timezone.utc)


def relation(date: datetime):
    return MetadataInitializer.create_relation(f"{ROOT}{int(date.timestamp() * 1000)}/", str(DCT.created), date)


@pytest.fixture
def relations():
    return [relation(FIRST), relation(SECOND), relation(THIRD)]


def nodes(filtered):
    return [r.node for r in filtered]


def test_no_relations():
    """Without relations there is no view to filter"""
    with pytest.raises(ValueError, match="no view"):
        filter_relations([], FIRST, THIRD)


def test_single_relation():
    only = relation(SECOND)

    assert filter_relations([only], FIRST, SECOND) == [only]
    assert filter_relations([only], FIRST, THIRD) == [only]
    assert filter_relations([only], FIRST, SECOND - timedelta(days=1)) == []


def test_window_inside_first_fragment(relations):
    filtered = filter_relations(relations, FIRST + timedelta(days=1), FIRST + timedelta(days=2))
    assert nodes(filtered) == nodes(relations[:1])


def test_window_spanning_boundary(relations):
    filtered = filter_relations(relations, FIRST + timedelta(days=1), SECOND + timedelta(days=1))
    assert nodes(filtered) == nodes(relations[:2])


def test_window_after_last_relation(relations):
    """Only the open ended last fragment can hold later members"""
    filtered = filter_relations(relations, THIRD + timedelta(days=10), THIRD + timedelta(days=20))
    assert nodes(filtered) == nodes(relations[2:])


def test_window_before_first_relation(relations):
    filtered = filter_relations(relations, FIRST - timedelta(days=20), FIRST - timedelta(days=10))
    assert filtered == []


def test_window_covering_everything(relations):
    filtered = filter_relations(relations, FIRST - timedelta(days=1), THIRD + timedelta(days=1))
    assert nodes(filtered) == nodes(relations)


def test_unsorted_input(relations):
    """Relations are sorted by value before filtering"""
    shuffled = [relations[2], relations[0], relations[1]]
    filtered = filter_relations(shuffled, SECOND + timedelta(days=1), THIRD + timedelta(days=1))
    assert nodes(filtered) == nodes(relations[1:])


def test_greatest_relation_not_after_end_is_kept(relations):
    """Whatever the window, the fragment holding `end` is selected"""
    for end in (FIRST, SECOND - timedelta(seconds=1), SECOND, THIRD + timedelta(days=1)):
        filtered = filter_relations(relations, FIRST, end)
        expected = max((r for r in relations if r.date <= end), key=lambda r: r.date)
        assert expected in filtered
        # no fragment starting after the window
        assert all(r.date <= end for r in filtered)


def test_filter_metadata_relations():
    metadata = MetadataInitializer.generate_metadata(ROOT, date=FIRST)

    assert filter_metadata_relations(metadata, FIRST, SECOND) == metadata.view.relations
    assert filter_metadata_relations(metadata, FIRST - timedelta(days=2), FIRST - timedelta(days=1)) == []
