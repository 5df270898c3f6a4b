from datetime import datetime

from .conversion import parse_datetime


def is_container_identifier(identifier: str) -> bool:
    """A trailing slash is the only container-vs-resource discriminator"""
    return identifier.endswith('/')


def strip_fragment(identifier: str) -> str:
    """Remove the '#...' part of an IRI"""
    return identifier.split('#')[0]


def relation_identifier(root_identifier: str, date: datetime) -> str:
    """
    Container IRI of the fragment starting at `date`.

    Derived from the epoch milliseconds so fragment addresses are reproducible
    and sort by time for non-decreasing dates. Naive dates are UTC.
    """
    return f"{root_identifier}{int(parse_datetime(date).timestamp() * 1000)}/"
