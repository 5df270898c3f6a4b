from datetime import datetime, timezone
from typing import Optional

from rdflib import Graph, Literal
from rdflib.term import Node

from ..vocabulary import XSD


def now() -> datetime:
    """Current time as a timezone aware UTC datetime"""
    return datetime.now(timezone.utc)


def parse_datetime(value: str | datetime) -> datetime:
    """
    Parse an ISO-8601 date-time into an aware datetime.

    Naive values are interpreted as UTC. Raises ValueError when unparsable.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def datetime_to_iso(date: datetime) -> str:
    """Millisecond precision, 'Z' suffixed ISO string"""
    date = parse_datetime(date).astimezone(timezone.utc)
    return date.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def date_to_literal(date: datetime) -> Literal:
    return Literal(datetime_to_iso(date), datatype=XSD.dateTime)


def literal_to_datetime(term: Optional[Node]) -> Optional[datetime]:
    """Date of a literal, or None when the term is missing or not a date-time"""
    if not isinstance(term, Literal):
        return None
    try:
        return parse_datetime(str(term))
    except ValueError:
        return None


def turtle_to_graph(text: str, base: Optional[str] = None) -> Graph:
    """Parse Turtle text; relative IRIs resolve against `base`"""
    graph = Graph()
    graph.parse(data=text, format='turtle', publicID=base)
    return graph


def graph_to_turtle(graph: Graph) -> str:
    return graph.serialize(format='turtle')


def graph_to_ntriples(graph: Graph) -> str:
    return graph.serialize(format='nt')

