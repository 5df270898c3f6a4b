from rdflib import Graph

from .conversion import graph_to_ntriples


def sparql_update_insert(graph: Graph) -> str:
    """SPARQL Update query inserting every triple of `graph`"""
    return f"INSERT DATA {{ {graph_to_ntriples(graph)} }}"


def sparql_update_delete(graph: Graph) -> str:
    """SPARQL Update query deleting every triple of `graph`"""
    return f"DELETE DATA {{ {graph_to_ntriples(graph)} }}"


def sparql_update_delete_insert(deleted: Graph, inserted: Graph) -> str:
    """Both operations in one request, so the server applies them together"""
    return f"{sparql_update_delete(deleted)};\n{sparql_update_insert(inserted)}"
