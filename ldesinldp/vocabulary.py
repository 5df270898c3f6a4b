from rdflib import Namespace
from rdflib.namespace import DCAT, DCTERMS, RDF, XSD

LDES = Namespace("https://w3id.org/ldes#")
TREE = Namespace("https://w3id.org/tree#")
LDP = Namespace("http://www.w3.org/ns/ldp#")
DCT = DCTERMS

TURTLE = "text/turtle"
SPARQL_UPDATE = "application/sparql-update"

__all__ = ["LDES", "TREE", "LDP", "DCAT", "DCT", "RDF", "XSD", "TURTLE", "SPARQL_UPDATE"]
