"""
SPARQL term serialization.

All IRIs, literals and blank nodes that end up in generated query text go
through sparql_term(), so escaping rules live in one place.
"""

import re
from typing import Iterable

from rdflib import BNode, Literal, URIRef
from rdflib.term import Node, Variable

from ..errors import MalformedRecordError

# Characters that may not appear inside an IRIREF
_INVALID_IRI_CHARS = re.compile(r'[\x00-\x20<>"{}|^`\\]')


def sparql_iri(iri) -> str:
    """Serialize an IRI as <...>, rejecting characters that would break the query."""
    value = str(iri)
    if _INVALID_IRI_CHARS.search(value):
        raise MalformedRecordError(f"IRI cannot be written to a SPARQL query: {value!r}")
    return f"<{value}>"


def sparql_term(term: Node) -> str:
    """
    Serialize an RDF term for use in SPARQL Update text.

    Args:
        term: URIRef, Literal, BNode or Variable

    Returns:
        The term in SPARQL syntax
    """
    if isinstance(term, URIRef):
        return sparql_iri(term)
    if isinstance(term, Literal):
        if term.datatype is not None:
            # Keep the datatype IRI explicit so engines never reinterpret the lexical form
            return f"{Literal(str(term)).n3()}^^{sparql_iri(term.datatype)}"
        return term.n3()
    if isinstance(term, BNode):
        return f"_:{_bnode_label(term)}"
    if isinstance(term, Variable):
        return term.n3()
    raise MalformedRecordError(f"Unsupported RDF term: {term!r}")


def _bnode_label(term: BNode) -> str:
    # Blank node labels must be PN_CHARS; rdflib generated ids already are
    label = str(term)
    if re.fullmatch(r'[A-Za-z0-9_][A-Za-z0-9_\-.]*', label) and not label.endswith('.'):
        return label
    return 'b' + re.sub(r'[^A-Za-z0-9_]', '_', label)


def triple_pattern(subject: str, predicate: str, obj: str) -> str:
    return f"{subject} {predicate} {obj}."


def format_triples(quads: Iterable) -> str:
    """Serialize quads as triple lines, ignoring their graph."""
    return "\n".join(
        triple_pattern(sparql_term(q[0]), sparql_term(q[1]), sparql_term(q[2]))
        for q in quads
    )
