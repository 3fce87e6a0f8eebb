"""
RDF Utilities for SPARQL Ingest

Record parsing, SDS envelope handling and literal sanitization shared by
the record classifier and the query synthesizer.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from rdflib import BNode, Literal, Namespace, URIRef
from rdflib.namespace import RDF, XSD
from rdflib.term import Node

from ..errors import MalformedRecordError
from ..store.quad_store import Quad, QuadStore

logger = logging.getLogger(__name__)

SDS = Namespace("https://w3id.org/sds#")
SH = Namespace("http://www.w3.org/ns/shacl#")

# Graph holding the SDS envelope of a record
SDS_DATA_DESCRIPTION = SDS.DataDescription


class RDFFormat(Enum):
    """Record syntaxes accepted on the member stream."""
    TRIG = "trig"
    TURTLE = "turtle"
    NT = "nt"
    NQUADS = "nquads"
    N3 = "n3"
    JSON_LD = "json-ld"


@dataclass
class SDSMetadata:
    """SDS envelope of one record."""
    member: URIRef
    stream: Optional[Node] = None
    record: Optional[Node] = None
    in_metadata_graph: bool = True


def parse_record(text: str, format: RDFFormat = RDFFormat.TRIG) -> QuadStore:
    """Parse one record into a fresh QuadStore.

    Args:
        text: Serialized record
        format: Syntax of the record

    Returns:
        QuadStore with the record's quads

    Raises:
        MalformedRecordError: If the text cannot be parsed
    """
    try:
        return QuadStore.from_text(text, format=RDFFormat(format).value)
    except Exception as e:
        logger.error(f"Failed to parse record: {e}")
        raise MalformedRecordError(f"Failed to parse record: {e}") from e


def extract_sds_metadata(store: QuadStore) -> Optional[SDSMetadata]:
    """
    Find the SDS envelope of a record.

    The payload declaration is looked up in the sds:DataDescription graph
    first; records that carry the envelope in another graph are accepted too.

    Returns:
        SDSMetadata, or None for a non-SDS record

    Raises:
        MalformedRecordError: If an envelope exists but names no IRI payload
    """
    payloads = store.match(None, SDS.payload, None, SDS_DATA_DESCRIPTION)
    in_metadata_graph = True
    if not payloads:
        payloads = store.match(None, SDS.payload, None)
        in_metadata_graph = False

    if not payloads:
        if store.match(None, SDS.stream, None):
            raise MalformedRecordError("SDS record declares a stream but no sds:payload member")
        return None

    envelope = payloads[0]
    if not isinstance(envelope.object, URIRef):
        raise MalformedRecordError(f"sds:payload must be an IRI, got {envelope.object!r}")

    streams = store.objects(envelope.subject, SDS.stream, envelope.graph)
    return SDSMetadata(
        member=envelope.object,
        stream=streams[0] if streams else None,
        record=envelope.subject,
        in_metadata_graph=in_metadata_graph,
    )


def strip_sds_wrapper(store: QuadStore, metadata: SDSMetadata) -> List[Quad]:
    """Remove the SDS envelope quads from a record store and return them."""
    if metadata.in_metadata_graph:
        removed = store.remove_matching(graph=SDS_DATA_DESCRIPTION)
    else:
        removed = store.remove_matching(subject=metadata.record)
    logger.debug(f"Removed {len(removed)} SDS envelope quads")
    return removed


_SIGNED_INTEGER = re.compile(r"^\+\d+$")


def sanitize_quads(store: QuadStore) -> int:
    """
    Rewrite xsd:integer literals written with a leading '+'.

    Some stores (Virtuoso) reject "+30"^^xsd:integer in update queries.

    Returns:
        Number of rewritten quads
    """
    rewritten = 0
    for quad in store:
        obj = quad.object
        if isinstance(obj, Literal) and obj.datatype == XSD.integer and _SIGNED_INTEGER.match(str(obj)):
            store.remove(quad)
            store.add(quad._replace(object=Literal(str(obj)[1:], datatype=XSD.integer)))
            rewritten += 1
    return rewritten


def first_object(store: QuadStore, subject: Optional[Node], predicate: Node) -> Optional[Quad]:
    """Return the first quad with the given subject (None for any) and predicate."""
    matches = store.match(subject, predicate, None)
    return matches[0] if matches else None


def is_blank(term: Node) -> bool:
    return isinstance(term, BNode)


def rdf_types(store: QuadStore, subject: Node) -> List[Node]:
    return store.objects(subject, RDF.type)
