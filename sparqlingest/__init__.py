"""
SPARQL Ingest

Turns a stream of RDF change records (optionally wrapped in SDS metadata)
into SPARQL Update queries for a remote triple store.
"""

__version__ = "0.4.5"
