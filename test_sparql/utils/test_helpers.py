"""Test Helper Functions

Utility functions to support SPARQL Ingest testing. Generated queries are
executed against an in-memory rdflib Dataset standing in for the remote
triple store.
"""

import logging
from typing import List, Set, Tuple

import rdflib.plugins.sparql as sparql_plugin
from rdflib import Dataset, Graph, URIRef
from rdflib.graph import DATASET_DEFAULT_GRAPH_ID


def setup_test_logging():
    """Set up logging for tests."""
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def create_target_store(*documents: str) -> Dataset:
    """Create a target store loaded with TriG/Turtle documents.

    Args:
        documents: Serialized RDF to load

    Returns:
        Loaded Dataset instance
    """
    dataset = Dataset()
    for document in documents:
        dataset.parse(data=document, format='trig')
    return dataset


def execute_update(dataset: Dataset, query_text: str) -> None:
    """Execute SPARQL Update text (one or more ';'-separated statements).

    WHERE clauses and default-graph templates address the default graph
    only, like a quad store without a union default graph.
    """
    previous = sparql_plugin.SPARQL_DEFAULT_GRAPH_UNION
    sparql_plugin.SPARQL_DEFAULT_GRAPH_UNION = False
    try:
        dataset.update(query_text)
    finally:
        sparql_plugin.SPARQL_DEFAULT_GRAPH_UNION = previous


def default_graph(dataset: Dataset) -> Graph:
    return dataset.graph(DATASET_DEFAULT_GRAPH_ID)


def named_graph(dataset: Dataset, identifier: str) -> Graph:
    return dataset.graph(URIRef(identifier))


def default_triples(dataset: Dataset) -> Set[Tuple]:
    return set(default_graph(dataset).triples((None, None, None)))


def count_triples_by_subject(graph: Graph) -> dict:
    """Count triples grouped by subject."""
    counts = {}
    for s, _, _ in graph.triples((None, None, None)):
        counts[s] = counts.get(s, 0) + 1
    return counts


def split_modify(statement: str) -> Tuple[List[str], List[str]]:
    """Split a DELETE {..} WHERE {..} statement into its delete and where lines."""
    _, rest = statement.split("DELETE {\n", 1)
    delete_block, where_block = rest.split("\n}\nWHERE {\n", 1)
    where_block = where_block.rsplit("\n}", 1)[0]
    return delete_block.split("\n"), where_block.split("\n")
