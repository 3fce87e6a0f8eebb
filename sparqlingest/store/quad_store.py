"""
In-memory Quad Store

Provides an insertion-ordered quad container with per-position indexes.
Every record is parsed into one of these stores; the classifier, the query
synthesizer and the splitter all read and modify records through it.
"""

import logging
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Set, Tuple

from rdflib import Dataset
from rdflib.graph import DATASET_DEFAULT_GRAPH_ID
from rdflib.term import Node

logger = logging.getLogger(__name__)

# Graph identifier used for quads that belong to the unnamed default graph
DEFAULT_GRAPH = DATASET_DEFAULT_GRAPH_ID


class Quad(NamedTuple):
    """One RDF statement plus the graph it belongs to."""
    subject: Node
    predicate: Node
    object: Node
    graph: Node = DEFAULT_GRAPH


def _normalize_graph(graph) -> Node:
    if graph is None:
        return DEFAULT_GRAPH
    graph = getattr(graph, 'identifier', graph)
    if graph == DEFAULT_GRAPH:
        return DEFAULT_GRAPH
    return graph


class QuadStore:
    """
    Ordered set of quads with subject/predicate/object/graph indexes.

    Iteration yields quads in the order they were first added. Lookups with
    match() accept None as a wildcard for any position.
    """

    def __init__(self, quads: Optional[Iterable] = None):
        # Quad -> insertion sequence number
        self._quads: Dict[Quad, int] = {}
        self._sequence = 0
        self._index: Tuple[Dict[Node, Set[Quad]], ...] = ({}, {}, {}, {})
        if quads is not None:
            self.add_all(quads)

    @classmethod
    def from_text(cls, text: str, format: str = 'trig', base: Optional[str] = None) -> 'QuadStore':
        """
        Parse RDF text into a new store.

        Args:
            text: Serialized RDF (TriG also accepts Turtle and N-Triples)
            format: rdflib parser name ('trig', 'nquads', 'turtle', 'nt', 'json-ld')
            base: Optional base IRI for relative references

        Returns:
            QuadStore holding every parsed quad
        """
        dataset = Dataset()
        dataset.parse(data=text, format=format, publicID=base)
        store = cls()
        for s, p, o, g in dataset.quads((None, None, None, None)):
            store.add(Quad(s, p, o, _normalize_graph(g)))
        logger.debug(f"Parsed {len(store)} quads ({format})")
        return store

    def add(self, quad) -> bool:
        """Add a quad (or a 3-tuple in the default graph). Returns False if already present."""
        quad = self._as_quad(quad)
        if quad in self._quads:
            return False
        self._quads[quad] = self._sequence
        self._sequence += 1
        for position, term in enumerate(quad):
            self._index[position].setdefault(term, set()).add(quad)
        return True

    def add_all(self, quads: Iterable) -> None:
        for quad in quads:
            self.add(quad)

    def remove(self, quad) -> None:
        """Remove a quad, raising KeyError if it is not in the store."""
        quad = self._as_quad(quad)
        del self._quads[quad]
        for position, term in enumerate(quad):
            bucket = self._index[position][term]
            bucket.discard(quad)
            if not bucket:
                del self._index[position][term]

    def discard(self, quad) -> bool:
        quad = self._as_quad(quad)
        if quad not in self._quads:
            return False
        self.remove(quad)
        return True

    def remove_matching(self, subject=None, predicate=None, obj=None, graph=None) -> List[Quad]:
        """Remove every quad matching the pattern and return them."""
        removed = self.match(subject, predicate, obj, graph)
        for quad in removed:
            self.remove(quad)
        return removed

    def match(self, subject=None, predicate=None, obj=None, graph=None) -> List[Quad]:
        """
        Find quads matching a pattern, in insertion order.

        Args:
            subject, predicate, obj, graph: Terms to match, None for any

        Returns:
            List of matching quads
        """
        pattern = (subject, predicate, obj, None if graph is None else _normalize_graph(graph))
        buckets: List[Set[Quad]] = []
        for position, term in enumerate(pattern):
            if term is None:
                continue
            bucket = self._index[position].get(term)
            if not bucket:
                return []
            buckets.append(bucket)
        if not buckets:
            return list(self._quads)

        # Filter the smallest bucket, then restore insertion order
        buckets.sort(key=len)
        smallest, rest = buckets[0], buckets[1:]
        found = [q for q in smallest if all(q in bucket for bucket in rest)]
        found.sort(key=self._quads.__getitem__)
        return found

    def objects(self, subject=None, predicate=None, graph=None) -> List[Node]:
        return _unique(q.object for q in self.match(subject, predicate, None, graph))

    def subjects(self, predicate=None, obj=None, graph=None) -> List[Node]:
        return _unique(q.subject for q in self.match(None, predicate, obj, graph))

    def graphs(self) -> List[Node]:
        return _unique(q.graph for q in self._quads)

    def split_per_graph(self) -> List[Tuple[Node, 'QuadStore']]:
        """
        Partition the store by graph, keeping first-seen graph order.

        Returns:
            List of (graph identifier, store with that graph's quads)
        """
        groups: Dict[Node, QuadStore] = {}
        for quad in self._quads:
            groups.setdefault(quad.graph, QuadStore()).add(quad)
        return list(groups.items())

    def copy(self) -> 'QuadStore':
        return QuadStore(self._quads)

    @property
    def size(self) -> int:
        return len(self._quads)

    def __len__(self) -> int:
        return len(self._quads)

    def __iter__(self) -> Iterator[Quad]:
        return iter(list(self._quads))

    def __contains__(self, quad) -> bool:
        return self._as_quad(quad) in self._quads

    def __repr__(self) -> str:
        return f"QuadStore(size={len(self)})"

    @staticmethod
    def _as_quad(quad) -> Quad:
        if isinstance(quad, Quad):
            return quad
        if len(quad) == 3:
            return Quad(quad[0], quad[1], quad[2], DEFAULT_GRAPH)
        return Quad(quad[0], quad[1], quad[2], _normalize_graph(quad[3]))


def _unique(terms: Iterable[Node]) -> List[Node]:
    return list(dict.fromkeys(terms))


def is_default_graph(graph: Optional[Node]) -> bool:
    return graph is None or graph == DEFAULT_GRAPH
