"""
SHACL Shape Index

Indexes SHACL shape documents by the target class of their main node shape.
Shapes are only consulted for their structure (target class and property
paths) when building DELETE patterns; no validation is performed.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional

from rdflib import Graph, Literal, URIRef
from rdflib.namespace import RDF
from rdflib.term import Node

from ..errors import ShapeError
from ..rdf.rdf_utils import SH

logger = logging.getLogger(__name__)


@dataclass
class PropertyShape:
    """One sh:property of a node shape."""
    path: URIRef
    node: Optional["NodeShape"] = None
    order: Optional[float] = None
    literal_valued: bool = False


@dataclass
class NodeShape:
    """A node shape reduced to its target class and ordered property paths."""
    identifier: Node
    target_class: Optional[URIRef]
    properties: List[PropertyShape] = field(default_factory=list)

    @property
    def paths(self) -> List[URIRef]:
        return [prop.path for prop in self.properties]

    @property
    def entity_paths(self) -> List[URIRef]:
        """Paths whose values may be resources with their own properties."""
        return [prop.path for prop in self.properties if not prop.literal_valued]


def _node_shapes(graph: Graph) -> List[Node]:
    shapes = list(graph.subjects(RDF.type, SH.NodeShape))
    for subject in graph.subjects(SH.targetClass, None):
        if subject not in shapes:
            shapes.append(subject)
    return shapes


def _parse_node_shape(graph: Graph, shape: Node, visiting: Optional[set] = None) -> NodeShape:
    visiting = set() if visiting is None else visiting
    visiting.add(shape)

    target_class = graph.value(shape, SH.targetClass)
    properties = []
    for prop in graph.objects(shape, SH.property):
        path = graph.value(prop, SH.path)
        if path is None:
            raise ShapeError(f"Property shape {prop} of {shape} has no sh:path")
        if not isinstance(path, URIRef):
            # Only single-predicate paths are supported
            raise ShapeError(f"Unsupported sh:path on {shape}: only single predicate IRIs are allowed")

        nested = None
        node_ref = graph.value(prop, SH.node)
        if node_ref is not None and node_ref not in visiting:
            nested = _parse_node_shape(graph, node_ref, visiting)

        order = graph.value(prop, SH.order)
        literal_valued = (
            graph.value(prop, SH.datatype) is not None
            or graph.value(prop, SH.nodeKind) == SH.Literal
        )
        properties.append(PropertyShape(
            path=path,
            node=nested,
            order=float(order) if isinstance(order, Literal) else None,
            literal_valued=literal_valued,
        ))

    # rdflib does not keep declaration order: sort by sh:order, then by path IRI
    properties.sort(key=lambda prop: (float('inf') if prop.order is None else prop.order, str(prop.path)))

    visiting.discard(shape)
    return NodeShape(identifier=shape, target_class=target_class, properties=properties)


def parse_shape(shape_text: str, format: str = 'turtle') -> NodeShape:
    """
    Parse one SHACL document and return its main node shape.

    The main shape is the only node shape that no other triple of the
    document references as an object.

    Raises:
        ShapeError: If the document has no node shape, more than one main
            shape, or a main shape without sh:targetClass
    """
    graph = Graph()
    try:
        graph.parse(data=shape_text, format=format)
    except Exception as e:
        raise ShapeError(f"Could not parse SHACL shape: {e}") from e

    shapes = _node_shapes(graph)
    if not shapes:
        raise ShapeError("No SHACL node shape found in the given shape description")

    main_shapes = [shape for shape in shapes if not any(True for _ in graph.subject_predicates(shape))]
    if len(main_shapes) != 1:
        raise ShapeError(
            f"Expected exactly one main (unreferenced) node shape, found {len(main_shapes)}"
        )

    main = _parse_node_shape(graph, main_shapes[0])
    if main.target_class is None:
        raise ShapeError(f"Main node shape {main.identifier} has no sh:targetClass")
    return main


class ShapeIndex:
    """
    Main node shapes keyed by target class, in the order they were supplied.
    """

    def __init__(self, shapes: Optional[Iterable[NodeShape]] = None):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._shapes: Dict[URIRef, NodeShape] = {}
        for shape in shapes or []:
            self.add(shape)

    @classmethod
    def from_texts(cls, shape_texts: Iterable[str], format: str = 'turtle') -> 'ShapeIndex':
        """Build an index from SHACL documents given as text."""
        return cls(parse_shape(text, format) for text in shape_texts)

    def add(self, shape: NodeShape) -> None:
        if shape.target_class in self._shapes:
            self.logger.warning(f"Ignoring second shape for target class {shape.target_class}")
            return
        self._shapes[shape.target_class] = shape

    def get(self, target_class: Node) -> Optional[NodeShape]:
        return self._shapes.get(target_class)

    def find_for_types(self, types: Iterable[Node]) -> Optional[NodeShape]:
        """Return the shape of the first type that has one."""
        for rdf_type in types:
            shape = self.get(rdf_type)
            if shape is not None:
                return shape
        return None

    @property
    def shapes(self) -> List[NodeShape]:
        return list(self._shapes.values())

    def __iter__(self) -> Iterator[NodeShape]:
        return iter(self.shapes)

    def __len__(self) -> int:
        return len(self._shapes)

    def __bool__(self) -> bool:
        return bool(self._shapes)
