"""
SPARQL Update query synthesis.

Builds the SPARQL Update statements that apply one change to the target
store:

- create_queries: INSERT DATA, chunked
- update_queries: DELETE {D} WHERE {D} followed by INSERT DATA chunks
- delete_queries: DELETE {Dd} WHERE {Dw}, with SHACL-guided patterns when
  only part of the deleted member is known

Functions are pure: they read the given QuadStore and return query text.
Callers join multiple statements with QUERY_SEPARATOR.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from rdflib import BNode, URIRef
from rdflib.namespace import RDF
from rdflib.term import Node

from ..shacl.shape_index import ShapeIndex
from ..store.quad_store import QuadStore, is_default_graph
from .store_splitter import DEFAULT_CHUNK_SIZE, split_store_on_size
from .term_utils import format_triples, sparql_iri, sparql_term

logger = logging.getLogger(__name__)

QUERY_SEPARATOR = ";\n"


class VariableCounter:
    """
    Hands out increasing indexes for SPARQL variable names.

    One counter is threaded through all patterns of a statement so that
    patterns of different members never share a variable.
    """

    def __init__(self, start: int = 0):
        self.value = start

    def next(self) -> int:
        current = self.value
        self.value += 1
        return current


def group_by_target_graph(store: QuadStore, named_graph: Optional[Node] = None) -> List[Tuple[Optional[Node], QuadStore]]:
    """
    Group quads by the graph they must be written to.

    Quads in a named graph keep it; default graph quads go to named_graph,
    or stay in the default graph (None) when no named graph applies.
    """
    groups: Dict[Optional[Node], QuadStore] = {}
    for graph, sub_store in store.split_per_graph():
        target = named_graph if is_default_graph(graph) else graph
        groups.setdefault(target, QuadStore()).add_all(sub_store)
    return list(groups.items())


def _insert_data(store: QuadStore, graph: Optional[Node]) -> str:
    triples = format_triples(store)
    if graph is None:
        return f"INSERT DATA {{\n{triples}\n}}"
    return f"INSERT DATA {{\nGRAPH {sparql_iri(graph)} {{\n{triples}\n}}\n}}"


def _modify(graph: Optional[Node], delete_lines: Sequence[str], where_lines: Sequence[str]) -> str:
    with_clause = f"WITH {sparql_iri(graph)}\n" if graph is not None else ""
    return (
        f"{with_clause}DELETE {{\n" + "\n".join(delete_lines) + "\n}\n"
        "WHERE {\n" + "\n".join(where_lines) + "\n}"
    )


def insert_statements(store: QuadStore, graph: Optional[Node], max_chunk_size: int) -> List[str]:
    return [_insert_data(chunk, graph) for chunk in split_store_on_size(store, max_chunk_size)]


def wildcard_pattern(store: QuadStore, counter: VariableCounter) -> Tuple[List[str], List[str]]:
    """
    Pattern matching everything currently stored about the store's subjects.

    Named subjects get `<s> ?p_i ?o_i.`. A blank node subject is bound to a
    variable through the triple that references it, then swept with
    `?bn_i ?p_i ?o_i.` and `?s_ref_i ?p_ref_i ?bn_i.`.

    A blank node that nothing references is anchored on its own first triple.
    The target may not hold that node yet, so its lines are wrapped in an
    OPTIONAL block at the end of the WHERE pattern and listed plainly in the
    DELETE template.

    Returns:
        Tuple of (where lines, delete lines)
    """
    subjects = store.subjects()
    indexes = {subject: counter.next() for subject in subjects}
    bnode_vars: Dict[Node, str] = {
        subject: f"?bn_{i}" for subject, i in indexes.items() if isinstance(subject, BNode)
    }

    def pattern_term(term: Node) -> str:
        if isinstance(term, BNode):
            if term not in bnode_vars:
                bnode_vars[term] = f"?bn_ref_{counter.next()}"
            return bnode_vars[term]
        return sparql_term(term)

    where_lines: List[str] = []
    delete_lines: List[str] = []
    optional_blocks: List[str] = []
    for subject in subjects:
        i = indexes[subject]
        if not isinstance(subject, BNode):
            line = f"{sparql_term(subject)} ?p_{i} ?o_{i}."
            where_lines.append(line)
            delete_lines.append(line)
            continue

        variable = bnode_vars[subject]
        references = [q for q in store.match(None, None, subject) if q.subject != subject]
        sweep = [f"{variable} ?p_{i} ?o_{i}.", f"?s_ref_{i} ?p_ref_{i} {variable}."]
        if references:
            anchor = references[0]
            lines = [f"{pattern_term(anchor.subject)} {sparql_term(anchor.predicate)} {variable}."] + sweep
            where_lines.extend(lines)
        else:
            anchor = store.match(subject, None, None)[0]
            lines = [f"{variable} {sparql_term(anchor.predicate)} {pattern_term(anchor.object)}."] + sweep
            optional_blocks.append(
                f"OPTIONAL {{ {lines[0]} {lines[1]} OPTIONAL {{ {lines[2]} }} }}"
            )
        delete_lines.extend(lines)
    return where_lines + optional_blocks, delete_lines


def shape_pattern(member: URIRef,
                  member_types: Iterable[Node],
                  shape_index: ShapeIndex,
                  counter: VariableCounter) -> Tuple[List[str], List[str]]:
    """
    WHERE and DELETE patterns for one member, guided by SHACL shapes.

    With a shape for one of member_types, both patterns list the member's
    triples plus one sub-entity sweep per shape path. Without one, the WHERE
    pattern wraps the sweeps of every known shape in OPTIONAL blocks and the
    DELETE pattern lists them all; unbound template triples are skipped by
    the store.

    Returns:
        Tuple of (where lines, delete lines)
    """
    member_term = sparql_term(member)
    i = counter.next()
    base = f"{member_term} ?p_{i} ?o_{i}."
    where_lines = [base]
    delete_lines = [base]

    def sweep(path: URIRef) -> List[str]:
        j = counter.next()
        return [f"{member_term} {sparql_iri(path)} ?subEnt_{j}.", f"?subEnt_{j} ?p_{j} ?o_{j}."]

    shape = shape_index.find_for_types(member_types)
    if shape is not None:
        logger.debug(f"Using shape {shape.target_class} for member {member}")
        for path in shape.entity_paths:
            lines = sweep(path)
            where_lines.extend(lines)
            delete_lines.extend(lines)
    else:
        for candidate in shape_index:
            for path in candidate.entity_paths:
                lines = sweep(path)
                where_lines.append("OPTIONAL { " + " ".join(lines) + " }")
                delete_lines.extend(lines)
    return where_lines, delete_lines


def create_queries(store: QuadStore,
                   max_chunk_size: int = DEFAULT_CHUNK_SIZE,
                   named_graph: Optional[Node] = None) -> List[str]:
    """
    INSERT DATA statements for a created member.

    Args:
        store: Member quads
        max_chunk_size: Maximum quads per INSERT DATA (blank node closures may exceed it)
        named_graph: Graph for default-graph quads (configured graph or member-as-graph IRI)

    Returns:
        List of statements, empty when the store is empty
    """
    queries: List[str] = []
    for graph, sub_store in group_by_target_graph(store, named_graph):
        queries.extend(insert_statements(sub_store, graph, max_chunk_size))
    return queries


def update_queries(store: QuadStore,
                   max_chunk_size: int = DEFAULT_CHUNK_SIZE,
                   named_graph: Optional[Node] = None) -> List[str]:
    """
    Overwrite statements for an updated member.

    The DELETE and the INSERT DATA are separate statements, DELETE first:
    some stores fail a combined DELETE/INSERT/WHERE when nothing matches.
    """
    queries: List[str] = []
    for graph, sub_store in group_by_target_graph(store, named_graph):
        where_lines, delete_lines = wildcard_pattern(sub_store, VariableCounter())
        queries.append(_modify(graph, delete_lines, where_lines))
        queries.extend(insert_statements(sub_store, graph, max_chunk_size))
    return queries


def delete_queries(store: QuadStore,
                   member_iris: Sequence[Node],
                   shape_index: Optional[ShapeIndex] = None,
                   named_graph: Optional[Node] = None) -> List[str]:
    """
    DELETE/WHERE statements removing one or more members.

    Without shapes, every subject of the store is swept with wildcards.
    With shapes, each member gets a shape-guided pattern (see shape_pattern).
    Patterns of all members share one variable counter and are wrapped in a
    single statement per target graph.

    Args:
        store: Whatever is known about the deleted member(s)
        member_iris: IRIs of the deleted members
        shape_index: Optional SHACL shape index
        named_graph: Graph for default-graph quads

    Returns:
        List of statements
    """
    groups = group_by_target_graph(store, named_graph)
    if not groups:
        groups = [(named_graph, QuadStore())]

    counter = VariableCounter()
    queries: List[str] = []

    graphs = store.graphs()
    for position, (graph, sub_store) in enumerate(groups):
        if shape_index:
            members = _shape_members(member_iris, graph, sub_store, graphs, position == 0)
            where_lines: List[str] = []
            delete_lines: List[str] = []
            for member in members:
                member_where, member_delete = shape_pattern(
                    member, store.objects(member, RDF.type), shape_index, counter
                )
                where_lines.extend(member_where)
                delete_lines.extend(member_delete)
        else:
            where_lines = []
            if position == 0:
                # Members known only by IRI still get their own triples swept,
                # unless the member names a graph rather than a subject
                for member in member_iris:
                    if not store.match(member, None, None) and member != graph and member not in graphs:
                        i = counter.next()
                        where_lines.append(f"{sparql_term(member)} ?p_{i} ?o_{i}.")
            delete_lines = list(where_lines)
            pattern_where, pattern_delete = wildcard_pattern(sub_store, counter)
            where_lines.extend(pattern_where)
            delete_lines.extend(pattern_delete)

        if not where_lines:
            continue
        queries.append(_modify(graph, delete_lines, where_lines))
    return queries


def _shape_members(member_iris: Sequence[Node],
                   graph: Optional[Node],
                   sub_store: QuadStore,
                   graphs: Sequence[Node],
                   first_group: bool) -> List[Node]:
    """
    Members whose shape-guided pattern belongs to one target graph group.

    A member naming the group's graph stands for the IRI subjects of that
    graph. Members absent from the store go to the first group.
    """
    subjects = [s for s in sub_store.subjects() if isinstance(s, URIRef)]
    if not member_iris:
        return subjects

    members: List[Node] = []
    for member in member_iris:
        if member == graph:
            members.extend(subjects)
        elif member in subjects:
            members.append(member)
        elif first_group and member not in graphs:
            members.append(member)
    return list(dict.fromkeys(members))
