"""Tests for SPARQL Update synthesis

Tests the text shape of the generated Create, Update and Delete statements
and runs the statements against an in-memory rdflib Dataset.
"""

import re
import sys
from pathlib import Path

import pytest
from rdflib import BNode, Literal, URIRef
from rdflib.namespace import RDF, XSD

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sparqlingest.errors import MalformedRecordError
from sparqlingest.shacl.shape_index import ShapeIndex
from sparqlingest.sparql.query_synthesizer import (
    QUERY_SEPARATOR,
    VariableCounter,
    create_queries,
    delete_queries,
    group_by_target_graph,
    update_queries,
    wildcard_pattern,
)
from sparqlingest.sparql.term_utils import sparql_iri, sparql_term
from sparqlingest.store.quad_store import QuadStore
from test_sparql.fixtures.sample_records import (
    ANOTHER_ENTITY_SHAPE,
    ANOTHER_ENTITY_SHAPE_WITH_PROPERTY,
    ENTITY,
    ENTITY_SHAPE,
    EX,
)
from test_sparql.utils.test_helpers import (
    count_triples_by_subject,
    create_target_store,
    default_graph,
    execute_update,
    named_graph,
    split_modify,
)

TARGET_GRAPH = URIRef("https://example.org/graphs/target")


def entity_store():
    nested = BNode()
    return QuadStore([
        (ENTITY, RDF.type, EX.Entity),
        (ENTITY, EX.prop1, Literal("some value")),
        (ENTITY, EX.prop2, nested),
        (nested, RDF.type, EX.NestedEntity),
        (nested, EX.nestedProp, Literal("some other value")),
    ])


class TestTermSerialization:
    """Test escaping of terms written into query text."""

    def test_iri_with_forbidden_characters(self):
        with pytest.raises(MalformedRecordError):
            sparql_iri("https://example.org/a b")
        with pytest.raises(MalformedRecordError):
            sparql_iri("https://example.org/a>{}")

    def test_literals(self):
        assert sparql_term(Literal("say \"hi\"")) == '"say \\"hi\\""'
        assert sparql_term(Literal("hallo", lang="nl")) == '"hallo"@nl'
        assert sparql_term(Literal(5)) == f'"5"^^<{XSD.integer}>'

    def test_blank_node_label(self):
        assert sparql_term(BNode("b0")) == "_:b0"
        assert re.fullmatch(r"_:[A-Za-z0-9_]+", sparql_term(BNode("weird:label")))


class TestCreate:
    """Test INSERT DATA generation."""

    def test_single_insert(self):
        queries = create_queries(entity_store())
        assert len(queries) == 1
        assert queries[0].startswith("INSERT DATA {\n")
        assert "GRAPH" not in queries[0]
        assert queries[0].count("\n") == 6

    def test_named_graph_for_default_quads(self):
        store = entity_store()
        store.add((EX.other, EX.p, EX.o, EX.graph))
        queries = create_queries(store, named_graph=TARGET_GRAPH)
        assert len(queries) == 2
        assert f"GRAPH <{TARGET_GRAPH}> {{" in queries[0]
        assert f"GRAPH <{EX.graph}> {{" in queries[1]

    def test_chunking(self):
        store = QuadStore((EX[f"s{i}"], EX.p, Literal(i)) for i in range(7))
        queries = create_queries(store, max_chunk_size=3)
        assert len(queries) == 3
        assert all(q.startswith("INSERT DATA") for q in queries)

    def test_empty_store(self):
        assert create_queries(QuadStore()) == []

    def test_insert_into_target(self):
        dataset = create_target_store()
        execute_update(dataset, QUERY_SEPARATOR.join(create_queries(entity_store(), named_graph=TARGET_GRAPH)))
        assert len(named_graph(dataset, TARGET_GRAPH)) == 5
        assert len(default_graph(dataset)) == 0


class TestUpdate:
    """Test overwrite statements."""

    def test_delete_precedes_insert(self):
        queries = update_queries(entity_store())
        assert len(queries) == 2
        assert queries[0].startswith("DELETE {")
        assert queries[1].startswith("INSERT DATA {")

        delete_lines, where_lines = split_modify(queries[0])
        assert delete_lines == where_lines
        assert f"<{ENTITY}> ?p_0 ?o_0." in where_lines
        assert f"<{ENTITY}> <{EX.prop2}> ?bn_1." in where_lines
        assert "?bn_1 ?p_1 ?o_1." in where_lines
        assert "?s_ref_1 ?p_ref_1 ?bn_1." in where_lines

    def test_with_clause_for_named_graph(self):
        queries = update_queries(entity_store(), named_graph=TARGET_GRAPH)
        assert queries[0].startswith(f"WITH <{TARGET_GRAPH}>\nDELETE {{")

    def test_unreferenced_blank_node_is_optional_in_where(self):
        bnode = BNode()
        store = QuadStore([(bnode, EX.p, Literal("x")), (bnode, EX.q, EX.o)])
        where_lines, delete_lines = wildcard_pattern(store, VariableCounter())

        assert where_lines == [
            f'OPTIONAL {{ ?bn_0 <{EX.p}> "x". ?bn_0 ?p_0 ?o_0. OPTIONAL {{ ?s_ref_0 ?p_ref_0 ?bn_0. }} }}'
        ]
        assert delete_lines == [f'?bn_0 <{EX.p}> "x".', "?bn_0 ?p_0 ?o_0.", "?s_ref_0 ?p_ref_0 ?bn_0."]

    def test_unreferenced_blank_node_does_not_block_member_overwrite(self):
        dataset = create_target_store(f'<{ENTITY}> <{EX.prop1}> "old".')
        bnode = BNode()
        store = QuadStore([
            (ENTITY, EX.prop1, Literal("new")),
            (bnode, EX.q, Literal("z")),
        ])

        for _ in range(2):
            execute_update(dataset, QUERY_SEPARATOR.join(update_queries(store)))

        graph = default_graph(dataset)
        assert list(graph.objects(ENTITY, EX.prop1)) == [Literal("new")]
        assert len(list(graph.subjects(EX.q, Literal("z")))) == 1


class TestDelete:
    """Test DELETE/WHERE generation."""

    def test_without_shapes_sweeps_all_subjects(self):
        queries = delete_queries(entity_store(), [ENTITY])
        assert len(queries) == 1
        delete_lines, where_lines = split_modify(queries[0])
        assert delete_lines == where_lines
        assert "OPTIONAL" not in queries[0]

    def test_member_known_only_by_iri(self):
        queries = delete_queries(QuadStore(), [ENTITY, EX.other])
        _, where_lines = split_modify(queries[0])
        assert where_lines == [f"<{ENTITY}> ?p_0 ?o_0.", f"<{EX.other}> ?p_1 ?o_1."]

    def test_with_shape_and_type_is_precise(self):
        index = ShapeIndex.from_texts([ENTITY_SHAPE, ANOTHER_ENTITY_SHAPE_WITH_PROPERTY])
        store = QuadStore([(ENTITY, RDF.type, EX.Entity)])
        queries = delete_queries(store, [ENTITY], index)
        delete_lines, where_lines = split_modify(queries[0])

        assert delete_lines == where_lines
        assert "OPTIONAL" not in queries[0]
        assert f"<{ENTITY}> <{EX.prop2}> ?subEnt_1." in where_lines
        assert str(EX.otherProp) not in queries[0]

    def test_with_shapes_and_no_type_uses_optional_blocks(self):
        index = ShapeIndex.from_texts([ENTITY_SHAPE, ANOTHER_ENTITY_SHAPE_WITH_PROPERTY])
        queries = delete_queries(QuadStore(), [ENTITY], index)
        delete_lines, where_lines = split_modify(queries[0])

        assert sum(1 for line in where_lines if line.startswith("OPTIONAL {")) == 2
        assert where_lines[0] == f"<{ENTITY}> ?p_0 ?o_0."
        assert "OPTIONAL" not in "\n".join(delete_lines)
        assert f"<{ENTITY}> <{EX.otherProp}> ?subEnt_2." in delete_lines
        assert len(delete_lines) == 5

    def test_multiple_members_do_not_share_variables(self):
        index = ShapeIndex.from_texts([ENTITY_SHAPE])
        store = QuadStore([(ENTITY, RDF.type, EX.Entity), (EX.second, RDF.type, EX.Entity)])
        queries = delete_queries(store, [ENTITY, EX.second], index)
        assert len(queries) == 1

        variables = re.findall(r"\?p_(\d+)", queries[0].split("WHERE")[1])
        assert len(variables) == len(set(variables)) == 4

    def test_without_shapes_removes_member_closure(self):
        dataset = create_target_store("""
        @prefix ex: <https://example.org/ns#>.
        @prefix sds: <https://w3id.org/sds#>.
        [] sds:stream ex:sdsStream; sds:payload <https://example.org/entity/Entity>.
        <https://example.org/entity/Entity> a ex:Entity;
            ex:prop1 "some value";
            ex:prop2 [ a ex:NestedEntity; ex:nestedProp "some other value" ];
            ex:prop3 ex:SomeNamedNode.
        ex:unrelated ex:p "kept".
        """)
        execute_update(dataset, QUERY_SEPARATOR.join(delete_queries(entity_store(), [ENTITY])))

        counts = count_triples_by_subject(default_graph(dataset))
        assert ENTITY not in counts
        assert counts[EX.unrelated] == 1
        assert len(default_graph(dataset)) == 3


def test_group_by_target_graph():
    store = entity_store()
    store.add((EX.x, EX.p, EX.y, EX.graph))
    groups = group_by_target_graph(store)
    assert [graph for graph, _ in groups] == [None, EX.graph]

    groups = group_by_target_graph(store, TARGET_GRAPH)
    assert [graph for graph, _ in groups] == [TARGET_GRAPH, EX.graph]
