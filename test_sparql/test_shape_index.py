"""Tests for the SHACL shape index

Tests main shape detection, property path extraction and the shape
description errors.
"""

import sys
from pathlib import Path

import pytest

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sparqlingest.errors import ShapeError
from sparqlingest.shacl.shape_index import ShapeIndex, parse_shape
from test_sparql.fixtures.sample_records import (
    ANOTHER_ENTITY_SHAPE,
    ANOTHER_ENTITY_SHAPE_WITH_PROPERTY,
    ENTITY_SHAPE,
    EX,
    ORDERED_SHAPE,
)

SHACL_PREFIXES = """
@prefix sh: <http://www.w3.org/ns/shacl#>.
@prefix ex: <https://example.org/ns#>.
"""


class TestParseShape:
    """Test parsing of single shape documents."""

    def test_main_shape_ignores_nested_node_shape(self):
        shape = parse_shape(ENTITY_SHAPE)
        assert shape.target_class == EX.Entity
        assert shape.paths == [EX.prop2]
        assert shape.properties[0].node.target_class == EX.NestedEntity

    def test_shape_without_properties(self):
        shape = parse_shape(ANOTHER_ENTITY_SHAPE)
        assert shape.target_class == EX.AnotherEntity
        assert shape.paths == []

    def test_order_and_literal_properties(self):
        shape = parse_shape(ORDERED_SHAPE)
        assert shape.paths == [EX.first, EX.second, EX.label]
        assert shape.entity_paths == [EX.first, EX.second]

    def test_unordered_properties_sort_by_path(self):
        text = SHACL_PREFIXES + """
        ex:S a sh:NodeShape; sh:targetClass ex:A;
            sh:property [ sh:path ex:zeta ];
            sh:property [ sh:path ex:alpha ];
            sh:property [ sh:path ex:mid; sh:order 1 ].
        """
        assert parse_shape(text).paths == [EX.mid, EX.alpha, EX.zeta]

    def test_no_node_shape(self):
        with pytest.raises(ShapeError):
            parse_shape(SHACL_PREFIXES + "ex:a ex:b ex:c.")

    def test_multiple_main_shapes(self):
        text = SHACL_PREFIXES + """
        ex:S1 a sh:NodeShape; sh:targetClass ex:A.
        ex:S2 a sh:NodeShape; sh:targetClass ex:B.
        """
        with pytest.raises(ShapeError):
            parse_shape(text)

    def test_main_shape_without_target_class(self):
        with pytest.raises(ShapeError):
            parse_shape(SHACL_PREFIXES + "ex:S1 a sh:NodeShape; sh:property [ sh:path ex:p ].")

    def test_sequence_path_is_rejected(self):
        text = SHACL_PREFIXES + """
        ex:S1 a sh:NodeShape; sh:targetClass ex:A;
            sh:property [ sh:path ( ex:p ex:q ) ].
        """
        with pytest.raises(ShapeError):
            parse_shape(text)

    def test_unparsable_document(self):
        with pytest.raises(ShapeError):
            parse_shape("@prefix broken")


class TestShapeIndex:
    """Test the target class index."""

    def test_lookup_by_type(self):
        index = ShapeIndex.from_texts([ENTITY_SHAPE, ANOTHER_ENTITY_SHAPE_WITH_PROPERTY])
        assert len(index) == 2
        assert index.get(EX.Entity).paths == [EX.prop2]
        assert index.find_for_types([EX.Unknown, EX.AnotherEntity]).paths == [EX.otherProp]
        assert index.find_for_types([]) is None

    def test_iteration_keeps_supplied_order(self):
        index = ShapeIndex.from_texts([ANOTHER_ENTITY_SHAPE, ENTITY_SHAPE])
        assert [shape.target_class for shape in index] == [EX.AnotherEntity, EX.Entity]

    def test_empty_index_is_falsy(self):
        assert not ShapeIndex.from_texts([])

    def test_duplicate_target_class_keeps_first(self):
        index = ShapeIndex.from_texts([ENTITY_SHAPE, SHACL_PREFIXES + "[] a sh:NodeShape; sh:targetClass ex:Entity."])
        assert len(index) == 1
        assert index.get(EX.Entity).paths == [EX.prop2]
