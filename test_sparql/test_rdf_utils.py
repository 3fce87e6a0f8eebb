"""Tests for record-level RDF utilities

Tests record parsing, SDS envelope detection and removal, and integer
literal sanitization.
"""

import sys
from pathlib import Path

import pytest
from rdflib import Literal
from rdflib.namespace import XSD

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sparqlingest.errors import MalformedRecordError
from sparqlingest.rdf.rdf_utils import (
    SDS,
    SDS_DATA_DESCRIPTION,
    RDFFormat,
    extract_sds_metadata,
    parse_record,
    sanitize_quads,
    strip_sds_wrapper,
)
from sparqlingest.store.quad_store import QuadStore
from test_sparql.fixtures.sample_records import (
    ENTITY,
    EX,
    PREFIXES,
    create_entity_record,
    create_metadata_graph_record,
    create_plain_record,
)


def test_parse_record_turtle_and_trig():
    store = parse_record(create_entity_record())
    assert len(store) == 8

    store = parse_record(create_plain_record(), RDFFormat.TURTLE)
    assert len(store) == 2


def test_parse_record_rejects_garbage():
    with pytest.raises(MalformedRecordError):
        parse_record("this is { not RDF")


def test_extract_metadata_from_default_graph_wrapper():
    store = parse_record(create_entity_record())
    metadata = extract_sds_metadata(store)

    assert metadata.member == ENTITY
    assert metadata.stream == EX.sdsStream
    assert metadata.in_metadata_graph is False

    removed = strip_sds_wrapper(store, metadata)
    assert len(removed) == 2
    assert store.match(None, SDS.payload) == []
    assert store.match(None, SDS.stream) == []
    assert len(store) == 6


def test_extract_metadata_from_data_description_graph():
    store = parse_record(create_metadata_graph_record())
    metadata = extract_sds_metadata(store)

    assert metadata.member == ENTITY
    assert metadata.in_metadata_graph is True

    strip_sds_wrapper(store, metadata)
    assert store.match(graph=SDS_DATA_DESCRIPTION) == []
    assert len(store.match(ENTITY)) == 3


def test_non_sds_record_has_no_metadata():
    store = parse_record(create_plain_record())
    assert extract_sds_metadata(store) is None


def test_stream_without_payload_is_malformed():
    store = parse_record(PREFIXES + "[] sds:stream ex:sdsStream.")
    with pytest.raises(MalformedRecordError):
        extract_sds_metadata(store)


def test_literal_payload_is_malformed():
    store = parse_record(PREFIXES + '[] sds:stream ex:sdsStream; sds:payload "not an IRI".')
    with pytest.raises(MalformedRecordError):
        extract_sds_metadata(store)


def test_sanitize_signed_integers():
    signed = Literal("+30", datatype=XSD.integer, normalize=False)
    store = QuadStore([
        (EX.a, EX.age, signed),
        (EX.a, EX.label, Literal("+30")),
        (EX.a, EX.amount, Literal(5)),
    ])

    assert sanitize_quads(store) == 1
    ages = store.objects(EX.a, EX.age)
    assert [str(age) for age in ages] == ["30"]
    assert ages[0].datatype == XSD.integer
    # Plain strings keep their sign
    assert str(store.objects(EX.a, EX.label)[0]) == "+30"
