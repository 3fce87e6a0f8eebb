"""Sample Change Records

Record, shape and configuration fixtures for SPARQL Ingest tests. Records
are written in Turtle/TriG with the SDS envelope either in the default
graph or in the sds:DataDescription metadata graph.
"""

from typing import Optional

from rdflib import Namespace, URIRef

EX = Namespace("https://example.org/ns#")
ENTITY = URIRef("https://example.org/entity/Entity")
NAMED_GRAPH_MEMBER = URIRef("https://example.org/namedGraphs/Graph")

PREFIXES = """
@prefix xsd: <http://www.w3.org/2001/XMLSchema#>.
@prefix sds: <https://w3id.org/sds#>.
@prefix ex:  <https://example.org/ns#>.
@prefix dct: <http://purl.org/dc/terms/>.
"""

CHANGE_SEMANTICS = {
    'changeTypePath': "https://example.org/ns#changeType",
    'createValue': "https://example.org/ns#Create",
    'updateValue': "https://example.org/ns#Update",
    'deleteValue': "https://example.org/ns#Delete",
}

TRANSACTION_CONFIG = {
    'transactionIdPath': "https://example.org/ns#transactionId",
    'transactionEndPath': "https://example.org/ns#isLastOfTransaction",
}

CREATE = CHANGE_SEMANTICS['createValue']
UPDATE = CHANGE_SEMANTICS['updateValue']
DELETE = CHANGE_SEMANTICS['deleteValue']


def create_entity_record(change_type: Optional[str] = None, extra: str = "") -> str:
    """Entity member with a nested blank node, SDS envelope in the default graph."""
    change = f"ex:changeType <{change_type}>;" if change_type else ""
    return f"""
{PREFIXES}

[] sds:stream ex:sdsStream;
    sds:payload <https://example.org/entity/Entity>.

<https://example.org/entity/Entity> a ex:Entity;
    {change}
    {extra}
    ex:prop1 "some value";
    ex:prop2 [
        a ex:NestedEntity;
        ex:nestedProp "some other value"
    ];
    ex:prop3 ex:SomeNamedNode.
"""


def create_metadata_graph_record(change_type: Optional[str] = None) -> str:
    """Entity member with the SDS envelope in the sds:DataDescription graph."""
    change = f"ex:changeType <{change_type}>;" if change_type else ""
    return f"""
{PREFIXES}

sds:DataDescription {{
    [] sds:stream ex:sdsStream;
        sds:payload <https://example.org/entity/Entity>.
}}

<https://example.org/entity/Entity> a ex:Entity;
    {change}
    ex:prop1 "some value";
    ex:prop3 ex:SomeNamedNode.
"""


def create_type_only_record(change_type: str, with_type: bool = True) -> str:
    """Property-less member: only the (optional) type and the change type."""
    rdf_type = "a ex:Entity;" if with_type else ""
    return f"""
{PREFIXES}

[] sds:stream ex:sdsStream;
    sds:payload <https://example.org/entity/Entity>.

<https://example.org/entity/Entity> {rdf_type}
    ex:changeType <{change_type}>.
"""


def create_graph_member_record(change_type: Optional[str] = None) -> str:
    """Member modeled as a named graph holding two entities."""
    change = f"<https://example.org/namedGraphs/Graph> ex:changeType <{change_type}>." if change_type else ""
    return f"""
{PREFIXES}

[] sds:stream ex:sdsStream;
    sds:payload <https://example.org/namedGraphs/Graph>.

{change}

<https://example.org/namedGraphs/Graph> {{
    <https://example.org/entity/Entity_A> a ex:Entity;
        ex:prop1 "some value";
        ex:prop2 [
            a ex:NestedEntity;
            ex:nestedProp "some other value"
        ].

    <https://example.org/entity/Entity_B> a ex:Entity;
        ex:prop1 "another value".
}}
"""


def create_transaction_record(member: str, change_type: str, transaction_id: str,
                              body: str = "a ex:Entity", is_last: bool = False) -> str:
    """Transaction member; body holds the member's predicate-object pairs."""
    end = 'ex:isLastOfTransaction "true";' if is_last else ""
    return f"""
{PREFIXES}

[] sds:stream ex:sdsStream;
    sds:payload <{member}>.

<{member}> ex:changeType <{change_type}>;
    ex:transactionId "{transaction_id}";
    {end}
    {body}.
"""


def create_plain_record() -> str:
    """Non-SDS content."""
    return f"""
{PREFIXES}

ex:Thing1 a ex:Entity;
    ex:prop1 "plain".
"""


ENTITY_SHAPE = """
@prefix sh: <http://www.w3.org/ns/shacl#>.
@prefix ex: <https://example.org/ns#>.

[] a sh:NodeShape;
  sh:targetClass ex:Entity;
  sh:property [
    sh:path ex:prop2;
    sh:node [
      a sh:NodeShape;
      sh:targetClass ex:NestedEntity
    ]
  ].
"""

ANOTHER_ENTITY_SHAPE = """
@prefix sh: <http://www.w3.org/ns/shacl#>.
@prefix ex: <https://example.org/ns#>.

[] a sh:NodeShape;
  sh:targetClass ex:AnotherEntity.
"""

ANOTHER_ENTITY_SHAPE_WITH_PROPERTY = """
@prefix sh: <http://www.w3.org/ns/shacl#>.
@prefix ex: <https://example.org/ns#>.

[] a sh:NodeShape;
  sh:targetClass ex:AnotherEntity;
  sh:property [
    sh:path ex:otherProp;
    sh:node [
      a sh:NodeShape;
      sh:targetClass ex:AnotherNestedEntity
    ]
  ].
"""

ORDERED_SHAPE = """
@prefix sh: <http://www.w3.org/ns/shacl#>.
@prefix xsd: <http://www.w3.org/2001/XMLSchema#>.
@prefix ex: <https://example.org/ns#>.

ex:OrderedShape a sh:NodeShape;
  sh:targetClass ex:Ordered;
  sh:property [ sh:path ex:second; sh:order 2 ];
  sh:property [ sh:path ex:label; sh:datatype xsd:string; sh:order 3 ];
  sh:property [ sh:path ex:first; sh:order 1 ].
"""
