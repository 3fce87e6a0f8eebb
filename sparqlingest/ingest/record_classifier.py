"""
Record classification.

Decides what to do with one parsed record: dispatch it as a create, update
or delete of its member, hold it back as part of an open transaction, or
release a completed transaction. SDS envelope triples, transaction
markers and the change-type triple are removed from the record here so
they never reach the generated queries.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Union

from rdflib import URIRef
from rdflib.term import Node

from ..config.config_loader import IngestConfig
from ..errors import ChangeTypeError, TransactionError
from ..rdf.rdf_utils import extract_sds_metadata, first_object, sanitize_quads, strip_sds_wrapper
from ..store.quad_store import QuadStore
from .transaction import (
    ChangeKind,
    Idle,
    TransactionMember,
    TransactionState,
    advance,
    ensure_closed,
)


@dataclass
class Dispatch:
    """A single member ready for query synthesis."""
    store: QuadStore
    member_iri: Optional[URIRef]
    change_kind: ChangeKind
    named_graph: Optional[URIRef] = None


@dataclass
class TransactionDispatch:
    """A completed transaction ready to be folded into one query."""
    transaction_id: Node
    members: List[TransactionMember]


@dataclass(frozen=True)
class Buffered:
    """The record joined an open transaction; nothing to emit yet."""
    transaction_id: Node


Outcome = Union[Dispatch, TransactionDispatch, Buffered]


class RecordClassifier:
    """
    Stateful classifier for one ordered record stream.

    The only state kept between records is the transaction buffer.
    """

    def __init__(self, config: IngestConfig):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.config = config
        self.state: TransactionState = Idle()

    @property
    def in_transaction(self) -> bool:
        return not isinstance(self.state, Idle)

    def named_graph_for(self, member_iri: Optional[URIRef]) -> Optional[URIRef]:
        """Graph receiving a member's default-graph quads, if any."""
        if self.config.member_is_graph and member_iri is not None:
            return member_iri
        if self.config.target_named_graph:
            return URIRef(self.config.target_named_graph)
        return None

    def classify(self, store: QuadStore) -> Outcome:
        """
        Classify one parsed record. The store is modified in place.

        Args:
            store: Quads of the record

        Returns:
            Dispatch, TransactionDispatch or Buffered

        Raises:
            MalformedRecordError: SDS envelope without usable member
            ChangeTypeError: Missing or unknown change type
            TransactionError: Transaction protocol violation
        """
        metadata = extract_sds_metadata(store)

        if metadata is None:
            self._ensure_no_open_transaction("non-SDS record")
            change_kind = self._change_kind(store, None) if self.config.change_semantics else ChangeKind.UPDATE
            sanitize_quads(store)
            self.logger.debug(f"Non-SDS record with {len(store)} quads classified as {change_kind.value}")
            return Dispatch(store, None, change_kind, self.named_graph_for(None))

        member = metadata.member
        self.logger.debug(f"Member IRI found in SDS metadata: {member}")
        strip_sds_wrapper(store, metadata)

        transaction = self.config.transaction_config
        if transaction is not None:
            id_quad = first_object(store, member, URIRef(transaction.transaction_id_path))
            if id_quad is not None:
                return self._handle_transaction_member(store, member, id_quad.object)

        self._ensure_no_open_transaction(f"member {member}")

        if self.config.change_semantics is None:
            change_kind = ChangeKind.UPDATE
        else:
            change_kind = self._change_kind(store, member)
        sanitize_quads(store)
        return Dispatch(store, member, change_kind, self.named_graph_for(member))

    def finish(self) -> None:
        """Signal end of stream; raises if a transaction is still open."""
        ensure_closed(self.state)

    def _handle_transaction_member(self, store: QuadStore, member: URIRef, transaction_id: Node) -> Outcome:
        transaction = self.config.transaction_config
        store.remove_matching(member, URIRef(transaction.transaction_id_path), transaction_id)

        end_markers = store.remove_matching(member, URIRef(transaction.transaction_end_path), None)
        is_last = bool(end_markers)

        change_kind = self._change_kind(store, member) if self.config.change_semantics else None
        sanitize_quads(store)

        transaction_member = TransactionMember(
            member_id=member,
            transaction_id=transaction_id,
            store=store,
            change_kind=change_kind,
        )
        try:
            self.state, completed = advance(self.state, transaction_member, is_last)
        except Exception as e:
            self.logger.error(str(e))
            raise

        if completed is None:
            self.logger.debug(f"Buffered member {member} of transaction {transaction_id}")
            return Buffered(transaction_id)

        self.logger.info(f"Last member of {transaction_id} received!")
        return TransactionDispatch(transaction_id, completed)

    def _ensure_no_open_transaction(self, what: str) -> None:
        if self.in_transaction:
            # Buffered members must be applied first
            message = (
                f"Received {what} without transaction ID while transaction "
                f"{self.state.transaction_id} hasn't been finalized"
            )
            self.logger.error(message)
            raise TransactionError(message)

    def _change_kind(self, store: QuadStore, member: Optional[URIRef]) -> ChangeKind:
        """
        Read and remove the change-type triple of a member.

        For non-SDS records (member None) the triple is optional and its
        absence means UPDATE.
        """
        semantics = self.config.change_semantics
        change_quad = first_object(store, member, URIRef(semantics.change_type_path))
        if change_quad is None:
            if member is None:
                return ChangeKind.UPDATE
            message = f"Member {member} has no change type ({semantics.change_type_path})"
            self.logger.error(message)
            raise ChangeTypeError(message)

        store.remove(change_quad)
        value = str(change_quad.object)
        if value == semantics.create_value:
            return ChangeKind.CREATE
        if value == semantics.update_value:
            return ChangeKind.UPDATE
        if value == semantics.delete_value:
            return ChangeKind.DELETE

        message = f"Unrecognized change type value: {value}"
        self.logger.error(message)
        raise ChangeTypeError(message)
