"""
Transaction buffering.

Members that carry a transaction id are held back until the member with
the transaction-end marker arrives. The buffer is an explicit state value:
Idle, or Accumulating(transaction_id, members). advance() is a pure
transition function over it.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

from rdflib import URIRef
from rdflib.term import Node

from ..errors import TransactionError
from ..store.quad_store import QuadStore

logger = logging.getLogger(__name__)


class ChangeKind(Enum):
    """Kind of change a member applies to the target store."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class TransactionMember:
    """One buffered member of an open transaction."""
    member_id: URIRef
    transaction_id: Node
    store: QuadStore
    change_kind: Optional[ChangeKind] = None


@dataclass(frozen=True)
class Idle:
    """No transaction is open."""
    pass


@dataclass(frozen=True)
class Accumulating:
    """A transaction is open and members are being buffered."""
    transaction_id: Node
    members: Tuple[TransactionMember, ...] = field(default_factory=tuple)


TransactionState = Union[Idle, Accumulating]


def advance(state: TransactionState,
            member: TransactionMember,
            is_last: bool) -> Tuple[TransactionState, Optional[List[TransactionMember]]]:
    """
    Apply one transaction member to the buffer state.

    Args:
        state: Current buffer state
        member: Incoming member
        is_last: Whether the member carries the transaction-end marker

    Returns:
        Tuple of (new state, completed members or None while still open)

    Raises:
        TransactionError: If the member's transaction id differs from the open one
    """
    if isinstance(state, Accumulating):
        if member.transaction_id != state.transaction_id:
            raise TransactionError(
                f"Received non-matching transaction ID {member.transaction_id} "
                f"while transaction {state.transaction_id} hasn't been finalized"
            )
        members = state.members + (member,)
        if is_last:
            return Idle(), list(members)
        return Accumulating(state.transaction_id, members), None

    if is_last:
        return Idle(), [member]
    logger.info(f"New transaction {member.transaction_id} started")
    return Accumulating(member.transaction_id, (member,)), None


def ensure_closed(state: TransactionState) -> None:
    """Raise if a transaction is still open, e.g. when the stream ends."""
    if isinstance(state, Accumulating):
        raise TransactionError(
            f"Transaction {state.transaction_id} was not finalized: "
            f"{len(state.members)} buffered member(s) would be lost"
        )
