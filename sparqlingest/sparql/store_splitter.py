"""
Oversize splitting of quad sets.

Large INSERT DATA payloads are cut into chunks so a single request stays
below a store's statement limit (Virtuoso translates each update into SQL
and fails beyond roughly 10000 generated lines). Blank node closures are
never torn across chunks, since a blank node label only identifies the
same node within one operation.
"""

import logging
from collections import deque
from typing import Iterable, List, Set

from rdflib import BNode

from ..store.quad_store import Quad, QuadStore

logger = logging.getLogger(__name__)

# Empirical chunk size keeping Virtuoso below its SQL code line limit
VIRTUOSO_CHUNK_SIZE = 500
# Other stores usually benefit from large requests
DEFAULT_CHUNK_SIZE = 50000


def chunk_size_for(for_virtuoso: bool) -> int:
    return VIRTUOSO_CHUNK_SIZE if for_virtuoso else DEFAULT_CHUNK_SIZE


def blank_node_closure(store: QuadStore, node: BNode) -> List[Quad]:
    """
    Collect every quad needed to describe a blank node.

    Includes the quads where the node is subject or object, and follows
    any further blank nodes reached that way.
    """
    closure: List[Quad] = []
    collected: Set[Quad] = set()
    pending = deque([node])
    visited = {node}
    while pending:
        current = pending.popleft()
        for quad in store.match(current, None, None) + store.match(None, None, current):
            if quad in collected:
                continue
            collected.add(quad)
            closure.append(quad)
            for term in (quad.subject, quad.object):
                if isinstance(term, BNode) and term not in visited:
                    visited.add(term)
                    pending.append(term)
    return closure


def split_store_on_size(quads: Iterable[Quad], threshold: int) -> List[QuadStore]:
    """
    Partition quads into chunks of about threshold quads.

    A chunk may exceed the threshold when a blank node closure has to stay
    whole. Every input quad lands in exactly one chunk.

    Args:
        quads: QuadStore or iterable of quads, in the order to keep
        threshold: Target number of quads per chunk

    Returns:
        List of QuadStore chunks
    """
    if threshold < 1:
        raise ValueError(f"Chunk threshold must be positive, got {threshold}")

    store = quads if isinstance(quads, QuadStore) else QuadStore(quads)
    chunks: List[QuadStore] = []
    current = QuadStore()
    seen: Set[Quad] = set()

    for quad in store:
        if quad in seen:
            continue
        if len(current) >= threshold:
            chunks.append(current)
            current = QuadStore()

        for term in (quad.subject, quad.object):
            if isinstance(term, BNode):
                for closure_quad in blank_node_closure(store, term):
                    if closure_quad not in seen:
                        seen.add(closure_quad)
                        current.add(closure_quad)

        if quad not in seen:
            seen.add(quad)
            current.add(quad)

    if len(current) > 0:
        chunks.append(current)

    logger.debug(f"Split {len(store)} quads into {len(chunks)} chunk(s) of at most ~{threshold}")
    return chunks
