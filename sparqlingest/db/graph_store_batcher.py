"""
Graph Store Protocol batch loader.

Replication mode skips query synthesis: raw quads are accumulated and
posted per graph to a SPARQL 1.1 Graph Store Protocol endpoint once the
batch is full, or when flushed explicitly.
"""

import asyncio
import logging
from typing import Iterable, Optional
from urllib.parse import urlencode

import aiohttp
from rdflib import Graph

from ..errors import SparqlExecutionError
from ..store.quad_store import QuadStore, is_default_graph


def to_ntriples(store: QuadStore) -> str:
    """Serialize the triples of a store as N-Triples, ignoring graphs."""
    graph = Graph()
    for quad in store:
        graph.add((quad.subject, quad.predicate, quad.object))
    return graph.serialize(format='nt')


class GraphStoreBatcher:
    """Accumulates quads and bulk-loads them with Graph Store Protocol POSTs."""

    def __init__(self, graph_store_url: str, batch_size: int = 10000,
                 access_token: Optional[str] = None, timeout: Optional[float] = None):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.graph_store_url = graph_store_url
        self.batch_size = batch_size
        self.access_token = access_token
        self.timeout = timeout
        self.pending = QuadStore()
        self.loaded = 0
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
        return self._session

    def graph_url(self, graph) -> str:
        """Graph Store Protocol URL addressing one graph (or the default graph)."""
        query = 'default' if is_default_graph(graph) else urlencode({'graph': str(graph)})
        if self.access_token:
            query += '&' + urlencode({'access-token': self.access_token})
        separator = '&' if '?' in self.graph_store_url else '?'
        return f"{self.graph_store_url}{separator}{query}"

    async def batch_add(self, quads: Iterable) -> None:
        """
        Queue quads, flushing once the batch size is reached.

        The quads of one call are never split across requests, so blank
        nodes of a record keep their identity.
        """
        self.pending.add_all(quads)
        if len(self.pending) >= self.batch_size:
            await self.flush()

    async def flush(self) -> int:
        """
        Post every pending quad, one request per graph.

        Returns:
            Number of quads sent

        Raises:
            SparqlExecutionError: If the store rejects a request
        """
        if len(self.pending) == 0:
            return 0

        batch, self.pending = self.pending, QuadStore()
        session = await self._get_session()
        for graph, sub_store in batch.split_per_graph():
            url = self.graph_url(graph)
            body = to_ntriples(sub_store)
            self.logger.info(f"Posting {len(sub_store)} quads to {url}")
            try:
                async with session.post(url, data=body.encode('utf-8'),
                                        headers={'Content-Type': 'application/n-triples'}) as response:
                    if not 200 <= response.status < 300:
                        error_text = await response.text()
                        self.logger.error(f"Graph store request failed: {response.status} - {error_text}")
                        raise SparqlExecutionError(response.status, error_text, url)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                self.logger.error(f"Error posting to graph store: {e!r}")
                raise SparqlExecutionError(None, repr(e), url) from e

        self.loaded += len(batch)
        return len(batch)

    async def close(self) -> None:
        """Flush what is left and close the HTTP session."""
        try:
            await self.flush()
        finally:
            if self._session and not self._session.closed:
                await self._session.close()
            self._session = None
