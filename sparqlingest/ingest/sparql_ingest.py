"""
SPARQL Ingest Processor

Consumes an ordered stream of RDF change records and turns each one into
SPARQL Update text: records are parsed, classified (create, update,
delete, transaction member), synthesized into queries and dispatched to
an output writer and/or a remote SPARQL endpoint.

Records are handled strictly one at a time. For each record the writer
output and the remote request run concurrently, and both complete before
the next record is read.
"""

import asyncio
import logging
import time
from typing import AsyncIterable, Iterable, List, Optional, Union

from rdflib import URIRef

from ..config.config_loader import IngestConfig
from ..db.graph_store_batcher import GraphStoreBatcher
from ..db.sparql_gateway import SparqlGateway
from ..errors import SparqlExecutionError
from ..rdf.rdf_utils import (
    RDFFormat,
    extract_sds_metadata,
    parse_record,
    sanitize_quads,
    strip_sds_wrapper,
)
from ..shacl.shape_index import ShapeIndex
from ..sparql.query_synthesizer import (
    QUERY_SEPARATOR,
    create_queries,
    delete_queries,
    update_queries,
)
from ..store.quad_store import QuadStore, is_default_graph
from ..utils.performance import RequestPerformanceLog
from .record_classifier import Buffered, Dispatch, RecordClassifier, TransactionDispatch
from .transaction import ChangeKind, TransactionMember
from .writers import QueryWriter


class SparqlIngest:
    """
    Record stream to SPARQL Update processor.

    Either sink is optional: without a gateway the queries are only
    written, without a writer they are only executed.
    """

    def __init__(self, config: IngestConfig,
                 sparql_writer: Optional[QueryWriter] = None,
                 gateway: Optional[SparqlGateway] = None,
                 record_format: Union[RDFFormat, str] = RDFFormat.TRIG,
                 batcher: Optional[GraphStoreBatcher] = None):
        """
        Initialize the processor.

        Args:
            config: Ingest configuration
            sparql_writer: Optional output channel for generated query text
            gateway: Remote endpoint; built from config.graph_store_url when omitted
            record_format: Syntax of incoming records
            batcher: Graph Store Protocol loader; built from config.replication_url
                when omitted. With a batcher, records are bulk-loaded without
                query synthesis.
        """
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.config = config
        self.sparql_writer = sparql_writer
        self.record_format = RDFFormat(record_format)

        if batcher is None and config.replication_url:
            batcher = GraphStoreBatcher(
                config.replication_url,
                batch_size=config.batch_size,
                access_token=config.access_token,
                timeout=config.request_timeout,
            )
        self.batcher = batcher

        if gateway is None and config.graph_store_url and batcher is None:
            gateway = SparqlGateway(
                config.graph_store_url,
                access_token=config.access_token,
                timeout=config.request_timeout,
            )
        self.gateway = gateway

        self.classifier = RecordClassifier(config)
        self.performance: Optional[RequestPerformanceLog] = None
        if config.measure_performance:
            self.performance = RequestPerformanceLog(
                config.measure_performance.name,
                config.measure_performance.output_path,
            )

        self._shape_index: Optional[ShapeIndex] = None
        self.records_processed = 0
        self.queries_generated = 0

    @property
    def shape_index(self) -> ShapeIndex:
        """SHACL shapes of the configured members, parsed on first use."""
        if self._shape_index is None:
            self._shape_index = ShapeIndex.from_texts(self.config.member_shapes)
        return self._shape_index

    def process_record(self, text: str) -> Optional[List[str]]:
        """
        Run one record through parsing, classification and synthesis.

        Args:
            text: Serialized record

        Returns:
            Generated statements, an empty list when the record produced none,
            or None while the record is buffered in an open transaction
        """
        self.logger.debug(f"Raw member data received: \n{text}")
        store = parse_record(text, self.record_format)
        self.logger.debug(f"Parsed {len(store)} quads from received member data")
        self.records_processed += 1
        return self.process_store(store)

    def process_store(self, store: QuadStore) -> Optional[List[str]]:
        outcome = self.classifier.classify(store)
        if isinstance(outcome, Buffered):
            return None
        if isinstance(outcome, TransactionDispatch):
            return [self.fold_transaction(outcome.members)]
        return self.build_queries(outcome)

    def build_queries(self, dispatch: Dispatch) -> List[str]:
        """Statements applying one classified member."""
        member = dispatch.member_iri
        subject = f"member {member}" if member is not None else f"received triples ({len(dispatch.store)})"

        if dispatch.change_kind is ChangeKind.CREATE:
            self.logger.info(f"Preparing 'INSERT DATA {{}}' SPARQL query for {subject}")
            return create_queries(dispatch.store, self.config.max_chunk_size, dispatch.named_graph)

        if dispatch.change_kind is ChangeKind.DELETE:
            self.logger.info(f"Preparing 'DELETE {{}} WHERE {{}}' SPARQL query for {subject}")
            return delete_queries(
                dispatch.store,
                [member] if member is not None else [],
                self.shape_index,
                dispatch.named_graph,
            )

        self.logger.info(f"Preparing 'DELETE {{}} WHERE {{}} + INSERT DATA {{}}' SPARQL query for {subject}")
        return update_queries(dispatch.store, self.config.max_chunk_size, dispatch.named_graph)

    def fold_transaction(self, members: List[TransactionMember]) -> str:
        """
        Build one multi-operation query for a completed transaction.

        Member stores are merged per change kind; the statements are emitted
        as creates, then updates, then deletes.
        """
        self.logger.info(
            f"Creating multi-operation SPARQL UPDATE query for {len(members)} "
            f"members of transaction {members[0].transaction_id}"
        )
        create_store = QuadStore()
        update_store = QuadStore()
        delete_store = QuadStore()
        delete_members: List[URIRef] = []

        for member in members:
            kind = member.change_kind or ChangeKind.UPDATE
            target = {
                ChangeKind.CREATE: create_store,
                ChangeKind.UPDATE: update_store,
                ChangeKind.DELETE: delete_store,
            }[kind]
            target.add_all(self._member_quads(member))
            if kind is ChangeKind.DELETE:
                delete_members.append(member.member_id)

        named_graph = URIRef(self.config.target_named_graph) if self.config.target_named_graph else None
        chunk_size = self.config.max_chunk_size
        statements: List[str] = []
        if len(create_store) > 0:
            statements.extend(create_queries(create_store, chunk_size, named_graph))
        if len(update_store) > 0:
            statements.extend(update_queries(update_store, chunk_size, named_graph))
        if delete_members:
            statements.extend(delete_queries(delete_store, delete_members, self.shape_index, named_graph))
        return QUERY_SEPARATOR.join(statements)

    def _member_quads(self, member: TransactionMember) -> Iterable:
        if not self.config.member_is_graph:
            return member.store
        # Default graph quads of a member-as-graph live in the member's own graph
        return (
            quad._replace(graph=member.member_id) if is_default_graph(quad.graph) else quad
            for quad in member.store
        )

    async def run(self, records: Union[AsyncIterable[str], Iterable[str]]) -> None:
        """
        Process a record stream to the end.

        Raises:
            IngestError: On the first fatal error; the writer and gateway are
                closed and the performance log written regardless
        """
        try:
            if hasattr(records, '__aiter__'):
                async for text in records:
                    await self.handle(text)
            else:
                for text in records:
                    await self.handle(text)
            self.classifier.finish()
        finally:
            await self.close()

    async def handle(self, text: str) -> None:
        if self.batcher is not None:
            await self.replicate(text)
            return
        queries = self.process_record(text)
        if queries is None:
            return
        if not queries:
            self.logger.warning("No query generated for received record")
            return
        await self.dispatch(QUERY_SEPARATOR.join(queries))

    async def dispatch(self, query_text: str) -> None:
        """Send one record's query text to the writer and the endpoint concurrently."""
        self.logger.debug(f"Complete SPARQL query generated for received member: \n{query_text}")
        self.queries_generated += 1
        tasks = []
        if self.gateway is not None:
            tasks.append(self._execute_remote(query_text))
        if self.sparql_writer is not None:
            tasks.append(self.sparql_writer.write(query_text))
        if tasks:
            # Let every task finish before surfacing a failure
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, BaseException):
                    raise result

    async def replicate(self, text: str) -> None:
        """Queue the member quads of one record for Graph Store Protocol loading."""
        store = parse_record(text, self.record_format)
        self.records_processed += 1
        metadata = extract_sds_metadata(store)
        if metadata is not None:
            strip_sds_wrapper(store, metadata)
        sanitize_quads(store)
        self.logger.debug(f"Queueing {len(store)} quads for replication")
        await self.batcher.batch_add(store)

    async def _execute_remote(self, query_text: str) -> None:
        t0 = time.perf_counter()
        try:
            await self.gateway.execute(query_text)
        except SparqlExecutionError as e:
            if self.performance is None or self.config.measure_performance.failure_is_fatal:
                self.logger.error(f"Error executing query on remote SPARQL server {self.gateway.endpoint_url}: {e}")
                raise
            self.logger.warning(f"Request failed and was recorded: {e}")
            self.performance.record_failure()
            return

        request_time = (time.perf_counter() - t0) * 1000
        if self.performance is not None:
            self.performance.record(request_time)
        self.logger.info(f"Executed query on remote SPARQL server {self.gateway.endpoint_url} (took {request_time:.0f} ms)")

    async def close(self) -> None:
        """Close the writer, flush the batcher, close the gateway and write the performance log."""
        try:
            if self.sparql_writer is not None:
                self.logger.info("Closing SPARQL writer")
                await self.sparql_writer.close()
        finally:
            try:
                if self.batcher is not None:
                    await self.batcher.close()
            finally:
                if self.gateway is not None:
                    await self.gateway.close()
                if self.performance is not None:
                    self.performance.write()
