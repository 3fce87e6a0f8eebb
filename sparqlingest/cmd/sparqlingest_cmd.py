#!/usr/bin/env python3
"""
SPARQL Ingest Command Line Interface

Feeds RDF change records (one record per file, processed in the given
order) through the ingest processor and writes the generated SPARQL
Update text and/or executes it on the configured endpoint.
"""

import argparse
import asyncio
import logging
import sys
from typing import List

from tabulate import tabulate

from .. import __version__
from ..config.config_loader import ConfigurationError, IngestConfig, SparqlIngestConfig
from ..errors import IngestError
from ..ingest.sparql_ingest import SparqlIngest
from ..ingest.writers import FileWriter, StreamWriter
from ..rdf.rdf_utils import RDFFormat

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments for the ingest CLI."""
    parser = argparse.ArgumentParser(
        description="sparqlingest - Turn RDF change records into SPARQL Update queries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sparqlingest record1.trig record2.trig           # Print generated queries
  sparqlingest --config ingest.yaml records/*.trig  # Execute on the configured endpoint
  cat record.ttl | sparqlingest --format turtle -   # Read one record from stdin
  sparqlingest --config ingest.yaml --dry-run --output queries.rq records/*.trig
        """
    )

    parser.add_argument(
        "records",
        nargs="*",
        default=["-"],
        help="Record files, processed in order ('-' reads one record from stdin)"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        help="YAML configuration file with an 'ingest' section"
    )

    parser.add_argument(
        "--format", "-f",
        choices=[fmt.value for fmt in RDFFormat],
        default=RDFFormat.TRIG.value,
        help="Syntax of the records. Default: trig"
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Append generated queries to this file instead of stdout"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Do not contact the graph store, only write the queries"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        help="Logging level (overrides app.log_level from the configuration)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"sparqlingest {__version__}"
    )

    return parser.parse_args(argv)


def read_records(paths: List[str]):
    """Yield record texts in the given order."""
    for path in paths:
        if path == "-":
            yield sys.stdin.read()
        else:
            with open(path, 'r', encoding='utf-8') as f:
                yield f.read()


def print_summary(processor: SparqlIngest) -> None:
    rows = [
        ["Records processed", processor.records_processed],
        ["Queries dispatched", processor.queries_generated],
    ]
    if processor.gateway is not None:
        rows.append(["Endpoint", processor.gateway.endpoint_url])
    if processor.batcher is not None:
        rows.append(["Quads replicated", processor.batcher.loaded])
        rows.append(["Graph store", processor.batcher.graph_store_url])
    if processor.performance is not None:
        rows.append(["Failed requests", processor.performance.failures])
        rows.append(["Timings written to", str(processor.performance.file_path)])
    print(tabulate(rows, headers=["Ingest summary", ""], tablefmt="simple"), file=sys.stderr)


def main(argv=None):
    """Main entry point for the sparqlingest command-line interface."""
    args = parse_args(argv)

    try:
        if args.config:
            loader = SparqlIngestConfig(args.config)
            config = loader.get_ingest_config()
            log_level = args.log_level or loader.get_log_level()
        else:
            config = IngestConfig()
            log_level = args.log_level or 'INFO'
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(level=getattr(logging, log_level.upper(), logging.INFO), format=LOG_FORMAT)

    if args.dry_run:
        config.graph_store_url = None
        config.replication_url = None

    writer = None
    if args.output:
        writer = FileWriter(args.output)
    elif args.dry_run or not config.graph_store_url:
        writer = StreamWriter(sys.stdout)

    processor = SparqlIngest(config, sparql_writer=writer, record_format=args.format)

    try:
        asyncio.run(processor.run(read_records(args.records)))
    except IngestError as e:
        print(f"Ingest failed: {e}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"Error reading records: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)

    print_summary(processor)


if __name__ == "__main__":
    main()
