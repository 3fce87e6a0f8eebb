"""
Exception hierarchy for SPARQL Ingest.

Every fatal condition of the ingest pipeline is raised as a subclass of
IngestError so callers can stop a stream on any of them with one handler.
"""

from typing import Optional


class IngestError(Exception):
    """Base class for all ingest pipeline errors."""
    pass


class MalformedRecordError(IngestError):
    """Raised when a record cannot be parsed or has no usable member IRI."""
    pass


class ChangeTypeError(IngestError):
    """Raised when a member's change type is missing or not recognized."""
    pass


class TransactionError(IngestError):
    """Raised on transaction protocol violations."""
    pass


class ShapeError(IngestError):
    """Raised when a SHACL shape document cannot be indexed."""
    pass


class SparqlExecutionError(IngestError):
    """
    Raised when the remote SPARQL endpoint rejects a request.

    Attributes:
        status: HTTP status code, or None when the request never got a response
        body: Response body (or transport error text) for diagnostics
    """

    def __init__(self, status: Optional[int], body: str, url: Optional[str] = None):
        self.status = status
        self.body = body
        self.url = url
        super().__init__(f"HTTP request failed with code {status} and message: \n{body}")
