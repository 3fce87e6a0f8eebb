"""
SPARQL Update Gateway for SPARQL Ingest

Executes generated SPARQL Update text against a remote endpoint over HTTP.
The request body is form-encoded under the `update` key (older endpoints
expect `query`), optionally followed by an `access-token` parameter.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import quote

import aiohttp

from ..errors import SparqlExecutionError

FORM_CONTENT_TYPE = 'application/x-www-form-urlencoded; charset=UTF-8'


class SparqlGateway:
    """
    Remote execution of SPARQL Update requests.

    One aiohttp session is opened lazily and reused for every request.
    Retrying failed requests is left to the caller.
    """

    def __init__(self, endpoint_url: str, access_token: Optional[str] = None,
                 timeout: Optional[float] = None, form_key: str = 'update'):
        """
        Initialize the gateway.

        Args:
            endpoint_url: SPARQL Update endpoint URL
            access_token: Optional token appended as `access-token`
            timeout: Optional total request timeout in seconds
            form_key: Form key carrying the query text
        """
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.endpoint_url = endpoint_url
        self.access_token = access_token
        self.timeout = timeout
        self.form_key = form_key
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    def build_body(self, query_text: str) -> str:
        """Form-encoded request body for a query text."""
        body = f"{self.form_key}={quote(query_text, safe='')}"
        if self.access_token:
            body += f"&access-token={quote(self.access_token, safe='')}"
        return body

    async def execute(self, query_text: str) -> None:
        """
        POST a SPARQL Update to the endpoint.

        Args:
            query_text: One or more statements joined with ';\\n'

        Raises:
            SparqlExecutionError: On a non-2xx response or a transport failure
        """
        self.logger.debug(f"Executing query on {self.endpoint_url}:\n{query_text}")
        session = await self._get_session()
        try:
            async with session.post(
                self.endpoint_url,
                data=self.build_body(query_text),
                headers={'Content-Type': FORM_CONTENT_TYPE}
            ) as response:
                if 200 <= response.status < 300:
                    self.logger.debug(f"SPARQL update executed successfully ({response.status})")
                    return
                error_text = await response.text()
                self.logger.error(f"SPARQL update failed: {response.status} - {error_text}")
                raise SparqlExecutionError(response.status, error_text, self.endpoint_url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Error executing SPARQL update: {e!r}")
            raise SparqlExecutionError(None, repr(e), self.endpoint_url) from e

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> 'SparqlGateway':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
