"""
SPARQL Ingest Query Writers

Async output channels for generated query text. The processor writes one
text block per record (statements already joined with ';\\n').
"""

import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, TextIO, Union

import aiofiles


class QueryWriter(ABC):
    """Abstract base class for query output channels."""

    @abstractmethod
    async def write(self, query_text: str) -> None:
        """Write the query text of one record."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the channel. No writes are allowed afterwards."""
        pass


class ListWriter(QueryWriter):
    """Writer that collects query texts in memory."""

    def __init__(self):
        self.queries: List[str] = []
        self.closed = False

    async def write(self, query_text: str) -> None:
        if self.closed:
            raise RuntimeError("Writer has been closed")
        self.queries.append(query_text)

    async def close(self) -> None:
        self.closed = True


class FileWriter(QueryWriter):
    """Writer that appends query texts to a file, separated by a blank line."""

    def __init__(self, file_path: Union[str, Path], create_dirs: bool = True):
        self.file_path = Path(file_path)
        self._file_handle = None

        if create_dirs:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)

    async def write(self, query_text: str) -> None:
        if self._file_handle is None:
            self._file_handle = await aiofiles.open(self.file_path, 'a', encoding='utf-8')
        await self._file_handle.write(query_text + "\n\n")
        await self._file_handle.flush()

    async def close(self) -> None:
        if self._file_handle:
            await self._file_handle.close()
            self._file_handle = None


class StreamWriter(QueryWriter):
    """Writer for an already open text stream, stdout by default."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout

    async def write(self, query_text: str) -> None:
        self.stream.write(query_text + "\n\n")
        self.stream.flush()

    async def close(self) -> None:
        self.stream.flush()
