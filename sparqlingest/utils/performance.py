"""
Request timing log.

Durations of remote requests in milliseconds, with -1 marking a failed
request, written as a JSON array to <output_path>/<name>.json.
"""

import json
import logging
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

FAILED_REQUEST = -1


class RequestPerformanceLog:
    """Collects per-request durations for one run."""

    def __init__(self, name: str, output_path: str):
        self.name = name
        self.output_path = output_path
        self.durations: List[float] = []

    def record(self, duration_ms: float) -> None:
        self.durations.append(duration_ms)

    def record_failure(self) -> None:
        self.durations.append(FAILED_REQUEST)

    @property
    def failures(self) -> int:
        return sum(1 for d in self.durations if d == FAILED_REQUEST)

    @property
    def file_path(self) -> Path:
        return Path(self.output_path) / f"{self.name}.json"

    def write(self) -> Path:
        """Write the durations and return the file path."""
        path = self.file_path
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.durations, f)
        logger.info(f"Wrote {len(self.durations)} request timings ({self.failures} failed) to {path}")
        return path
