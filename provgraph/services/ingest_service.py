"""Loads post-parse entity records into a writable backend."""
import json
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

import structlog

from provgraph.backends.base import IngestibleBackend
from provgraph.core.errors import GraphError
from provgraph.core.errors import InvalidIdentity
from provgraph.core.stats import BaseStats
from provgraph.models.base import GraphModel
from provgraph.models.node import parse_node

logger = structlog.get_logger('ingest_service')

BATCH_SIZE = 1000


@dataclass
class IngestStats(BaseStats):
    nodes: int = 0
    errors: list[tuple[int, str]] = field(default_factory=list)


class IngestError(GraphError):
    """A record in an ingestion file could not be turned into a node."""
    code = 'INGEST_FAILED'

    def __init__(self, path: Path, lineno: int, cause: Exception):
        super().__init__(f"{path}:{lineno}: {cause}")
        self.path = path
        self.lineno = lineno
        self.cause = cause


class IngestService:
    """
    Reads JSONL entity records (`__typename`-tagged) and upserts them.

    In strict mode the first bad record aborts the run; otherwise bad
    records are counted and reported in the stats.
    """

    def __init__(self, backend: IngestibleBackend, batch_size: int = BATCH_SIZE):
        self.backend = backend
        self.batch_size = batch_size

    def _flush(self, batch: list[GraphModel], stats: IngestStats) -> None:
        if not batch:
            return
        stats.nodes += self.backend.upsert(batch)
        logger.info('Batch upserted', backend=self.backend.name, count=len(batch))
        batch.clear()

    def ingest_file(
        self,
        input_file: Path,
        strict: bool = True,
        progress_callback: Callable[[], None] | None = None,
    ) -> IngestStats:
        stats = IngestStats()
        batch: list[GraphModel] = []

        with open(input_file, encoding='utf-8') as f:
            for lineno, line in enumerate(f, 1):
                if not line.strip():
                    continue
                stats.inc_total()
                try:
                    batch.append(parse_node(json.loads(line)))
                except (GraphError, ValueError) as e:
                    if strict:
                        raise IngestError(input_file, lineno, e) from e
                    level = 'error' if isinstance(e, InvalidIdentity) else 'warning'
                    getattr(logger, level)(
                        'Invalid record', path=str(input_file), line=lineno, error=str(e),
                    )
                    stats.errors.append((lineno, str(e)))
                    stats.inc_failed()
                    continue
                finally:
                    if progress_callback:
                        progress_callback()

                if len(batch) >= self.batch_size:
                    self._flush(batch, stats)

        self._flush(batch, stats)
        logger.info(
            'Ingestion Complete', path=str(input_file), nodes=stats.nodes,
            failed=stats.failed, elapsed=f"{stats.elapsed_time:.3f}s",
        )
        return stats
