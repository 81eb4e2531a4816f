"""Backend persisting ingested entities as JSON lines on disk."""
import os
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import structlog

from provgraph.backends.base import BackendArgs
from provgraph.backends.base import IngestibleBackend
from provgraph.backends.base import wraps_backend_errors
from provgraph.backends.graph import GraphStore
from provgraph.core.context import QueryContext
from provgraph.core.errors import GraphError
from provgraph.core.errors import QueryFailed
from provgraph.models.artifact import Artifact
from provgraph.models.base import GraphModel
from provgraph.models.node import parse_node_line

logger = structlog.get_logger('jsonl_backend')


@dataclass
class JsonlBackendArgs(BackendArgs):
    path: Path
    create: bool = False


class JsonlBackend(IngestibleBackend):
    """
    One `__typename`-tagged entity record per line.

    The file is append-only; reads replay it and merge records by identity.
    """
    name = 'jsonl'

    def __init__(self, args: JsonlBackendArgs):
        self.filepath = Path(args.path)
        self._write_lock = threading.Lock()
        if args.create:
            os.makedirs(self.filepath.parent, exist_ok=True)
            self.filepath.touch(exist_ok=True)

    @wraps_backend_errors(unavailable=(OSError,))
    def upsert(self, entities: Iterable[GraphModel]) -> int:
        count = 0
        with self._write_lock, open(self.filepath, 'a', encoding='utf-8') as f:
            for entity in entities:
                f.write(entity.model_dump_json(by_alias=True, exclude_none=True) + '\n')
                count += 1
            f.flush()
        logger.debug('Appended records', path=str(self.filepath), count=count)
        return count

    def _load(self, ctx: QueryContext) -> GraphStore:
        # Appends hold the same lock, so a read never sees half of a batch.
        with self._write_lock, open(self.filepath, encoding='utf-8') as f:
            lines = f.readlines()

        store = GraphStore()
        for lineno, line in enumerate(lines, 1):
            ctx.check()
            if not line.strip():
                continue
            try:
                store.add(parse_node_line(line))
            except GraphError:
                logger.error('Invalid record', path=str(self.filepath), line=lineno)
                raise
            except ValueError as e:
                raise QueryFailed(f"{self.filepath}:{lineno}: {e}") from e
        logger.debug('Loaded records', path=str(self.filepath), nodes=len(store))
        return store

    @wraps_backend_errors(unavailable=(OSError,))
    def list_artifacts(self, ctx: QueryContext) -> list[Artifact]:
        ctx.check()
        return self._load(ctx).materialize_artifacts(ctx)
