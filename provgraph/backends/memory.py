"""In-process reference backend."""
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field

import structlog

from provgraph.backends.base import BackendArgs
from provgraph.backends.base import IngestibleBackend
from provgraph.backends.graph import GraphStore
from provgraph.core.context import QueryContext
from provgraph.models.artifact import Artifact
from provgraph.models.base import GraphModel

logger = structlog.get_logger('memory_backend')


@dataclass
class MemoryBackendArgs(BackendArgs):
    """Seed entities loaded when the backend is created."""
    entities: list[GraphModel] = field(default_factory=list)


class MemoryBackend(IngestibleBackend):
    """
    Keeps the graph in a GraphStore guarded by a lock.

    Reads copy the tables under the lock and materialize outside it, so
    each call sees a single snapshot even while upserts continue.
    """
    name = 'memory'

    def __init__(self, args: MemoryBackendArgs | None = None):
        self._lock = threading.Lock()
        self._store = GraphStore()
        if args and args.entities:
            self.upsert(args.entities)

    def upsert(self, entities: Iterable[GraphModel]) -> int:
        count = 0
        with self._lock:
            for entity in entities:
                self._store.add(entity)
                count += 1
        logger.debug('Upserted entities', count=count)
        return count

    def list_artifacts(self, ctx: QueryContext) -> list[Artifact]:
        ctx.check()
        with self._lock:
            snapshot = self._store.snapshot()
        return snapshot.materialize_artifacts(ctx)
