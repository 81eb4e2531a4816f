"""Query layer executing the `artifacts` query against any backend."""
import time
from typing import Any

import structlog

from provgraph.backends.base import Backend
from provgraph.core.context import QueryContext
from provgraph.core.errors import GraphError
from provgraph.core.errors import QueryFailed
from provgraph.models.artifact import Artifact

logger = structlog.get_logger('query_service')


class QueryService:
    """
    Programs only against the Backend contract.

    Failures are never retried here and never produce partial data: a
    response carries either the full result or errors.
    """

    def __init__(self, backend: Backend, default_timeout: float | None = None):
        self.backend = backend
        self.default_timeout = default_timeout

    def _context(self, ctx: QueryContext | None) -> QueryContext:
        return ctx if ctx is not None else QueryContext(timeout=self.default_timeout)

    def artifacts(self, ctx: QueryContext | None = None) -> list[Artifact]:
        ctx = self._context(ctx)
        t0 = time.monotonic()
        try:
            result = self.backend.list_artifacts(ctx)
        except GraphError:
            raise
        except Exception as e:
            raise QueryFailed(f"{self.backend.name}: {e}") from e
        logger.debug(
            'Artifacts listed', backend=self.backend.name, count=len(result),
            elapsed=f"{time.monotonic() - t0:.3f}s",
        )
        return result

    def execute_artifacts(self, ctx: QueryContext | None = None) -> dict[str, Any]:
        """Run the `artifacts` query and shape a GraphQL-style response."""
        try:
            artifacts = self.artifacts(ctx)
        except GraphError as e:
            logger.warning('Query failed', backend=self.backend.name, code=e.code, error=str(e))
            return {'data': None, 'errors': [e.to_dict()]}
        return {'data': {'artifacts': [artifact.to_graphql() for artifact in artifacts]}}
