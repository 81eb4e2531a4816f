"""
The seam between the query layer and any storage technology.

The query layer programs only against `Backend`. Each concrete backend ships
its own initialization arguments type; `BackendArgs` marks that boundary and
carries nothing.
"""
import functools
from abc import ABC
from abc import abstractmethod
from collections.abc import Callable
from collections.abc import Iterable
from typing import Any

import structlog

from provgraph.core.context import QueryContext
from provgraph.core.errors import BackendUnavailable
from provgraph.core.errors import GraphError
from provgraph.core.errors import QueryFailed
from provgraph.models.artifact import Artifact
from provgraph.models.base import GraphModel

logger = structlog.get_logger('backend')


class BackendArgs:
    """Opaque initialization arguments; each backend subclasses this."""


class Backend(ABC):
    """
    Read contract every storage implementation satisfies.

    Implementations must be safe to call from several threads at once and
    return fully populated entities: every union-typed edge resolved.
    New operations are added here with default behavior so existing
    backends keep working.
    """
    name = 'backend'

    @abstractmethod
    def list_artifacts(self, ctx: QueryContext) -> list[Artifact]:
        """All artifacts visible to the caller, with builders and dependencies."""

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class IngestibleBackend(Backend):
    """Backend that also accepts idempotent upserts of ingested entities."""

    @abstractmethod
    def upsert(self, entities: Iterable[GraphModel]) -> int:
        """Merge entities by identity. Returns the number of records accepted."""


def wraps_backend_errors(
    unavailable: tuple[type[BaseException], ...] = (ConnectionError, TimeoutError),
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Translate storage exceptions into the graph error taxonomy.

    Exceptions listed in `unavailable` become BackendUnavailable, graph
    errors pass through untouched, anything else becomes QueryFailed.
    """
    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        def wrapper(self: Backend, *args: Any, **kwargs: Any) -> Any:
            try:
                return func(self, *args, **kwargs)
            except GraphError:
                raise
            except unavailable as e:
                logger.warning('Backend unavailable', backend=self.name, error=str(e))
                raise BackendUnavailable(self.name, str(e)) from e
            except Exception as e:
                logger.exception('Backend query failed', backend=self.name)
                raise QueryFailed(f"{self.name}: {e}") from e
        return wrapper
    return decorator
