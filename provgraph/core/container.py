"""Dependency Injection Container."""
from typing import Optional

from provgraph.backends.base import Backend
from provgraph.backends.base import IngestibleBackend
from provgraph.backends.registry import BackendFactory
from provgraph.core.config import get_config
from provgraph.core.config import ProvGraphConfig
from provgraph.services.ingest_service import IngestService
from provgraph.services.query_service import QueryService


class Container:
    """Simple DI Container to manage backend and service lifecycles."""

    _instance: Optional['Container'] = None

    def __init__(self) -> None:
        self.config: ProvGraphConfig = get_config()
        self._backends: dict[tuple[str, bool], Backend] = {}

    @classmethod
    def get_instance(cls) -> 'Container':
        if cls._instance is None:
            cls._instance = Container()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        if cls._instance is not None:
            cls._instance.close()
        cls._instance = None

    # -- Backends (one per kind and access mode) --

    def get_backend(self, kind: str | None = None, writable: bool = False) -> Backend:
        kind = str(kind or self.config.backend)
        key = (kind, writable)
        # a writable backend serves reads too
        if not writable and (kind, True) in self._backends:
            return self._backends[(kind, True)]
        if key not in self._backends:
            self._backends[key] = BackendFactory.create(kind, self.config, writable=writable)
        return self._backends[key]

    def get_ingestible_backend(self, kind: str | None = None) -> IngestibleBackend:
        backend = self.get_backend(kind, writable=True)
        if not isinstance(backend, IngestibleBackend):
            raise ValueError(f"Backend '{backend.name}' does not accept writes")
        return backend

    # -- Services --

    def get_query_service(self, kind: str | None = None, timeout: float | None = None) -> QueryService:
        return QueryService(
            self.get_backend(kind),
            default_timeout=timeout if timeout is not None else self.config.query_timeout,
        )

    def get_ingest_service(self, kind: str | None = None) -> IngestService:
        return IngestService(self.get_ingestible_backend(kind))

    def close(self) -> None:
        for backend in self._backends.values():
            backend.close()
        self._backends.clear()


def get_container() -> Container:
    return Container.get_instance()
