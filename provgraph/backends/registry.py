"""Maps backend names to factories built from application config."""
from enum import Enum

from provgraph.backends.base import Backend
from provgraph.backends.clickhouse import ClickHouseBackend
from provgraph.backends.clickhouse import ClickHouseBackendArgs
from provgraph.backends.jsonl import JsonlBackend
from provgraph.backends.jsonl import JsonlBackendArgs
from provgraph.backends.memory import MemoryBackend
from provgraph.core.config import ProvGraphConfig


class BackendKind(str, Enum):
    MEMORY = 'memory'
    JSONL = 'jsonl'
    CLICKHOUSE = 'clickhouse'

    def __str__(self) -> str:
        return self.value


class BackendFactory:
    _MAPPING = {
        BackendKind.MEMORY: lambda config, writable: MemoryBackend(),
        BackendKind.JSONL: lambda config, writable: JsonlBackend(
            JsonlBackendArgs(path=config.paths.jsonl_path, create=writable),
        ),
        BackendKind.CLICKHOUSE: lambda config, writable: ClickHouseBackend(
            ClickHouseBackendArgs(
                query_config=config.get_db_config('guest'),
                ingest_config=config.get_db_config('admin') if writable else None,
            ),
        ),
    }

    @staticmethod
    def create(kind: BackendKind | str, config: ProvGraphConfig, writable: bool = False) -> Backend:
        try:
            kind = BackendKind(kind)
        except ValueError:
            raise ValueError(f"Unsupported backend: {kind}") from None
        return BackendFactory._MAPPING[kind](config, writable)
