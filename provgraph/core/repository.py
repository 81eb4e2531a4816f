"""ClickHouse data access split into write (ingestion) and read (query) sides."""
import threading
from abc import ABC
from collections.abc import Generator
from typing import Any

import clickhouse_connect
from clickhouse_connect.driver.client import Client

from provgraph.core.config import DatabaseConfig
from provgraph.core.schema import ALL_DDL
from provgraph.core.schema import TABLE_KEYS

ARTIFACT_COLUMNS = ['digest', 'name', 'tags', 'source_info', 'collector_info']
PACKAGE_COLUMNS = [
    'purl', 'name', 'version', 'digests', 'cpes', 'tags', 'source_info', 'collector_info',
]
BUILDER_COLUMNS = ['type', 'id', 'source_info', 'collector_info']
ARTIFACT_BUILDER_COLUMNS = ['artifact_digest', 'builder_type', 'builder_id']
DEPENDENCY_COLUMNS = ['subject_kind', 'subject_key', 'object_kind', 'object_key']
PACKAGE_CONTENT_COLUMNS = ['purl', 'artifact_digest']
DOCUMENT_COLUMNS = ['typename', 'identity', 'body']


def latest_non_null(column: str) -> str:
    return f"argMaxIf({column}, updated_at, {column} IS NOT NULL)"


def ordered_union(column: str) -> str:
    """Distinct array elements across all versions, oldest version first."""
    return (
        'arrayDistinct(arrayFlatten(arrayMap(v -> v.2, '
        f"arraySort(v -> v.1, groupArray((updated_at, {column}))))))"
    )


def merged_select(table: str, columns: list[str], key: list[str], arrays: tuple[str, ...] = ()) -> str:
    """One merged row per identity, aggregated over every stored version."""
    expressions = [
        c if c in key else ordered_union(c) if c in arrays else latest_non_null(c)
        for c in columns
    ]
    return (
        f"SELECT {', '.join(expressions)} FROM {table} "
        f"GROUP BY {', '.join(key)} ORDER BY {', '.join(key)}"
    )


class BaseRepository(ABC):
    """
    Connection lifecycle with one client per thread.

    A clickhouse-connect client runs one query at a time per session, so
    concurrent callers each get their own.
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._local = threading.local()
        self._clients: list[Client] = []
        self._clients_lock = threading.Lock()

    @property
    def client(self) -> Client:
        client = getattr(self._local, 'client', None)
        if client is None:
            client = clickhouse_connect.get_client(
                **self.config.get_connection_params(),
            )
            self._local.client = client
            with self._clients_lock:
                self._clients.append(client)
        return client

    def close(self) -> None:
        with self._clients_lock:
            clients, self._clients = self._clients, []
        for client in clients:
            client.close()
        self._local = threading.local()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class IngestionRepository(BaseRepository):
    """Write-side repository for ingestion."""

    def ensure_schema(self) -> None:
        """Idempotent schema creation."""
        self.client.command(
            f"CREATE DATABASE IF NOT EXISTS {self.config.database}",
        )
        for ddl in ALL_DDL.values():
            self.client.command(ddl)

    def insert_batch(self, table: str, data: list[list[Any]], columns: list[str]) -> None:
        """Generic batch insert."""
        if not data:
            return
        self.client.insert(table, data, column_names=columns)


class QueryRepository(BaseRepository):
    """Read-only repository used by the backend."""

    def _rows(self, query: str, settings: dict | None = None) -> Generator[tuple, None, None]:
        yield from self.client.query(query, settings=settings).result_rows

    def get_stats(self, settings: dict | None = None) -> dict[str, int]:
        """Distinct identities per table."""
        stats = {}
        for table, key in TABLE_KEYS.items():
            stats[table] = self.client.query(
                f"SELECT count() FROM (SELECT DISTINCT {', '.join(key)} FROM {table})",
                settings=settings,
            ).result_rows[0][0]
        return stats

    def get_artifacts(self, settings: dict | None = None) -> Generator[tuple, None, None]:
        yield from self._rows(
            merged_select('artifacts', ARTIFACT_COLUMNS, ['digest'], arrays=('tags',)),
            settings,
        )

    def get_packages(self, settings: dict | None = None) -> Generator[tuple, None, None]:
        yield from self._rows(
            merged_select(
                'packages', PACKAGE_COLUMNS, ['purl'], arrays=('digests', 'cpes', 'tags'),
            ),
            settings,
        )

    def get_builders(self, settings: dict | None = None) -> Generator[tuple, None, None]:
        yield from self._rows(
            merged_select('builders', BUILDER_COLUMNS, ['type', 'id']),
            settings,
        )

    def get_artifact_builders(self, settings: dict | None = None) -> Generator[tuple, None, None]:
        yield from self._rows(
            f"SELECT {', '.join(ARTIFACT_BUILDER_COLUMNS)} FROM artifact_builders FINAL "
            'ORDER BY artifact_digest, builder_type, builder_id',
            settings,
        )

    def get_dependencies(self, settings: dict | None = None) -> Generator[tuple, None, None]:
        yield from self._rows(
            f"SELECT {', '.join(DEPENDENCY_COLUMNS)} FROM dependencies FINAL "
            'ORDER BY subject_kind, subject_key, object_kind, object_key',
            settings,
        )

    def get_package_contents(self, settings: dict | None = None) -> Generator[tuple, None, None]:
        yield from self._rows(
            f"SELECT {', '.join(PACKAGE_CONTENT_COLUMNS)} FROM package_contents FINAL "
            'ORDER BY purl, artifact_digest',
            settings,
        )
