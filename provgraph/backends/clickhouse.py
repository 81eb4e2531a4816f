"""ClickHouse-backed graph storage."""
import json
import math
from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field
from dataclasses import fields
from datetime import datetime
from typing import Any

import structlog
from clickhouse_connect.driver.exceptions import OperationalError

from provgraph.backends.base import BackendArgs
from provgraph.backends.base import IngestibleBackend
from provgraph.backends.base import wraps_backend_errors
from provgraph.backends.graph import ArtifactRow
from provgraph.backends.graph import BuilderRow
from provgraph.backends.graph import GraphStore
from provgraph.backends.graph import PackageRow
from provgraph.core.config import DatabaseConfig
from provgraph.core.context import QueryContext
from provgraph.core.repository import ARTIFACT_BUILDER_COLUMNS
from provgraph.core.repository import ARTIFACT_COLUMNS
from provgraph.core.repository import BUILDER_COLUMNS
from provgraph.core.repository import DEPENDENCY_COLUMNS
from provgraph.core.repository import DOCUMENT_COLUMNS
from provgraph.core.repository import IngestionRepository
from provgraph.core.repository import PACKAGE_COLUMNS
from provgraph.core.repository import PACKAGE_CONTENT_COLUMNS
from provgraph.core.repository import QueryRepository
from provgraph.models.artifact import Artifact
from provgraph.models.base import GraphModel

logger = structlog.get_logger('clickhouse_backend')

UNAVAILABLE_ERRORS = (OperationalError, ConnectionError, TimeoutError)
BATCH_SIZE = 1000


@dataclass
class ClickHouseBackendArgs(BackendArgs):
    query_config: DatabaseConfig = field(default_factory=DatabaseConfig)
    ingest_config: DatabaseConfig | None = None


def _timeout_settings(ctx: QueryContext) -> dict | None:
    remaining = ctx.remaining()
    if remaining is None:
        return None
    return {'max_execution_time': max(1, math.ceil(remaining))}


def _is_bare(row: Any, *identity: str) -> bool:
    """True when a row carries nothing beyond its identity columns."""
    return not any(getattr(row, f.name) for f in fields(row) if f.name not in identity)


def _referenced_artifacts(store: GraphStore) -> set[str]:
    digests = set(store.built_by)
    for subject, targets in store.depends_on.items():
        for kind, key in (subject, *targets):
            if kind == 'Artifact':
                digests.add(key)
    for contained in store.contains.values():
        digests.update(contained)
    return digests


class ClickHouseBackend(IngestibleBackend):
    """
    Stores node and edge tables in ReplacingMergeTree tables.

    Node rows are versions: reads aggregate them per identity, keeping the
    latest non-null scalar and the union of array columns. Nodes that are
    only referenced from an edge get edge rows but no node row, and are
    restored from the edge tables on read.
    """
    name = 'clickhouse'

    def __init__(self, args: ClickHouseBackendArgs):
        self.args = args
        self.query_repo = QueryRepository(args.query_config)
        self.ingest_repo = IngestionRepository(args.ingest_config or args.query_config)

    def close(self) -> None:
        self.query_repo.close()
        self.ingest_repo.close()

    @wraps_backend_errors(unavailable=UNAVAILABLE_ERRORS)
    def ensure_schema(self) -> None:
        self.ingest_repo.ensure_schema()

    @wraps_backend_errors(unavailable=UNAVAILABLE_ERRORS)
    def get_stats(self) -> dict[str, int]:
        return self.query_repo.get_stats()

    @wraps_backend_errors(unavailable=UNAVAILABLE_ERRORS)
    def upsert(self, entities: Iterable[GraphModel]) -> int:
        store = GraphStore()
        top_level = set()
        count = 0
        for entity in entities:
            store.add(entity)
            top_level.add(entity.identity_key())
            count += 1

        tables = {
            'artifacts': (
                ARTIFACT_COLUMNS,
                [
                    [r.digest, r.name, r.tags, r.source_info, r.collector_info]
                    for r in store.artifacts.values()
                    if ('Artifact', r.digest) in top_level or not _is_bare(r, 'digest')
                ],
            ),
            'packages': (
                PACKAGE_COLUMNS,
                [
                    [
                        r.purl, r.name, r.version, r.digest, r.cpe, r.tags,
                        r.source_info, r.collector_info,
                    ]
                    for r in store.packages.values()
                    if ('Package', r.purl) in top_level or not _is_bare(r, 'purl')
                ],
            ),
            'builders': (
                BUILDER_COLUMNS,
                [
                    [r.type, r.id, r.source_info, r.collector_info]
                    for r in store.builders.values()
                    if ('Builder', r.type, r.id) in top_level or not _is_bare(r, 'type', 'id')
                ],
            ),
            'artifact_builders': (
                ARTIFACT_BUILDER_COLUMNS,
                [
                    [digest, builder_type, builder_id]
                    for digest, keys in store.built_by.items()
                    for builder_type, builder_id in keys
                ],
            ),
            'dependencies': (
                DEPENDENCY_COLUMNS,
                [
                    [subject[0], subject[1], target[0], target[1]]
                    for subject, targets in store.depends_on.items()
                    for target in targets
                ],
            ),
            'package_contents': (
                PACKAGE_CONTENT_COLUMNS,
                [
                    [purl, digest]
                    for purl, digests in store.contains.items()
                    for digest in digests
                ],
            ),
            'documents': (
                DOCUMENT_COLUMNS,
                [
                    [
                        node.typename(),
                        json.dumps(list(key), separators=(',', ':')),
                        node.model_dump_json(by_alias=True, exclude_none=True),
                    ]
                    for key, node in store.documents.items()
                ],
            ),
        }

        for table, (columns, rows) in tables.items():
            for start in range(0, len(rows), BATCH_SIZE):
                t0 = datetime.now()
                batch = rows[start:start + BATCH_SIZE]
                self.ingest_repo.insert_batch(table, batch, columns)
                logger.info(
                    'Batch Inserted', table=table,
                    count=len(batch), elapsed=f"{(datetime.now() - t0).total_seconds():.3f}s",
                )
        return count

    @wraps_backend_errors(unavailable=UNAVAILABLE_ERRORS)
    def list_artifacts(self, ctx: QueryContext) -> list[Artifact]:
        repo = self.query_repo
        store = GraphStore()

        ctx.check()
        for digest, name, tags, source_info, collector_info in repo.get_artifacts(_timeout_settings(ctx)):
            store.artifacts[digest] = ArtifactRow(digest, name, list(tags), source_info, collector_info)

        ctx.check()
        for purl, name, version, digests, cpes, tags, source_info, collector_info in repo.get_packages(_timeout_settings(ctx)):
            store.packages[purl] = PackageRow(
                purl, name, version, list(digests), list(cpes), list(tags),
                source_info, collector_info,
            )

        ctx.check()
        for builder_type, builder_id, source_info, collector_info in repo.get_builders(_timeout_settings(ctx)):
            store.builders[(builder_type, builder_id)] = BuilderRow(
                builder_type, builder_id, source_info, collector_info,
            )

        ctx.check()
        for digest, builder_type, builder_id in repo.get_artifact_builders(_timeout_settings(ctx)):
            store.built_by.setdefault(digest, []).append((builder_type, builder_id))

        ctx.check()
        for subject_kind, subject_key, object_kind, object_key in repo.get_dependencies(_timeout_settings(ctx)):
            store.depends_on.setdefault((subject_kind, subject_key), []).append(
                (object_kind, object_key),
            )

        ctx.check()
        for purl, digest in repo.get_package_contents(_timeout_settings(ctx)):
            store.contains.setdefault(purl, []).append(digest)

        referenced = _referenced_artifacts(store) - store.artifacts.keys()
        if referenced:
            for digest in referenced:
                store.artifacts[digest] = ArtifactRow(digest)
            store.artifacts = dict(sorted(store.artifacts.items()))

        logger.debug(
            'Loaded graph tables',
            artifacts=len(store.artifacts), packages=len(store.packages),
        )
        return store.materialize_artifacts(ctx)
