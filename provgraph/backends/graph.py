"""
Normalized node and edge tables shared by the bundled backends.

Ingested entities are flattened into one row per identity (merge by
identity) plus edge lists; reads materialize fully populated models back
out of those tables.
"""
import copy
from dataclasses import dataclass
from dataclasses import field
from dataclasses import fields
from dataclasses import replace
from typing import Any

import structlog

from provgraph.core.context import QueryContext
from provgraph.models.artifact import Artifact
from provgraph.models.artifact import Builder
from provgraph.models.artifact import Package
from provgraph.models.attestation import Attestation
from provgraph.models.attestation import Identity
from provgraph.models.base import GraphModel
from provgraph.models.base import unique_strings
from provgraph.models.metadata import Metadata

logger = structlog.get_logger('graph_store')

# (typename, identity) of an Artifact or Package endpoint
NodeRef = tuple[str, str]
BuilderKey = tuple[str, str]


@dataclass
class ArtifactRow:
    digest: str
    name: str | None = None
    tags: list[str] = field(default_factory=list)
    source_info: str | None = None
    collector_info: str | None = None


@dataclass
class PackageRow:
    purl: str
    name: str | None = None
    version: str | None = None
    digest: list[str] = field(default_factory=list)
    cpe: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    source_info: str | None = None
    collector_info: str | None = None


@dataclass
class BuilderRow:
    type: str
    id: str
    source_info: str | None = None
    collector_info: str | None = None


def merge_rows(existing: Any, incoming: Any) -> Any:
    """Set-union list columns; a later non-null scalar wins."""
    if existing is None:
        return incoming
    changes = {}
    for f in fields(existing):
        old, new = getattr(existing, f.name), getattr(incoming, f.name)
        if isinstance(old, list):
            changes[f.name] = unique_strings([*old, *new])
        elif new is not None:
            changes[f.name] = new
    return replace(existing, **changes)


def _append_unique(edges: dict, key: Any, target: Any) -> None:
    targets = edges.setdefault(key, [])
    if target not in targets:
        targets.append(target)


def node_ref(node: Artifact | Package) -> NodeRef:
    if isinstance(node, Artifact):
        return ('Artifact', node.digest)
    return ('Package', node.purl)


class GraphStore:
    """Node and edge tables. Not thread-safe; owners guard it."""

    def __init__(self) -> None:
        self.artifacts: dict[str, ArtifactRow] = {}
        self.packages: dict[str, PackageRow] = {}
        self.builders: dict[BuilderKey, BuilderRow] = {}
        self.built_by: dict[str, list[BuilderKey]] = {}
        self.depends_on: dict[NodeRef, list[NodeRef]] = {}
        self.contains: dict[str, list[str]] = {}
        # Nodes not reachable from the artifacts query, kept whole.
        self.documents: dict[tuple, GraphModel] = {}

    def __len__(self) -> int:
        return len(self.artifacts) + len(self.packages) + len(self.builders) + len(self.documents)

    def snapshot(self) -> 'GraphStore':
        return copy.deepcopy(self)

    # -- Writes --

    def add(self, node: GraphModel) -> None:
        if isinstance(node, Artifact):
            self.add_artifact(node)
        elif isinstance(node, Package):
            self.add_package(node)
        elif isinstance(node, Builder):
            self.add_builder(node)
        else:
            self.add_document(node)

    def add_builder(self, builder: Builder) -> BuilderKey:
        key = (builder.type, builder.id)
        self.builders[key] = merge_rows(
            self.builders.get(key),
            BuilderRow(builder.type, builder.id, builder.source_info, builder.collector_info),
        )
        return key

    def add_artifact(self, artifact: Artifact) -> NodeRef:
        self.artifacts[artifact.digest] = merge_rows(
            self.artifacts.get(artifact.digest),
            ArtifactRow(
                digest=artifact.digest,
                name=artifact.name,
                tags=list(artifact.tags),
                source_info=artifact.source_info,
                collector_info=artifact.collector_info,
            ),
        )
        for builder in artifact.built_by:
            _append_unique(self.built_by, artifact.digest, self.add_builder(builder))
        ref = node_ref(artifact)
        self._add_dependencies(ref, artifact.depends_on)
        return ref

    def add_package(self, package: Package) -> NodeRef:
        self.packages[package.purl] = merge_rows(
            self.packages.get(package.purl),
            PackageRow(
                purl=package.purl,
                name=package.name,
                version=package.version,
                digest=list(package.digest),
                cpe=list(package.cpe),
                tags=list(package.tags),
                source_info=package.source_info,
                collector_info=package.collector_info,
            ),
        )
        for artifact in package.contains:
            self.add_artifact(artifact)
            _append_unique(self.contains, package.purl, artifact.digest)
        ref = node_ref(package)
        self._add_dependencies(ref, package.depends_on)
        return ref

    def _add_dependencies(self, ref: NodeRef, targets: list[Artifact | Package]) -> None:
        for target in targets:
            if isinstance(target, Artifact):
                target_ref = self.add_artifact(target)
            else:
                target_ref = self.add_package(target)
            _append_unique(self.depends_on, ref, target_ref)

    def add_document(self, node: GraphModel) -> None:
        # Endpoints referenced from documents also become queryable nodes.
        if isinstance(node, (Attestation, Metadata)):
            edges = node.attested_objects if isinstance(node, Attestation) else node.attached_to
            for target in edges:
                self.add(target)
        if isinstance(node, Identity):
            for attestation in node.attestations:
                self.add_document(attestation)
        self.documents[node.identity_key()] = node

    # -- Reads --

    def materialize_artifacts(self, ctx: QueryContext) -> list[Artifact]:
        materializer = _Materializer(self)
        result = []
        for digest in self.artifacts:
            ctx.check()
            result.append(materializer.artifact(digest))
        return result


class _Materializer:
    """
    Builds fully populated models from the tables.

    Dependency cycles are cut where a node reappears on the current path:
    that occurrence keeps its attributes but carries no edges.
    """

    def __init__(self, store: GraphStore):
        self.store = store
        self._cache: dict[NodeRef, Artifact | Package] = {}

    def artifact(self, digest: str) -> Artifact:
        node, _ = self._build(('Artifact', digest), frozenset())
        return node

    def _build(self, ref: NodeRef, path: frozenset) -> tuple[Artifact | Package, bool]:
        if ref in self._cache:
            return self._cache[ref], False
        if ref in path:
            return self._bare(ref), True

        path = path | {ref}
        truncated = False
        dependencies = []
        for target in self.store.depends_on.get(ref, []):
            node, cut = self._build(target, path)
            dependencies.append(node)
            truncated = truncated or cut

        kind, key = ref
        if kind == 'Artifact':
            node = self._artifact(key, dependencies)
        else:
            contains = []
            for digest in self.store.contains.get(key, []):
                child, cut = self._build(('Artifact', digest), path)
                contains.append(child)
                truncated = truncated or cut
            node = self._package(key, dependencies, contains)

        if not truncated:
            self._cache[ref] = node
        return node, truncated

    def _bare(self, ref: NodeRef) -> Artifact | Package:
        kind, key = ref
        if kind == 'Artifact':
            return self._artifact(key, [])
        return self._package(key, [], [])

    def _builders(self, digest: str) -> list[Builder]:
        builders = []
        for key in self.store.built_by.get(digest, []):
            row = self.store.builders.get(key) or BuilderRow(*key)
            builders.append(
                Builder(
                    type=row.type,
                    id=row.id,
                    source_info=row.source_info,
                    collector_info=row.collector_info,
                ),
            )
        return builders

    def _artifact(self, digest: str, dependencies: list) -> Artifact:
        row = self.store.artifacts.get(digest)
        if row is None:
            logger.debug('Dangling artifact reference', digest=digest)
            row = ArtifactRow(digest=digest)
        return Artifact(
            digest=row.digest,
            name=row.name,
            tags=row.tags,
            source_info=row.source_info,
            collector_info=row.collector_info,
            built_by=self._builders(digest),
            depends_on=dependencies,
        )

    def _package(self, purl: str, dependencies: list, contains: list) -> Package:
        row = self.store.packages.get(purl)
        if row is None:
            logger.debug('Dangling package reference', purl=purl)
            row = PackageRow(purl=purl)
        return Package(
            purl=row.purl,
            name=row.name,
            version=row.version,
            digest=row.digest,
            cpe=row.cpe,
            tags=row.tags,
            source_info=row.source_info,
            collector_info=row.collector_info,
            contains=contains,
            depends_on=dependencies,
        )
