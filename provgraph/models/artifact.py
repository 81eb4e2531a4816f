"""Software artifacts, packages and the builders that produced them."""
from typing import Any
from typing import ClassVar

from pydantic import Field
from pydantic import field_validator

from provgraph.models.base import CollectorInfo
from provgraph.models.base import GraphModel
from provgraph.models.base import SourceInfo
from provgraph.models.base import unique_nodes
from provgraph.models.base import unique_strings
from provgraph.models.variants import ResolvedVariant
from provgraph.models.variants import UnionType


class Builder(GraphModel):
    """Build system that produced an artifact, identified by (type, id)."""
    identity_fields: ClassVar[tuple[str, ...]] = ('type', 'id')

    type: str
    id: str
    source_info: SourceInfo = None
    collector_info: CollectorInfo = None


class Artifact(GraphModel):
    """A file or blob identified by its `algorithm:value` digest."""
    identity_fields: ClassVar[tuple[str, ...]] = ('digest',)
    digest_fields: ClassVar[tuple[str, ...]] = ('digest',)

    digest: str
    name: str | None = None
    tags: list[str] = Field(default_factory=list)
    source_info: SourceInfo = None
    collector_info: CollectorInfo = None
    built_by: list[Builder] = Field(default_factory=list, alias='builtBy')
    depends_on: list['ArtifactOrPackage'] = Field(default_factory=list, alias='dependsOn')

    @field_validator('tags', mode='after')
    @classmethod
    def dedupe_tags(cls, v: list[str]) -> list[str]:
        return unique_strings(v)

    @field_validator('built_by', 'depends_on', mode='after')
    @classmethod
    def dedupe_edges(cls, v: list[Any]) -> list[Any]:
        return unique_nodes(v)


class Package(GraphModel):
    """A software package identified by its package URL."""
    identity_fields: ClassVar[tuple[str, ...]] = ('purl',)

    purl: str
    name: str | None = None
    version: str | None = None
    digest: list[str] = Field(default_factory=list)
    cpe: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    source_info: SourceInfo = None
    collector_info: CollectorInfo = None
    contains: list[Artifact] = Field(default_factory=list)
    depends_on: list['ArtifactOrPackage'] = Field(default_factory=list, alias='dependsOn')

    @field_validator('digest', 'cpe', 'tags', mode='after')
    @classmethod
    def dedupe_strings(cls, v: list[str]) -> list[str]:
        return unique_strings(v)

    @field_validator('contains', 'depends_on', mode='after')
    @classmethod
    def dedupe_edges(cls, v: list[Any]) -> list[Any]:
        return unique_nodes(v)


ARTIFACT_OR_PACKAGE = UnionType('ArtifactOrPackage', Artifact, Package)
ArtifactOrPackage = ARTIFACT_OR_PACKAGE.annotation()

Artifact.model_rebuild()
Package.model_rebuild()


def resolve_artifact_or_package(value: Any) -> ResolvedVariant:
    return ARTIFACT_OR_PACKAGE.resolve(value)
