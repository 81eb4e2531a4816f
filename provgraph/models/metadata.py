"""Arbitrary metadata attached to artifacts or packages."""
from typing import Any
from typing import ClassVar

from pydantic import Field
from pydantic import field_validator

from provgraph.models.artifact import ArtifactOrPackage
from provgraph.models.base import CollectorInfo
from provgraph.models.base import GraphModel
from provgraph.models.base import SourceInfo
from provgraph.models.base import unique_nodes
from provgraph.models.variants import ResolvedVariant
from provgraph.models.variants import UnionType


class ScorecardPayload(GraphModel):
    """OpenSSF Scorecard result for a source repository."""
    shape_fields: ClassVar[tuple[str, ...]] = (
        'repo', 'commit', 'scorecard_version', 'scorecard_commit', 'aggregate_score',
    )

    repo: str
    commit: str
    scorecard_version: str
    scorecard_commit: str
    aggregate_score: float


METADATA_PAYLOAD = UnionType('MetadataPayload', ScorecardPayload)
MetadataPayload = METADATA_PAYLOAD.annotation()


class Metadata(GraphModel):
    identity_fields: ClassVar[tuple[str, ...]] = ('type', 'id')

    type: str
    id: str
    source_info: SourceInfo = None
    collector_info: CollectorInfo = None
    attached_to: list[ArtifactOrPackage] = Field(default_factory=list, alias='attachedTo')
    payload: MetadataPayload | None = None

    @field_validator('attached_to', mode='after')
    @classmethod
    def dedupe_edges(cls, v: list[Any]) -> list[Any]:
        return unique_nodes(v)


def resolve_metadata_payload(value: Any) -> ResolvedVariant:
    return METADATA_PAYLOAD.resolve(value)
