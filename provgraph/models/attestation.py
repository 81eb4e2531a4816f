"""Attestations, signing identities, vulnerabilities and VEX payloads."""
from typing import Any
from typing import ClassVar

from pydantic import Field
from pydantic import field_validator

from provgraph.models.artifact import ArtifactOrPackage
from provgraph.models.base import CollectorInfo
from provgraph.models.base import GraphModel
from provgraph.models.base import SourceInfo
from provgraph.models.base import unique_nodes
from provgraph.models.base import unique_strings
from provgraph.models.variants import ResolvedVariant
from provgraph.models.variants import UnionType


class Vulnerability(GraphModel):
    """A vulnerability keyed by its natural identifier (e.g. a CVE id)."""
    identity_fields: ClassVar[tuple[str, ...]] = ('id',)

    id: str
    source_info: SourceInfo = None
    collector_info: CollectorInfo = None


class VEXInvocation(GraphModel):
    # parameters keep their order and duplicates: they are a command line
    parameters: list[str] = Field(default_factory=list)
    uri: str
    event_id: str = Field(alias='eventID')
    producer_id: str = Field(alias='producerID')
    scanned_on: str = Field(alias='scannedOn')


class VEXScanner(GraphModel):
    uri: str
    version: str
    db_uri: str
    db_version: str


class VEXVulnerability(GraphModel):
    identity_fields: ClassVar[tuple[str, ...]] = ('id',)

    id: str
    aliases: list[str] = Field(default_factory=list)

    @field_validator('aliases', mode='after')
    @classmethod
    def dedupe_aliases(cls, v: list[str]) -> list[str]:
        return unique_strings(v)


class VEXPayload(GraphModel):
    """Scan results carried by a VEX attestation."""
    shape_fields: ClassVar[tuple[str, ...]] = ('invocation', 'scanner')

    invocation: VEXInvocation
    scanner: VEXScanner
    vulnerabilities: list[VEXVulnerability] = Field(default_factory=list)

    @field_validator('vulnerabilities', mode='after')
    @classmethod
    def dedupe_vulnerabilities(cls, v: list[VEXVulnerability]) -> list[VEXVulnerability]:
        return unique_nodes(v)


ATTESTATION_PAYLOAD = UnionType('AttestationPayload', VEXPayload)
AttestationPayload = ATTESTATION_PAYLOAD.annotation()


class Attestation(GraphModel):
    """A signed statement about artifacts or packages."""
    identity_fields: ClassVar[tuple[str, ...]] = ('digest',)
    digest_fields: ClassVar[tuple[str, ...]] = ('digest',)

    digest: str
    file_path: str | None = Field(default=None, alias='filePath')
    type: str | None = None
    source_info: SourceInfo = None
    collector_info: CollectorInfo = None
    attested_objects: list[ArtifactOrPackage] = Field(default_factory=list, alias='attestedObjects')
    vulnerabilities: list[Vulnerability] = Field(default_factory=list)
    payload: AttestationPayload | None = None

    @field_validator('attested_objects', 'vulnerabilities', mode='after')
    @classmethod
    def dedupe_edges(cls, v: list[Any]) -> list[Any]:
        return unique_nodes(v)


class Identity(GraphModel):
    """A signing identity, keyed by the digest of its key material."""
    identity_fields: ClassVar[tuple[str, ...]] = ('digest',)
    digest_fields: ClassVar[tuple[str, ...]] = ('digest',)

    digest: str
    id: str
    key: str | None = None
    key_type: str | None = Field(default=None, alias='keyType')
    key_scheme: str | None = Field(default=None, alias='keyScheme')
    source_info: SourceInfo = None
    collector_info: CollectorInfo = None
    attestations: list[Attestation] = Field(default_factory=list)

    @field_validator('attestations', mode='after')
    @classmethod
    def dedupe_attestations(cls, v: list[Attestation]) -> list[Attestation]:
        return unique_nodes(v)


def resolve_attestation_payload(value: Any) -> ResolvedVariant:
    return ATTESTATION_PAYLOAD.resolve(value)
