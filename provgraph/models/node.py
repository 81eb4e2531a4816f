"""Every top-level node type, for callers that handle records of any kind."""
import json
from typing import Any

from provgraph.models.artifact import Artifact
from provgraph.models.artifact import Builder
from provgraph.models.artifact import Package
from provgraph.models.attestation import Attestation
from provgraph.models.attestation import Identity
from provgraph.models.attestation import Vulnerability
from provgraph.models.base import GraphModel
from provgraph.models.metadata import Metadata
from provgraph.models.variants import UnionType

NODE = UnionType(
    'Node',
    Artifact,
    Package,
    Builder,
    Attestation,
    Metadata,
    Identity,
    Vulnerability,
)


def parse_node(record: Any) -> GraphModel:
    """Validate an ingested record into its node type.

    Records should carry `__typename`; untagged records are accepted only
    when their shape is unambiguous.
    """
    return NODE.resolve(record).value


def parse_node_line(line: str) -> GraphModel:
    return parse_node(json.loads(line))
