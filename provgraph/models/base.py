"""Shared pydantic plumbing for graph nodes and payload values."""
from collections.abc import Iterable
from collections.abc import Mapping
from typing import Annotated
from typing import Any
from typing import ClassVar
from typing import NamedTuple
from typing import Protocol
from typing import runtime_checkable

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import model_serializer
from pydantic import model_validator
from pydantic import SerializationInfo
from pydantic import SerializerFunctionWrapHandler

from provgraph.core.errors import InvalidIdentity

TYPENAME_KEY = '__typename'
DIGEST_SEPARATOR = ':'

# Provenance capability: composed into any node type as plain fields.
SourceInfo = Annotated[str | None, Field(alias='sourceInfo')]
CollectorInfo = Annotated[str | None, Field(alias='collectorInfo')]


@runtime_checkable
class HasProvenance(Protocol):
    """Any node that may record where it was ingested from."""
    source_info: str | None
    collector_info: str | None


class Provenance(NamedTuple):
    source_info: str | None
    collector_info: str | None


def provenance_of(node: Any) -> Provenance:
    """Best-effort provenance of a node; absent fields are None."""
    return Provenance(
        getattr(node, 'source_info', None),
        getattr(node, 'collector_info', None),
    )


def validate_digest(entity: str, field: str, value: str) -> str:
    parts = value.split(DIGEST_SEPARATOR)
    if len(parts) != 2:
        raise InvalidIdentity(
            entity, field, value, "expected exactly one ':' separating algorithm and value",
        )
    algorithm, digest = parts
    if not algorithm or not digest:
        raise InvalidIdentity(
            entity, field, value, 'algorithm and value must both be non-empty',
        )
    return value


def unique_strings(values: Iterable[str]) -> list[str]:
    """Drop duplicates, keeping first-occurrence order."""
    return list(dict.fromkeys(values))


def unique_nodes(nodes: Iterable['GraphModel']) -> list['GraphModel']:
    seen: dict[tuple, GraphModel] = {}
    for node in nodes:
        seen.setdefault(node.identity_key(), node)
    return list(seen.values())


class GraphModel(BaseModel):
    """
    Common configuration for every graph value.

    Subclasses declare `identity_fields` (checked for presence and
    non-emptiness before field validation) and `digest_fields` (identity
    fields that must look like `algorithm:value`). Serialization always
    carries a `__typename` discriminant.
    """
    identity_fields: ClassVar[tuple[str, ...]] = ()
    digest_fields: ClassVar[tuple[str, ...]] = ()
    shape_fields: ClassVar[tuple[str, ...]] = ()

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    @classmethod
    def typename(cls) -> str:
        return cls.__name__

    @classmethod
    def _lookup(cls, data: Mapping[str, Any], name: str) -> Any:
        if name in data:
            return data[name]
        alias = cls.model_fields[name].alias
        if alias and alias in data:
            return data[alias]
        return None

    @classmethod
    def matches_shape(cls, data: Mapping[str, Any]) -> bool:
        """Whether a raw mapping carries the keys that identify this type."""
        keys = cls.shape_fields or cls.identity_fields
        if not keys:
            return False
        if any(cls._lookup(data, key) is None for key in keys):
            return False
        return all(isinstance(cls._lookup(data, key), str) for key in cls.identity_fields)

    @model_validator(mode='before')
    @classmethod
    def _check_identity(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        for name in cls.identity_fields:
            value = cls._lookup(data, name)
            if value is None:
                raise InvalidIdentity(cls.typename(), name, value, 'missing')
            if not isinstance(value, str):
                raise InvalidIdentity(cls.typename(), name, value, 'must be a string')
            if not value.strip():
                raise InvalidIdentity(cls.typename(), name, value, 'empty')
            if name in cls.digest_fields:
                validate_digest(cls.typename(), name, value)
        return data

    @model_serializer(mode='wrap')
    def _with_typename(self, handler: SerializerFunctionWrapHandler, info: SerializationInfo) -> dict[str, Any]:
        return {TYPENAME_KEY: self.typename(), **handler(self)}

    def identity_key(self) -> tuple:
        """Typename plus identity values; ids are scoped to their entity type."""
        return (self.typename(), *(getattr(self, name) for name in self.identity_fields))

    def to_graphql(self) -> dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True)
