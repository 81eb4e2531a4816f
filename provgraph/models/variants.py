"""Closed tagged unions and their resolution rule."""
from collections.abc import Mapping
from typing import Annotated
from typing import Any
from typing import NamedTuple
from typing import Union

from pydantic import BeforeValidator
from pydantic import Discriminator
from pydantic import Tag

from provgraph.core.errors import UnknownVariant
from provgraph.models.base import GraphModel
from provgraph.models.base import TYPENAME_KEY


class ResolvedVariant(NamedTuple):
    tag: str
    value: GraphModel


class UnionType:
    """
    A closed set of model variants keyed by typename.

    Mappings resolve by explicit `__typename` first and by shape otherwise.
    Anything that does not land on exactly one variant raises UnknownVariant.
    """

    def __init__(self, name: str, *variants: type[GraphModel]):
        if not variants:
            raise ValueError(f"Union {name} needs at least one variant")
        self.name = name
        self.variants: dict[str, type[GraphModel]] = {
            model.typename(): model for model in variants
        }

    def __repr__(self) -> str:
        return f"UnionType({self.name!r}, {' | '.join(self.variants)})"

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(self.variants)

    def tag_of(self, value: Any) -> str:
        if isinstance(value, GraphModel):
            tag = value.typename()
            if tag not in self.variants:
                raise UnknownVariant(self.name, f"{tag} is not one of {self.tags}")
            return tag

        if isinstance(value, Mapping):
            typename = value.get(TYPENAME_KEY)
            if typename is not None:
                if not isinstance(typename, str) or typename not in self.variants:
                    raise UnknownVariant(
                        self.name, f"__typename {typename!r} is not one of {self.tags}",
                    )
                return typename

            matches = [
                tag for tag, model in self.variants.items()
                if model.matches_shape(value)
            ]
            if len(matches) == 1:
                return matches[0]
            if matches:
                raise UnknownVariant(
                    self.name, f"shape is ambiguous between {tuple(matches)}",
                )
            raise UnknownVariant(
                self.name, f"shape with keys {sorted(value)} matches no variant",
            )

        raise UnknownVariant(self.name, f"unsupported value of type {type(value).__name__}")

    def resolve(self, value: Any) -> ResolvedVariant:
        tag = self.tag_of(value)
        model = self.variants[tag]
        if not isinstance(value, model):
            value = model.model_validate(value)
        return ResolvedVariant(tag, value)

    def _ensure_known(self, value: Any) -> Any:
        self.tag_of(value)
        return value

    def annotation(self) -> Any:
        """Pydantic field type validating into exactly one variant."""
        models = list(self.variants.values())
        if len(models) == 1:
            return Annotated[models[0], BeforeValidator(self._ensure_known)]
        tagged = tuple(Annotated[model, Tag(tag)] for tag, model in self.variants.items())
        return Annotated[Union[tagged], Discriminator(self.tag_of)]
