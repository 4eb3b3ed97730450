"""Model registry.

Holds the named transformation models in registration order together with the
set of raw tables they may reference. Registration order is the tie-break the
dependency resolver uses, so it must stay stable.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from airbnb_duck.base import Layer, Model
from airbnb_duck.exceptions import DuplicateModelError


class ModelRegistry:
    """Ordered collection of models plus the raw tables they can read.

    Example:
        registry = ModelRegistry(raw_tables=["listings"])
        registry.register(stg_listings)
        registry.register(dim_listings)
    """

    def __init__(self, raw_tables: Iterable[str] = (), models: Iterable[Model] = ()):
        self.raw_tables: tuple[str, ...] = tuple(dict.fromkeys(raw_tables))
        self._models: dict[str, Model] = {}
        for m in models:
            self.register(m)

    def register(self, model: Model) -> Model:
        if model.name in self._models:
            raise DuplicateModelError(model.name)
        if model.name in self.raw_tables:
            raise DuplicateModelError(model.name, "shadows a raw table of the same name")
        self._models[model.name] = model
        return model

    def get(self, name: str) -> Model:
        return self._models[name]

    def is_raw(self, name: str) -> bool:
        return name in self.raw_tables

    def names(self) -> list[str]:
        return list(self._models)

    def by_layer(self, layer: Layer) -> list[Model]:
        return [m for m in self._models.values() if m.layer == layer]

    def __contains__(self, name: object) -> bool:
        return name in self._models

    def __iter__(self) -> Iterator[Model]:
        return iter(self._models.values())

    def __len__(self) -> int:
        return len(self._models)

    def __repr__(self) -> str:
        return f"ModelRegistry({', '.join(self._models)})"
