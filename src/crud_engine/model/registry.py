"""ModelRegistry — name → Model lookup with lazy relation resolution."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .model import Model
    from .relations import RelationDescriptor


class ModelRegistry:
    """
    Holds every Model of an application.

    Relation targets are plain names; they are resolved the first time a
    relation is used, so mutually-referencing models can be registered in
    any order.

    Usage::

        registry = ModelRegistry()
        registry.register(users, posts)

        target = registry.target_of(users, "posts")
    """

    def __init__(self, *models: Model) -> None:
        self._models: dict[str, Model] = {}
        self._resolved: dict[tuple[str, str], Model] = {}
        self.register(*models)

    def register(self, *models: Model) -> None:
        for model in models:
            existing = self._models.get(model.name)
            if existing is not None and existing is not model:
                raise ValueError(f"Model {model.name!r} is already registered")
            self._models[model.name] = model

    def get(self, name: str) -> Model:
        try:
            return self._models[name]
        except KeyError:
            raise ValueError(f"Unknown model: {name!r}") from None

    def has(self, name: str) -> bool:
        return name in self._models

    def __iter__(self) -> Iterator[Model]:
        return iter(self._models.values())

    def __len__(self) -> int:
        return len(self._models)

    def target_of(self, owner: Model, relation_name: str) -> Model:
        """Resolve the target model of ``owner.relations[relation_name]``."""
        cache_key = (owner.name, relation_name)
        resolved = self._resolved.get(cache_key)
        if resolved is not None:
            return resolved
        descriptor: RelationDescriptor = owner.relation(relation_name)
        target = self.get(descriptor.target)
        self._resolved[cache_key] = target
        return target

    def check(self) -> None:
        """Eagerly resolve every relation, raising on dangling targets."""
        for model in list(self._models.values()):
            for relation_name in model.relations:
                self.target_of(model, relation_name)
