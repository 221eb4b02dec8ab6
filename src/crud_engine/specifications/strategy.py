"""
Operator strategies keyed by FilterOperator.

Each backend interprets a FilterCondition through one strategy object per
operator. ``OperatorRegistry`` holds the strategies of one backend; the
in-memory evaluator and the SQLAlchemy compiler subclass it with their
own strategy type.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from .operators import FilterOperator


class OperatorStrategy(ABC):
    """Backend-specific handling of one :class:`FilterOperator`."""

    @property
    @abstractmethod
    def name(self) -> FilterOperator: ...


S = TypeVar("S", bound=OperatorStrategy)


class OperatorRegistry(Generic[S]):
    """
    Strategies of one backend, at most one per operator.

    Registering a strategy for an operator that already has one replaces
    it, which is how callers override a built-in.
    """

    backend = "generic"

    def __init__(self, *strategies: S) -> None:
        self._strategies: dict[FilterOperator, S] = {}
        self.register(*strategies)

    def register(self, *strategies: S) -> None:
        for strategy in strategies:
            self._strategies[strategy.name] = strategy

    def strategy_for(self, name: FilterOperator) -> S:
        """
        Raises:
            ValueError: No strategy is registered for *name*.
        """
        try:
            return self._strategies[FilterOperator(name)]
        except KeyError:
            raise ValueError(
                f"Operator {FilterOperator(name).value!r} is not supported by the "
                f"{self.backend} backend"
            ) from None
