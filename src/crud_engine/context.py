"""Request context — per-request data handed over by the HTTP layer."""

from __future__ import annotations

import contextlib
from collections.abc import Iterator, Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

_request_context: ContextVar[RequestContext | None] = ContextVar(
    "request_context", default=None
)


@dataclass(frozen=True)
class RequestContext:
    """
    Immutable snapshot of one inbound request.

    Attributes:
        query: Raw query parameters (``filter[age][gte]`` etc.).
        headers: Request headers, looked up case-insensitively.
        path_params: Route parameters.
        values: Arbitrary values set by upstream middleware
            (authenticated tenant, user, ...).
    """

    query: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    path_params: Mapping[str, Any] = field(default_factory=dict)
    values: Mapping[str, Any] = field(default_factory=dict)

    def header(self, name: str) -> str | None:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def with_values(self, **values: Any) -> RequestContext:
        """Return a copy with extra context values merged in."""
        return RequestContext(
            query=self.query,
            headers=self.headers,
            path_params=self.path_params,
            values={**self.values, **values},
        )


def get_request_context() -> RequestContext | None:
    """Get the request context bound to the current task."""
    return _request_context.get()


def set_request_context(ctx: RequestContext | None) -> None:
    """Set the request context for the current task."""
    _request_context.set(ctx)


@contextlib.contextmanager
def bind_request_context(ctx: RequestContext) -> Iterator[RequestContext]:
    """Bind *ctx* for the duration of the ``with`` block."""
    token = _request_context.set(ctx)
    try:
        yield ctx
    finally:
        _request_context.reset(token)


def resolve_request_context(ctx: RequestContext | None = None) -> RequestContext:
    """Return *ctx*, else the bound context, else an empty one."""
    if ctx is not None:
        return ctx
    return _request_context.get() or RequestContext()
