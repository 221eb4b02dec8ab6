"""Shared fixtures for crud-engine tests."""

from __future__ import annotations

import pytest

from crud_engine.adapters.memory import MemoryStorageAdapter
from crud_engine.config import EndpointConfig
from crud_engine.context import RequestContext
from crud_engine.model import ModelRegistry

from .models import POSTS, PROFILES, SETTINGS, USER_CONFIG, USERS


@pytest.fixture
def registry() -> ModelRegistry:
    return ModelRegistry(USERS, POSTS, PROFILES, SETTINGS)


@pytest.fixture
def adapter() -> MemoryStorageAdapter:
    return MemoryStorageAdapter()


@pytest.fixture
def tenant_a() -> RequestContext:
    return RequestContext(values={"tenantId": "t1"})


@pytest.fixture
def tenant_b() -> RequestContext:
    return RequestContext(values={"tenantId": "t2"})


@pytest.fixture
def config() -> EndpointConfig:
    return USER_CONFIG
