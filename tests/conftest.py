"""Shared test fixtures for sealed-keyring tests."""

import pathlib

import pytest

from sealed_keyring.backend import KeyringBackend
from sealed_keyring.config import KeyringConfig
from sealed_keyring.stores.memory import MemoryStorePrimitive

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]


@pytest.fixture
def repo_root() -> pathlib.Path:
    return REPO_ROOT


@pytest.fixture
def primitive() -> MemoryStorePrimitive:
    return MemoryStorePrimitive()


@pytest.fixture
def config() -> KeyringConfig:
    return KeyringConfig(service_name="com.example.test")


@pytest.fixture
def backend(config: KeyringConfig, primitive: MemoryStorePrimitive) -> KeyringBackend:
    return KeyringBackend(config, primitive)
