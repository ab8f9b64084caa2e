"""Shared fixtures for exporter tests"""
import pytest

from config import TargetConfig
from metrics.registry import MetricsRegistry
from fakes import FakeConnection


@pytest.fixture
def target():
    return TargetConfig(name="shard1", dsn="user:pass@tcp(127.0.0.1:3306)/", origin_prometheus="prod")


@pytest.fixture
def registry():
    return MetricsRegistry()


@pytest.fixture
def fake_connection():
    return FakeConnection()
