"""Shared fixtures for CoolerWatch tests."""

import pytest

from coolerwatch.delivery import DispatchManager, create_circuit_breaker
from coolerwatch.storage import InMemoryFleetStore

from factories import RecordingGateway


@pytest.fixture
def store() -> InMemoryFleetStore:
    return InMemoryFleetStore()


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def dispatcher(gateway: RecordingGateway) -> DispatchManager:
    """Dispatcher whose circuit never opens during a test."""
    return DispatchManager(gateway, breaker=create_circuit_breaker("test", fail_max=1000))
