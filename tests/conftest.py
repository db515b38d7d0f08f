"""Module to setup fixtures and other required artifacts for tests"""

import pytest

from covenant import RPCModule
from tests.support import contracts
from tests.support.clients import ENGINES


@pytest.fixture(autouse=True)
def reset_state():
    """Start every test with a clean in-memory store and call log"""
    contracts.reset_planets()
    contracts.greeting_calls.clear()
    yield


@pytest.fixture(params=ENGINES)
def engine(request):
    """Run a test once per supported server engine"""
    return request.param


@pytest.fixture
def planet_rpc():
    return RPCModule(
        contract=contracts.planet_contract,
        controllers=[contracts.PlanetController],
    )
