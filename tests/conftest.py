from unittest.mock import MagicMock

import pytest

from statechart.core.definition import Definition
from statechart.core.machine import Machine
from tests.utils import (
    counter_definition,
    eventless_definition,
    history_definition,
    job_definition,
    light_definition,
    parallel_definition,
    upload_definition,
)


@pytest.fixture
def light_machine():
    """Traffic light machine with no option registries."""
    return Machine(light_definition())


@pytest.fixture
def light():
    """Compiled traffic light definition."""
    return Definition.compile(light_definition())


@pytest.fixture
def parallel_machine():
    return Machine(parallel_definition())


@pytest.fixture
def history_machine():
    return Machine(history_definition())


@pytest.fixture
def job_machine():
    return Machine(job_definition())


@pytest.fixture
def upload_machine():
    return Machine(upload_definition())


@pytest.fixture
def counter_machine():
    return Machine(counter_definition())


@pytest.fixture
def eventless_machine():
    return Machine(eventless_definition())


@pytest.fixture
def strict_machine():
    """Strict machine accepting only GO."""
    return Machine({"strict": True, "states": {"a": {"on": {"GO": "b"}}, "b": {}}})


@pytest.fixture
def dispatcher():
    """Mock run loop receiving built-in action descriptors."""
    return MagicMock(name="dispatcher")
