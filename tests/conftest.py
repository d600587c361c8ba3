"""
Shared fixtures: every subsystem built from its shipped profile with a fixed
seed, failures disabled and a frozen clock, so scenarios are deterministic.
"""
from datetime import datetime, timezone

import pytest

from subsystems import (
    CarbonDioxideRemediation, ExternalCoolantSystem, InternalCoolantSystem,
    PowerSystem, WaterProcessor, get_parameters, load_profiles
)

FIXED_TIME = datetime(2030, 1, 1, tzinfo=timezone.utc)


def fixed_clock():
    return FIXED_TIME


def build(cls, seed="test", **overrides):
    overrides.setdefault('failure_probability', 0)
    params = get_parameters(cls.PROFILE, seed=seed, **overrides)
    return cls(params, clock=fixed_clock)


@pytest.fixture(autouse=True)
def shipped_profiles():
    """Start every test from the packaged profiles."""
    load_profiles()
    yield
    load_profiles()


@pytest.fixture
def co2():
    return build(CarbonDioxideRemediation)


@pytest.fixture
def internal_coolant():
    return build(InternalCoolantSystem)


@pytest.fixture
def external_coolant():
    return build(ExternalCoolantSystem)


@pytest.fixture
def power():
    return build(PowerSystem)


@pytest.fixture
def water():
    return build(WaterProcessor)


@pytest.fixture(params=[
    CarbonDioxideRemediation, InternalCoolantSystem, ExternalCoolantSystem,
    PowerSystem, WaterProcessor,
], ids=lambda cls: cls.__name__)
def any_subsystem(request):
    return build(request.param)
