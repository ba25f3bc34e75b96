import pytest

from simulator import (
    AttackDescriptor, InterceptPlan, Location, SimConfig, ThreatLevel,
    distance_meters,
)


class EventLog:
    """Publisher that records every event."""

    def __init__(self):
        self.events = []

    def __call__(self, event, payload):
        self.events.append((event, payload))

    def of(self, name):
        return [payload for event, payload in self.events if event == name]


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
def equator_source():
    return Location(id="Origin", lat=0.0, lng=0.0)


@pytest.fixture
def equator_target():
    return Location(id="Server East", lat=0.0, lng=10.0)


@pytest.fixture
def config(equator_source, equator_target):
    return SimConfig(
        locations=[equator_source],
        centers=[equator_target],
        defense_policy="none",
    )


@pytest.fixture
def make_attack(equator_source, equator_target):
    def _make(travel_time_ms, attack_id="attack-1", source=None, target=None):
        source = source or equator_source
        target = target or equator_target
        return AttackDescriptor(
            id=attack_id,
            attack_type="DDoS",
            source=source,
            target=target,
            threat_level=ThreatLevel.HIGH,
            color="#FF9800",
            total_distance=distance_meters(source, target),
            travel_time_ms=travel_time_ms,
            timestamp=0,
        )
    return _make


@pytest.fixture
def far_plan():
    """Plan for an interceptor flying well clear of the equator path."""
    def _plan(interceptor_time_ms, delay_ms=0.0):
        return InterceptPlan(
            aim_point=Location(id="aim", lat=40.0, lng=5.0),
            delay_ms=delay_ms,
            interceptor_time_ms=interceptor_time_ms,
            attack_time_to_intercept_ms=4000.0,
        )
    return _plan


@pytest.fixture
def far_center():
    return Location(id="Server North", lat=40.0, lng=0.0)
