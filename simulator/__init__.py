"""
Real-time interception simulator for the cyber attack map.

Core modules:
- geo: Haversine distance and path interpolation
- models: Locations, threat levels, attack descriptors
- config: YAML/env configuration
- generator: Synthetic and replayed attack generation
- attack: In-flight attack simulation
- interceptor: Intercept planning and interceptor simulation
- registry: Active simulation table driven by one clock
"""

from .models import (
    Location, ThreatLevel, ThreatProfile, HistoricalAttack, AttackDescriptor,
)
from .geo import distance_meters, interpolate, intercept_point, EARTH_RADIUS_M
from .config import (
    SimConfig, ConfigurationError, load_config, config_from_dict,
    load_historical_attacks, load_env,
)
from .generator import (
    AttackSource, SyntheticSource, ReplaySource, ReplayState, EventGenerator,
    build_generator,
)
from .attack import AttackSimulation, AttackStatus
from .interceptor import (
    InterceptorSimulation, InterceptorStatus, InterceptPlan, AttackProgress,
    plan_intercept,
)
from .registry import SimulationRegistry, SimulationEntry, select_defenders
from . import events

__all__ = [
    # Models
    "Location", "ThreatLevel", "ThreatProfile", "HistoricalAttack", "AttackDescriptor",
    # Geo
    "distance_meters", "interpolate", "intercept_point", "EARTH_RADIUS_M",
    # Config
    "SimConfig", "ConfigurationError", "load_config", "config_from_dict",
    "load_historical_attacks", "load_env",
    # Generation
    "AttackSource", "SyntheticSource", "ReplaySource", "ReplayState",
    "EventGenerator", "build_generator",
    # Simulation
    "AttackSimulation", "AttackStatus",
    "InterceptorSimulation", "InterceptorStatus", "InterceptPlan", "AttackProgress",
    "plan_intercept",
    "SimulationRegistry", "SimulationEntry", "select_defenders",
    "events",
]
