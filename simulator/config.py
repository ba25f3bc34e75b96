"""
Configuration loading for the interception simulator.

Simulation constants, location pools and the optional replay queue come from
a YAML file; process settings (host, port, config path) come from the
environment, optionally seeded from a .env file.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from .models import (
    Location, ThreatLevel, ThreatProfile, HistoricalAttack,
    DEFAULT_THREAT_PROFILES, DEFAULT_ATTACK_TYPES, DEFAULT_THREAT_COLOR,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "data" / "config.yaml"

MODES = ("synthetic", "replay")
DEFENSE_POLICIES = ("none", "target", "in_range")


class ConfigurationError(Exception):
    """Raised when the simulator cannot be configured to produce attacks."""


@dataclass
class SimConfig:
    """All tunables for one simulator process."""
    attack_speed_mps: float = 800.0
    interceptor_speed_mps: float = 1200.0
    tick_interval_ms: float = 50.0
    generation_interval_ms: float = 1000.0
    collision_threshold_m: float = 25_000.0
    min_intercept_fraction: float = 0.05  # below this a proximity hit is ignored
    intercept_standoff_m: float = 100_000.0
    detection_radius_m: float = 1_500_000.0
    defense_policy: str = "target"
    cancel_siblings: bool = True
    max_travel_time_ms: Optional[float] = None
    replay_pause_ms: float = 10_000.0
    mode: str = "synthetic"
    historical_attacks_path: Optional[Path] = None
    locations: list[Location] = field(default_factory=list)
    centers: list[Location] = field(default_factory=list)
    barriers: list[dict] = field(default_factory=list)
    threat_levels: list[ThreatProfile] = field(
        default_factory=lambda: list(DEFAULT_THREAT_PROFILES)
    )
    attack_types: list[str] = field(default_factory=lambda: list(DEFAULT_ATTACK_TYPES))

    def validate(self):
        """Reject values the simulation cannot run with."""
        for name in ("attack_speed_mps", "interceptor_speed_mps",
                     "tick_interval_ms", "generation_interval_ms"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        for name in ("collision_threshold_m", "intercept_standoff_m",
                     "detection_radius_m", "replay_pause_ms"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must not be negative")
        if not 0 <= self.min_intercept_fraction <= 1:
            raise ConfigurationError("min_intercept_fraction must be within [0, 1]")
        if self.max_travel_time_ms is not None and self.max_travel_time_ms <= 0:
            raise ConfigurationError("max_travel_time_ms must be positive when set")
        if self.mode not in MODES:
            raise ConfigurationError(f"Unknown mode: {self.mode}")
        if self.defense_policy not in DEFENSE_POLICIES:
            raise ConfigurationError(f"Unknown defense policy: {self.defense_policy}")
        if any(p.weight < 0 for p in self.threat_levels):
            raise ConfigurationError("Threat level weights must not be negative")

    def threat_color(self, level: ThreatLevel) -> str:
        for profile in self.threat_levels:
            if profile.level == level:
                return profile.color
        return DEFAULT_THREAT_COLOR

    def center_info(self) -> dict:
        """Payload for the center-info message."""
        info = {"centers": [c.to_dict() for c in self.centers]}
        if self.barriers:
            info["barriers"] = self.barriers
        return info


def _parse_threat_levels(raw: list) -> list[ThreatProfile]:
    profiles = []
    for entry in raw:
        level = ThreatLevel.parse(entry.get("level"))
        if level is None:
            raise ConfigurationError(f"Unknown threat level: {entry.get('level')}")
        profiles.append(ThreatProfile(
            level=level,
            weight=float(entry.get("weight", 0)),
            color=entry.get("color", DEFAULT_THREAT_COLOR),
        ))
    return profiles


def config_from_dict(data: dict, base_dir: Optional[Path] = None) -> SimConfig:
    """Build and validate a SimConfig from a parsed YAML mapping."""
    sim = data.get("simulation", {}) or {}
    defaults = SimConfig()

    try:
        config = SimConfig(
            attack_speed_mps=float(sim.get("attack_speed_mps", defaults.attack_speed_mps)),
            interceptor_speed_mps=float(
                sim.get("interceptor_speed_mps", defaults.interceptor_speed_mps)
            ),
            tick_interval_ms=float(sim.get("tick_interval_ms", defaults.tick_interval_ms)),
            generation_interval_ms=float(
                sim.get("generation_interval_ms", defaults.generation_interval_ms)
            ),
            collision_threshold_m=float(
                sim.get("collision_threshold_m", defaults.collision_threshold_m)
            ),
            min_intercept_fraction=float(
                sim.get("min_intercept_fraction", defaults.min_intercept_fraction)
            ),
            intercept_standoff_m=float(
                sim.get("intercept_standoff_m", defaults.intercept_standoff_m)
            ),
            detection_radius_m=float(
                sim.get("detection_radius_m", defaults.detection_radius_m)
            ),
            defense_policy=sim.get("defense_policy", defaults.defense_policy),
            cancel_siblings=bool(sim.get("cancel_siblings", defaults.cancel_siblings)),
            max_travel_time_ms=(
                float(sim["max_travel_time_ms"])
                if sim.get("max_travel_time_ms") is not None else None
            ),
            replay_pause_ms=float(sim.get("replay_pause_ms", defaults.replay_pause_ms)),
            mode=sim.get("mode", defaults.mode),
            locations=[Location.from_dict(x) for x in data.get("locations", []) or []],
            centers=[Location.from_dict(x) for x in data.get("centers", []) or []],
            barriers=list(data.get("barriers", []) or []),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration value: {e}") from e

    if data.get("threat_levels"):
        config.threat_levels = _parse_threat_levels(data["threat_levels"])
    if data.get("attack_types"):
        config.attack_types = [str(t) for t in data["attack_types"]]

    history = data.get("historical_attacks")
    if history:
        path = Path(history)
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        config.historical_attacks_path = path

    config.validate()
    return config


def load_config(path: Path | str = DEFAULT_CONFIG_PATH) -> SimConfig:
    """Load simulator configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    config = config_from_dict(data, base_dir=path.parent)
    logger.info(
        f"Config loaded from {path}: {len(config.locations)} locations, "
        f"{len(config.centers)} centers, mode={config.mode}"
    )
    return config


def load_historical_attacks(
    path: Path | str,
    centers: list[Location],
) -> list[HistoricalAttack]:
    """
    Load the replay queue, oldest first.

    Each record needs a source with lat/lng; a record without a target is
    aimed at the first configured center.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    records = data.get("attacks", data) if isinstance(data, dict) else data
    attacks = []
    for index, row in enumerate(records or []):
        try:
            src = row.get("source") or {}
            if src.get("lat") is None:
                logger.warning(f"Skipping historical attack {index}: no source position")
                continue
            tgt = row.get("target")
            if tgt:
                target = Location.from_dict(tgt)
            elif centers:
                target = centers[0]
            else:
                logger.warning(f"Skipping historical attack {index}: no target")
                continue
            attacks.append(HistoricalAttack(
                id=str(row.get("id", f"attack-{index}")),
                source=Location.from_dict({"id": src.get("id", ""), **src}),
                target=target,
                threat_level=str(row.get("threatLevel", row.get("threat_level", "Medium"))),
                attack_type=row.get("attackType", row.get("attack_type", "Cyber Attack")),
                timestamp=str(row.get("timestamp", "")),
                signature=row.get("signature"),
                category=row.get("category"),
            ))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping historical attack {index}: malformed record ({e})")

    attacks.sort(key=lambda a: a.timestamp)
    logger.info(f"Loaded {len(attacks)} historical attacks from {path}")
    return attacks


def load_env(env_path: Optional[Path] = None) -> dict:
    """Read process settings from the environment (and .env if present)."""
    load_dotenv(env_path or Path(__file__).parent.parent / ".env")
    return {
        "host": os.environ.get("HOST", "0.0.0.0"),
        "port": int(os.environ.get("PORT", "4000")),
        "config": os.environ.get("SIM_CONFIG", str(DEFAULT_CONFIG_PATH)),
        "log_level": os.environ.get("LOG_LEVEL", "INFO"),
    }
