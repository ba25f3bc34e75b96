"""
Attack event generation.

Two interchangeable sources feed one generator:
- SyntheticSource: random source/target pairs with weighted threat levels
- ReplaySource: walks a historical queue, pausing before it starts over

The generator turns whatever the source picks into an AttackDescriptor with
distance and travel time at the process-wide attack speed.
"""

import time
import uuid
import random
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .config import SimConfig, ConfigurationError, load_historical_attacks
from .events import ATTACK_EVENT, Publisher, null_publisher
from .geo import distance_meters
from .models import (
    Location, ThreatLevel, ThreatProfile, HistoricalAttack, AttackDescriptor,
)

logger = logging.getLogger(__name__)


@dataclass
class AttackPick:
    """What a source chose for the next attack, before kinematics."""
    source: Location
    target: Location
    threat_level: ThreatLevel
    attack_type: str
    extras: dict = field(default_factory=dict)


def pick_weighted(profiles: list[ThreatProfile], rng: random.Random) -> ThreatProfile:
    """Draw in [0, total weight) and return the first profile whose cumulative weight exceeds it."""
    total = sum(p.weight for p in profiles)
    r = rng.random() * total
    for profile in profiles:
        if r < profile.weight:
            return profile
        r -= profile.weight
    return profiles[-1]


class AttackSource(ABC):
    """Base class for anything that can propose the next attack."""

    @abstractmethod
    def next_pick(self, now_ms: float) -> Optional[AttackPick]:
        """Return the next attack to launch, or None to skip this round."""
        pass


class SyntheticSource(AttackSource):
    """Uniform source/target choice, weighted threat level."""

    def __init__(self, config: SimConfig, rng: Optional[random.Random] = None):
        self.locations = list(config.locations)
        self.centers = list(config.centers)
        self.threat_levels = list(config.threat_levels)
        self.attack_types = list(config.attack_types)
        self.rng = rng or random.Random()

    def is_usable(self) -> bool:
        return bool(self.locations and self.centers and self.threat_levels)

    def next_pick(self, now_ms: float) -> Optional[AttackPick]:
        if not self.is_usable():
            logger.error(
                f"Cannot generate attack: {len(self.locations)} locations, "
                f"{len(self.centers)} centers, {len(self.threat_levels)} threat levels"
            )
            return None

        source = self.rng.choice(self.locations)
        threat = pick_weighted(self.threat_levels, self.rng)
        target = self.rng.choice(self.centers)
        attack_type = self.rng.choice(self.attack_types) if self.attack_types else "Unknown"
        return AttackPick(
            source=source,
            target=target,
            threat_level=threat.level,
            attack_type=attack_type,
        )


class ReplayState(Enum):
    PLAYING = "playing"
    PAUSED = "paused"


class ReplaySource(AttackSource):
    """
    Replays historical attacks in order.

    When the cursor runs off the end the source pauses for `pause_ms`,
    returning None the whole time, then restarts at the first record.
    """

    def __init__(
        self,
        records: list[HistoricalAttack],
        pause_ms: float = 10_000.0,
        locations: Optional[list[Location]] = None,
        centers: Optional[list[Location]] = None,
    ):
        self.records = list(records)
        self.pause_ms = pause_ms
        self.locations = list(locations or [])
        self.centers = list(centers or [])
        self.index = 0
        self.state = ReplayState.PLAYING
        self.resume_at: Optional[float] = None

    def next_pick(self, now_ms: float) -> Optional[AttackPick]:
        if not self.records:
            logger.error("Cannot replay attacks: historical queue is empty")
            return None

        if self.index >= len(self.records):
            if self.state == ReplayState.PLAYING:
                self.state = ReplayState.PAUSED
                self.resume_at = now_ms + self.pause_ms
                logger.info(
                    f"All {len(self.records)} historical attacks launched. "
                    f"Pausing {self.pause_ms / 1000:.0f}s"
                )
                return None
            if now_ms < self.resume_at:
                return None
            logger.info("Pause ended. Restarting historical replay")
            self.index = 0
            self.state = ReplayState.PLAYING
            self.resume_at = None

        record = self.records[self.index]
        self.index += 1

        level = ThreatLevel.parse(record.threat_level)
        if level is None:
            logger.warning(
                f"Unknown threat level '{record.threat_level}' in {record.id}, using Medium"
            )
            level = ThreatLevel.MEDIUM

        extras = {"historicalId": record.id}
        if record.signature is not None:
            extras["signature"] = record.signature
        if record.category is not None:
            extras["category"] = record.category

        return AttackPick(
            source=self._resolve(record.source, self.locations, "{city} ({ip})"),
            target=self._resolve(record.target, self.centers, "{city} Server ({ip})"),
            threat_level=level,
            attack_type=record.attack_type,
            extras=extras,
        )

    @staticmethod
    def _resolve(loc: Location, pool: list[Location], label: str) -> Location:
        """Match a record endpoint to a known location by IP, else label it."""
        if loc.ip:
            for known in pool:
                if known.ip == loc.ip:
                    return known
        if loc.id:
            return loc
        return Location(
            id=label.format(city=loc.city or "Unknown", ip=loc.ip or "?"),
            lat=loc.lat,
            lng=loc.lng,
            ip=loc.ip,
            city=loc.city,
            country=loc.country,
        )


class EventGenerator:
    """Turns source picks into attack descriptors."""

    def __init__(
        self,
        source: AttackSource,
        config: SimConfig,
        publish: Publisher = null_publisher,
    ):
        self.source = source
        self.config = config
        self.publish = publish
        self.generated = 0

    def travel_time_ms(self, distance_m: float) -> float:
        travel = distance_m / self.config.attack_speed_mps * 1000
        if self.config.max_travel_time_ms is not None:
            travel = min(travel, self.config.max_travel_time_ms)
        return travel

    def next_attack(self, now_ms: float) -> Optional[AttackDescriptor]:
        """Next attack descriptor, or None when the source has nothing right now."""
        pick = self.source.next_pick(now_ms)
        if pick is None:
            return None

        total_distance = distance_meters(pick.source, pick.target)
        self.generated += 1
        attack = AttackDescriptor(
            id=str(uuid.uuid4()),
            attack_type=pick.attack_type,
            source=pick.source,
            target=pick.target,
            threat_level=pick.threat_level,
            color=self.config.threat_color(pick.threat_level),
            total_distance=total_distance,
            travel_time_ms=self.travel_time_ms(total_distance),
            timestamp=int(time.time() * 1000),
            extras=dict(pick.extras),
        )
        self.publish(ATTACK_EVENT, attack.to_event())
        logger.info(
            f"New attack: {attack.attack_type} {attack.source.id} → {attack.target.id} "
            f"({attack.threat_level.value}, {attack.travel_time_ms / 1000:.1f}s)"
        )
        return attack


def build_generator(
    config: SimConfig,
    rng: Optional[random.Random] = None,
    publish: Publisher = null_publisher,
) -> EventGenerator:
    """
    Pick the attack source for this process.

    Replay mode falls back to synthetic generation when the historical file
    cannot be read; a process with neither is a configuration error.
    """
    synthetic = SyntheticSource(config, rng)

    if config.mode == "replay":
        records = []
        if config.historical_attacks_path is None:
            logger.error("Replay mode selected but no historical_attacks file configured")
        else:
            try:
                records = load_historical_attacks(
                    config.historical_attacks_path, config.centers
                )
            except Exception as e:
                logger.error(f"Failed to load historical attacks: {e}")
        if records:
            source = ReplaySource(
                records,
                pause_ms=config.replay_pause_ms,
                locations=config.locations,
                centers=config.centers,
            )
            return EventGenerator(source, config, publish)
        logger.warning("No historical attacks available, falling back to synthetic mode")

    if not synthetic.is_usable():
        raise ConfigurationError(
            "No attack locations, defense centers or historical data configured"
        )
    return EventGenerator(synthetic, config, publish)
