"""
In-flight attack simulation.

An attack flies from its source to its target at constant speed. Each tick
maps elapsed time to a progress fraction and publishes the interpolated
position until the attack arrives (hit) or an interceptor defeats it.
"""

import logging
from enum import Enum

from .events import ATTACK_UPDATE, ATTACK_FINAL, Publisher, null_publisher
from .geo import interpolate
from .models import AttackDescriptor, Location

logger = logging.getLogger(__name__)


class AttackStatus(Enum):
    ACTIVE = "active"
    HIT = "hit"
    INTERCEPTED = "intercepted"


class AttackSimulation:
    """Runtime state of one attack."""

    def __init__(
        self,
        descriptor: AttackDescriptor,
        start_ms: float,
        publish: Publisher = null_publisher,
    ):
        self.descriptor = descriptor
        self.start_ms = start_ms
        self.travel_time_ms = descriptor.travel_time_ms
        self.publish = publish
        self.status = AttackStatus.ACTIVE
        self.fraction = 0.0
        self.elapsed_ms = 0.0
        self.position: Location = descriptor.source
        self.updates_published = 0
        self.stopped = False

    @property
    def id(self) -> str:
        return self.descriptor.id

    @property
    def is_terminal(self) -> bool:
        return self.status != AttackStatus.ACTIVE

    def fraction_at(self, now_ms: float) -> float:
        """Progress at `now_ms`, clamped to [0, 1]. Zero travel time means arrived."""
        if self.travel_time_ms <= 0:
            return 1.0
        elapsed = max(0.0, now_ms - self.start_ms)
        return min(1.0, elapsed / self.travel_time_ms)

    def advance(self, now_ms: float) -> float:
        """Move to `now_ms` and publish the new position. Returns the fraction."""
        if self.is_terminal:
            return self.fraction

        frac = max(self.fraction, self.fraction_at(now_ms))
        first = self.updates_published == 0
        self.elapsed_ms = max(self.elapsed_ms, now_ms - self.start_ms)
        if not first and frac <= self.fraction:
            return self.fraction

        self.fraction = frac
        self.position = interpolate(self.descriptor.source, self.descriptor.target, frac)
        self.publish(ATTACK_UPDATE, {
            "id": self.id,
            "fraction": self.fraction,
            "position": self.position.point(),
            "elapsedMs": self.elapsed_ms,
            "attackTravelTimeMs": self.travel_time_ms,
        })
        self.updates_published += 1
        return self.fraction

    @property
    def arrived(self) -> bool:
        return self.fraction >= 1.0

    def mark_hit(self):
        """Arrival at the target. Publishes attack-final once."""
        if self.is_terminal:
            return
        self.status = AttackStatus.HIT
        self.position = self.descriptor.target
        self.publish(ATTACK_FINAL, {
            "id": self.id,
            "result": "hit",
            "position": self.descriptor.target.point(),
        })
        logger.info(f"Attack {self.id} hit {self.descriptor.target.id}")
        self.stop()

    def mark_intercepted(self):
        if self.is_terminal:
            return
        self.status = AttackStatus.INTERCEPTED
        self.stop()

    def stop(self):
        """Stop ticking. Safe to call more than once."""
        self.stopped = True
