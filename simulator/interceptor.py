"""
Interceptor planning and simulation.

A defending center fires one interceptor at a point on the attack path a
fixed standoff before the target. Launch is delayed so that the interceptor
and the attack reach that point together; an interceptor that cannot make it
in time launches immediately and usually misses.

Outcome rules, checked every tick in this order:
1. Proximity: interceptor within the collision threshold of the missile
   (after a minimum share of its own flight) -> intercepted
2. Interceptor at the aim point, missile not yet past it -> intercepted
3. Missile arrived, interceptor still flying -> missed
4. Interceptor at the aim point, missile already past it -> whichever
   reached the aim point first wins (a tie when both got there this tick)
"""

import time
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import SimConfig
from .events import DEFENSE_LAUNCH, DEFENSE_UPDATE, INTERCEPT_RESULT, Publisher, null_publisher
from .geo import distance_meters, interpolate, intercept_point
from .models import AttackDescriptor, Location

logger = logging.getLogger(__name__)

INTERCEPTOR_COLOR = "#00FFFF"


class InterceptorStatus(Enum):
    SCHEDULED = "scheduled"
    IN_FLIGHT = "in_flight"
    INTERCEPTED = "intercepted"
    MISSED = "missed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = (
    InterceptorStatus.INTERCEPTED,
    InterceptorStatus.MISSED,
    InterceptorStatus.CANCELLED,
)


@dataclass(frozen=True)
class AttackProgress:
    """Live view of an attack, as read through the registry."""
    attack_id: str
    fraction: float
    position: Location
    elapsed_ms: float
    start_ms: float
    travel_time_ms: float


@dataclass(frozen=True)
class InterceptPlan:
    """Where and when a center should fire."""
    aim_point: Location
    delay_ms: float
    interceptor_time_ms: float
    attack_time_to_intercept_ms: float
    aim_fraction: float = 1.0  # share of the attack path before the aim point

    @property
    def predicted_intercept(self) -> bool:
        return self.interceptor_time_ms <= self.attack_time_to_intercept_ms


def plan_intercept(
    attack: AttackDescriptor,
    center: Location,
    config: SimConfig,
) -> InterceptPlan:
    """Closed-form intercept plan for one center against one attack."""
    aim = intercept_point(attack.source, attack.target, config.intercept_standoff_m)

    # The attack reaches the aim point at the same fraction of its flight as
    # the aim point sits along the path.
    if attack.total_distance > 0:
        path_frac = distance_meters(attack.source, aim) / attack.total_distance
    else:
        path_frac = 0.0
    path_frac = min(1.0, path_frac)
    attack_time = path_frac * attack.travel_time_ms

    interceptor_time = distance_meters(center, aim) / config.interceptor_speed_mps * 1000
    delay = max(0, round(attack_time - interceptor_time))

    return InterceptPlan(
        aim_point=aim,
        delay_ms=delay,
        interceptor_time_ms=interceptor_time,
        attack_time_to_intercept_ms=attack_time,
        aim_fraction=path_frac,
    )


class InterceptorSimulation:
    """Runtime state of one interceptor."""

    def __init__(
        self,
        sim_id: str,
        attack_id: str,
        center: Location,
        aim_point: Location,
        scheduled_ms: float,
        travel_time_ms: float,
        delay_ms: float = 0.0,
        collision_threshold_m: float = 25_000.0,
        min_intercept_fraction: float = 0.05,
        aim_fraction: float = 1.0,
        publish: Publisher = null_publisher,
    ):
        self.sim_id = sim_id
        self.attack_id = attack_id
        self.center = center
        self.aim_point = aim_point
        self.aim_fraction = min(1.0, max(0.0, aim_fraction))
        self.scheduled_ms = scheduled_ms
        self.delay_ms = max(0.0, delay_ms)
        self.launch_ms = scheduled_ms + self.delay_ms
        self.travel_time_ms = travel_time_ms
        self.collision_threshold_m = collision_threshold_m
        self.min_intercept_fraction = min_intercept_fraction
        self.publish = publish

        self.status = InterceptorStatus.SCHEDULED
        self.fraction = 0.0
        self.missile_fraction = 0.0  # last attack fraction seen
        self.elapsed_ms = 0.0
        self.position: Location = center
        self.result: Optional[dict] = None
        self.stopped = False

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def fraction_at(self, now_ms: float) -> float:
        if now_ms < self.launch_ms:
            return 0.0
        if self.travel_time_ms <= 0:
            return 1.0
        return min(1.0, (now_ms - self.launch_ms) / self.travel_time_ms)

    def announce(self, plan: Optional[InterceptPlan] = None):
        """
        Publish defense-launch for this interceptor.

        Called when the interceptor is scheduled, so `launchTime` is wall-clock
        epoch milliseconds now plus the launch delay.
        """
        payload = {
            "simId": self.sim_id,
            "attackId": self.attack_id,
            "center": self.center.to_dict(),
            "threat": self.aim_point.point(),
            "interceptorTimeMs": self.travel_time_ms,
            "launchTime": int(time.time() * 1000 + self.delay_ms),
            "delay": self.delay_ms,
            "color": INTERCEPTOR_COLOR,
        }
        if plan is not None:
            payload["attackTimeToInterceptMs"] = plan.attack_time_to_intercept_ms
            payload["intercepted"] = plan.predicted_intercept
        self.publish(DEFENSE_LAUNCH, payload)

    def advance(self, now_ms: float, attack: Optional[AttackProgress]) -> InterceptorStatus:
        """Move to `now_ms` against the attack's live progress and resolve if possible."""
        if self.is_terminal:
            return self.status

        if attack is None:
            self.cancel(reason="attack retired")
            return self.status

        missile_frac = attack.fraction
        prev_missile_frac = self.missile_fraction
        self.missile_fraction = missile_frac

        if now_ms < self.launch_ms:
            # Still waiting on the pad; only the missile arriving can end this.
            if missile_frac >= 1.0:
                self._resolve(False, InterceptorStatus.MISSED, attack.position, attack)
            return self.status

        self.status = InterceptorStatus.IN_FLIGHT
        prev_frac = self.fraction
        self.fraction = max(self.fraction, self.fraction_at(now_ms))
        self.elapsed_ms = max(self.elapsed_ms, now_ms - self.launch_ms)
        self.position = interpolate(self.center, self.aim_point, self.fraction)

        self.publish(DEFENSE_UPDATE, {
            "simId": self.sim_id,
            "attackId": self.attack_id,
            "fractionIntercept": self.fraction,
            "interceptorPosition": self.position.point(),
            "missileFraction": missile_frac,
            "missilePosition": attack.position.point(),
        })

        gap = distance_meters(self.position, attack.position)
        if self.fraction >= self.min_intercept_fraction and gap <= self.collision_threshold_m:
            self._resolve(True, InterceptorStatus.INTERCEPTED, attack.position, attack,
                          collision_distance=gap)
        elif self.fraction >= 1.0 and missile_frac < self.aim_fraction:
            self._resolve(True, InterceptorStatus.INTERCEPTED, self.position, attack)
        elif missile_frac >= 1.0 and self.fraction < 1.0:
            self._resolve(False, InterceptorStatus.MISSED, attack.position, attack)
        elif self.fraction >= 1.0:
            # Missile is at or past the aim point: compare when each got there.
            interceptor_arrival = self.launch_ms + max(0.0, self.travel_time_ms)
            missile_arrival = attack.start_ms + self.aim_fraction * max(0.0, attack.travel_time_ms)
            tie = prev_frac < 1.0 and prev_missile_frac < self.aim_fraction
            if interceptor_arrival <= missile_arrival:
                self._resolve(True, InterceptorStatus.INTERCEPTED, self.position, attack, tie=tie)
            else:
                self._resolve(False, InterceptorStatus.MISSED, attack.position, attack, tie=tie)

        return self.status

    def _resolve(
        self,
        intercepted: bool,
        status: InterceptorStatus,
        position: Location,
        attack: AttackProgress,
        collision_distance: Optional[float] = None,
        tie: bool = False,
    ):
        self.status = status
        self.result = {
            "simId": self.sim_id,
            "attackId": self.attack_id,
            "intercepted": intercepted,
            "outcome": status.value,
            "interceptPosition": position.point(),
            "interceptorElapsedMs": self.elapsed_ms,
            "missileElapsedMs": attack.elapsed_ms,
            "tie": tie,
        }
        if collision_distance is not None:
            self.result["collisionDistance"] = collision_distance
        self.publish(INTERCEPT_RESULT, self.result)
        logger.info(
            f"Interceptor {self.sim_id} from {self.center.id}: {status.value}"
            + (f" at {collision_distance / 1000:.1f} km" if collision_distance is not None else "")
        )
        self.stop()

    def cancel(self, reason: str = "sibling intercepted"):
        """End this interceptor without a hit. Publishes its result once."""
        if self.is_terminal:
            return
        self.status = InterceptorStatus.CANCELLED
        self.result = {
            "simId": self.sim_id,
            "attackId": self.attack_id,
            "intercepted": False,
            "outcome": InterceptorStatus.CANCELLED.value,
            "interceptPosition": self.position.point(),
            "interceptorElapsedMs": self.elapsed_ms,
            "reason": reason,
        }
        self.publish(INTERCEPT_RESULT, self.result)
        self.stop()

    def stop(self):
        """Stop ticking. Safe to call more than once."""
        self.stopped = True
