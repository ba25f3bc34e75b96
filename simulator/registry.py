"""
Simulation registry.

Owns every active attack and the interceptors fired at it, keyed by attack
id. A single clock drives `tick(now_ms)`; within one entry the attack moves
first, then each interceptor resolves against the attack's live progress,
and only then can the attack count as a hit. Entries are retired once the
attack and all of its interceptors are terminal.
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Optional

from .attack import AttackSimulation, AttackStatus
from .config import SimConfig
from .events import Publisher, null_publisher
from .geo import distance_meters
from .interceptor import (
    AttackProgress, InterceptorSimulation, InterceptorStatus, InterceptPlan,
    plan_intercept,
)
from .models import AttackDescriptor, Location

logger = logging.getLogger(__name__)


@dataclass
class SimulationEntry:
    """One attack and everything fired at it."""
    attack: AttackSimulation
    generation: int
    interceptors: list[InterceptorSimulation] = field(default_factory=list)

    @property
    def is_done(self) -> bool:
        return self.attack.is_terminal and all(i.is_terminal for i in self.interceptors)


def select_defenders(
    attack: AttackDescriptor,
    centers: list[Location],
    policy: str,
    detection_radius_m: float,
) -> list[Location]:
    """Centers that should fire at this attack under the given policy."""
    if policy == "none":
        return []
    if policy == "target":
        return [attack.target]

    # in_range: the target first, then every other center close enough to it
    defenders = [attack.target]
    for center in centers:
        if center.id == attack.target.id:
            continue
        if distance_meters(center, attack.target) <= detection_radius_m:
            defenders.append(center)
    return defenders


class SimulationRegistry:
    """Process-wide table of active simulations."""

    def __init__(self, config: SimConfig, publish: Publisher = null_publisher):
        self.config = config
        self.publish = publish
        self.entries: dict[str, SimulationEntry] = {}
        self._generations = itertools.count(1)
        self._sim_seq = itertools.count(1)
        self.stats = {"attacks": 0, "hits": 0, "intercepted": 0, "missed": 0, "cancelled": 0}

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, attack_id: str) -> bool:
        return attack_id in self.entries

    def register(self, attack: AttackDescriptor, now_ms: float) -> str:
        """Start simulating an attack. Returns its id."""
        if attack.id in self.entries:
            logger.warning(f"Attack {attack.id} already registered")
            return attack.id

        sim = AttackSimulation(attack, start_ms=now_ms, publish=self.publish)
        self.entries[attack.id] = SimulationEntry(attack=sim, generation=next(self._generations))
        self.stats["attacks"] += 1
        return attack.id

    def attach_interceptor(
        self,
        attack_id: str,
        center: Location,
        now_ms: float,
        plan: Optional[InterceptPlan] = None,
    ) -> Optional[str]:
        """Schedule an interceptor from `center`. Unknown or finished attacks are ignored."""
        entry = self.entries.get(attack_id)
        if entry is None:
            logger.warning(f"Cannot attach interceptor: attack {attack_id} not registered")
            return None
        if entry.attack.is_terminal:
            logger.warning(f"Cannot attach interceptor: attack {attack_id} already finished")
            return None

        plan = plan or plan_intercept(entry.attack.descriptor, center, self.config)
        # The plan is relative to attack start; shave off time already flown.
        elapsed = max(0.0, now_ms - entry.attack.start_ms)
        delay = max(0.0, plan.delay_ms - elapsed)

        sim_id = f"{attack_id}:{entry.generation}:{next(self._sim_seq)}"
        sim = InterceptorSimulation(
            sim_id=sim_id,
            attack_id=attack_id,
            center=center,
            aim_point=plan.aim_point,
            scheduled_ms=now_ms,
            travel_time_ms=plan.interceptor_time_ms,
            delay_ms=delay,
            collision_threshold_m=self.config.collision_threshold_m,
            min_intercept_fraction=self.config.min_intercept_fraction,
            aim_fraction=plan.aim_fraction,
            publish=self.publish,
        )
        entry.interceptors.append(sim)
        sim.announce(plan)
        logger.info(
            f"Interceptor {sim_id} from {center.id}: launch in {delay / 1000:.1f}s, "
            f"flight {plan.interceptor_time_ms / 1000:.1f}s, "
            f"predicted {'intercept' if plan.predicted_intercept else 'miss'}"
        )
        return sim_id

    def defend(self, attack_id: str, now_ms: float) -> list[str]:
        """Attach interceptors according to the configured defense policy."""
        entry = self.entries.get(attack_id)
        if entry is None:
            logger.warning(f"Cannot defend against unknown attack {attack_id}")
            return []
        defenders = select_defenders(
            entry.attack.descriptor,
            self.config.centers,
            self.config.defense_policy,
            self.config.detection_radius_m,
        )
        sim_ids = []
        for center in defenders:
            sim_id = self.attach_interceptor(attack_id, center, now_ms)
            if sim_id:
                sim_ids.append(sim_id)
        return sim_ids

    def attack_progress(self, attack_id: str) -> Optional[AttackProgress]:
        """Live progress of a registered attack, or None once it is retired."""
        entry = self.entries.get(attack_id)
        if entry is None:
            return None
        attack = entry.attack
        return AttackProgress(
            attack_id=attack_id,
            fraction=attack.fraction,
            position=attack.position,
            elapsed_ms=attack.elapsed_ms,
            start_ms=attack.start_ms,
            travel_time_ms=attack.travel_time_ms,
        )

    def tick(self, now_ms: float):
        """Advance every active entry. A failing entry is logged and retired."""
        for attack_id in list(self.entries):
            entry = self.entries.get(attack_id)
            if entry is None:
                continue
            try:
                self._tick_entry(entry, now_ms)
            except Exception as e:
                logger.error(f"Simulation for attack {attack_id} failed: {e}")
                self.retire(attack_id)

    def _tick_entry(self, entry: SimulationEntry, now_ms: float):
        attack = entry.attack
        attack.advance(now_ms)

        for sim in entry.interceptors:
            if sim.is_terminal:
                continue
            status = sim.advance(now_ms, self.attack_progress(attack.id))
            if status == InterceptorStatus.INTERCEPTED:
                self.stats["intercepted"] += 1
                attack.mark_intercepted()
                if self.config.cancel_siblings:
                    for other in entry.interceptors:
                        if other is not sim and not other.is_terminal:
                            other.cancel()
                            self.stats["cancelled"] += 1
                    break
            elif status == InterceptorStatus.MISSED:
                self.stats["missed"] += 1

        if attack.arrived and not attack.is_terminal:
            attack.mark_hit()
            self.stats["hits"] += 1

        if entry.is_done:
            self.retire(attack.id)

    def retire(self, attack_id: str) -> bool:
        """
        Drop an entry and stop its simulations. Returns False if it was already gone.

        Interceptors still scheduled or in flight are cancelled, so each one
        still publishes its single intercept-result.
        """
        entry = self.entries.pop(attack_id, None)
        if entry is None:
            return False
        if entry.attack.status == AttackStatus.ACTIVE:
            logger.warning(f"Retiring attack {attack_id} while still active")
        entry.attack.stop()
        for sim in entry.interceptors:
            if not sim.is_terminal:
                sim.cancel(reason="retired")
                self.stats["cancelled"] += 1
            sim.stop()
        return True

    def shutdown(self):
        """Retire everything, e.g. when the server stops."""
        for attack_id in list(self.entries):
            self.retire(attack_id)
