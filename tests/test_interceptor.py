import pytest

from simulator import (
    AttackProgress, InterceptorSimulation, InterceptorStatus, InterceptPlan,
    Location, SimConfig, SimulationRegistry, plan_intercept, distance_meters,
)
from simulator.events import (
    ATTACK_FINAL, DEFENSE_LAUNCH, DEFENSE_UPDATE, INTERCEPT_RESULT,
)


def run(registry, times):
    for now in times:
        registry.tick(now)


def test_fast_interceptor_wins(config, make_attack, events, far_center, far_plan):
    registry = SimulationRegistry(config, publish=events)
    registry.register(make_attack(4000), now_ms=0)
    sim_id = registry.attach_interceptor("attack-1", far_center, now_ms=0, plan=far_plan(1000))

    run(registry, range(0, 1001, 250))

    results = events.of(INTERCEPT_RESULT)
    assert len(results) == 1
    assert results[0]["simId"] == sim_id
    assert results[0]["intercepted"] is True
    assert results[0]["outcome"] == "intercepted"
    assert results[0]["interceptorElapsedMs"] == pytest.approx(1000)
    assert events.of(DEFENSE_UPDATE)[-1]["missileFraction"] == pytest.approx(0.25)
    assert events.of(ATTACK_FINAL) == []
    assert "attack-1" not in registry


def test_slow_interceptor_misses(config, make_attack, events, far_center, far_plan):
    registry = SimulationRegistry(config, publish=events)
    registry.register(make_attack(4000), now_ms=0)
    registry.attach_interceptor("attack-1", far_center, now_ms=0, plan=far_plan(5000))

    run(registry, range(0, 4001, 500))

    results = events.of(INTERCEPT_RESULT)
    assert len(results) == 1
    assert results[0]["intercepted"] is False
    assert results[0]["outcome"] == "missed"
    assert results[0]["missileElapsedMs"] == pytest.approx(4000)
    assert len(events.of(ATTACK_FINAL)) == 1
    assert "attack-1" not in registry


def test_same_tick_arrival_goes_to_earlier_arrival(config, make_attack, events, far_center, far_plan):
    registry = SimulationRegistry(config, publish=events)
    registry.register(make_attack(4000, attack_id="early"), now_ms=0)
    registry.register(make_attack(4000, attack_id="late"), now_ms=0)
    registry.attach_interceptor("early", far_center, now_ms=0, plan=far_plan(3000, delay_ms=500))
    registry.attach_interceptor("late", far_center, now_ms=0, plan=far_plan(3500, delay_ms=1000))

    run(registry, [0, 5000])

    by_attack = {r["attackId"]: r for r in events.of(INTERCEPT_RESULT)}
    assert by_attack["early"]["intercepted"] is True
    assert by_attack["early"]["tie"] is True
    assert by_attack["late"]["intercepted"] is False
    assert by_attack["late"]["tie"] is True
    finals = events.of(ATTACK_FINAL)
    assert [f["id"] for f in finals] == ["late"]


def test_proximity_intercept_before_arrival(make_attack, events, equator_target):
    config = SimConfig(collision_threshold_m=25_000)
    registry = SimulationRegistry(config, publish=events)
    registry.register(make_attack(10_000), now_ms=0)
    head_on = InterceptPlan(
        aim_point=Location(id="aim", lat=0.0, lng=5.0),
        delay_ms=0,
        interceptor_time_ms=5000,
        attack_time_to_intercept_ms=5000,
    )
    registry.attach_interceptor("attack-1", equator_target, now_ms=0, plan=head_on)

    run(registry, [0, 1000, 2000, 3000, 4000, 4900])

    result = events.of(INTERCEPT_RESULT)[0]
    assert result["intercepted"] is True
    assert result["collisionDistance"] == pytest.approx(0.2 * 111_195, rel=1e-3)
    assert result["interceptPosition"]["lng"] == pytest.approx(4.9)
    assert "attack-1" not in registry


def test_no_collision_right_after_launch(equator_source):
    sim = InterceptorSimulation(
        sim_id="i-1",
        attack_id="a-1",
        center=equator_source,
        aim_point=Location(id="aim", lat=0.0, lng=10.0),
        scheduled_ms=0,
        travel_time_ms=10_000,
        collision_threshold_m=50_000,
        min_intercept_fraction=0.05,
    )
    progress = AttackProgress(
        attack_id="a-1", fraction=0.0, position=equator_source,
        elapsed_ms=0, start_ms=0, travel_time_ms=10_000,
    )
    assert sim.advance(0, progress) == InterceptorStatus.IN_FLIGHT


def test_waiting_interceptor_misses_when_missile_lands(config, make_attack, events, far_center, far_plan):
    registry = SimulationRegistry(config, publish=events)
    registry.register(make_attack(1000), now_ms=0)
    registry.attach_interceptor("attack-1", far_center, now_ms=0, plan=far_plan(500, delay_ms=5000))

    run(registry, [0, 1000])

    assert events.of(DEFENSE_UPDATE) == []
    result = events.of(INTERCEPT_RESULT)[0]
    assert result["outcome"] == "missed"
    assert len(events.of(ATTACK_FINAL)) == 1


def test_interceptor_fraction_bounded_and_monotonic(config, make_attack, events, far_center, far_plan):
    registry = SimulationRegistry(config, publish=events)
    registry.register(make_attack(10_000), now_ms=0)
    registry.attach_interceptor("attack-1", far_center, now_ms=0, plan=far_plan(8000, delay_ms=1000))

    run(registry, [0, 500, 1500, 1200, 4000, 3000, 7000])

    fractions = [u["fractionIntercept"] for u in events.of(DEFENSE_UPDATE)]
    assert fractions
    assert all(0.0 <= f <= 1.0 for f in fractions)
    assert fractions == sorted(fractions)


def test_plan_delays_launch_to_meet_at_intercept_point(make_attack, equator_target):
    config = SimConfig(attack_speed_mps=800, interceptor_speed_mps=1200, intercept_standoff_m=100_000)
    attack = make_attack(1_111_950 / 800 * 1000)
    plan = plan_intercept(attack, equator_target, config)

    assert distance_meters(plan.aim_point, equator_target) == pytest.approx(100_000, rel=1e-6)
    assert plan.interceptor_time_ms == pytest.approx(100_000 / 1200 * 1000, rel=1e-6)
    assert plan.attack_time_to_intercept_ms == pytest.approx(1_011_950 / 800 * 1000, rel=1e-4)
    assert plan.delay_ms == pytest.approx(
        plan.attack_time_to_intercept_ms - plan.interceptor_time_ms, abs=1
    )
    assert plan.predicted_intercept


def test_plan_out_of_reach_launches_immediately(make_attack):
    config = SimConfig(attack_speed_mps=800, interceptor_speed_mps=1200)
    distant = Location(id="Server Far", lat=60.0, lng=-120.0)
    plan = plan_intercept(make_attack(1_389_937), distant, config)
    assert plan.delay_ms == 0
    assert not plan.predicted_intercept


def test_planned_defense_intercepts(make_attack, events, equator_target):
    config = SimConfig(centers=[equator_target], defense_policy="target")
    registry = SimulationRegistry(config, publish=events)
    registry.register(make_attack(1_111_950 / 800 * 1000), now_ms=0)
    sim_ids = registry.defend("attack-1", now_ms=0)
    assert len(sim_ids) == 1

    launch = events.of(DEFENSE_LAUNCH)[0]
    assert launch["intercepted"] is True
    assert launch["delay"] > 0

    run(registry, range(0, 1_500_000, 1000))

    results = events.of(INTERCEPT_RESULT)
    assert len(results) == 1
    assert results[0]["intercepted"] is True
    assert results[0]["collisionDistance"] <= 25_000
    assert events.of(ATTACK_FINAL) == []
    assert len(registry) == 0


def test_late_interceptor_misses_after_missile_passes_aim_point(make_attack, events, equator_target):
    config = SimConfig(attack_speed_mps=800, interceptor_speed_mps=1200, intercept_standoff_m=100_000)
    registry = SimulationRegistry(config, publish=events)
    attack = make_attack(1_111_950 / 800 * 1000)
    registry.register(attack, now_ms=0)

    on_time = plan_intercept(attack, equator_target, config)
    late = InterceptPlan(
        aim_point=on_time.aim_point,
        delay_ms=0,
        interceptor_time_ms=on_time.attack_time_to_intercept_ms + 60_000,
        attack_time_to_intercept_ms=on_time.attack_time_to_intercept_ms,
        aim_fraction=on_time.aim_fraction,
    )
    north = Location(id="Server North", lat=14.0, lng=on_time.aim_point.lng)
    registry.attach_interceptor("attack-1", north, now_ms=0, plan=late)

    run(registry, range(0, 1_400_001, 1000))

    assert events.of(DEFENSE_LAUNCH)[0]["intercepted"] is False
    results = events.of(INTERCEPT_RESULT)
    assert len(results) == 1
    assert results[0]["intercepted"] is False
    assert results[0]["outcome"] == "missed"
    assert results[0]["tie"] is False
    assert 0.95 < events.of(DEFENSE_UPDATE)[-1]["missileFraction"] < 1.0
    assert len(events.of(ATTACK_FINAL)) == 1
    assert len(registry) == 0


def test_plan_records_aim_point_share_of_path(make_attack, equator_target):
    config = SimConfig(intercept_standoff_m=100_000)
    plan = plan_intercept(make_attack(10_000), equator_target, config)
    assert plan.aim_fraction == pytest.approx(1_011_950 / 1_111_950, rel=1e-4)
