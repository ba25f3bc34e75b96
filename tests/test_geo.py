import pytest

from simulator import Location, distance_meters, interpolate, intercept_point


def test_distance_to_self_is_zero():
    a = Location(id="Jakarta", lat=-6.2088, lng=106.8456)
    assert distance_meters(a, a) == 0


def test_distance_is_symmetric():
    a = Location(id="Tokyo", lat=35.6762, lng=139.6503)
    b = Location(id="Paris", lat=48.8566, lng=2.3522)
    assert distance_meters(a, b) == pytest.approx(distance_meters(b, a))


def test_ten_degrees_on_equator(equator_source, equator_target):
    assert distance_meters(equator_source, equator_target) == pytest.approx(1_111_950, abs=1)


def test_interpolate_endpoints(equator_source, equator_target):
    start = interpolate(equator_source, equator_target, 0)
    end = interpolate(equator_source, equator_target, 1)
    assert (start.lat, start.lng) == pytest.approx((0.0, 0.0))
    assert (end.lat, end.lng) == pytest.approx((0.0, 10.0))


def test_interpolate_is_linear_in_degrees():
    a = Location(id="a", lat=10.0, lng=20.0)
    b = Location(id="b", lat=30.0, lng=-20.0)
    mid = interpolate(a, b, 0.25)
    assert mid.lat == pytest.approx(15.0)
    assert mid.lng == pytest.approx(10.0)


def test_intercept_point_sits_standoff_before_target(equator_source, equator_target):
    aim = intercept_point(equator_source, equator_target, 100_000)
    assert distance_meters(aim, equator_target) == pytest.approx(100_000, rel=1e-6)
    assert aim.lat == pytest.approx(0.0)


def test_intercept_point_short_path_falls_back_to_source():
    source = Location(id="near", lat=0.0, lng=0.0)
    target = Location(id="target", lat=0.0, lng=0.5)
    aim = intercept_point(source, target, 100_000)
    assert (aim.lat, aim.lng) == (source.lat, source.lng)
