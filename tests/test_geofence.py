import pytest

from staffhub.services.geofence import (
    EARTH_RADIUS_M,
    haversine_distance,
    inside_geofence,
    accuracy_acceptable,
)


SITE = (6.5244, 3.3792)


def test_same_point_is_zero():
    assert haversine_distance(*SITE, *SITE) == 0


def test_distance_is_symmetric():
    a = haversine_distance(6.5244, 3.3792, 6.6018, 3.3515)
    b = haversine_distance(6.6018, 3.3515, 6.5244, 3.3792)
    assert a == pytest.approx(b)


def test_one_degree_of_latitude():
    # pi * R / 180 along a meridian
    assert haversine_distance(0, 0, 1, 0) == pytest.approx(EARTH_RADIUS_M * 3.141592653589793 / 180, rel=1e-9)


def test_known_city_pair():
    # Lagos to Abuja, roughly 525 km
    d = haversine_distance(6.5244, 3.3792, 9.0765, 7.3986)
    assert 515_000 < d < 535_000


def test_caller_100m_away_is_inside():
    inside, distance = inside_geofence(SITE[0] + 0.0009, SITE[1], *SITE)
    assert inside
    assert distance == pytest.approx(100, abs=1)


def test_caller_600m_away_is_outside():
    inside, distance = inside_geofence(SITE[0] + 0.0054, SITE[1], *SITE)
    assert not inside
    assert distance == pytest.approx(600, abs=1)


def test_boundary_counts_as_inside():
    lat = SITE[0] + 0.0009
    _, distance = inside_geofence(lat, SITE[1], *SITE)
    inside, _ = inside_geofence(lat, SITE[1], *SITE, radius_m=distance)
    assert inside


def test_custom_radius():
    inside, _ = inside_geofence(SITE[0] + 0.0054, SITE[1], *SITE, radius_m=1000)
    assert inside


@pytest.mark.parametrize("accuracy,expected", [
    (None, True),
    (5, True),
    (100, True),
    (100.5, False),
    (250, False),
])
def test_accuracy_limit(accuracy, expected):
    assert accuracy_acceptable(accuracy) is expected
