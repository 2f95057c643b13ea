"""Unit tests for the haversine distance."""

import math

import pytest

from src.domain.distance import EARTH_RADIUS_KM, haversine_km


def _reference_km(lat1, lon1, lat2, lon2):
    """Same sphere, ``asin`` form of the haversine formula."""
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dp, dl = math.radians(lat2 - lat1), math.radians(lon2 - lon1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_km(12.9716, 77.5946, 12.9716, 77.5946) == 0.0

    def test_known_distance(self):
        # Bangalore centre -> Koramangala
        d = haversine_km(12.9716, 77.5946, 12.9352, 77.6146)
        assert d == pytest.approx(4.59, abs=0.01)

    @pytest.mark.parametrize(
        "a, b",
        [
            ((12.9716, 77.5946), (12.9352, 77.6146)),
            ((19.0896, 72.8656), (28.6139, 77.2090)),
            ((-33.8688, 151.2093), (51.5074, -0.1278)),
        ],
    )
    def test_symmetric(self, a, b):
        assert haversine_km(*a, *b) == pytest.approx(haversine_km(*b, *a), rel=1e-12)

    @pytest.mark.parametrize(
        "a, b",
        [
            ((12.9716, 77.5946), (12.9784, 77.6408)),
            ((0.0, 0.0), (0.0, 90.0)),
            ((40.7128, -74.0060), (34.0522, -118.2437)),
        ],
    )
    def test_matches_reference_formula(self, a, b):
        assert haversine_km(*a, *b) == pytest.approx(_reference_km(*a, *b), rel=1e-6)

    def test_quarter_of_equator(self):
        expected = EARTH_RADIUS_KM * math.pi / 2
        assert haversine_km(0.0, 0.0, 0.0, 90.0) == pytest.approx(expected, rel=1e-9)
