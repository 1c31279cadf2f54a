"""Tests for distance, ward lookup and shipping fee tiers."""

import pytest

from location_service import (
    STORE_LOCATION, calculate_distance_km, calculate_distance_meters,
    calculate_shipping_fee, fee_for_distance, get_shipping_fee_for_address,
    resolve_coordinates
)
from models import GPSCoordinates
from wards import get_available_districts, get_districts_info, get_wards, lookup_ward


class TestFeeForDistance:
    @pytest.mark.parametrize("distance_km,expected", [
        (0.0, 15000),
        (2.9, 15000),
        (3.0, 15000),
        (3.1, 25000),
        (5.0, 25000),
        (7.0, 25000),
        (7.1, 35000),
        (120.0, 35000),
    ])
    def test_tiers(self, distance_km, expected):
        assert fee_for_distance(distance_km) == expected

    def test_negative_distance_rejected(self):
        with pytest.raises(ValueError):
            fee_for_distance(-0.1)


class TestDistance:
    def test_same_point_is_zero(self):
        assert calculate_distance_meters(10.75, 106.66, 10.75, 106.66) == 0

    def test_one_degree_of_longitude_at_equator(self):
        # 6378137 m * pi / 180
        assert calculate_distance_meters(0, 0, 0, 1) == pytest.approx(111319.49, rel=1e-6)

    def test_is_symmetric(self):
        a = GPSCoordinates(latitude=10.7769, longitude=106.7009)
        b = GPSCoordinates(latitude=10.8460, longitude=106.6760)
        assert calculate_distance_km(a, b) == pytest.approx(calculate_distance_km(b, a))


class TestWardLookup:
    def test_known_ward(self):
        coords = resolve_coordinates("Quận 1", "Phường Bến Nghé")
        assert coords == GPSCoordinates(latitude=10.7769, longitude=106.7009)

    def test_same_ward_name_in_different_districts(self):
        assert lookup_ward("Quận 3", "Phường 1") != lookup_ward("Quận 5", "Phường 1")

    def test_unknown_ward(self):
        assert resolve_coordinates("Quận 1", "Phường Không Có") is None

    def test_unknown_district(self):
        assert resolve_coordinates("Quận 99", "Phường 1") is None

    def test_match_is_exact(self):
        assert resolve_coordinates("quận 1", "Phường Bến Nghé") is None
        assert resolve_coordinates("Quận 1 ", "Phường Bến Nghé") is None

    def test_district_listing(self):
        assert "Quận 5" in get_available_districts()
        assert "Phường Tân Phong" in get_wards("Quận 7")
        assert get_wards("Quận 99") == []
        info = get_districts_info()
        assert len(info) == len(get_available_districts())
        assert all(len(d["wards"]) > 0 for d in info)


class TestShippingFee:
    def test_no_coordinates_falls_back(self):
        result = calculate_shipping_fee(None, default_fee=18000)
        assert result == {"shipping_fee": 18000, "distance_km": None, "source": "default"}

    def test_store_ward_is_nearest_tier(self):
        result = calculate_shipping_fee(resolve_coordinates("Quận 5", "Phường 1"), default_fee=0)
        assert result["shipping_fee"] == 15000
        assert result["distance_km"] < 0.1

    def test_far_ward(self):
        result = calculate_shipping_fee(resolve_coordinates("Quận Gò Vấp", "Phường 6"), default_fee=0)
        assert result["distance_km"] > 7
        assert result["shipping_fee"] == 35000

    def test_store_is_the_origin(self):
        result = calculate_shipping_fee(STORE_LOCATION, default_fee=0)
        assert result["distance_km"] == 0
        assert result["shipping_fee"] == 15000

    def test_address_helper(self):
        result = get_shipping_fee_for_address("Quận 1", "Phường Bến Nghé")
        assert result["coordinates_found"] is True
        assert result["shipping_fee"] == 25000

    def test_address_helper_unknown_ward(self):
        result = get_shipping_fee_for_address("Quận 1", "Nowhere", default_fee=12345)
        assert result["coordinates_found"] is False
        assert result["shipping_fee"] == 12345
        assert result["distance_km"] is None
