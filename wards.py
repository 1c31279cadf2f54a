"""
District and ward coordinate table for Ho Chi Minh City
Static data used to place a delivery address on the map
"""

from typing import Dict, List, Optional, Tuple

# district name -> ward name -> (latitude, longitude)
HCM_DISTRICTS: Dict[str, Dict[str, Tuple[float, float]]] = {
    "Quận 1": {
        "Phường Bến Nghé": (10.7769, 106.7009),
        "Phường Bến Thành": (10.7726, 106.6984),
        "Phường Cầu Kho": (10.7626, 106.6907),
        "Phường Cô Giang": (10.7671, 106.6932),
        "Phường Đa Kao": (10.7872, 106.7051),
    },
    "Quận 3": {
        "Phường 1": (10.7797, 106.6848),
        "Phường 2": (10.7822, 106.6842),
        "Phường 3": (10.7800, 106.6870),
        "Phường 4": (10.7760, 106.6840),
        "Phường 5": (10.7750, 106.6820),
    },
    "Quận 5": {
        "Phường 1": (10.7540, 106.6639),
        "Phường 2": (10.7545, 106.6680),
        "Phường 3": (10.7550, 106.6700),
        "Phường 4": (10.7560, 106.6720),
        "Phường 5": (10.7570, 106.6740),
    },
    "Quận 10": {
        "Phường 1": (10.7700, 106.6670),
        "Phường 2": (10.7705, 106.6700),
        "Phường 3": (10.7710, 106.6720),
        "Phường 4": (10.7720, 106.6740),
        "Phường 5": (10.7730, 106.6760),
    },
    "Quận 7": {
        "Phường Tân Phong": (10.7266, 106.7022),
        "Phường Tân Hưng": (10.7400, 106.7010),
        "Phường Tân Kiểng": (10.7490, 106.7015),
        "Phường Bình Thuận": (10.7440, 106.7070),
        "Phường Phú Mỹ": (10.7190, 106.7210),
    },
    "Quận Bình Thạnh": {
        "Phường 1": (10.8030, 106.7070),
        "Phường 2": (10.8050, 106.7100),
        "Phường 3": (10.8070, 106.7120),
        "Phường 5": (10.8100, 106.7150),
        "Phường 6": (10.8120, 106.7180),
    },
    "Quận Gò Vấp": {
        "Phường 1": (10.8380, 106.6680),
        "Phường 3": (10.8400, 106.6700),
        "Phường 4": (10.8420, 106.6720),
        "Phường 5": (10.8440, 106.6740),
        "Phường 6": (10.8460, 106.6760),
    },
}


def get_available_districts() -> List[str]:
    """Get list of all districts in the table"""
    return list(HCM_DISTRICTS.keys())


def get_wards(district: str) -> List[str]:
    """Get ward names of a district (empty if unknown)"""
    return list(HCM_DISTRICTS.get(district, {}).keys())


def lookup_ward(district: str, ward: str) -> Optional[Tuple[float, float]]:
    """
    Exact-match lookup of a ward's coordinates

    No trimming, case folding or fuzzy matching: the names must match the
    table exactly, as they come from the address picker.

    Returns:
        (latitude, longitude) or None if the district/ward pair is unknown
    """
    return HCM_DISTRICTS.get(district, {}).get(ward)


def get_districts_info() -> List[Dict]:
    """District list with ward coordinates, for the address picker"""
    return [
        {
            "name": district,
            "wards": [
                {"name": ward, "latitude": lat, "longitude": lon}
                for ward, (lat, lon) in wards.items()
            ],
        }
        for district, wards in HCM_DISTRICTS.items()
    ]
