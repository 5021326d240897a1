"""License categories and their static configuration."""

from enum import Enum


class LicenseCategory(str, Enum):
    """Closed set of license classes a school can enroll candidates in."""

    B = "B"
    A1 = "A1"
    A2 = "A2"
    C = "C"
    D = "D"
    FARK_A1 = "FARK_A1"
    FARK_A2 = "FARK_A2"
    BAKANLIK_A1 = "BAKANLIK_A1"


CATEGORY_KEYS: tuple[str, ...] = tuple(category.value for category in LicenseCategory)

BASE_CATEGORIES: tuple[str, ...] = ("B", "A1", "A2", "C", "D")

DIFFERENCE_CATEGORIES: tuple[str, ...] = ("FARK_A1", "FARK_A2", "BAKANLIK_A1")

CATEGORY_NAMES: dict[str, str] = {
    "B": "B Sınıfı",
    "A1": "A1 Sınıfı",
    "A2": "A2 Sınıfı",
    "C": "C Sınıfı",
    "D": "D Sınıfı",
    "FARK_A1": "Fark A1",
    "FARK_A2": "Fark A2",
    "BAKANLIK_A1": "Bakanlık A1",
}

DEFAULT_LICENSE_FEES: dict[str, float] = {
    "B": 25000.0,
    "A1": 15000.0,
    "A2": 17500.0,
    "C": 35000.0,
    "D": 40000.0,
    "FARK_A1": 8000.0,
    "FARK_A2": 9000.0,
    "BAKANLIK_A1": 6000.0,
}


def is_known_category(key: str) -> bool:
    """Return True when the key belongs to the closed category set."""
    return key in CATEGORY_KEYS
