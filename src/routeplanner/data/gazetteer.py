"""Static lookup tables for known cities and postal-code regions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from ..models.domain import Coordinate
from ..services.geospatial import distance_between

POSTAL_CODE_PATTERN = re.compile(r"\b(\d{5})\b")
CITY_AFTER_POSTAL_CODE_PATTERN = re.compile(r"\d{5}\s+([^,]+)")


@dataclass(frozen=True, slots=True)
class KnownCity:
    key: str
    name: str
    latitude: float
    longitude: float

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class PostalRegion:
    digit: str
    label: str
    latitude: float
    longitude: float


# Longer keys first so "frankfurt am main" wins over "frankfurt".
KNOWN_CITIES: tuple[KnownCity, ...] = (
    KnownCity("frankfurt am main", "Frankfurt am Main", 50.1109, 8.6821),
    KnownCity("mönchengladbach", "Mönchengladbach", 51.1805, 6.4428),
    KnownCity("braunschweig", "Braunschweig", 52.2689, 10.5268),
    KnownCity("saarbrücken", "Saarbrücken", 49.2401, 6.9969),
    KnownCity("bremerhaven", "Bremerhaven", 53.5396, 8.5806),
    KnownCity("düsseldorf", "Düsseldorf", 51.2277, 6.7735),
    KnownCity("heidelberg", "Heidelberg", 49.3988, 8.6724),
    KnownCity("regensburg", "Regensburg", 49.0134, 12.1016),
    KnownCity("ingolstadt", "Ingolstadt", 48.7665, 11.4257),
    KnownCity("magdeburg", "Magdeburg", 52.1205, 11.6276),
    KnownCity("wiesbaden", "Wiesbaden", 50.0782, 8.2398),
    KnownCity("karlsruhe", "Karlsruhe", 49.0069, 8.4037),
    KnownCity("stuttgart", "Stuttgart", 48.7758, 9.1829),
    KnownCity("bielefeld", "Bielefeld", 52.0302, 8.5325),
    KnownCity("osnabrück", "Osnabrück", 52.2799, 8.0472),
    KnownCity("wolfsburg", "Wolfsburg", 52.4227, 10.7865),
    KnownCity("göttingen", "Göttingen", 51.5412, 9.9158),
    KnownCity("frankfurt", "Frankfurt am Main", 50.1109, 8.6821),
    KnownCity("wuppertal", "Wuppertal", 51.2562, 7.1508),
    KnownCity("paderborn", "Paderborn", 51.7189, 8.7575),
    KnownCity("darmstadt", "Darmstadt", 49.8728, 8.6512),
    KnownCity("oldenburg", "Oldenburg", 53.1435, 8.2146),
    KnownCity("würzburg", "Würzburg", 49.7913, 9.9534),
    KnownCity("augsburg", "Augsburg", 48.3705, 10.8978),
    KnownCity("dortmund", "Dortmund", 51.5136, 7.4653),
    KnownCity("nürnberg", "Nürnberg", 49.4521, 11.0767),
    KnownCity("hannover", "Hannover", 52.3759, 9.7320),
    KnownCity("mannheim", "Mannheim", 49.4875, 8.4660),
    KnownCity("freiburg", "Freiburg im Breisgau", 47.9990, 7.8421),
    KnownCity("chemnitz", "Chemnitz", 50.8278, 12.9214),
    KnownCity("münchen", "München", 48.1351, 11.5820),
    KnownCity("hamburg", "Hamburg", 53.5511, 9.9937),
    KnownCity("leipzig", "Leipzig", 51.3397, 12.3731),
    KnownCity("dresden", "Dresden", 51.0504, 13.7373),
    KnownCity("potsdam", "Potsdam", 52.3906, 13.0645),
    KnownCity("rostock", "Rostock", 54.0887, 12.1338),
    KnownCity("münster", "Münster", 51.9607, 7.6261),
    KnownCity("lübeck", "Lübeck", 53.8655, 10.6866),
    KnownCity("berlin", "Berlin", 52.5200, 13.4050),
    KnownCity("bremen", "Bremen", 53.0793, 8.8017),
    KnownCity("erfurt", "Erfurt", 50.9848, 11.0299),
    KnownCity("kassel", "Kassel", 51.3127, 9.4797),
    KnownCity("bochum", "Bochum", 51.4819, 7.2162),
    KnownCity("aachen", "Aachen", 50.7753, 6.0839),
    KnownCity("mainz", "Mainz", 49.9929, 8.2473),
    KnownCity("essen", "Essen", 51.4556, 7.0116),
    KnownCity("trier", "Trier", 49.7596, 6.6441),
    KnownCity("köln", "Köln", 50.9375, 6.9603),
    KnownCity("bonn", "Bonn", 50.7374, 7.0982),
    KnownCity("kiel", "Kiel", 54.3233, 10.1228),
    KnownCity("ulm", "Ulm", 48.3974, 9.9934),
)

POSTAL_REGIONS: dict[str, PostalRegion] = {
    "0": PostalRegion("0", "Sachsen (Dresden)", 51.0504, 13.7373),
    "1": PostalRegion("1", "Berlin/Brandenburg", 52.5200, 13.4050),
    "2": PostalRegion("2", "Hamburg/Schleswig-Holstein", 53.5511, 9.9937),
    "3": PostalRegion("3", "Niedersachsen", 52.3759, 9.7320),
    "4": PostalRegion("4", "Nordrhein-Westfalen", 51.5136, 7.4653),
    "5": PostalRegion("5", "NRW/Rheinland-Pfalz", 50.9375, 6.9603),
    "6": PostalRegion("6", "Hessen/Rheinland-Pfalz", 50.1109, 8.6821),
    "7": PostalRegion("7", "Baden-Württemberg", 48.7758, 9.1829),
    "8": PostalRegion("8", "Bayern (München)", 48.1351, 11.5820),
    "9": PostalRegion("9", "Bayern/Thüringen", 49.4521, 11.0767),
}


def extract_postal_code(address: str) -> Optional[str]:
    match = POSTAL_CODE_PATTERN.search(address or "")
    return match.group(1) if match else None


def find_city_in_address(address: str) -> Optional[KnownCity]:
    """Return the first known city mentioned in the address, if any."""

    lowered = (address or "").lower()
    for city in KNOWN_CITIES:
        if re.search(rf"\b{re.escape(city.key)}\b", lowered):
            return city
    return None


def nearest_city(coordinate: Coordinate) -> KnownCity:
    return min(KNOWN_CITIES, key=lambda city: distance_between(coordinate, city.coordinate))


def city_label(address: Optional[str]) -> str:
    """Short human-readable place name used in travel segment labels."""

    if not address:
        return "Unknown"
    match = CITY_AFTER_POSTAL_CODE_PATTERN.search(address)
    if match:
        return match.group(1).strip()
    return address[:20] + "..." if len(address) > 20 else address
