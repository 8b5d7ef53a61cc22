"""City catalogue: every context the map can switch to."""

from __future__ import annotations

from dataclasses import dataclass

from cadsim.geo.projection import LngLat


@dataclass(frozen=True)
class City:
    city_id: str
    label: str
    center: LngLat
    region: str  # "us" or "uk"

    def to_dict(self) -> dict:
        return {
            "id": self.city_id,
            "label": self.label,
            "center": list(self.center),
            "region": self.region,
        }


_US = [
    ("atlanta", "Atlanta", (-84.388, 33.749)),
    ("baltimore", "Baltimore", (-76.6122, 39.2904)),
    ("boston", "Boston", (-71.0589, 42.3601)),
    ("chicago", "Chicago", (-87.6298, 41.8781)),
    ("dallas", "Dallas", (-96.797, 32.7767)),
    ("denver", "Denver", (-104.9903, 39.7392)),
    ("detroit", "Detroit", (-83.0458, 42.3314)),
    ("houston", "Houston", (-95.3698, 29.7604)),
    ("los-angeles", "Los Angeles", (-118.2437, 34.0522)),
    ("miami", "Miami", (-80.1918, 25.7617)),
    ("minneapolis", "Minneapolis", (-93.265, 44.9778)),
    ("new-orleans", "New Orleans", (-90.0715, 29.9511)),
    ("new-york", "New York", (-74.006, 40.7128)),
    ("philadelphia", "Philadelphia", (-75.1652, 39.9526)),
    ("pittsburgh", "Pittsburgh", (-79.9959, 40.4406)),
    ("phoenix", "Phoenix", (-112.074, 33.4484)),
    ("portland", "Portland", (-122.6765, 45.5231)),
    ("san-diego", "San Diego", (-117.1611, 32.7157)),
    ("san-francisco", "San Francisco", (-122.4194, 37.7749)),
    ("seattle", "Seattle", (-122.335167, 47.608013)),
]

_UK = [
    ("birmingham-uk", "Birmingham (UK)", (-1.8904, 52.4862)),
    ("bristol-uk", "Bristol", (-2.5879, 51.4545)),
    ("edinburgh-uk", "Edinburgh", (-3.1883, 55.9533)),
    ("glasgow-uk", "Glasgow", (-4.2518, 55.8642)),
    ("leeds-uk", "Leeds", (-1.5491, 53.8008)),
    ("liverpool-uk", "Liverpool", (-2.9779, 53.4084)),
    ("london-uk", "London", (-0.1276, 51.5074)),
    ("manchester-uk", "Manchester", (-2.2426, 53.4808)),
    ("newcastle-uk", "Newcastle upon Tyne", (-1.6178, 54.9783)),
    ("sheffield-uk", "Sheffield", (-1.4701, 53.3811)),
]

CITIES: dict[str, City] = {
    **{cid: City(cid, label, center, "us") for cid, label, center in _US},
    **{cid: City(cid, label, center, "uk") for cid, label, center in _UK},
}

DEFAULT_CITY_ID = "seattle"


def get_city(city_id: str) -> City | None:
    return CITIES.get(city_id)


def cities_by_region() -> dict[str, list[City]]:
    """Cities grouped by region, each group sorted by label."""
    grouped: dict[str, list[City]] = {"us": [], "uk": []}
    for city in CITIES.values():
        grouped[city.region].append(city)
    for group in grouped.values():
        group.sort(key=lambda c: c.label.casefold())
    return grouped


def dock_for(city: City) -> LngLat:
    """Single shared drone dock, just north-east of the city center."""
    return (city.center[0] + 0.012, city.center[1] + 0.012)
