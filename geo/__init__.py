#Marks geo as a package.
#Re-exports the distance and arrival-estimate helpers so the filter/scorer
#can import from geo without knowing internal file names.
#No business logic.

from .distance import LatLon, distance_km, EARTH_RADIUS_KM
from .eta_service import estimate_arrival, CITY_MINUTES_PER_KM

__all__ = [
    "LatLon",
    "distance_km",
    "EARTH_RADIUS_KM",
    "estimate_arrival",
    "CITY_MINUTES_PER_KM",
]
