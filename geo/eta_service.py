#Purpose: Arrival-time heuristic shown next to a match.
#No routing engine: straight-line distance at an assumed city speed.

# 15 km/h average city speed
CITY_MINUTES_PER_KM = 4


def estimate_arrival(distance_km: float) -> str:
    """Human-readable arrival window for a helper `distance_km` away."""
    minutes = round(distance_km * CITY_MINUTES_PER_KM)
    if minutes < 15:
        return "< 15 mins"
    if minutes < 30:
        return "15-30 mins"
    if minutes < 60:
        return "30-60 mins"
    return f"{round(minutes / 60)} hours"
