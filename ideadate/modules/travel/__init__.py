"""modules/travel — travel estimates and the per-session edge cache."""

from ideadate.modules.travel.distance_tool import estimate_travel_minutes, haversine_m
from ideadate.modules.travel.travel_cache import TravelCache, TravelEdge, TravelSummary, node_key

__all__ = [
    "estimate_travel_minutes",
    "haversine_m",
    "TravelCache",
    "TravelEdge",
    "TravelSummary",
    "node_key",
]
