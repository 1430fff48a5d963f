"""
Approximate centroids of Indian states and regions.

Keys are lower-case search terms. Iteration order is significant: the
geocoder returns the first key found in the text, so text mentioning both
Karnataka and Kerala resolves to Karnataka. Append new entries rather than
reordering existing ones.
"""
import math
from typing import Any, Dict, Optional, Tuple

STATE_COORDS: Dict[str, Tuple[float, float]] = {
    "madhya pradesh": (23.2, 77.4),
    "chhattisgarh": (21.3, 81.6),
    "jharkhand": (23.6, 85.3),
    "odisha": (20.9, 84.0),
    "maharashtra": (19.7, 75.7),
    "karnataka": (15.3, 75.7),
    "kerala": (10.8, 76.3),
    "tamil nadu": (11.1, 78.7),
    "andhra pradesh": (15.9, 79.7),
    "telangana": (18.1, 79.0),
    "assam": (26.2, 92.9),
    "meghalaya": (25.5, 91.4),
    "arunachal pradesh": (28.2, 94.7),
    "nagaland": (26.2, 94.6),
    "manipur": (24.8, 93.9),
    "mizoram": (23.2, 92.9),
    "tripura": (23.9, 91.9),
    "sikkim": (27.5, 88.5),
    "uttarakhand": (30.1, 79.0),
    "himachal pradesh": (31.1, 77.2),
    "rajasthan": (27.0, 74.2),
    "gujarat": (22.3, 71.2),
    "uttar pradesh": (26.8, 80.9),
    "west bengal": (22.9, 87.9),
    "bihar": (25.1, 85.3),
    "punjab": (31.1, 75.3),
    "haryana": (29.1, 76.1),
    "goa": (15.3, 74.0),
    "jammu": (33.7, 74.9),
    "kashmir": (34.1, 74.8),
}


def display_name(key: str) -> str:
    """Title-case each word of a gazetteer key ("tamil nadu" -> "Tamil Nadu")."""
    return " ".join(word[:1].upper() + word[1:] for word in key.split(" "))


def nearest_state(lat: float, lng: float) -> str:
    """Display name of the state whose centroid is closest to the point."""
    key = min(
        STATE_COORDS,
        key=lambda k: (STATE_COORDS[k][0] - lat) ** 2 + (STATE_COORDS[k][1] - lng) ** 2,
    )
    return display_name(key)


def parse_coordinates(lat: Any, lng: Any) -> Optional[Tuple[float, float]]:
    """
    (lat, lng) as floats, or None unless both are finite and on the globe.

    float() accepts "nan" and "inf", which upstream feeds occasionally emit.
    """
    try:
        latitude = float(lat)
        longitude = float(lng)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return None
    if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
        return None
    return latitude, longitude
