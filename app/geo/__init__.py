"""Text geocoding of Indian states for news articles."""

from app.geo.gazetteer import STATE_COORDS
from app.geo.geocoder import GeoMatch, extract_state

__all__ = ["STATE_COORDS", "GeoMatch", "extract_state"]
