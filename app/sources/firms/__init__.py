"""
NASA FIRMS (Fire Information for Resource Management System) adapter.

Provides near-real-time active fire detections from the VIIRS instrument on
Suomi NPP as a per-country CSV feed.

API Documentation: https://firms.modaps.eosdis.nasa.gov/api/country/
A free MAP_KEY is required: https://firms.modaps.eosdis.nasa.gov/api/map_key/
"""

from app.sources.firms.client import FIRMSClient
from app.sources.firms import metadata

__all__ = ["FIRMSClient", "metadata"]
