"""
Global Forest Watch (GFW) data source adapter.

Provides integrated deforestation alerts (GLAD-L, GLAD-S2, RADD) through the
GFW Data API's SQL query endpoint.

API Documentation: https://data-api.globalforestwatch.org/
Public datasets can be queried without a key; an API key (x-api-key header)
raises the quota.
"""

from app.sources.gfw.client import GFWClient
from app.sources.gfw import metadata

__all__ = ["GFWClient", "metadata"]
