"""
NewsData.io data source adapter.

Provides the latest Indian forest/environment news articles for the news
ingestion job.

API Documentation: https://newsdata.io/documentation
API key required (free tier: 200 credits/day, 10 articles per credit).
"""

from app.sources.newsdata.client import NewsDataClient
from app.sources.newsdata import metadata

__all__ = ["NewsDataClient", "metadata"]
