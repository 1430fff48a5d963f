"""
News ingestion job.

Fetches the latest forest/environment articles from NewsData.io, classifies
and geocodes each one, and stores the articles not seen before. Articles are
processed sequentially in source order; a failure on one article is logged
and does not stop the rest.
"""
import logging
import random
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.store import ForestStore
from app.geo.geocoder import extract_state
from app.news.classifier import Classifier, build_classifier
from app.sources.newsdata.client import NewsDataClient
from app.sources.newsdata.metadata import (
    article_external_id,
    build_article_record,
    geocoding_text,
)

logger = logging.getLogger(__name__)


class NewsIngestionJob:
    """
    One run of the news pipeline.

    Args:
        settings: Application settings
        db: Database session
        news_client: NewsData.io client
        classifier: Category/sentiment strategy
        rng: Random source for geocoding jitter (tests pass a seeded one)
    """

    def __init__(
        self,
        settings: Settings,
        db: Session,
        news_client: NewsDataClient,
        classifier: Classifier,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings
        self.store = ForestStore(db)
        self.news_client = news_client
        self.classifier = classifier
        self.rng = rng

    async def run(self) -> Dict[str, int]:
        """
        Fetch, classify, geocode and store new articles.

        Returns:
            {"fetched": articles received, "inserted": rows written}
        """
        articles = await self._fetch()

        inserted = 0
        for article in articles:
            external_id = article_external_id(article)
            if not external_id:
                logger.debug(f"Skipping article without article_id or link: {article.get('title')!r}")
                continue

            if self.store.news_exists(external_id):
                continue

            classification = await self.classifier.classify(
                article.get("title") or "", article.get("description") or ""
            )
            geo = extract_state(geocoding_text(article), rng=self.rng)
            record = build_article_record(
                article, external_id, classification, geo, now=datetime.utcnow()
            )

            try:
                self.store.insert_news(record)
                inserted += 1
            except Exception as e:
                logger.error(f"Failed to insert article {external_id}: {e}")

        logger.info(f"News ingestion complete: fetched={len(articles)}, inserted={inserted}")
        return {"fetched": len(articles), "inserted": inserted}

    async def _fetch(self) -> List[Dict[str, Any]]:
        """Latest articles, or [] when the source is unconfigured or failing."""
        if not self.news_client.has_api_key:
            logger.warning("NEWSDATA_API_KEY not set, skipping news fetch")
            return []
        try:
            return await self.news_client.fetch_latest()
        except Exception as e:
            logger.error(f"News fetch failed: {e}")
            return []


async def run_news_ingestion(settings: Settings, db: Session) -> Dict[str, int]:
    """Build the job from settings, run it, and release the HTTP clients."""
    classifier = build_classifier(settings)
    try:
        async with NewsDataClient.from_settings(settings) as news_client:
            return await NewsIngestionJob(settings, db, news_client, classifier).run()
    finally:
        await classifier.close()
