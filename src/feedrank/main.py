import logging
from contextlib import asynccontextmanager

from elasticsearch import AsyncElasticsearch
from fastapi import FastAPI
from redis import asyncio as aioredis

from .config import FeedSettings
from .lib.cache import FeedCache
from .lib.datasource import ElasticsearchFeedDataSource
from .lib.feed import FeedService
from .routers import feed, health

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared clients and the feed service for the app's lifetime.

    Tests skip this (no ``with TestClient(app)``) and attach a fake
    ``app.state.feed_service`` instead.
    """
    settings = FeedSettings.from_env()

    es = AsyncElasticsearch(settings.elasticsearch_url, api_key=settings.elasticsearch_api_key)
    redis_client = None
    if settings.redis_url:
        redis_client = aioredis.from_url(settings.redis_url, decode_responses=True)
    else:
        logger.info("REDIS_URL not set; feed caching disabled")

    app.state.es = es
    app.state.feed_service = FeedService(
        ElasticsearchFeedDataSource(es),
        cache=FeedCache(redis_client, ttl_seconds=settings.cache_ttl_seconds),
        settings=settings,
    )
    try:
        yield
    finally:
        await es.close()
        if redis_client is not None:
            await redis_client.aclose()


app = FastAPI(
    title="Feed Ranking API",
    description="Personalized feed ranking and account suggestions",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(feed.router)


@app.get("/")
async def root():
    return {"message": "Feed Ranking API"}
