import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware

from inventory.auth import require_api_key
from inventory.cache import DEFAULT_TTL, QueryClient, TTLCache
from inventory.database import engine
from inventory.deps import get_query_client
from inventory.models import Base
from inventory.routes import dashboard, materials, orders, products, reports, suppliers
from inventory.schemas import CacheStatsOut

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


def build_query_client() -> QueryClient:
    ttl = float(os.environ.get("CACHE_TTL_SECONDS", DEFAULT_TTL))
    return QueryClient(TTLCache(default_ttl=ttl), single_flight=_env_flag("CACHE_SINGLE_FLIGHT"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("schema ready, query cache ttl=%ss", app.state.query_client.cache.default_ttl)
    yield
    await engine.dispose()


app = FastAPI(
    title="Inventory API",
    version="1.0.0",
    lifespan=lifespan,
)
app.state.query_client = build_query_client()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # desktop renderer loads from file:// / localhost
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(materials.router)
app.include_router(suppliers.router)
app.include_router(products.router)
app.include_router(orders.router)
app.include_router(dashboard.router)
app.include_router(reports.router)


@app.post("/api/admin/cache-clear", tags=["admin"])
async def clear_cache(
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    """Drop every memoized query result."""
    query_client.clear()
    logger.info("query cache cleared")
    return {"status": "cache cleared"}


@app.get("/api/admin/cache", response_model=CacheStatsOut, tags=["admin"])
async def cache_stats(
    query_client: QueryClient = Depends(get_query_client),
    _key: str = Depends(require_api_key),
):
    purged = query_client.cache.purge_expired()
    return CacheStatsOut(purged=purged, **query_client.stats())


@app.get("/health", tags=["system"], include_in_schema=False)
async def health_check():
    return {"status": "ok"}
