"""
Handlers for the registered job types.

Every handler takes the job payload (a dict, possibly empty) and returns a
JSON-serialisable dict stored as the job's result. Failures are raised and
recorded on the job by the scheduler.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, select

from jobrunner.core.config import get_settings
from jobrunner.core.enums import FearGreedClassification
from jobrunner.core.exceptions import MarketDataError
from jobrunner.core.utils import to_float, utc_now
from jobrunner.database import async_session
from jobrunner.models.api_cache import ApiCache
from jobrunner.models.crypto_asset import CryptoAsset
from jobrunner.models.market_snapshot import MarketSnapshot
from jobrunner.services.market_data.client import MarketDataClient

logger = logging.getLogger(__name__)

GLOBAL_DATA_CACHE = ("global-data", "market")
NEWS_CACHE = ("crypto-news", "news")

DEFAULT_LISTINGS_LIMIT = 200
DEFAULT_GLOBAL_DATA_TTL = 3600
DEFAULT_NEWS_TTL = 900


async def cache_cleanup(payload: Dict[str, Any]) -> Dict[str, Any]:
    async with async_session() as db:
        result = await db.execute(
            delete(ApiCache)
            .where(ApiCache.expires_at <= utc_now())
            .execution_options(synchronize_session=False)
        )
        await db.commit()

    deleted = result.rowcount or 0
    logger.info(f"Cache cleanup removed {deleted} expired entries")
    return {"deleted": deleted}


async def refresh_top_assets(payload: Dict[str, Any]) -> Dict[str, Any]:
    limit = int(payload.get("limit") or DEFAULT_LISTINGS_LIMIT)
    client = MarketDataClient.from_settings()
    listings = await client.get_listings(limit=limit)

    inserted = updated = 0
    now = utc_now()
    async with async_session() as db:
        ids = [item["id"] for item in listings]
        existing = {}
        if ids:
            rows = await db.execute(select(CryptoAsset).where(CryptoAsset.id.in_(ids)))
            existing = {asset.id: asset for asset in rows.scalars().all()}

        for item in listings:
            asset = existing.get(item["id"])
            if asset is None:
                asset = CryptoAsset(id=item["id"])
                db.add(asset)
                inserted += 1
            else:
                updated += 1

            asset.symbol = item["symbol"]
            asset.name = item["name"]
            asset.price_usd = item["price_usd"]
            asset.price_change_24h = item["price_change_24h"]
            asset.market_cap = item["market_cap"]
            asset.volume_24h = item["volume_24h"]
            asset.rank = item["rank"]
            asset.logo_url = item["logo_url"]
            asset.last_updated = now

        await db.commit()

    logger.info(f"Refreshed {len(listings)} assets ({inserted} new, {updated} updated)")
    return {"count": len(listings), "inserted": inserted, "updated": updated}


async def refresh_global_data(payload: Dict[str, Any]) -> Dict[str, Any]:
    client = MarketDataClient.from_settings()
    metrics = await client.get_global_metrics()

    ttl = int(payload.get("ttl_seconds") or DEFAULT_GLOBAL_DATA_TTL)
    await store_cache_entry(*GLOBAL_DATA_CACHE, data=metrics, ttl_seconds=ttl)
    return {"updated": True}


async def refresh_news(payload: Dict[str, Any]) -> Dict[str, Any]:
    settings = get_settings()
    client = MarketDataClient.from_settings(settings)
    items = await client.get_news(payload.get("url") or settings.NEWS_FEED_URL)

    ttl = int(payload.get("ttl_seconds") or DEFAULT_NEWS_TTL)
    await store_cache_entry(*NEWS_CACHE, data={"newsItems": items}, ttl_seconds=ttl)
    return {"count": len(items)}


async def refresh_market_snapshot(payload: Dict[str, Any]) -> Dict[str, Any]:
    async with async_session() as db:
        rows = await db.execute(
            select(CryptoAsset.symbol, CryptoAsset.market_cap, CryptoAsset.volume_24h, CryptoAsset.price_change_24h)
        )
        assets = rows.all()

    totals = compute_market_totals(assets)

    btc_change = next((change for symbol, _, _, change in assets if symbol == "BTC"), None)
    value, classification, source = await _fear_and_greed(btc_change)

    async with async_session() as db:
        db.add(MarketSnapshot(
            total_market_cap=totals["total_market_cap"],
            total_volume_24h=totals["total_volume_24h"],
            btc_dominance=totals["btc_dominance"],
            eth_dominance=totals["eth_dominance"],
            altcoin_dominance=totals["altcoin_dominance"],
            total_assets=len(assets),
            fear_greed_value=value,
            fear_greed_classification=classification,
            fear_greed_source=source,
        ))
        await db.commit()

    logger.info(f"Market snapshot recorded: fear & greed {value} ({classification}, {source})")
    return {"updated": True, "fear_greed_source": source}


async def recover_stale_jobs(payload: Dict[str, Any]) -> Dict[str, Any]:
    from jobrunner.services.job_scheduler import JobScheduler

    minutes = payload.get("stale_after_minutes")
    stale_after = timedelta(minutes=float(minutes)) if minutes else None
    recovered = await JobScheduler().recover_stale_jobs(stale_after=stale_after)
    return {"recovered": recovered}


# Helpers

async def store_cache_entry(key: str, source: str, data: Any, ttl_seconds: int) -> None:
    """Insert or replace the api_cache row for (key, source)."""
    expires_at = utc_now() + timedelta(seconds=ttl_seconds)
    async with async_session() as db:
        result = await db.execute(
            select(ApiCache).where(ApiCache.key == key, ApiCache.source == source)
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            db.add(ApiCache(key=key, source=source, data=data, expires_at=expires_at))
        else:
            entry.data = data
            entry.expires_at = expires_at
        await db.commit()


def compute_market_totals(assets: List[Tuple]) -> Dict[str, Any]:
    """Totals and BTC/ETH/altcoin dominance (percent) from (symbol, market_cap, volume, ...) rows."""
    total_market_cap = sum(to_float(row[1]) for row in assets)
    total_volume = sum(to_float(row[2]) for row in assets)

    caps = {row[0]: to_float(row[1]) for row in assets}
    btc_dominance = caps.get("BTC", 0.0) / total_market_cap * 100 if total_market_cap > 0 else 0.0
    eth_dominance = caps.get("ETH", 0.0) / total_market_cap * 100 if total_market_cap > 0 else 0.0

    return {
        "total_market_cap": int(total_market_cap),
        "total_volume_24h": int(total_volume),
        "btc_dominance": btc_dominance,
        "eth_dominance": eth_dominance,
        "altcoin_dominance": 100 - btc_dominance - eth_dominance,
    }


def estimate_fear_greed(btc_change_24h: Optional[float]) -> int:
    change = to_float(btc_change_24h)
    if change > 5:
        return 70
    if change > 2:
        return 60
    if change < -5:
        return 30
    if change < -2:
        return 40
    return 50


def classify_fear_greed(value: int) -> str:
    if value >= 65:
        return FearGreedClassification.GREED.value
    if value <= 35:
        return FearGreedClassification.FEAR.value
    return FearGreedClassification.NEUTRAL.value


async def _fear_and_greed(btc_change_24h: Optional[float]) -> Tuple[int, str, str]:
    client = MarketDataClient.from_settings()
    if client.has_api_key:
        try:
            index = await client.get_fear_and_greed()
            return index["value"], index["classification"], "provider"
        except MarketDataError as e:
            logger.warning(f"Fear & Greed lookup failed, estimating instead: {e}")

    value = estimate_fear_greed(btc_change_24h)
    return value, classify_fear_greed(value), "estimated"
