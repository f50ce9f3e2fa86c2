from sqlalchemy import BigInteger, Column, DateTime, Float, Integer, String

from jobrunner.core.utils import utc_now
from jobrunner.database import Base


class MarketSnapshot(Base):
    """Point-in-time macro view of the market, one row per refresh."""

    __tablename__ = "market_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    total_market_cap = Column(BigInteger, nullable=False, default=0)
    total_volume_24h = Column(BigInteger, nullable=False, default=0)
    btc_dominance = Column(Float, nullable=True)
    eth_dominance = Column(Float, nullable=True)
    altcoin_dominance = Column(Float, nullable=True)
    total_assets = Column(Integer, nullable=False, default=0)
    fear_greed_value = Column(Integer, nullable=False)
    fear_greed_classification = Column(String(32), nullable=False)
    fear_greed_source = Column(String(16), nullable=False)  # provider | estimated
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
