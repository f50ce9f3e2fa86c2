from sqlalchemy import Column, DateTime, Float, Integer, String

from jobrunner.core.utils import utc_now
from jobrunner.database import Base


class CryptoAsset(Base):
    __tablename__ = "crypto_assets"

    id = Column(String(32), primary_key=True)  # provider id
    symbol = Column(String(32), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    price_usd = Column(Float, nullable=True)
    price_change_24h = Column(Float, nullable=True, default=0.0)
    market_cap = Column(Float, nullable=True, default=0.0)
    volume_24h = Column(Float, nullable=True, default=0.0)
    rank = Column(Integer, nullable=True)
    logo_url = Column(String(512), nullable=True)
    last_updated = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def __repr__(self) -> str:
        return f"<CryptoAsset(id={self.id}, symbol={self.symbol}, rank={self.rank})>"
