import uuid

from sqlalchemy import Column, DateTime, JSON, String, UniqueConstraint

from jobrunner.core.utils import utc_now
from jobrunner.database import Base


class ApiCache(Base):
    """Cached upstream API responses, keyed by (key, source)."""

    __tablename__ = "api_cache"
    __table_args__ = (
        UniqueConstraint("key", "source", name="unique_cache_entry"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    key = Column(String(255), nullable=False)
    source = Column(String(64), nullable=False)
    data = Column(JSON, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:
        return f"<ApiCache(key={self.key}, source={self.source}, expires_at={self.expires_at})>"
