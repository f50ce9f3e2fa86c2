from .job import BackgroundJob
from .api_cache import ApiCache
from .crypto_asset import CryptoAsset
from .market_snapshot import MarketSnapshot

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'BackgroundJob',
    'ApiCache',
    'CryptoAsset',
    'MarketSnapshot',
]
