from jobrunner.services.market_data.client import MarketDataClient

__all__ = ["MarketDataClient"]
