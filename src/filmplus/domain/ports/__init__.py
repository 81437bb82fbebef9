from .cache import CachePort
from .catalog import CatalogPort
from .extraction_strategy import ExtractionStrategyPort
from .headless_scraper import HeadlessScraperPort
from .playback_store import PlaybackStorePort

__all__ = [
    "CachePort",
    "CatalogPort",
    "ExtractionStrategyPort",
    "HeadlessScraperPort",
    "PlaybackStorePort",
]
