from .stream import (
    ContentKind,
    ContentRef,
    ExtractionResult,
    PreloadFailure,
    ProviderDescriptor,
    ScrapeOutcome,
    StrategyKind,
    StreamKind,
    Subtitle,
    TitleInfo,
)

__all__ = [
    "ContentKind",
    "ContentRef",
    "ExtractionResult",
    "PreloadFailure",
    "ProviderDescriptor",
    "ScrapeOutcome",
    "StrategyKind",
    "StreamKind",
    "Subtitle",
    "TitleInfo",
]
