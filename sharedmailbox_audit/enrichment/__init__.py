from .enricher import BoundedEnricher, EnrichmentCancelled, ResultCollector

__all__ = [
    "BoundedEnricher",
    "EnrichmentCancelled",
    "ResultCollector",
]
