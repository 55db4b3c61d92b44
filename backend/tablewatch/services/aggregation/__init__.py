"""
Search aggregation across reservation platforms: fan-out, merge, filter, rank.
"""
from tablewatch.services.aggregation.aggregate import (
    AggregationEngine,
    dedupe_key,
    deduplicate,
    filter_by_intent,
    merge_into,
    rank,
    score_option,
)

__all__ = [
    "AggregationEngine",
    "dedupe_key",
    "deduplicate",
    "filter_by_intent",
    "merge_into",
    "rank",
    "score_option",
]
