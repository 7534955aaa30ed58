"""
Query

Similarity search over talent profiles and search-hit attribution.

Modules:
    expansion: QueryExpander (cached AI query rewrite)
    search: SearchEngine (search, recommend, batch fan-out)
    attribution: AttributionEngine (credit tag authors on search hits)
"""

from dendrite.query.attribution import ATTRIBUTION_THRESHOLD, AttributionEngine
from dendrite.query.expansion import QueryExpander
from dendrite.query.search import NO_MATCH_MESSAGE, SearchEngine

__all__ = [
    "ATTRIBUTION_THRESHOLD",
    "AttributionEngine",
    "NO_MATCH_MESSAGE",
    "QueryExpander",
    "SearchEngine",
]
