"""Built-in strategy variants."""
from .expiring_markets import ExpiringMarketsStrategy
from .index import IndexStrategy, parse_basket
from .interactive import InteractiveStrategy
from .simple_threshold import SimpleThresholdStrategy

__all__ = [
    "InteractiveStrategy",
    "ExpiringMarketsStrategy",
    "IndexStrategy",
    "SimpleThresholdStrategy",
    "parse_basket",
]
