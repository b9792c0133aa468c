from .aggregator import ProgressAggregator

__all__ = ["ProgressAggregator"]
