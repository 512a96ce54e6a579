"""Book tracker backend: multi-source used-book listing aggregator."""

__version__ = "2.0.0"
