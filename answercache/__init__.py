"""answercache: tiered, fuzzy-matching response cache for documentation Q&A."""

__version__ = "1.0.0"
