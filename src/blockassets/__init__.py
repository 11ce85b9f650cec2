"""Asset cache for content-filtering lists."""

__version__ = "0.1.0"
