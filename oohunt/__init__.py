"""Oohunt - deals aggregation backend with a small content management layer."""

__version__ = "0.4.0"
