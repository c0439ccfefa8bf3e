"""Aurora - Polymarket market aggregation for the mobile trading app."""

__version__ = "0.1.0"
