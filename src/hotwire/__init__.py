"""hotwire - claim-aware hot-reload coordination."""

__version__ = "0.1.0"
