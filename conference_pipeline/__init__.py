"""Transport conference scraping pipeline."""

__version__ = "0.1.0"
