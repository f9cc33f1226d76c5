"""
News ingestion pipeline.

Pulls articles from RSS/Atom feeds and a news search API, normalizes them
and merges them into the article catalog without duplicates.
"""

__version__ = "1.0.0"
