"""
readcache

A FastAPI service that extracts readable article content from URLs and
serves it through a Redis-backed read-through cache.
"""

__version__ = "1.0.0"
