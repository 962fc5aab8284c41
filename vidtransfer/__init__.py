"""Chunked video transfer service with proxied and direct (signed URL) strategies."""

__version__ = "1.0.0"
