"""
Newsroom Ingest: multi-source news ingestion, deduplication and scoring.
"""

__version__ = "0.1.0"
