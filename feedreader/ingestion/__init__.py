"""
FeedReader Ingestion Module
===========================

Feed fetching and normalization components.

This module handles:
- Format detection and parsing into canonical feeds
- Feed discovery from HTML pages
- Deterministic identifiers for feeds and articles
"""
