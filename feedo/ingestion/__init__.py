"""
Feedo Ingestion Module
======================

Feed fetching, parsing and merging into the item store.

This module handles:
- HTTP fetch and RSS/Atom parsing
- Text and markup cleanup
- Concurrent polling of every registered feed
"""
