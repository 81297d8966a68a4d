"""
Query processing over the inverted index.
"""

from .query_engine import QueryEngine, SearchResult, search, read_queries

__all__ = ['QueryEngine', 'SearchResult', 'search', 'read_queries']
