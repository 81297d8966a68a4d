"""
Storage layer for the search crawler.
"""

from .inverted_index import InvertedIndex
from .json_writer import index_to_json, results_to_json, write_index, write_results, load_index

__all__ = [
    'InvertedIndex',
    'index_to_json', 'results_to_json', 'write_index', 'write_results', 'load_index'
]
