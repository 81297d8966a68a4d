"""
Pretty JSON output for the inverted index and search results.

Both formats use one tab of indentation per nesting level and end with a
newline. Index words, locations and positions are written in ascending
order; search results keep query order and ranked result order.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Mapping, Sequence, Union

from .inverted_index import InvertedIndex


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def index_to_json(index: InvertedIndex) -> str:
    """Render an index as pretty JSON text."""
    return json.dumps(index.to_dict(), ensure_ascii=False, indent='\t') + '\n'


def results_to_json(results: Mapping[str, Sequence]) -> str:
    """
    Render search results as pretty JSON text.

    Args:
        results: Query line mapped to ranked results; each result is either a
            SearchResult or a dict with ``where``, ``count`` and ``score``
    """
    data: Dict[str, List[dict]] = {}
    for query, query_results in results.items():
        data[query] = [
            result if isinstance(result, dict) else result.to_dict()
            for result in query_results
        ]
    return json.dumps(data, ensure_ascii=False, indent='\t') + '\n'


def _write(text: str, path: PathLike) -> Path:
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with open(file_path, 'w', encoding='utf-8') as f:
        f.write(text)
    return file_path


def write_index(index: InvertedIndex, path: PathLike) -> Path:
    """Write an index to ``path`` in the persisted index format."""
    file_path = _write(index_to_json(index), path)
    logger.info(f"Wrote index with {index.size()} words to {file_path}")
    return file_path


def write_results(results: Mapping[str, Sequence], path: PathLike) -> Path:
    """Write search results to ``path`` in the persisted results format."""
    file_path = _write(results_to_json(results), path)
    logger.info(f"Wrote results for {len(results)} queries to {file_path}")
    return file_path


def load_index(path: PathLike, lock_stripes: int = 16) -> InvertedIndex:
    """Rebuild an index from a file written by :func:`write_index`."""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    index = InvertedIndex(lock_stripes)
    for word, locations in data.items():
        for location, positions in locations.items():
            for position in positions:
                index.add(word, location, int(position))

    logger.info(f"Loaded index with {index.size()} words from {path}")
    return index
