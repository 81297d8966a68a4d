"""
Ranked multi-term search over an inverted index.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from ..crawler.parser import TextNormalizer
from ..storage.inverted_index import InvertedIndex


@dataclass(frozen=True)
class SearchResult:
    """One ranked location for a query."""
    where: str
    count: int
    total: int

    @property
    def score(self) -> float:
        return self.count / self.total if self.total else 0.0

    def sort_key(self):
        return (-self.score, -self.count, self.where)

    def to_dict(self) -> dict:
        return {
            'where': self.where,
            'count': self.count,
            'score': self.score
        }


class QueryEngine:
    """
    Answers query lines against an index.

    Exact search matches indexed words equal to a query term; partial search
    matches indexed words that start with a query term. The index is only
    read, so any number of queries may run at once.
    """

    def __init__(self, index: InvertedIndex, exact: bool = True,
                 normalizer: Optional[TextNormalizer] = None, monitor=None):
        self.index = index
        self.exact = exact
        self.normalizer = normalizer or TextNormalizer()
        self.monitor = monitor
        self.logger = logging.getLogger(__name__)

    def parse_query(self, line: str) -> List[str]:
        """Distinct normalized terms of a query line, sorted."""
        return sorted(set(self.normalizer.words(line)))

    def _matching_words(self, terms: List[str]) -> List[str]:
        if self.exact:
            return terms

        # A word prefixed by several terms still counts once
        matches = set()
        for term in terms:
            matches.update(self.index.words_with_prefix(term))
        return sorted(matches)

    def search(self, line: str) -> List[SearchResult]:
        """
        Search one query line.

        Returns:
            Results ordered by score, then match count (both descending),
            then location ascending
        """
        start_time = time.time()
        terms = self.parse_query(line)

        counts: Dict[str, int] = {}
        for word in self._matching_words(terms):
            for location, positions in self.index.get(word).items():
                counts[location] = counts.get(location, 0) + len(positions)

        results = [
            SearchResult(where=location, count=count, total=self.index.word_count(location))
            for location, count in counts.items()
        ]
        results.sort(key=SearchResult.sort_key)

        elapsed = time.time() - start_time
        if self.monitor:
            self.monitor.record_query(elapsed)
        self.logger.debug(f"Query {terms} matched {len(results)} locations in {elapsed:.4f}s")
        return results

    def search_all(self, lines: Iterable[str], worker_count: int = 1) -> Dict[str, List[SearchResult]]:
        """
        Search many query lines, optionally on a thread pool.

        Lines without any term are skipped and repeated lines are searched
        once. The returned dict keeps the order in which lines first appear.
        """
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")

        queries = []
        seen = set()
        for line in lines:
            query = line.strip()
            if query and query not in seen and self.parse_query(query):
                seen.add(query)
                queries.append(query)

        if worker_count == 1:
            return {query: self.search(query) for query in queries}

        with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix='query') as executor:
            return dict(zip(queries, executor.map(self.search, queries)))


def read_queries(path: Union[str, Path]) -> List[str]:
    """Read a query file, one query per line."""
    with open(path, 'r', encoding='utf-8') as f:
        return f.read().splitlines()


def search(query_lines: Iterable[str], index: InvertedIndex, exact: bool = True,
           worker_count: int = 1, normalizer: Optional[TextNormalizer] = None) -> Dict[str, List[SearchResult]]:
    """Search every query line against ``index``."""
    return QueryEngine(index, exact=exact, normalizer=normalizer).search_all(query_lines, worker_count)
