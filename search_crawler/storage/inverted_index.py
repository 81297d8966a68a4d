"""
Thread-safe inverted index mapping words to locations to word positions.
"""

import bisect
import threading
from typing import Dict, Iterable, List, Tuple

from ..exceptions import IndexCorruptionError


DEFAULT_LOCK_STRIPES = 16


class InvertedIndex:
    """
    Inverted index safe for concurrent writers and readers.

    Words are partitioned into lock stripes by hash; each stripe owns its own
    ``word -> location -> positions`` dict and lock, so writers touching
    different words rarely contend. Position lists are kept sorted and unique.

    The per-location word count is the number of distinct positions stored for
    that location. It is bumped while the stripe lock of the inserted word is
    held, so a reader never sees a match without its word in the count. Lock
    order is always stripe lock, then count lock.
    """

    def __init__(self, lock_stripes: int = DEFAULT_LOCK_STRIPES):
        if lock_stripes < 1:
            raise ValueError("lock_stripes must be at least 1")

        self._stripes: List[Dict[str, Dict[str, List[int]]]] = [{} for _ in range(lock_stripes)]
        self._stripe_locks = [threading.Lock() for _ in range(lock_stripes)]
        self._counts: Dict[str, int] = {}
        self._counts_lock = threading.Lock()

    def _stripe_index(self, word: str) -> int:
        return hash(word) % len(self._stripes)

    def add(self, word: str, location: str, position: int) -> bool:
        """
        Record that ``word`` occurs at ``position`` (1-based) in ``location``.

        Returns:
            True if the entry is new, False if it was already present
        """
        if not word or not location:
            raise ValueError("word and location must be non-empty")
        if position < 1:
            raise ValueError(f"position must be positive, got {position}")

        i = self._stripe_index(word)
        with self._stripe_locks[i]:
            positions = self._stripes[i].setdefault(word, {}).setdefault(location, [])

            if positions and positions[-1] < position:
                positions.append(position)
            else:
                at = bisect.bisect_left(positions, position)
                if at < len(positions) and positions[at] == position:
                    return False
                positions.insert(at, position)

            with self._counts_lock:
                self._counts[location] = self._counts.get(location, 0) + 1

        return True

    def add_all(self, words: Iterable[str], location: str, start: int = 1) -> int:
        """
        Index a document's words with dense positions starting at ``start``.

        Returns:
            Number of entries that were new
        """
        added = 0
        for position, word in enumerate(words, start):
            if self.add(word, location, position):
                added += 1
        return added

    def get(self, word: str) -> Dict[str, Tuple[int, ...]]:
        """Snapshot of the locations and positions of a word."""
        i = self._stripe_index(word)
        with self._stripe_locks[i]:
            locations = self._stripes[i].get(word, {})
            return {location: tuple(positions) for location, positions in locations.items()}

    def positions(self, word: str, location: str) -> Tuple[int, ...]:
        i = self._stripe_index(word)
        with self._stripe_locks[i]:
            return tuple(self._stripes[i].get(word, {}).get(location, ()))

    def word_count(self, location: str) -> int:
        """Total number of words indexed for a location."""
        with self._counts_lock:
            return self._counts.get(location, 0)

    def contains_location(self, location: str) -> bool:
        with self._counts_lock:
            return location in self._counts

    def contains_word(self, word: str) -> bool:
        i = self._stripe_index(word)
        with self._stripe_locks[i]:
            return word in self._stripes[i]

    def size(self) -> int:
        """Number of distinct words."""
        total = 0
        for stripe, lock in zip(self._stripes, self._stripe_locks):
            with lock:
                total += len(stripe)
        return total

    def __len__(self) -> int:
        return self.size()

    def words(self) -> List[str]:
        """Sorted snapshot of all indexed words."""
        words = []
        for stripe, lock in zip(self._stripes, self._stripe_locks):
            with lock:
                words.extend(stripe)
        words.sort()
        return words

    def words_with_prefix(self, prefix: str) -> List[str]:
        """Sorted indexed words starting with ``prefix``."""
        words = self.words()
        start = bisect.bisect_left(words, prefix)
        matches = []
        for word in words[start:]:
            if not word.startswith(prefix):
                break
            matches.append(word)
        return matches

    def locations(self) -> List[str]:
        """Sorted snapshot of all indexed locations."""
        with self._counts_lock:
            return sorted(self._counts)

    def word_counts(self) -> Dict[str, int]:
        """Snapshot of location word counts, sorted by location."""
        with self._counts_lock:
            return {location: self._counts[location] for location in sorted(self._counts)}

    def to_dict(self) -> Dict[str, Dict[str, List[int]]]:
        """Nested snapshot with words and locations in ascending order."""
        snapshot = {}
        for word in self.words():
            locations = self.get(word)
            snapshot[word] = {location: list(locations[location]) for location in sorted(locations)}
        return snapshot

    def verify(self):
        """
        Check the index invariants. Meant to run once writers are done.

        Raises:
            IndexCorruptionError: If positions are not strictly increasing,
                an entry is empty, or word counts disagree with the postings
        """
        totals: Dict[str, int] = {}
        for stripe, lock in zip(self._stripes, self._stripe_locks):
            with lock:
                for word, locations in stripe.items():
                    if not locations:
                        raise IndexCorruptionError(f"Word {word!r} has no locations")
                    for location, positions in locations.items():
                        if not positions:
                            raise IndexCorruptionError(f"{word!r} at {location} has no positions")
                        if any(a >= b for a, b in zip(positions, positions[1:])):
                            raise IndexCorruptionError(
                                f"Positions of {word!r} at {location} are not strictly increasing")
                        totals[location] = totals.get(location, 0) + len(positions)

        counts = self.word_counts()
        if totals != counts:
            raise IndexCorruptionError(f"Word counts {counts} do not match postings {totals}")

    def __repr__(self) -> str:
        return f"InvertedIndex(words={self.size()}, locations={len(self.locations())})"
