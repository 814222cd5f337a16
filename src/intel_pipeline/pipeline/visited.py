"""
Visited Keywords - Per-domain record of keywords already scheduled in a run.

Working state of the scheduler only; it is never persisted. A resumed run
rebuilds it by replaying recorded steps through the scheduler.
"""

import threading
from typing import Dict, Set


class VisitedKeywords:
    """
    Set of (domain, keyword) pairs guarded by a lock.

    mark_visited() is an atomic check-then-set, so two workers can never
    both claim the same pair.
    """

    def __init__(self):
        self.seen: Dict[str, Set[str]] = {}
        self.lock = threading.Lock()

    def is_visited(self, domain: str, keyword: str) -> bool:
        with self.lock:
            return keyword in self.seen.get(domain, ())

    def mark_visited(self, domain: str, keyword: str) -> bool:
        """
        Mark pair as visited.

        Returns:
            True if the pair was newly added, False if it already existed
        """
        with self.lock:
            domain_seen = self.seen.setdefault(domain, set())
            if keyword in domain_seen:
                return False
            domain_seen.add(keyword)
            return True

    def count(self) -> int:
        with self.lock:
            return sum(len(keywords) for keywords in self.seen.values())
