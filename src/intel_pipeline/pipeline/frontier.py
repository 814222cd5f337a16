"""
Step Scheduler - Owns the frontier of pending search steps.

Breadth-first: the queue is FIFO, so every depth-d step is executed before
any depth d+1 step. Keywords extracted from a completed step become new
steps against every other domain that accepts their category.

Admission rules for a child step (in order):
1. parent depth + 1 must not exceed max_depth
2. keyword must be non-empty and at least min_keyword_length long
3. the domain must differ from the parent's domain (exclude_source_domain)
4. the run-wide max_total_steps ceiling must not be reached
5. with skip_duplicates, (domain, keyword) must not be visited yet
"""

import logging
import threading
from collections import deque
from typing import Deque, Dict, List, Optional

from ..connectors.registry import ConnectorRegistry
from .pipeline_data import PipelineConfig, PipelineStep
from .visited import VisitedKeywords


class StepScheduler:
    """
    Frontier queue, visited set and depth accounting for one run.

    Only the executor thread calls expand()/next_batch(); the lock keeps
    the queue and counters consistent for readers such as get_stats().
    """

    def __init__(self, config: PipelineConfig, registry: ConnectorRegistry, pipeline_id: str,
                 min_keyword_length: int = 1, exclude_source_domain: bool = True):
        """
        Initialize scheduler.

        Args:
            config: Run configuration
            registry: Connectors for the domains in config.available_domains
            pipeline_id: Id stamped on every created step
            min_keyword_length: Shorter keywords are not searched
            exclude_source_domain: Never send a keyword back to the domain it came from
        """
        self.config = config
        self.registry = registry
        self.pipeline_id = pipeline_id
        self.min_keyword_length = max(1, min_keyword_length)
        self.exclude_source_domain = exclude_source_domain

        self.queue: Deque[PipelineStep] = deque()
        self.visited = VisitedKeywords()
        self.lock = threading.Lock()
        self.logger = logging.getLogger(self.__class__.__name__)

        self.admitted = 0
        self.max_depth_observed = 0
        self.ceiling_reached = False

        self.stats = {
            'seeded': 0,
            'enqueued': 0,
            'skipped_depth': 0,
            'skipped_empty': 0,
            'skipped_same_domain': 0,
            'skipped_duplicate': 0,
            'skipped_ceiling': 0,
        }

    def seed(self) -> List[PipelineStep]:
        """Enqueue one depth-0 step per available domain."""
        seeds = []
        for domain in self.config.available_domains:
            connector = self.registry.get(domain)
            step = self._admit(connector.domain_type, self.config.query,
                               connector.seed_category, depth=0, parent=None)
            if step is not None:
                seeds.append(step)

        with self.lock:
            self.stats['seeded'] = len(seeds)
        self.logger.info(f"Seeded {len(seeds)} steps for query '{self.config.query}'")
        return seeds

    def expand(self, step: PipelineStep) -> List[PipelineStep]:
        """
        Derive child steps from a completed step's extracted keywords.

        Returns:
            The newly enqueued steps, in enqueue order
        """
        if not step.success or not step.keywords_per_category:
            return []

        child_depth = step.depth + 1
        if child_depth > self.config.max_depth:
            skipped = sum(len(v) for v in step.keywords_per_category.values())
            with self.lock:
                self.stats['skipped_depth'] += skipped
            self.logger.debug(
                f"Not expanding {step}: depth {child_depth} exceeds max {self.config.max_depth}"
            )
            return []

        children = []
        for category, keywords in step.keywords_per_category.items():
            for domain in self._domains_accepting(category):
                if self.exclude_source_domain and domain == step.domain_type:
                    with self.lock:
                        self.stats['skipped_same_domain'] += len(keywords)
                    continue

                for keyword in keywords:
                    if not keyword or len(keyword) < self.min_keyword_length:
                        with self.lock:
                            self.stats['skipped_empty'] += 1
                        continue

                    child = self._admit(domain, keyword, category, child_depth, parent=step)
                    if child is not None:
                        children.append(child)

        if children:
            self.logger.debug(f"{step} produced {len(children)} child steps")
        return children

    def _domains_accepting(self, category: str) -> List[str]:
        domains = []
        for domain in self.config.available_domains:
            connector = self.registry.get(domain)
            if connector.accepts(category):
                domains.append(connector.domain_type)
        return domains

    def _admit(self, domain: str, keyword: str, category: str, depth: int,
               parent: Optional[PipelineStep]) -> Optional[PipelineStep]:
        """Apply ceiling and duplicate checks, then enqueue. Returns None if rejected."""
        with self.lock:
            if self.admitted >= self.config.max_total_steps:
                if not self.ceiling_reached:
                    self.logger.warning(
                        f"Reached max total steps ({self.config.max_total_steps}). "
                        f"No further steps will be scheduled."
                    )
                    self.ceiling_reached = True
                self.stats['skipped_ceiling'] += 1
                return None

        if self.config.skip_duplicates and not self.visited.mark_visited(domain, keyword):
            with self.lock:
                self.stats['skipped_duplicate'] += 1
            return None

        with self.lock:
            self.admitted += 1
            step = PipelineStep(
                domain_type=domain,
                search_parameter=keyword,
                category=category,
                depth=depth,
                pipeline_id=self.pipeline_id,
                parent_step_id=parent.id if parent is not None else None,
                sequence=self.admitted,
            )
            self.queue.append(step)
            self.stats['enqueued'] += 1
            self.max_depth_observed = max(self.max_depth_observed, depth)
        return step

    def next_batch(self, limit: int = 1) -> List[PipelineStep]:
        """
        Pop the head of the queue plus following steps at the same depth
        against distinct domains, up to `limit` steps.
        """
        with self.lock:
            if not self.queue:
                return []
            batch = [self.queue.popleft()]
            domains = {batch[0].domain_type}
            while (len(batch) < max(1, limit) and self.queue
                   and self.queue[0].depth == batch[0].depth
                   and self.queue[0].domain_type not in domains):
                step = self.queue.popleft()
                domains.add(step.domain_type)
                batch.append(step)
            return batch

    def has_pending(self) -> bool:
        with self.lock:
            return bool(self.queue)

    def pending_count(self) -> int:
        with self.lock:
            return len(self.queue)

    def get_stats(self) -> Dict[str, int]:
        with self.lock:
            stats = dict(self.stats)
            stats['pending'] = len(self.queue)
            stats['max_depth_observed'] = self.max_depth_observed
        stats['visited_pairs'] = self.visited.count()
        return stats
