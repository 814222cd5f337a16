"""
Pipeline Executor - Drives one run from seed steps to an exhausted frontier.

Loop:
-----
1. Seed the scheduler (one step per available domain)
2. Pop the next batch (one step unless max_concurrent_steps > 1)
3. Wait out the courtesy delay, then call each step's connector
4. Record the outcome, extract keywords, emit events, expand the frontier
5. Repeat until the frontier is empty or the run is cancelled

A connector failure is recorded on its step and never stops the run.
Cancellation (cancel_event set, or the event receiver raising
StreamDisconnect) ends the loop before any further step is started.
"""

import logging
import threading
import time
from collections import defaultdict, deque
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Tuple

from ..connectors.registry import ConnectorRegistry
from ..errors import StreamDisconnect
from ..pipeline.frontier import StepScheduler
from ..pipeline.keyword_extractor import extract_categories
from ..pipeline.pipeline_data import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    PipelineConfig,
    PipelineResult,
    PipelineStep,
    new_id,
)
from ..pipeline.throttle import StepThrottle


EventCallback = Callable[[str, Dict[str, Any]], None]

# (records, error, duration) as produced by a connector call
SearchOutcome = Tuple[List[Any], Optional[BaseException], float]


class PipelineExecutor:
    """Runs the frontier loop against a connector registry."""

    def __init__(self, registry: ConnectorRegistry, min_keyword_length: int = 1,
                 exclude_source_domain: bool = True):
        self.registry = registry
        self.min_keyword_length = min_keyword_length
        self.exclude_source_domain = exclude_source_domain
        self.logger = logging.getLogger(self.__class__.__name__)

    def run(self, config: PipelineConfig, execution_id: Optional[str] = None,
            cancel_event: Optional[threading.Event] = None,
            on_event: Optional[EventCallback] = None,
            recorded_steps: Optional[Iterable[PipelineStep]] = None) -> PipelineResult:
        """
        Execute a run to completion or cancellation.

        Args:
            config: Immutable run configuration
            execution_id: Id for the result; generated when omitted
            cancel_event: Set by the caller to stop the run early
            on_event: Receives (event_name, payload) for step_started, step
                and summary; may raise StreamDisconnect
            recorded_steps: Steps from an earlier attempt of this run; their
                outcomes are reused instead of calling the connector again

        Returns:
            PipelineResult with statistics computed from the final step list
        """
        pipeline_id = execution_id or new_id()
        cancel_event = cancel_event or threading.Event()
        result = PipelineResult(id=pipeline_id, config=config)
        scheduler = StepScheduler(config, self.registry, pipeline_id,
                                  min_keyword_length=self.min_keyword_length,
                                  exclude_source_domain=self.exclude_source_domain)
        throttle = StepThrottle(config.delay_between_steps)
        replay = self._index_recorded(recorded_steps)
        emit = on_event or (lambda event, data: None)

        workers = max(1, config.max_concurrent_steps)
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="connector") \
            if workers > 1 else None

        self.logger.info(
            f"Pipeline {pipeline_id} started: query='{config.query}' "
            f"max_depth={config.max_depth} domains={list(config.available_domains)}"
        )
        start_time = time.time()
        status = STATUS_COMPLETED
        completed = 0

        try:
            scheduler.seed()

            while scheduler.has_pending():
                if cancel_event.is_set():
                    status = STATUS_CANCELLED
                    break

                batch = scheduler.next_batch(workers)
                live = [step for step in batch if not self._replay_step(step, replay)]

                if live:
                    if not throttle.wait_if_needed(cancel_event):
                        status = STATUS_CANCELLED
                        # Replayed steps of this batch already carry outcomes
                        for step in batch:
                            if not step.is_pending:
                                result.add_step(step)
                        break

                    # Numbered by batch position, matching the step events below
                    for step in live:
                        emit("step_started", {'step_number': completed + 1 + batch.index(step),
                                              'step': step.to_dict()})

                    outcomes = self._search_all(live, pool)
                    throttle.mark_step()
                    for step, outcome in zip(live, outcomes):
                        self._record(step, outcome)

                for step in batch:
                    result.add_step(step)

                for step in batch:
                    completed += 1
                    emit("step", {'step_number': completed, 'step': step.to_dict()})
                    scheduler.expand(step)

        except StreamDisconnect:
            self.logger.info(f"Pipeline {pipeline_id}: receiver disconnected, stopping")
            status = STATUS_CANCELLED

        finally:
            if pool is not None:
                pool.shutdown(wait=True)

        result.finalize(status)
        runtime = time.time() - start_time
        self.logger.info(
            f"Pipeline {pipeline_id} {status} in {runtime:.2f}s: "
            f"{result.total_steps} steps ({result.failed_steps} failed), "
            f"max depth {result.max_depth_reached}"
        )
        self.logger.debug(f"Scheduler stats: {scheduler.get_stats()}")

        if status == STATUS_COMPLETED:
            summary = result.summary()
            summary['scheduler'] = scheduler.get_stats()
            try:
                emit("summary", summary)
            except StreamDisconnect:
                self.logger.info(f"Pipeline {pipeline_id}: receiver gone before summary")

        return result

    @staticmethod
    def _index_recorded(recorded_steps: Optional[Iterable[PipelineStep]]) -> Dict[tuple, Deque[PipelineStep]]:
        replay: Dict[tuple, Deque[PipelineStep]] = defaultdict(deque)
        for step in sorted(recorded_steps or [], key=lambda s: s.sequence):
            if not step.is_pending:
                replay[step.replay_key].append(step)
        return replay

    def _replay_step(self, step: PipelineStep, replay: Dict[tuple, Deque[PipelineStep]]) -> bool:
        """Adopt a recorded outcome for this step if one exists."""
        recorded = replay.get(step.replay_key)
        if not recorded:
            return False
        previous = recorded.popleft()
        step.id = previous.id
        step.copy_outcome_from(previous)
        self.logger.debug(f"Replayed {step}")
        return True

    def _search_all(self, steps: List[PipelineStep],
                    pool: Optional[ThreadPoolExecutor]) -> List[SearchOutcome]:
        if pool is None or len(steps) == 1:
            return [self._search(step) for step in steps]
        futures = [pool.submit(self._search, step) for step in steps]
        return [future.result() for future in futures]

    def _search(self, step: PipelineStep) -> SearchOutcome:
        """Call the connector; never raises."""
        start = time.time()
        try:
            connector = self.registry.get(step.domain_type)
            records = connector.search(step.search_parameter)
            return list(records or []), None, time.time() - start
        except Exception as e:
            return [], e, time.time() - start

    def _record(self, step: PipelineStep, outcome: SearchOutcome):
        records, error, duration = outcome
        if error is not None:
            self.logger.warning(f"Step failed {step}: {error}")
            step.record_failure(str(error) or error.__class__.__name__, duration)
            return

        try:
            keywords = extract_categories(self.registry.get(step.domain_type), records)
        except Exception as e:
            self.logger.error(f"Keyword extraction failed for {step}: {e}", exc_info=True)
            step.record_failure(f"keyword extraction failed: {e}", duration)
            return

        step.record_success(records, keywords, duration)
        self.logger.debug(
            f"Step ok {step}: {len(records)} records, "
            f"{sum(len(v) for v in keywords.values())} keywords"
        )
