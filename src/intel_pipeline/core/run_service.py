"""
Run Service - Submission, polling and streaming of pipeline runs.

This is the high-level interface used by the HTTP layer and the CLI.

Delivery modes:
---------------
- Batch: start_run() validates the request, starts the run on a background
  thread and returns the execution id at once. The result is written to the
  snapshot store when the run finishes; poll() reads it from there.
- Streaming: stream_run() returns a PipelineStream that yields step events
  as they happen, then summary and complete. Closing the stream cancels the
  run.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..connectors.base import DomainType, as_identifier
from ..connectors.http_client import HttpConfig
from ..connectors.registry import ConnectorRegistry, build_default_registry
from ..connectors.web_search import WebSearchConfig
from ..errors import ConfigError, PersistenceError
from ..pipeline.pipeline_data import STATUS_COMPLETED, PipelineConfig, PipelineResult, new_id
from ..storage.snapshot_store import SnapshotStore, StorageConfig, create_snapshot_store
from .pipeline_executor import PipelineExecutor
from .streaming import EVENT_COMPLETE, EVENT_ERROR, PipelineStream


STATUS_PROCESSING = "processing"
STATUS_FAILED = "failed"


@dataclass
class PipelineDefaults:
    """Defaults applied to run requests that leave a setting out."""
    max_depth: int = 2
    max_allowed_depth: int = 10
    max_concurrent_steps: int = 1
    delay_between_steps: float = 2.0
    skip_duplicates: bool = True
    max_total_steps: int = 500
    min_keyword_length: int = 1
    exclude_source_domain: bool = True
    event_queue_size: int = 100
    available_domains: list = None

    def __post_init__(self):
        """Default to every bundled domain."""
        if self.available_domains is None:
            self.available_domains = [d.value for d in DomainType]


@dataclass
class ServerConfig:
    """Configuration for the HTTP server."""
    host: str = "127.0.0.1"
    port: int = 8080
    cors_origins: list = None

    def __post_init__(self):
        if self.cors_origins is None:
            self.cors_origins = ["http://localhost:5173"]


@dataclass
class AppConfig:
    """Master configuration for the application."""
    pipeline: PipelineDefaults = field(default_factory=PipelineDefaults)
    http: HttpConfig = field(default_factory=HttpConfig)
    web_search: WebSearchConfig = field(default_factory=WebSearchConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


@dataclass
class RunHandle:
    """Bookkeeping for a batch run started by this process."""
    execution_id: str
    thread: threading.Thread
    status: str = STATUS_PROCESSING
    error: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)


class RunService:
    """
    Accepts runs, executes them off the caller's thread and serves results.
    """

    def __init__(self, registry: ConnectorRegistry, store: SnapshotStore,
                 defaults: Optional[PipelineDefaults] = None):
        self.registry = registry
        self.store = store
        self.defaults = defaults or PipelineDefaults()
        self.executor = PipelineExecutor(
            registry,
            min_keyword_length=self.defaults.min_keyword_length,
            exclude_source_domain=self.defaults.exclude_source_domain,
        )
        self.runs: Dict[str, RunHandle] = {}
        self.lock = threading.Lock()
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(cls, config: AppConfig) -> 'RunService':
        registry = build_default_registry(config.http, config.web_search)
        store = create_snapshot_store(config.storage)
        return cls(registry, store, config.pipeline)

    # ------------------------------------------------------------------
    # Request validation
    # ------------------------------------------------------------------

    def build_config(self, query: str, max_depth: Optional[int] = None,
                     skip_duplicates: Optional[bool] = None,
                     available_domains: Optional[Sequence[str]] = None,
                     delay_between_steps: Optional[float] = None,
                     max_concurrent_steps: Optional[int] = None,
                     max_total_steps: Optional[int] = None) -> PipelineConfig:
        """
        Validate a run request and freeze it into a PipelineConfig.

        Raises:
            ConfigError: If the request cannot start a run
        """
        defaults = self.defaults
        query = (query or "").strip()
        if not query:
            raise ConfigError("query cannot be empty")

        depth = defaults.max_depth if max_depth is None else max_depth
        if depth < 0:
            raise ConfigError("max_depth cannot be negative")
        if depth > defaults.max_allowed_depth:
            raise ConfigError(f"max_depth cannot exceed {defaults.max_allowed_depth}")

        domains = [as_identifier(d) for d in (available_domains or defaults.available_domains)]
        if not domains:
            raise ConfigError("available_domains cannot be empty")
        unknown = [d for d in domains if d not in self.registry]
        if unknown:
            raise ConfigError(f"Unknown domains: {', '.join(unknown)}")
        # Ordered set
        domains = list(dict.fromkeys(domains))

        delay = defaults.delay_between_steps if delay_between_steps is None else delay_between_steps
        if delay < 0:
            raise ConfigError("delay_between_steps cannot be negative")

        concurrency = defaults.max_concurrent_steps if max_concurrent_steps is None else max_concurrent_steps
        if concurrency < 1:
            raise ConfigError("max_concurrent_steps must be at least 1")

        ceiling = defaults.max_total_steps if max_total_steps is None else max_total_steps
        if ceiling < 1:
            raise ConfigError("max_total_steps must be at least 1")

        return PipelineConfig(
            query=query,
            max_depth=depth,
            max_concurrent_steps=concurrency,
            delay_between_steps=float(delay),
            skip_duplicates=defaults.skip_duplicates if skip_duplicates is None else skip_duplicates,
            available_domains=tuple(domains),
            max_total_steps=ceiling,
        )

    # ------------------------------------------------------------------
    # Batch mode
    # ------------------------------------------------------------------

    def start_run(self, query: str, max_depth: Optional[int] = None,
                  skip_duplicates: Optional[bool] = None,
                  execution_id: Optional[str] = None, **overrides) -> str:
        """
        Start a batch run in the background.

        Returns:
            The execution id to poll
        """
        config = self.build_config(query, max_depth, skip_duplicates, **overrides)
        return self._launch(config, execution_id or new_id())

    def resume_run(self, execution_id: str) -> str:
        """
        Re-run a stored execution, reusing every recorded step outcome and
        executing only the steps it never reached.
        """
        previous = self.store.load_result(execution_id)
        self.logger.info(
            f"Resuming pipeline {execution_id} ({previous.total_steps} recorded steps)"
        )
        return self._launch(previous.config, execution_id, recorded_steps=previous.steps)

    def _launch(self, config: PipelineConfig, execution_id: str, recorded_steps=None) -> str:
        with self.lock:
            existing = self.runs.get(execution_id)
            if existing is not None and existing.status == STATUS_PROCESSING:
                raise ConfigError(f"Execution {execution_id} is already running")

            thread = threading.Thread(
                target=self._run_batch,
                args=(execution_id, config, recorded_steps),
                name=f"pipeline-{execution_id[:8]}",
                daemon=True
            )
            self.runs[execution_id] = RunHandle(execution_id=execution_id, thread=thread)

        thread.start()
        self.logger.info(f"Pipeline {execution_id} accepted for query '{config.query}'")
        return execution_id

    def _run_batch(self, execution_id: str, config: PipelineConfig, recorded_steps):
        handle = self.runs[execution_id]
        try:
            result = self.executor.run(config, execution_id=execution_id,
                                       recorded_steps=recorded_steps)
        except Exception as e:
            self.logger.error(f"Pipeline {execution_id} crashed: {e}", exc_info=True)
            handle.error = str(e)
            handle.status = STATUS_FAILED
            return

        try:
            self.store.save_result(result)
        except PersistenceError as e:
            self.logger.error(f"Pipeline {execution_id} finished but could not be saved: {e}")
            handle.error = str(e)
            handle.status = STATUS_FAILED
            return

        handle.status = result.status
        # The snapshot now answers polls; only failed and running handles are kept
        with self.lock:
            if self.runs.get(execution_id) is handle:
                del self.runs[execution_id]

    # ------------------------------------------------------------------
    # Streaming mode
    # ------------------------------------------------------------------

    def stream_run(self, query: str, max_depth: Optional[int] = None,
                   skip_duplicates: Optional[bool] = None,
                   execution_id: Optional[str] = None, **overrides) -> PipelineStream:
        """
        Start a run whose events are pushed to the returned stream.

        The run executes on its own thread; iterating the stream blocks
        until the next event. Closing it cancels the run.
        """
        config = self.build_config(query, max_depth, skip_duplicates, **overrides)
        execution_id = execution_id or new_id()
        stream = PipelineStream(execution_id, queue_size=self.defaults.event_queue_size)

        def produce():
            try:
                result = self.executor.run(config, execution_id=execution_id,
                                           cancel_event=stream.cancel_event,
                                           on_event=stream.publish)
                stream.result = result
                try:
                    self.store.save_result(result)
                except PersistenceError as e:
                    self.logger.error(f"Streamed pipeline {execution_id} could not be saved: {e}")
                    stream.publish_quietly(EVENT_ERROR, {'message': str(e)})

                if result.status == STATUS_COMPLETED:
                    stream.publish_quietly(EVENT_COMPLETE, {
                        'message': "Pipeline execution completed",
                        'execution_id': execution_id,
                        'total_steps': result.total_steps,
                    })
            except Exception as e:
                self.logger.error(f"Streamed pipeline {execution_id} crashed: {e}", exc_info=True)
                stream.error = e
                if stream.publish_quietly(EVENT_ERROR, {'message': str(e)}):
                    stream.publish_quietly(EVENT_COMPLETE, {
                        'message': "Pipeline execution failed",
                        'execution_id': execution_id,
                        'total_steps': 0,
                    })
            finally:
                stream.finish()

        stream.start(produce)
        self.logger.info(f"Streaming pipeline {execution_id} for query '{config.query}'")
        return stream

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def poll(self, execution_id: str) -> Dict[str, Any]:
        """
        Poll a run by id.

        Raises:
            ResultNotFoundError: If the id is unknown
            PersistenceError: If the stored snapshot cannot be read
        """
        handle = self.runs.get(execution_id)
        if handle is not None and handle.status == STATUS_PROCESSING:
            return {'success': True, 'status': STATUS_PROCESSING, 'data': None}
        if handle is not None and handle.status == STATUS_FAILED:
            return {'success': False, 'status': STATUS_FAILED, 'error': handle.error, 'data': None}

        result = self.store.load_result(execution_id)
        return {'success': True, 'status': result.status, 'data': result.to_dict()}

    def steps(self, pipeline_id: str) -> Dict[str, Any]:
        steps = self.store.list_steps(pipeline_id)
        return {
            'success': True,
            'pipeline_id': pipeline_id,
            'steps': [s.to_dict() for s in steps],
            'count': len(steps),
        }

    def list_runs(self, offset: int = 0, limit: int = 20) -> Dict[str, Any]:
        runs = self.store.list_results(offset=offset, limit=limit)
        return {'success': True, 'data': runs, 'offset': offset, 'limit': limit, 'count': len(runs)}

    def wait(self, execution_id: str, timeout: Optional[float] = None) -> Optional[PipelineResult]:
        """
        Block until a batch run finishes.

        Returns:
            The stored result, or None if the timeout expired first
        """
        handle = self.runs.get(execution_id)
        if handle is not None:
            handle.thread.join(timeout)
            if handle.thread.is_alive():
                return None
            if handle.status == STATUS_FAILED:
                raise PersistenceError(f"Pipeline {execution_id} failed: {handle.error}")
        return self.store.load_result(execution_id)

    def active_runs(self) -> List[str]:
        with self.lock:
            return [h.execution_id for h in self.runs.values() if h.status == STATUS_PROCESSING]

    def close(self):
        """Release HTTP sessions and store connections."""
        self.registry.close()
        self.store.close()
        self.logger.info("Run service closed")
