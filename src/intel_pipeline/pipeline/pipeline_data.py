"""
Pipeline Data Model - Configuration, step and result containers for a run.
File: src/intel_pipeline/pipeline/pipeline_data.py
"""
import uuid
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..errors import StepStateError


STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"


def new_id() -> str:
    """Generate a new step/pipeline identifier."""
    return str(uuid.uuid4())


def record_to_dict(record: Any) -> Any:
    """Convert a connector record into something JSON can serialize."""
    if is_dataclass(record) and not isinstance(record, type):
        return asdict(record)
    if isinstance(record, Mapping):
        return dict(record)
    if isinstance(record, (str, int, float, bool)) or record is None:
        return record
    return {'value': str(record)}


@dataclass(frozen=True)
class PipelineConfig:
    """
    Immutable per-run settings.

    Built once by the run service from request parameters and the loaded
    defaults; the executor and scheduler only read it.
    """
    query: str
    max_depth: int = 2
    max_concurrent_steps: int = 1
    delay_between_steps: float = 2.0
    skip_duplicates: bool = True
    available_domains: Tuple[str, ...] = ()
    max_total_steps: int = 500

    def to_dict(self) -> Dict[str, Any]:
        return {
            'query': self.query,
            'max_depth': self.max_depth,
            'max_concurrent_steps': self.max_concurrent_steps,
            'delay_between_steps': self.delay_between_steps,
            'skip_duplicates': self.skip_duplicates,
            'available_domains': list(self.available_domains),
            'max_total_steps': self.max_total_steps,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PipelineConfig':
        return cls(
            query=data['query'],
            max_depth=int(data.get('max_depth', 2)),
            max_concurrent_steps=int(data.get('max_concurrent_steps', 1)),
            delay_between_steps=float(data.get('delay_between_steps', 2.0)),
            skip_duplicates=bool(data.get('skip_duplicates', True)),
            available_domains=tuple(data.get('available_domains', ())),
            max_total_steps=int(data.get('max_total_steps', 500)),
        )


@dataclass
class PipelineStep:
    """
    One search of one keyword against one domain.

    Created pending by the scheduler; the executor records the outcome
    exactly once through record_success() or record_failure().
    """
    domain_type: str
    search_parameter: str
    category: str
    depth: int
    pipeline_id: str
    id: str = field(default_factory=new_id)
    parent_step_id: Optional[str] = None
    sequence: int = 0

    # Outcome fields
    success: bool = False
    error: Optional[str] = None
    output: List[Any] = field(default_factory=list)
    keywords_per_category: Dict[str, List[str]] = field(default_factory=dict)
    duration_seconds: float = 0.0
    completed: bool = False

    @property
    def is_pending(self) -> bool:
        return not self.completed

    @property
    def replay_key(self) -> Tuple[str, str, str, int]:
        """Identity of a step independent of its generated ids."""
        return (self.domain_type, self.search_parameter, self.category, self.depth)

    def record_success(self, output: List[Any], keywords_per_category: Dict[str, List[str]],
                       duration_seconds: float = 0.0) -> None:
        """Store a successful search outcome."""
        self._ensure_pending()
        self.success = True
        self.error = None
        self.output = list(output)
        self.keywords_per_category = {k: list(v) for k, v in keywords_per_category.items()}
        self.duration_seconds = duration_seconds
        self.completed = True

    def record_failure(self, error: str, duration_seconds: float = 0.0) -> None:
        """Store a failed search outcome; output and keywords stay empty."""
        self._ensure_pending()
        self.success = False
        self.error = error or "unknown error"
        self.output = []
        self.keywords_per_category = {}
        self.duration_seconds = duration_seconds
        self.completed = True

    def copy_outcome_from(self, other: 'PipelineStep') -> None:
        """Adopt the outcome of a previously recorded step (resume)."""
        if other.success:
            self.record_success(other.output, other.keywords_per_category, other.duration_seconds)
        else:
            self.record_failure(other.error, other.duration_seconds)

    def _ensure_pending(self):
        if self.completed:
            raise StepStateError(f"Step {self.id} already has an outcome")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage/serialization"""
        return {
            'id': self.id,
            'pipeline_id': self.pipeline_id,
            'sequence': self.sequence,
            'domain_type': self.domain_type,
            'search_parameter': self.search_parameter,
            'category': self.category,
            'depth': self.depth,
            'parent_step_id': self.parent_step_id,
            'success': self.success,
            'error': self.error,
            'output': [record_to_dict(r) for r in self.output],
            'keywords_per_category': self.keywords_per_category,
            'duration_seconds': round(self.duration_seconds, 3),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PipelineStep':
        """Rebuild a completed step from its serialized form."""
        step = cls(
            domain_type=data['domain_type'],
            search_parameter=data['search_parameter'],
            category=data.get('category') or '',
            depth=int(data['depth']),
            pipeline_id=data['pipeline_id'],
            id=data['id'],
            parent_step_id=data.get('parent_step_id'),
            sequence=int(data.get('sequence', 0)),
        )
        if data.get('success'):
            step.record_success(data.get('output') or [],
                                data.get('keywords_per_category') or {},
                                float(data.get('duration_seconds') or 0.0))
        else:
            step.record_failure(data.get('error'), float(data.get('duration_seconds') or 0.0))
        return step

    def __repr__(self) -> str:
        state = "pending" if self.is_pending else ("ok" if self.success else "failed")
        return (f"PipelineStep(domain='{self.domain_type}', keyword='{self.search_parameter}', "
                f"depth={self.depth}, {state})")


@dataclass
class PipelineResult:
    """
    Accumulator for a whole run.

    Statistics are derived from the step list by compute_statistics(); they
    are never incremented while the run is in progress.
    """
    id: str
    config: PipelineConfig
    steps: List[PipelineStep] = field(default_factory=list)
    status: str = STATUS_COMPLETED
    total_steps: int = 0
    successful_steps: int = 0
    failed_steps: int = 0
    max_depth_reached: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    def add_step(self, step: PipelineStep) -> None:
        self.steps.append(step)

    def compute_statistics(self) -> None:
        """Recompute all counters from the step list (discovery order)."""
        self.steps.sort(key=lambda s: s.sequence)
        self.total_steps = len(self.steps)
        self.successful_steps = sum(1 for s in self.steps if s.success)
        self.failed_steps = self.total_steps - self.successful_steps
        self.max_depth_reached = max((s.depth for s in self.steps), default=0)

    def finalize(self, status: str = STATUS_COMPLETED) -> None:
        self.status = status
        self.finished_at = datetime.now()
        self.compute_statistics()

    def summary(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'query': self.config.query,
            'status': self.status,
            'total_steps': self.total_steps,
            'successful_steps': self.successful_steps,
            'failed_steps': self.failed_steps,
            'max_depth_reached': self.max_depth_reached,
            'created_at': self.created_at.isoformat(),
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.summary()
        data.pop('query')
        data['steps'] = [s.to_dict() for s in self.steps]
        data['config'] = self.config.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PipelineResult':
        """Rebuild a result; the stored counters are ignored and recomputed."""
        result = cls(
            id=data['id'],
            config=PipelineConfig.from_dict(data['config']),
            steps=[PipelineStep.from_dict(s) for s in data.get('steps', [])],
            status=data.get('status', STATUS_COMPLETED),
        )
        if data.get('created_at'):
            result.created_at = datetime.fromisoformat(data['created_at'])
        if data.get('finished_at'):
            result.finished_at = datetime.fromisoformat(data['finished_at'])
        result.compute_statistics()
        return result

    def __repr__(self) -> str:
        return (f"PipelineResult(id='{self.id}', status={self.status}, "
                f"steps={self.total_steps}, failed={self.failed_steps})")
