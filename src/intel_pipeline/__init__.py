"""
Intel Pipeline - Keyword-driven public-record search across multiple sources.

Features:
- Breadth-first keyword expansion across registry, court, tax, news and web search
- Depth-bounded, deduplicated frontier with a global step ceiling
- Per-step failure tolerance (one failing source never aborts a run)
- Batch runs with poll-by-id, or live streaming of each step
- Configurable via YAML, SQLite snapshots, FastAPI and CLI front ends
"""

__version__ = "1.0.0"

from .core.pipeline_executor import PipelineExecutor
from .core.run_service import AppConfig, RunService
from .pipeline.pipeline_data import PipelineConfig, PipelineResult, PipelineStep
from .connectors.base import DomainConnector, DomainType, KeywordCategory
from .connectors.registry import ConnectorRegistry, build_default_registry
from .config.pipeline_config import ConfigLoader, validate_config

__all__ = [
    'PipelineExecutor',
    'RunService',
    'AppConfig',
    'PipelineConfig',
    'PipelineResult',
    'PipelineStep',
    'DomainConnector',
    'DomainType',
    'KeywordCategory',
    'ConnectorRegistry',
    'build_default_registry',
    'ConfigLoader',
    'validate_config',
]
