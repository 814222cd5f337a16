"""
Core Module - Run execution and delivery.

Components:
-----------
- PipelineExecutor: Frontier loop (seed, search, extract, expand)
- RunService: Batch submission with polling, streaming submission, resume
- PipelineStream / PipelineEvent: Bounded event channel for streaming runs
- AppConfig: Master configuration (pipeline defaults, HTTP, storage, server)
"""

from .pipeline_executor import PipelineExecutor
from .run_service import AppConfig, PipelineDefaults, RunService, ServerConfig
from .streaming import PipelineEvent, PipelineStream

__all__ = [
    'PipelineExecutor',
    'RunService',
    'AppConfig',
    'PipelineDefaults',
    'ServerConfig',
    'PipelineEvent',
    'PipelineStream',
]
