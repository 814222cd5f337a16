"""
Pipeline Module - Step model and frontier algorithm.

Components:
-----------
- PipelineConfig / PipelineStep / PipelineResult: Run data model
- StepScheduler: FIFO frontier with depth, duplicate and ceiling control
- VisitedKeywords: Per-domain visited set with atomic check-then-set
- extract_categories: Records -> category -> keywords
- StepThrottle: Global courtesy delay between steps
"""

from .frontier import StepScheduler
from .keyword_extractor import extract_categories
from .pipeline_data import PipelineConfig, PipelineResult, PipelineStep
from .throttle import StepThrottle
from .visited import VisitedKeywords

__all__ = [
    'PipelineConfig',
    'PipelineStep',
    'PipelineResult',
    'StepScheduler',
    'VisitedKeywords',
    'extract_categories',
    'StepThrottle',
]
