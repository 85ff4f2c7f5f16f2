"""
Zen Bridge Processing Module
============================

Compliance evaluation, the per-article state machine and the ingestion
pipeline that ties the ingestion components together.
"""

from .compliance import evaluate_compliance, ComplianceResult
from .state_machine import ArticleStateMachine
from .pipeline import IngestionPipeline, CycleResult, ProcessingState

__all__ = [
    'evaluate_compliance',
    'ComplianceResult',
    'ArticleStateMachine',
    'IngestionPipeline',
    'CycleResult',
    'ProcessingState',
]
