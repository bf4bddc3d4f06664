"""Action workflow implementations.

Available Stages:
    - MergeStage: Squash-merge an approved pull request
    - RevisionStage: Address review feedback on an open pull request
    - EnrichmentStage: Turn a plan entry into a detailed PRP document
    - ExecutionStage: Implement an enriched PRP and open a pull request

Each stage inherits from WorkflowStage.
"""

from prp_orchestrator.engine.stages.base import WorkflowStage
from prp_orchestrator.engine.stages.enrichment import EnrichmentStage
from prp_orchestrator.engine.stages.execution import ExecutionStage
from prp_orchestrator.engine.stages.merge import MergeStage
from prp_orchestrator.engine.stages.revision import RevisionStage

__all__ = [
    "EnrichmentStage",
    "ExecutionStage",
    "MergeStage",
    "RevisionStage",
    "WorkflowStage",
]
