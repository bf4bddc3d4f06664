"""Stateless orchestration engine.

Key Components:
    - LockManager: Per-project mutual exclusion
    - StateDeriver: Reconstructs PRP state from git, the review host and disk
    - select_next: Pure selection of the one next action
    - Workflow stages: merge, revise, enrich, execute
    - Orchestrator: The derive, select, act run loop

Example:
    >>> from prp_orchestrator.engine import Orchestrator
    >>> result = await Orchestrator(config).run_once(ctx)
"""

from prp_orchestrator.engine.lock import LockManager
from prp_orchestrator.engine.orchestrator import Orchestrator, ProjectStatus, ProviderSet, RunResult
from prp_orchestrator.engine.selector import Action, is_complete, select_next
from prp_orchestrator.engine.state_deriver import StateDeriver

__all__ = [
    "Action",
    "LockManager",
    "Orchestrator",
    "ProjectStatus",
    "ProviderSet",
    "RunResult",
    "StateDeriver",
    "is_complete",
    "select_next",
]
