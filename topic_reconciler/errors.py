"""
Error taxonomy for the reconciliation pipeline.

Correctness-critical stages raise; enrichment stages record
StructuralRepairWarning entries instead.
"""

from dataclasses import dataclass, field
from typing import List, Optional


class ReconciliationError(Exception):
    """
    Base class for every terminal pipeline failure.

    Carries the name of the stage that failed so callers get a single error
    identifying where the run stopped.
    """

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class ValidationError(ReconciliationError):
    """Malformed or empty input. Raised before any collaborator is called."""


class CollaboratorError(ReconciliationError):
    """An embedding or generative-text collaborator failed beyond its retry policy."""


class PipelineError(ReconciliationError):
    """Unexpected failure inside a stage, chained from the original exception."""


@dataclass
class StructuralRepairWarning:
    """
    Non-fatal record of a repair applied to collaborator output.

    Never raised; surfaced in result metadata so callers can audit how often
    the collaborator's structure had to be fixed.
    """
    kind: str  # e.g. "missing_index", "duplicate_index", "empty_cluster"
    detail: str
    indices: List[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "detail": self.detail,
            "indices": list(self.indices)
        }


# Design Rationale and Trade-offs:
#
# 1. Why a mutable stage on the exception?
#    - Agents raise without knowing which pipeline step called them
#    - The orchestrator fills the stage in on the way out
#    - Trade-off: An error caught outside a run may have stage None
#
# 2. Why are repair warnings data, not exceptions?
#    - Repairs never stop a run; they are reported alongside the result
#    - Trade-off: Callers must inspect warnings to notice a poor proposal
