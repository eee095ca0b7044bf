from __future__ import annotations

from enum import Enum
from typing import List, Optional


class ErrorKind(str, Enum):
    TRANSPORT = "transport"
    CREDENTIAL = "credential"
    SHAPE = "shape"
    ENRICHMENT = "enrichment"
    UNEXPECTED = "unexpected"
    CANCELLED = "cancelled"


class PipelineError(Exception):
    """Base for every failure a pipeline run can report.

    Carries enough context for a caller to render an actionable message:
    the classified kind, the stage that failed and, for the expander, the
    1-based index of the failing part.
    """

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(
        self,
        message: str,
        *,
        kind: Optional[ErrorKind] = None,
        stage: Optional[str] = None,
        part_index: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.stage = stage
        self.part_index = part_index


class GenerationFailure(PipelineError):
    """Terminal outcome of one Backoff Caller invocation."""


class ShapeError(PipelineError):
    """The service answered, but not with the structure the stage needs."""

    kind = ErrorKind.SHAPE


class PlanningFailure(ShapeError):
    pass


class ContentGenerationFailure(ShapeError):
    pass


class ValidationFailure(ShapeError):
    """Raised when the assembled plan fails the structural gate."""

    def __init__(self, message: str, failures: List[str], **kwargs):
        super().__init__(message, **kwargs)
        self.failures = failures


class ItemEnrichmentError(PipelineError):
    """A single checklist call failed; the owning item is degraded, never raised."""

    kind = ErrorKind.ENRICHMENT

    def __init__(self, message: str, item_index: int, cause: BaseException):
        super().__init__(message, stage="enriching")
        self.item_index = item_index
        self.cause = cause


class PipelineStateError(Exception):
    pass


class RunInProgressError(PipelineStateError):
    pass


class InvalidCommitChoiceError(PipelineStateError):
    pass
