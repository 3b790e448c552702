"""Execution - binds a job to the pod launched for it."""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..protocol import ExitStatus, Job, Template, UnitRef, UnitStatus

if TYPE_CHECKING:
    from ..errors import DeleteFailure
    from ..platform.base import UnitRuntime


class ExecutionState(Enum):
    """Lifecycle of one launched pod, in order."""
    CREATED = "created"        # pod submitted, name assigned
    STREAMING = "streaming"    # output being copied
    TERMINAL = "terminal"      # exit status known
    DELETED = "deleted"        # removal requested


@dataclass
class Execution:
    """Handle for the single pod owned by one run.

    Never shared between runs.  ``runtime`` is the unit endpoint of the
    namespace the pod lives in.
    """
    job: Job
    runtime: "UnitRuntime" = field(repr=False)
    unit: UnitRef
    template: Optional[Template] = field(default=None, repr=False)
    state: ExecutionState = ExecutionState.CREATED
    bytes_streamed: int = 0
    last_status: Optional[UnitStatus] = None
    exit_status: Optional[ExitStatus] = None
    delete_error: Optional["DeleteFailure"] = None

    @property
    def name(self) -> str:
        return self.unit.name

    @property
    def namespace(self) -> str:
        return self.unit.namespace
