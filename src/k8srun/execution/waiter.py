"""CompletionWaiter - blocks until a pod reaches a terminal phase."""

import logging
import time
from typing import TYPE_CHECKING

from ..config import DEFAULT_POLL_INTERVAL
from ..errors import K8sRunError, RunCancelled, WaitFailure
from ..protocol import ExitStatus, UnitStatus
from .handle import Execution, ExecutionState

if TYPE_CHECKING:
    from ..cancel import CancellationToken

logger = logging.getLogger(__name__)

# Reported for a failed pod whose container gave no usable exit code.
GENERIC_FAILURE_CODE = 1


def exit_status_for(status: UnitStatus) -> ExitStatus:
    """Map a terminal pod status to the unit's exit code."""
    if status.phase == "Succeeded":
        return ExitStatus(status.exit_code if status.exit_code is not None else 0)
    if status.exit_code:
        return ExitStatus(status.exit_code)
    return ExitStatus(GENERIC_FAILURE_CODE)


class CompletionWaiter:
    """Polls pod status until ``Succeeded`` or ``Failed``.

    ``Pending``, ``Running`` and ``Unknown`` keep polling; there is no
    built-in deadline, callers bound the wait through a cancellation token.
    """

    def __init__(self, poll_interval: float = DEFAULT_POLL_INTERVAL):
        self.poll_interval = poll_interval

    def wait(
        self,
        execution: Execution,
        cancel: "CancellationToken | None" = None,
    ) -> ExitStatus:
        """Return the unit's exit status once it is terminal.

        Raises:
            WaitFailure: status could not be read or had no phase.
            RunCancelled: *cancel* fired while waiting.
        """
        polls = 0
        while True:
            if cancel is not None:
                cancel.raise_if_cancelled()

            try:
                status = execution.runtime.get_unit_status(execution.unit)
            except K8sRunError:
                raise
            except Exception as e:
                raise WaitFailure(
                    f"unable to read status of pod {execution.unit}: {e}"
                ) from e
            polls += 1

            if not status.phase:
                raise WaitFailure(f"pod {execution.unit} reported no phase")
            if status.terminal:
                break

            logger.debug(
                "Pod %s still %s after %d poll(s)", execution.unit, status.phase, polls
            )
            if cancel is not None:
                if cancel.wait(self.poll_interval):
                    raise RunCancelled(f"run {cancel.reason} while waiting for completion")
            else:
                time.sleep(self.poll_interval)

        execution.last_status = status
        result = exit_status_for(status)
        execution.state = ExecutionState.TERMINAL
        execution.exit_status = result
        logger.debug(
            "Pod %s finished: phase=%s exit_code=%s reason=%s",
            execution.unit, status.phase, status.exit_code, status.reason,
        )
        return result
