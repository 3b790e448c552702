"""Reaper - removes the pod of a run on every exit path.

Typical lifecycle::

    with reaper.scope() as scope:
        execution = launcher.launch(template, job)   # may fail: nothing bound
        scope.bind(execution)
        streamer.copy(execution, sink)
        return waiter.wait(execution)
    # reaper.reap(...) has run exactly once here, whatever happened above
"""

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator, Optional

from ..errors import DeleteFailure
from .handle import Execution, ExecutionState

if TYPE_CHECKING:
    from ..logging import TraceLogger

logger = logging.getLogger(__name__)


class ReapScope:
    """Holds the execution (if any) the enclosing scope must clean up."""

    def __init__(self) -> None:
        self.execution: Optional[Execution] = None

    def bind(self, execution: Execution) -> Execution:
        if self.execution is not None and self.execution is not execution:
            raise RuntimeError("a reap scope owns exactly one execution")
        self.execution = execution
        return execution


class Reaper:
    """Best-effort pod deletion that never masks the run's outcome."""

    def __init__(self, trace: "TraceLogger | None" = None):
        self.trace = trace

    @contextmanager
    def scope(self) -> Iterator[ReapScope]:
        """Yield a ``ReapScope``; ``reap()`` fires once when the block exits.

        Fires on normal exit, early ``return``, exceptions and
        ``KeyboardInterrupt`` alike.  An unbound scope reaps nothing.
        """
        scope = ReapScope()
        try:
            yield scope
        finally:
            self.reap(scope.execution)

    def reap(self, execution: Optional[Execution]) -> bool:
        """Delete the execution's pod; return ``True`` if it is gone.

        Failures are logged and recorded on ``execution.delete_error``;
        they are never raised.
        """
        if execution is None:
            logger.debug("Nothing to reap: no pod was created")
            return False
        if execution.state is ExecutionState.DELETED:
            return True

        try:
            execution.runtime.delete_unit(execution.unit)
        except Exception as e:
            failure = DeleteFailure(f"unable to delete pod {execution.unit}: {e}")
            failure.__cause__ = e
            execution.delete_error = failure
            logger.warning("%s (left for out-of-band cleanup)", failure)
            if self.trace:
                self.trace.log(
                    "unit_delete_failed",
                    pod=execution.name,
                    namespace=execution.namespace,
                    error=str(e),
                )
            return False

        execution.state = ExecutionState.DELETED
        if self.trace:
            self.trace.log("unit_deleted", pod=execution.name, namespace=execution.namespace)
        return True
